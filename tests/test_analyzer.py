"""Tests for the opinion analyzers."""

from unittest.mock import MagicMock

import pytest

from opinion_conflict.analyzer import (
    AnalysisMode,
    HeuristicOpinionAnalyzer,
    LLMOpinionAnalyzer,
    clean_json_response,
    create_analyzer,
    parse_verdict,
)
from opinion_conflict.errors import CollaboratorError

VERDICT_JSON = (
    '{"hasConflict": true, "conflictType": "CONTRADICTORY", "topic": "remote work", '
    '"conflictScore": 0.82, "description": "Opposing claims", "rationale": "Because"}'
)


def test_clean_json_strips_fences():
    """Test removing markdown code fences."""
    assert clean_json_response(f"```json\n{VERDICT_JSON}\n```") == VERDICT_JSON


def test_clean_json_strips_prose():
    """Test trimming text around the outermost object."""
    assert clean_json_response(f"Here you go: {VERDICT_JSON} Hope this helps.") == VERDICT_JSON


def test_parse_verdict_aliases():
    """Test that camelCase keys populate the verdict."""
    verdict = parse_verdict(VERDICT_JSON)

    assert verdict.has_conflict is True
    assert verdict.conflict_type == "CONTRADICTORY"
    assert verdict.conflict_score == 0.82
    assert verdict.rationale == "Because"


def test_parse_verdict_accepts_analysis_key_and_nulls():
    """Test the 'analysis' alias and null text fields."""
    verdict = parse_verdict('{"hasConflict": false, "topic": null, "analysis": "unrelated"}')

    assert verdict.has_conflict is False
    assert verdict.topic == ""
    assert verdict.rationale == "unrelated"


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"conflictScore": "high"}'])
def test_parse_verdict_rejects_garbage(raw):
    """Test that malformed answers raise CollaboratorError."""
    with pytest.raises(CollaboratorError):
        parse_verdict(raw)


def fake_completion(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def test_llm_analyzer_parses_completion():
    """Test a chat completion answer wrapped in fences."""
    analyzer = LLMOpinionAnalyzer(provider="openai", api_key="test-key")
    analyzer.client = MagicMock()
    analyzer.client.chat.completions.create.return_value = fake_completion(f"```json\n{VERDICT_JSON}\n```")

    verdict = analyzer.analyze("remote work increases productivity", "remote work harms cohesion")

    assert verdict.has_conflict is True
    kwargs = analyzer.client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert "remote work harms cohesion" in kwargs["messages"][1]["content"]


def test_llm_analyzer_wraps_errors():
    """Test that client failures become CollaboratorError."""
    analyzer = LLMOpinionAnalyzer(provider="deepseek", api_key="test-key")
    analyzer.client = MagicMock()
    analyzer.client.chat.completions.create.side_effect = RuntimeError("connection reset")

    with pytest.raises(CollaboratorError, match="connection reset"):
        analyzer.analyze("a", "b")


def test_llm_analyzer_empty_answer():
    """Test that an empty answer is an error."""
    analyzer = LLMOpinionAnalyzer(provider="groq", api_key="test-key")
    analyzer.client = MagicMock()
    analyzer.client.chat.completions.create.return_value = fake_completion(None)

    with pytest.raises(CollaboratorError):
        analyzer.analyze("a", "b")


def test_huggingface_uses_http(monkeypatch):
    """Test the Hugging Face provider over plain HTTP."""
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(url=url, headers=headers, payload=json, timeout=timeout)
        response = MagicMock()
        response.json.return_value = {"choices": [{"message": {"content": VERDICT_JSON}}]}
        return response

    monkeypatch.setattr("opinion_conflict.analyzer.requests.post", fake_post)
    analyzer = LLMOpinionAnalyzer(provider="huggingface", api_key="hf-key", timeout=5.0)

    verdict = analyzer.analyze("a", "b", AnalysisMode.CARD_VS_PROFILE)

    assert verdict.conflict_score == 0.82
    assert captured["url"].endswith("/v1/chat/completions")
    assert captured["headers"]["Authorization"] == "Bearer hf-key"
    assert captured["timeout"] == 5.0


def test_prompt_per_mode():
    """Test that profile mode asks about the user's belief."""
    analyzer = LLMOpinionAnalyzer(provider="openai", api_key="test-key")

    card_prompt = analyzer.build_prompt("A", "B", AnalysisMode.CARD_VS_CARD)
    profile_prompt = analyzer.build_prompt("A", "B", AnalysisMode.CARD_VS_PROFILE)

    assert "## Card A" in card_prompt
    assert "The user's belief" in profile_prompt
    assert "EXTENDING" in profile_prompt


def test_unknown_provider():
    """Test rejecting an unknown provider."""
    with pytest.raises(ValueError):
        LLMOpinionAnalyzer(provider="mystery", api_key="x")


def test_heuristic_negation_conflict():
    """Test that negating a shared claim is a contradiction."""
    analyzer = HeuristicOpinionAnalyzer()

    verdict = analyzer.analyze(
        "Remote work improves productivity",
        "Remote work does not improve productivity",
    )

    assert verdict.has_conflict is True
    assert verdict.conflict_type == "CONTRADICTORY"
    assert verdict.conflict_score >= 0.6


def test_heuristic_antonym_conflict():
    """Test that opposing terms on a shared subject are a contradiction."""
    verdict = HeuristicOpinionAnalyzer().analyze("Coffee is good for focus", "Coffee is bad for focus")

    assert verdict.has_conflict is True
    assert "coffee" in verdict.topic


def test_heuristic_chinese_negation():
    """Test negation markers in Chinese text."""
    verdict = HeuristicOpinionAnalyzer().analyze("远程办公提高效率", "远程办公不能提高效率")
    assert verdict.has_conflict is True


def test_heuristic_unrelated_texts():
    """Test that unrelated texts do not conflict."""
    verdict = HeuristicOpinionAnalyzer().analyze("Cats sleep a lot", "Interest rates rose")

    assert verdict.has_conflict is False
    assert verdict.conflict_type == "NONE"


def test_heuristic_agreement():
    """Test that agreeing texts only overlap."""
    verdict = HeuristicOpinionAnalyzer().analyze(
        "Remote work improves productivity", "Remote work improves focus and productivity"
    )

    assert verdict.has_conflict is False
    assert verdict.conflict_type == "TOPIC_OVERLAP"


def test_create_analyzer_without_key_falls_back(monkeypatch):
    """Test the offline fallback when no API key is configured."""
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)

    assert isinstance(create_analyzer("deepseek"), HeuristicOpinionAnalyzer)
    assert isinstance(create_analyzer("heuristic"), HeuristicOpinionAnalyzer)


def test_create_analyzer_with_key(monkeypatch):
    """Test building an LLM analyzer when a key is present."""
    monkeypatch.setenv("GROQ_API_KEY", "test-key")

    analyzer = create_analyzer("groq", model="llama-3.1-70b-versatile")

    assert isinstance(analyzer, LLMOpinionAnalyzer)
    assert analyzer.model == "llama-3.1-70b-versatile"


def test_create_analyzer_unknown_provider():
    """Test rejecting an unknown provider name."""
    with pytest.raises(ValueError):
        create_analyzer("mystery")
