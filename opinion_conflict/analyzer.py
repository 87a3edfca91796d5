"""Opinion analysis: is text A in conflict with text B?

The judgment itself is delegated to a large language model through an
OpenAI-compatible chat API. Supported providers:
- DeepSeek: deepseek-chat (default)
- OpenAI: GPT-4o family
- Groq: Llama 3.1 models
- Hugging Face: serverless inference, called over plain HTTP

``HeuristicOpinionAnalyzer`` gives a deterministic offline verdict from
negation and antonym cues for use without any provider.
"""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Literal

import requests
from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from opinion_conflict.errors import CollaboratorError
from opinion_conflict.logger import get_logger
from opinion_conflict.tokenizer import Tokenizer

load_dotenv()

logger = get_logger(__name__)

Provider = Literal["deepseek", "openai", "groq", "huggingface"]


class AnalysisMode(str, Enum):
    """What the two text spans are."""

    CARD_VS_CARD = "card-vs-card"
    CARD_VS_PROFILE = "card-vs-profile"


class ConflictVerdict(BaseModel):
    """Parsed answer of the opinion-analysis collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    has_conflict: bool = Field(default=False, alias="hasConflict")
    conflict_type: str = Field(default="NONE", alias="conflictType")
    conflict_score: float = Field(default=0.0, alias="conflictScore")
    topic: str = ""
    description: str = ""
    rationale: str = Field(default="", validation_alias=AliasChoices("rationale", "analysis"))

    @field_validator("conflict_type", "topic", "description", "rationale", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


def clean_json_response(response: str) -> str:
    """Strip markdown fences and surrounding prose from a JSON answer.

    Args:
        response: Raw model output

    Returns:
        The outermost ``{...}`` object, or the stripped text if none is found
    """
    response = response.strip()
    if response.startswith("```"):
        lines = response.split("\n")
        # Skip first line (```json or ```) and last line (```)
        if len(lines) > 2:
            response = "\n".join(lines[1:-1])

    start = response.find("{")
    end = response.rfind("}")
    if start >= 0 and end > start:
        return response[start:end + 1]
    return response.strip()


def parse_verdict(raw: str) -> ConflictVerdict:
    """Parse model output into a verdict.

    Raises:
        CollaboratorError: If the output is not a valid verdict object
    """
    try:
        data = json.loads(clean_json_response(raw))
        if not isinstance(data, dict):
            raise CollaboratorError(f"expected a JSON object, got {type(data).__name__}")
        return ConflictVerdict.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise CollaboratorError(f"malformed verdict: {e}") from e


class OpinionAnalyzer(ABC):
    """Capability interface for the conflict judgment."""

    @abstractmethod
    def analyze(
        self,
        text_a: str,
        text_b: str,
        mode: AnalysisMode = AnalysisMode.CARD_VS_CARD,
    ) -> ConflictVerdict:
        """Judge whether two text spans conflict.

        Args:
            text_a: First span (the existing card, or the profile belief)
            text_b: Second span (the focal card)
            mode: Whether text_a is a card or a profile belief

        Returns:
            The verdict

        Raises:
            CollaboratorError: If no verdict could be obtained
        """


CARD_PROMPT = """Decide whether the two knowledge cards below hold conflicting viewpoints.

## Card A
{text_a}

## Card B
{text_b}

Conflict types:
- CONTRADICTORY: the cards assert opposite things
- DIFFERENT_PERSPECTIVE: same topic, a meaningfully different angle
- COMPLEMENTARY: the cards support or complete each other
- TOPIC_OVERLAP: same topic, no real disagreement
- NONE: unrelated

Similar viewpoints, elaborations and unrelated content are not conflicts.

Return only JSON:
{{
    "hasConflict": true/false,
    "conflictType": "CONTRADICTORY|DIFFERENT_PERSPECTIVE|COMPLEMENTARY|TOPIC_OVERLAP|NONE",
    "topic": "the topic both cards address",
    "conflictScore": 0.0-1.0,
    "description": "one sentence describing the conflict",
    "rationale": "detailed reasoning"
}}"""

PROFILE_PROMPT = """Decide whether a new knowledge card conflicts with a belief the user already holds.

## The user's belief
{text_a}

## The new card
{text_b}

Conflict types:
- CONTRADICTORY: the card asserts the opposite of the belief
- CHALLENGING: the card puts pressure on the belief without negating it
- DIFFERENT_PERSPECTIVE: the card looks at the topic from another angle
- EXTENDING: the card adds to the belief in a way worth noticing
- NONE: compatible or unrelated

Supplements and unrelated content are not conflicts.

Return only JSON:
{{
    "hasConflict": true/false,
    "conflictType": "CONTRADICTORY|CHALLENGING|DIFFERENT_PERSPECTIVE|EXTENDING|NONE",
    "topic": "the topic of the belief",
    "conflictScore": 0.0-1.0,
    "description": "one sentence describing the conflict",
    "rationale": "detailed reasoning"
}}"""

SYSTEM_PROMPT = "You are a careful analyst of opinions. Always return valid JSON."


class LLMOpinionAnalyzer(OpinionAnalyzer):
    """Opinion analysis backed by a chat-completion model."""

    # Default models per provider
    DEFAULT_MODELS = {
        "deepseek": "deepseek-chat",
        "openai": "gpt-4o-mini",
        "groq": "llama-3.1-8b-instant",
        "huggingface": "meta-llama/Llama-3.1-8B-Instruct",
    }

    # Base URLs for each provider
    BASE_URLS = {
        "deepseek": "https://api.deepseek.com",
        "openai": None,  # Use OpenAI default
        "groq": "https://api.groq.com/openai/v1",
        "huggingface": "https://api-inference.huggingface.co",
    }

    API_KEY_ENV = {
        "deepseek": "DEEPSEEK_API_KEY",
        "openai": "OPENAI_API_KEY",
        "groq": "GROQ_API_KEY",
        "huggingface": "HUGGINGFACE_API_KEY",
    }

    def __init__(
        self,
        provider: Provider = "deepseek",
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
        timeout: float = 30.0,
        max_retries: int = 2,
    ) -> None:
        """Initialize the analyzer.

        Args:
            provider: Provider to use ('deepseek', 'openai', 'groq', 'huggingface')
            model: Model name (uses provider default if None)
            api_key: API key (uses the provider's env var if None)
            base_url: Custom base URL (uses provider default if None)
            temperature: Sampling temperature
            max_tokens: Cap on the answer length
            timeout: Seconds allowed for one HTTP request
            max_retries: Retries the HTTP client performs on transient errors
        """
        if provider not in self.DEFAULT_MODELS:
            raise ValueError(f"unknown provider: {provider}")

        self.provider = provider
        self.model = model or self.DEFAULT_MODELS[provider]
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.api_key = api_key or os.getenv(self.API_KEY_ENV[provider])
        self.base_url = base_url or self.BASE_URLS[provider]

        if provider != "huggingface":
            from openai import OpenAI

            self.client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=timeout,
                max_retries=max_retries,
            )

    def build_prompt(self, text_a: str, text_b: str, mode: AnalysisMode) -> str:
        template = PROFILE_PROMPT if mode == AnalysisMode.CARD_VS_PROFILE else CARD_PROMPT
        return template.format(text_a=text_a.strip(), text_b=text_b.strip())

    def analyze(
        self,
        text_a: str,
        text_b: str,
        mode: AnalysisMode = AnalysisMode.CARD_VS_CARD,
    ) -> ConflictVerdict:
        prompt = self.build_prompt(text_a, text_b, mode)

        try:
            if self.provider == "huggingface":
                content = self._complete_huggingface(prompt)
            else:
                content = self._complete(prompt)
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(f"{self.provider} request failed: {e}") from e

        if not content:
            raise CollaboratorError(f"{self.provider} returned an empty answer")

        return parse_verdict(content)

    def _complete(self, prompt: str) -> str | None:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        # JSON mode is only honoured by some providers
        if self.provider in ("openai", "deepseek"):
            kwargs["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content

    def _complete_huggingface(self, prompt: str) -> str | None:
        """Call the Hugging Face inference API directly.

        Args:
            prompt: The analysis prompt

        Returns:
            Raw model answer
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        response = requests.post(
            f"{self.base_url}/v1/chat/completions",
            headers=headers,
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()

        result = response.json()
        try:
            return result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CollaboratorError(f"unexpected huggingface response shape: {result!r:.200}") from e

    def __repr__(self) -> str:
        return f"LLMOpinionAnalyzer(provider={self.provider}, model={self.model})"


# Negation cues for the offline analyzer
NEGATION_WORDS = frozenset(
    {
        "not", "no", "never", "none", "cannot", "can't", "won't", "don't",
        "doesn't", "isn't", "aren't", "wasn't", "weren't", "without",
    }
)
NEGATION_MARKERS = ("不", "没", "非", "无", "未")

# Pairs of words that flip a claim
ANTONYMS = (
    ("increase", "decrease"),
    ("increases", "decreases"),
    ("increases", "reduces"),
    ("improves", "harms"),
    ("improves", "hurts"),
    ("helps", "harms"),
    ("helps", "hurts"),
    ("good", "bad"),
    ("better", "worse"),
    ("more", "less"),
    ("benefit", "harm"),
    ("支持", "反对"),
    ("增加", "减少"),
    ("提高", "降低"),
    ("有利", "有害"),
    ("好", "坏"),
)

_NEGATION_PATTERN = re.compile(r"[a-z']+")


class HeuristicOpinionAnalyzer(OpinionAnalyzer):
    """Deterministic analyzer built on negation and antonym cues.

    Two texts about the same thing (enough shared tokens) are contradictory
    when exactly one of them is negated, or when they use opposite words of an
    antonym pair. Everything else is no conflict.
    """

    def __init__(
        self,
        min_overlap: float = 0.2,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        """Initialize the heuristic analyzer.

        Args:
            min_overlap: Minimum token Jaccard overlap to consider a conflict
            tokenizer: Tokenizer used for overlap (default settings if None)
        """
        self.min_overlap = min_overlap
        self.tokenizer = tokenizer or Tokenizer()

    def has_negation(self, text: str) -> bool:
        words = set(_NEGATION_PATTERN.findall(text.lower()))
        if words & NEGATION_WORDS:
            return True
        return any(marker in text for marker in NEGATION_MARKERS)

    def _has_antonym_split(self, text_a: str, text_b: str) -> bool:
        words_a = set(_NEGATION_PATTERN.findall(text_a.lower()))
        words_b = set(_NEGATION_PATTERN.findall(text_b.lower()))

        def contains(text: str, words: set[str], term: str) -> bool:
            return term in words if term.isascii() else term in text

        for first, second in ANTONYMS:
            a_first, a_second = contains(text_a, words_a, first), contains(text_a, words_a, second)
            b_first, b_second = contains(text_b, words_b, first), contains(text_b, words_b, second)
            if (a_first and b_second and not a_second and not b_first) or (
                a_second and b_first and not a_first and not b_second
            ):
                return True
        return False

    def analyze(
        self,
        text_a: str,
        text_b: str,
        mode: AnalysisMode = AnalysisMode.CARD_VS_CARD,
    ) -> ConflictVerdict:
        tokens_a = [t for t in self.tokenizer.tokenize(text_a) if t not in NEGATION_WORDS]
        tokens_b = [t for t in self.tokenizer.tokenize(text_b) if t not in NEGATION_WORDS]
        set_b = set(tokens_b)
        shared = list(dict.fromkeys(t for t in tokens_a if t in set_b))
        union = set(tokens_a) | set_b
        overlap = len(shared) / len(union) if union else 0.0
        topic = " ".join(shared[:3])

        if overlap < self.min_overlap:
            return ConflictVerdict(
                has_conflict=False,
                conflict_type="NONE",
                conflict_score=round(overlap, 4),
                topic=topic,
                rationale="The texts share too little vocabulary to be compared.",
            )

        negation_split = self.has_negation(text_a) != self.has_negation(text_b)
        if negation_split or self._has_antonym_split(text_a, text_b):
            cue = "one text negates the other" if negation_split else "the texts use opposing terms"
            return ConflictVerdict(
                has_conflict=True,
                conflict_type="CONTRADICTORY",
                conflict_score=round(min(1.0, 0.6 + 0.4 * overlap), 4),
                topic=topic,
                description=f"Opposing claims about {topic or 'the same subject'}",
                rationale=f"Shared vocabulary ({overlap:.2f} overlap) and {cue}.",
            )

        return ConflictVerdict(
            has_conflict=False,
            conflict_type="TOPIC_OVERLAP" if mode == AnalysisMode.CARD_VS_CARD else "NONE",
            conflict_score=round(overlap * 0.5, 4),
            topic=topic,
            rationale="Same subject without opposing cues.",
        )

    def __repr__(self) -> str:
        return f"HeuristicOpinionAnalyzer(min_overlap={self.min_overlap})"


def create_analyzer(
    provider: str,
    model: str | None = None,
    timeout: float = 30.0,
) -> OpinionAnalyzer:
    """Build the analyzer for a provider name.

    ``heuristic`` always gives the offline analyzer. An LLM provider without
    an API key falls back to it with a warning.
    """
    if provider == "heuristic":
        return HeuristicOpinionAnalyzer()

    env_var = LLMOpinionAnalyzer.API_KEY_ENV.get(provider)
    if env_var is None:
        raise ValueError(f"unknown provider: {provider}")
    if not os.getenv(env_var):
        logger.warning("%s is not set, using the heuristic opinion analyzer", env_var)
        return HeuristicOpinionAnalyzer()

    return LLMOpinionAnalyzer(provider=provider, model=model, timeout=timeout)
