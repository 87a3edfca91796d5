"""Tests for Settings."""

import pytest
from pydantic import ValidationError

from opinion_conflict.config import Settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without a .env file or inherited CONFLICT_* variables."""
    monkeypatch.chdir(tmp_path)
    for name in ("STORE", "GATE_THRESHOLD", "MAX_CANDIDATES", "SCAN_LIMIT", "PROVIDER", "MODEL", "MIN_SCORE"):
        monkeypatch.delenv(f"CONFLICT_{name}", raising=False)
    return monkeypatch


def test_defaults(clean_env):
    """Test default settings."""
    settings = Settings()

    assert settings.db_path == "./data/lancedb"
    assert settings.store_backend == "lance"
    assert settings.gate_threshold == 0.2
    assert settings.min_conflict_score == 0.6
    assert settings.max_candidates == 10
    assert settings.classify_timeout == 30.0
    assert settings.ngram_size == 1


def test_environment_overrides(clean_env):
    """Test reading CONFLICT_* variables with type conversion."""
    clean_env.setenv("CONFLICT_STORE", "memory")
    clean_env.setenv("CONFLICT_GATE_THRESHOLD", "0.25")
    clean_env.setenv("CONFLICT_MAX_CANDIDATES", "3")
    clean_env.setenv("CONFLICT_MIN_SCORE", "0.7")
    clean_env.setenv("CONFLICT_PROVIDER", "groq")
    clean_env.setenv("CONFLICT_MODEL", "llama-3.1-70b-versatile")
    clean_env.setenv("CONFLICT_SCAN_LIMIT", "")

    settings = Settings()

    assert settings.store_backend == "memory"
    assert settings.gate_threshold == 0.25
    assert settings.max_candidates == 3
    assert settings.min_conflict_score == 0.7
    assert settings.provider == "groq"
    assert settings.model == "llama-3.1-70b-versatile"
    assert settings.scan_limit == 100


def test_dotenv_file_is_read(clean_env, tmp_path):
    """Test that a .env file in the working directory is honoured."""
    (tmp_path / ".env").write_text("CONFLICT_MAX_CANDIDATES=4\nOTHER_TOOL_SETTING=x\n")

    assert Settings().max_candidates == 4


def test_keyword_arguments_beat_environment(clean_env):
    """Test that explicit values win over variables."""
    clean_env.setenv("CONFLICT_STORE", "lance")

    assert Settings(store_backend="memory").store_backend == "memory"


def test_invalid_environment_number(clean_env):
    """Test that a malformed number names its setting."""
    clean_env.setenv("CONFLICT_MAX_CANDIDATES", "many")

    with pytest.raises(ValidationError, match="max_candidates"):
        Settings()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"gate_threshold": 1.5},
        {"min_conflict_score": -0.1},
        {"max_candidates": 0},
        {"classify_timeout": 0},
        {"store_backend": "sqlite"},
    ],
)
def test_invalid_settings(clean_env, kwargs):
    """Test validation of out-of-range settings."""
    with pytest.raises(ValueError):
        Settings(**kwargs)
