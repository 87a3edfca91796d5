"""Runtime settings for the conflict engine.

Defaults live on the model; ``CONFLICT_*`` environment variables and a
``.env`` file override them when ``Settings()`` is constructed.
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

StoreBackend = Literal["lance", "memory"]


class Settings(BaseSettings):
    """Tunable knobs for detection.

    Attributes:
        db_path: LanceDB directory used by the ``lance`` backend
        store_backend: ``lance`` for persistent storage, ``memory`` for in-process
        gate_threshold: Minimum cosine similarity for a peer card to be classified
        profile_gate_threshold: Minimum cosine similarity for a profile to be classified
        min_conflict_score: Verdicts scoring below this are treated as no conflict
        max_candidates: Cap on classification calls per detection
        scan_limit: Number of most recent cards scanned for peer candidates
        max_profile_cards: Number of most recent cards clustered on a full
            profile rebuild, which costs N*(N-1)/2 cosine calls (19,900 at 200).
            Card saves update profiles incrementally and skip that cost.
        classify_timeout: Seconds allowed for one analyzer call
        provider: LLM provider name, or ``heuristic`` for the offline analyzer
        model: Model name (provider default if None)
        ngram_size: Character n-gram width for unsegmented scripts
        log_level: Level for the package logger
    """

    model_config = SettingsConfigDict(
        env_prefix="CONFLICT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    db_path: str = "./data/lancedb"
    # Short variable names; the field name comes first so keyword arguments win
    store_backend: StoreBackend = Field(
        default="lance", validation_alias=AliasChoices("store_backend", "CONFLICT_STORE"),
    )
    gate_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    profile_gate_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    min_conflict_score: float = Field(
        default=0.6, ge=0.0, le=1.0, validation_alias=AliasChoices("min_conflict_score", "CONFLICT_MIN_SCORE"),
    )
    max_candidates: int = Field(default=10, ge=1)
    scan_limit: int = Field(default=100, ge=1)
    max_profile_cards: int = Field(default=200, ge=1)
    classify_timeout: float = Field(default=30.0, gt=0)
    provider: str = "deepseek"
    model: str | None = None
    ngram_size: int = Field(default=1, ge=1)
    log_level: str = "INFO"
