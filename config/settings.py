"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    Delays are in seconds. Tests typically zero the scheduling delays.
    """

    # LLM models, one per collaborator role
    llm_model_outline: str = "claude-sonnet-4-5"    # OutlineAgent
    llm_model_writing: str = "claude-sonnet-4-5"    # WriterAgent
    llm_model_summary: str = "claude-haiku-4-5"     # Summarizer

    # Storage
    sqlite_db_path: Path = Path("./data/autowrite.db")
    recovery_hint_path: Path = Path("./data/recovery_hints.db")

    # Retry / backoff
    retry_max_attempts: int = 7
    retry_base_delay: float = 5.0
    retry_max_delay: float = 60.0
    request_timeout: float = 120.0

    # Response validation
    min_unit_chars: int = 100
    prior_context_chars: int = 3000

    # Scheduling
    outline_batch_size: int = 3
    outline_batch_delay: float = 2.0
    unit_delay: float = 1.0

    # Word budget
    default_target_words: int = 50000
    word_budget_ratio: float = 1.1

    # Continuity and progress
    character_history_limit: int = 10
    duration_window: int = 10

    # Recovery hint
    recovery_hint_ttl_hours: float = 24.0

    # Live preview
    preview_chunk_words: int = 5
    preview_delay: float = 0.03

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("retry_max_attempts", "outline_batch_size", "character_history_limit", "duration_window")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator(
        "retry_base_delay", "retry_max_delay", "outline_batch_delay",
        "unit_delay", "preview_delay", "request_timeout",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delay must be non-negative")
        return v

    @field_validator("word_budget_ratio")
    @classmethod
    def validate_budget_ratio(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("word_budget_ratio must be >= 1.0")
        return v

    @field_validator("sqlite_db_path", "recovery_hint_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_delay_range(self) -> "Settings":
        if self.retry_base_delay > self.retry_max_delay:
            raise ValueError(
                f"retry_base_delay ({self.retry_base_delay}) must not exceed "
                f"retry_max_delay ({self.retry_max_delay})"
            )
        return self

