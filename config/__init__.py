"""Configuration package: settings, logging, and exceptions."""

from config.exceptions import (
    AutoWriteError,
    LLMError,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    LLMResponseParseError,
    LLMDegenerateResponseError,
    RETRYABLE_ERRORS,
    RetryExhaustedError,
    OutlineError,
    DatabaseError,
    BlockPersistError,
    WorkflowError,
    WorkflowStateError,
    ValidationError,
    InvalidConfigError,
)
from config.logging_config import setup_logging
from config.settings import Settings

__all__ = [
    "Settings",
    "setup_logging",
    "AutoWriteError",
    "LLMError",
    "LLMRateLimitError",
    "LLMServerError",
    "LLMTimeoutError",
    "LLMResponseParseError",
    "LLMDegenerateResponseError",
    "RETRYABLE_ERRORS",
    "RetryExhaustedError",
    "OutlineError",
    "DatabaseError",
    "BlockPersistError",
    "WorkflowError",
    "WorkflowStateError",
    "ValidationError",
    "InvalidConfigError",
]
