"""Custom exception hierarchy for the auto-write engine."""

from typing import Optional


class AutoWriteError(Exception):
    """Base exception for all auto-write errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- LLM Errors ----

class LLMError(AutoWriteError):
    """Base exception for generation service errors.

    A bare LLMError is unclassified: the unit writer does not retry it.
    """


class LLMRateLimitError(LLMError):
    """Generation service rate limit exceeded."""

    def __init__(self, message: str = "API rate limit exceeded", retry_after: Optional[float] = None):
        details = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, details)
        self.retry_after = retry_after


class LLMServerError(LLMError):
    """Transient 5xx-class fault on the generation service."""

    def __init__(self, message: str = "Generation service error", status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, details)
        self.status_code = status_code


class LLMTimeoutError(LLMError):
    """Generation request timed out."""


class LLMResponseParseError(LLMError):
    """Failed to parse the generation response body."""

    def __init__(self, message: str = "Failed to parse LLM response", raw_response: str = ""):
        details = {"raw_response": raw_response[:200]} if raw_response else {}
        super().__init__(message, details)
        self.raw_response = raw_response


class LLMDegenerateResponseError(LLMError):
    """Response text shorter than the minimum usable length."""

    def __init__(self, length: int, min_length: int):
        super().__init__(
            f"Response too short ({length} chars)",
            {"length": length, "min_length": min_length},
        )
        self.length = length
        self.min_length = min_length


# Errors the unit writer backs off on and retries.
RETRYABLE_ERRORS = (
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    LLMResponseParseError,
    LLMDegenerateResponseError,
)


class RetryExhaustedError(LLMError):
    """All attempts for one unit failed with retryable errors."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(
            f"Gave up after {attempts} attempts",
            {"attempts": attempts, "last_error": type(last_error).__name__ if last_error else None},
        )
        self.attempts = attempts
        self.last_error = last_error


class OutlineError(LLMError):
    """Outline service returned no usable unit breakdown."""


# ---- Database Errors ----

class DatabaseError(AutoWriteError):
    """Database operation failed."""


class BlockPersistError(DatabaseError):
    """Blocks for a unit could not be written."""

    def __init__(self, chapter_id: int, message: str = "Failed to persist blocks"):
        super().__init__(message, {"chapter_id": chapter_id})
        self.chapter_id = chapter_id


# ---- Workflow Errors ----

class WorkflowError(AutoWriteError):
    """Base exception for orchestration errors."""


class WorkflowStateError(WorkflowError):
    """Operation is not valid in the current run state."""


# ---- Validation Errors ----

class ValidationError(AutoWriteError):
    """Input validation failed."""


class InvalidConfigError(ValidationError):
    """Configuration value is invalid."""
