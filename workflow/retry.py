"""Bounded exponential backoff for classified generation errors."""

from dataclasses import dataclass

from config.exceptions import LLMRateLimitError
from config.settings import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay schedule shared by every retryable error class.

    Rate limits back off by rate_limit_factor ** attempt, every other retryable
    error by transient_factor ** attempt. Delays are capped at max_delay.
    """

    max_attempts: int = 7
    base_delay: float = 5.0
    max_delay: float = 60.0
    rate_limit_factor: float = 2.0
    transient_factor: float = 1.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, error: Exception, attempt: int) -> float:
        """Seconds to wait after the failed attempt with 0-based index `attempt`."""
        factor = self.rate_limit_factor if isinstance(error, LLMRateLimitError) else self.transient_factor
        return min(self.base_delay * factor ** attempt, self.max_delay)

    def has_attempts_left(self, attempt: int) -> bool:
        return attempt + 1 < self.max_attempts
