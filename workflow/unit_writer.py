"""Unit writer stage: one unit of prose with classified retry/backoff."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from agents.protocols import ContentService, UnitDraft, UnitRequest
from config.exceptions import (
    LLMDegenerateResponseError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMTimeoutError,
    RETRYABLE_ERRORS,
    RetryExhaustedError,
)
from config.settings import Settings
from tools.text_utils import chunk_words, count_words
from workflow.retry import RetryPolicy

logger = logging.getLogger(__name__)

NoticeFn = Callable[[str], None]
PreviewFn = Callable[[str], None]


class UnitWriterStage:
    """Calls the content service until it returns usable prose or the budget runs out.

    Unclassified errors propagate unchanged on the first occurrence.
    """

    def __init__(
        self,
        service: ContentService,
        settings: Optional[Settings] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.settings = settings or Settings()
        self.policy = policy or RetryPolicy.from_settings(self.settings)
        self._sleep = sleep

    def _validate(self, draft: UnitDraft) -> UnitDraft:
        if not isinstance(draft, UnitDraft) or not isinstance(draft.text, str):
            raise LLMResponseParseError("Malformed unit response")
        text = draft.text.strip()
        if len(text) < self.settings.min_unit_chars:
            raise LLMDegenerateResponseError(len(text), self.settings.min_unit_chars)
        return UnitDraft(text=text, word_count=draft.word_count or count_words(text))

    async def write(
        self,
        request: UnitRequest,
        on_notice: Optional[NoticeFn] = None,
        on_preview: Optional[PreviewFn] = None,
    ) -> UnitDraft:
        """Generate prose for one unit.

        Raises:
            RetryExhaustedError: Every attempt failed with a retryable error.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.policy.max_attempts):
            try:
                draft = self._validate(await self.service.write_unit(request))
            except TimeoutError as e:
                last_error = LLMTimeoutError(str(e) or "Request timed out")
            except RETRYABLE_ERRORS as e:
                last_error = e
            else:
                if attempt:
                    logger.info(
                        "Unit %d of chapter %d succeeded on attempt %d",
                        request.unit.sequence, request.chapter_id, attempt + 1,
                    )
                if on_preview:
                    await self._replay(draft.text, on_preview)
                return draft

            if not self.policy.has_attempts_left(attempt):
                break

            delay = self.policy.delay_for(last_error, attempt)
            reason = "Rate limited" if isinstance(last_error, LLMRateLimitError) else "Transient error"
            logger.warning(
                "%s on unit %d of chapter %d (attempt %d/%d): %s. Waiting %.1fs",
                reason, request.unit.sequence, request.chapter_id,
                attempt + 1, self.policy.max_attempts, last_error, delay,
            )
            if on_notice:
                on_notice(f"{reason}, waiting {delay:.0f}s before retry {attempt + 2}/{self.policy.max_attempts}")
            await self._sleep(delay)

        logger.error(
            "Unit %d of chapter %d failed after %d attempts: %s",
            request.unit.sequence, request.chapter_id, self.policy.max_attempts, last_error,
        )
        raise RetryExhaustedError(self.policy.max_attempts, last_error)

    async def _replay(self, text: str, on_preview: PreviewFn):
        """Feed the finished text to the preview callback in word chunks."""
        for chunk in chunk_words(text, self.settings.preview_chunk_words):
            on_preview(chunk)
            await asyncio.sleep(self.settings.preview_delay)
