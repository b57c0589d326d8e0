"""Rolling per-character action history fed into later unit-write calls."""

import asyncio
import copy
import logging
from typing import Optional

from agents.protocols import SummaryRequest, SummaryService
from models.database import Database

logger = logging.getLogger(__name__)


class CharacterContinuityTracker:
    """Run-local working set of recent character actions.

    chapter_completed() schedules summarization in the background and returns
    immediately, so the next chapter may start before the previous chapter's
    actions are folded in. History therefore lags by up to one chapter.
    """

    def __init__(
        self,
        summarizer: SummaryService,
        db: Optional[Database] = None,
        history_limit: int = 10,
    ):
        self.summarizer = summarizer
        self.db = db
        self.history_limit = history_limit
        self._history: dict[str, list[str]] = {}
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def snapshot(self) -> dict[str, list[str]]:
        """Copy of the current history, safe to hand to a request."""
        return copy.deepcopy(self._history)

    def fold(self, chapter_title: str, appearances: list[dict]) -> None:
        """Append each character's actions, prefixed by chapter title, dropping the oldest past the limit."""
        for appearance in appearances:
            name = appearance.get("name")
            if not name:
                continue
            entries = self._history.setdefault(name, [])
            for action in appearance.get("actions", []):
                entries.append(f"{chapter_title}: {action}")
            if len(entries) > self.history_limit:
                del entries[:len(entries) - self.history_limit]

    def chapter_completed(
        self,
        chapter_id: int,
        chapter_title: str,
        chapter_text: str,
        genre: str = "",
    ) -> Optional[asyncio.Task]:
        """Schedule summarization of a finished chapter without waiting for it."""
        if not chapter_text.strip():
            logger.debug("Chapter %d has no text; skipping summary", chapter_id)
            return None
        request = SummaryRequest(
            chapter_id=chapter_id,
            chapter_title=chapter_title,
            chapter_text=chapter_text,
            genre=genre,
        )
        task = asyncio.create_task(self._summarize(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _summarize(self, request: SummaryRequest) -> None:
        try:
            result = await self.summarizer.summarize_chapter(request)
            self.fold(request.chapter_title, result.character_appearances)
            if self.db is not None:
                self.db.update_chapter_summary(
                    request.chapter_id, result.summary, result.character_appearances,
                )
        except Exception as e:
            logger.warning("Chapter %d summary failed (non-fatal): %s", request.chapter_id, e)

    async def drain(self) -> None:
        """Wait for every scheduled summarization to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        """Cancel scheduled summaries and forget all history."""
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._history.clear()
