"""Outline stage: fills in unit descriptors for chapters that lack them."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from agents.protocols import OutlineRequest, OutlineService
from config.exceptions import OutlineError
from config.settings import Settings
from models.chapter import Chapter, UnitDescriptor
from models.database import Database
from models.enums import UnitStatus
from models.project import Project

logger = logging.getLogger(__name__)


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def normalize_units(raw_units: list, default_target_words: int = 800) -> list[UnitDescriptor]:
    """Drop null or malformed entries and force every unit to pending.

    A missing or non-numeric sequence falls back to the 1-based list position.
    """
    units: list[UnitDescriptor] = []
    for index, item in enumerate(raw_units or []):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        description = str(item.get("description") or "").strip()
        if not title and not description:
            continue
        key_events = item.get("key_events") or item.get("keyEvents") or []
        if not isinstance(key_events, list):
            key_events = [str(key_events)]
        units.append(UnitDescriptor(
            sequence=_positive_int(item.get("sequence"), index + 1),
            title=title,
            description=description,
            target_words=_positive_int(
                item.get("target_words", item.get("targetWords")), default_target_words,
            ),
            status=UnitStatus.PENDING,
            key_events=[str(e) for e in key_events if e],
        ))
    return units


def previous_chapters_summary(chapters: list[Chapter], index: int) -> str:
    """Titles and unit descriptions of every chapter before `index`."""
    lines = []
    for chapter in chapters[:index]:
        descriptions = "; ".join(u.description for u in chapter.units if u.description)
        lines.append(f"{chapter.title}: {descriptions}" if descriptions else chapter.title)
    return "\n".join(lines)


class OutlineStage:
    """Generates missing outlines in small concurrent batches.

    Failures are isolated per chapter: a chapter whose outline could not be
    produced simply stays outline-less and is retried on the next run.
    """

    def __init__(
        self,
        service: OutlineService,
        db: Database,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.db = db
        self.settings = settings or Settings()
        self._sleep = sleep

    async def generate_for_chapter(
        self,
        project: Project,
        chapters: list[Chapter],
        index: int,
        chapter_budget: int,
    ) -> bool:
        chapter = chapters[index]
        next_title = chapters[index + 1].title if index + 1 < len(chapters) else None
        request = OutlineRequest(
            project_id=project.id,
            chapter_id=chapter.id,
            chapter_title=chapter.title,
            genre=project.genre,
            previous_chapters_summary=previous_chapters_summary(chapters, index),
            next_chapter_title=next_title,
            target_words=chapter_budget,
        )
        try:
            raw = await self.service.generate_outline(request)
            units = normalize_units(raw)
            if not units:
                raise OutlineError(
                    "Outline contained no usable units", {"chapter_id": chapter.id},
                )
            self.db.set_unit_outline(chapter.id, units)
        except Exception as e:
            logger.warning("Outline for chapter %d (%s) failed: %s", chapter.id, chapter.title, e)
            return False

        chapter.units = units
        logger.info("Outlined chapter %d (%s): %d unit(s)", chapter.id, chapter.title, len(units))
        return True

    async def generate_missing(self, project: Project, chapters: list[Chapter]) -> int:
        """Outline every chapter with an empty unit list.

        Returns:
            Number of chapters that received an outline.
        """
        missing = [i for i, ch in enumerate(chapters) if not ch.has_outline]
        if not missing:
            return 0

        chapter_budget = project.target_word_count // max(len(chapters), 1)
        batch_size = self.settings.outline_batch_size
        generated = 0
        logger.info(
            "Generating outlines for %d chapter(s) in batches of %d",
            len(missing), batch_size,
        )

        for start in range(0, len(missing), batch_size):
            if start:
                await self._sleep(self.settings.outline_batch_delay)
            batch = missing[start:start + batch_size]
            results = await asyncio.gather(*(
                self.generate_for_chapter(project, chapters, i, chapter_budget)
                for i in batch
            ))
            generated += sum(1 for ok in results if ok)

        return generated
