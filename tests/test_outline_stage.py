"""Tests for outline normalization and batched outline generation."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from conftest import FakeOutlineService


class GatedOutlineService(FakeOutlineService):
    """Holds every call until `release` is set, tracking how many run at once."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.active = 0
        self.peak = 0
        self.in_flight = []
        self.release = asyncio.Event()

    async def generate_outline(self, request):
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.in_flight.append(request.chapter_title)
        try:
            await self.release.wait()
        finally:
            self.active -= 1
        return await super().generate_outline(request)


async def _settle(rounds: int = 20):
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestNormalizeUnits:
    def test_filters_null_and_malformed(self):
        from workflow.outline_stage import normalize_units
        raw = [None, "text", {}, {"title": "A", "description": "a"}, 7, {"description": "only desc"}]
        units = normalize_units(raw)
        assert [u.title for u in units] == ["A", ""]
        assert units[1].description == "only desc"

    def test_status_forced_pending(self):
        from models.enums import UnitStatus
        from workflow.outline_stage import normalize_units
        units = normalize_units([{"title": "A", "status": "done"}])
        assert units[0].status == UnitStatus.PENDING

    def test_sequence_defaults_to_position(self):
        from workflow.outline_stage import normalize_units
        units = normalize_units([{"title": "A"}, {"title": "B", "sequence": "x"}, {"title": "C", "sequence": 9}])
        assert [u.sequence for u in units] == [1, 2, 9]

    def test_target_words_fallback(self):
        from workflow.outline_stage import normalize_units
        units = normalize_units([{"title": "A", "target_words": -5}, {"title": "B", "targetWords": "650"}],
                                default_target_words=800)
        assert [u.target_words for u in units] == [800, 650]

    def test_key_events_kept(self):
        from workflow.outline_stage import normalize_units
        units = normalize_units([{"title": "A", "key_events": ["x", "", "y"]}])
        assert units[0].key_events == ["x", "y"]

    def test_none_input(self):
        from workflow.outline_stage import normalize_units
        assert normalize_units(None) == []


class TestPreviousChaptersSummary:
    def test_titles_and_descriptions(self):
        from models.chapter import Chapter, UnitDescriptor
        from workflow.outline_stage import previous_chapters_summary
        chapters = [
            Chapter(title="One", units=[UnitDescriptor(description="a"), UnitDescriptor(description="b")]),
            Chapter(title="Two"),
            Chapter(title="Three"),
        ]
        assert previous_chapters_summary(chapters, 2) == "One: a; b\nTwo"
        assert previous_chapters_summary(chapters, 0) == ""


class TestOutlineStage:
    @pytest.mark.asyncio
    async def test_generates_missing_in_batches(self, db, settings, make_project):
        from workflow.outline_stage import OutlineStage
        pid = make_project(chapters=4, target_words=20000)
        service = FakeOutlineService(units_per_chapter=3)
        sleep = AsyncMock()
        stage = OutlineStage(service, db, settings, sleep=sleep)
        chapters = db.get_chapters(pid)

        generated = await stage.generate_missing(db.get_project(pid), chapters)

        assert generated == 4
        assert len(service.calls) == 4
        # 4 chapters in batches of 3: one pause between the two batches
        assert sleep.await_count == 1
        assert all(req.target_words == 5000 for req in service.calls)
        by_title = {req.chapter_title: req for req in service.calls}
        assert by_title["Chapter 1"].next_chapter_title == "Chapter 2"
        assert by_title["Chapter 4"].next_chapter_title is None
        assert "Chapter 1" in by_title["Chapter 2"].previous_chapters_summary
        assert all(len(ch.units) == 3 for ch in db.get_chapters(pid))

    @pytest.mark.asyncio
    async def test_at_most_one_batch_in_flight(self, db, settings, make_project):
        from workflow.outline_stage import OutlineStage
        pid = make_project(chapters=4)
        service = GatedOutlineService(units_per_chapter=2)
        stage = OutlineStage(service, db, settings)
        task = asyncio.create_task(stage.generate_missing(db.get_project(pid), db.get_chapters(pid)))

        await _settle()
        first_batch = list(service.in_flight)
        service.in_flight.clear()
        gate, service.release = service.release, asyncio.Event()
        gate.set()

        await _settle()
        second_batch = list(service.in_flight)
        service.release.set()
        generated = await task

        assert generated == 4
        assert service.peak == 3
        assert first_batch == ["Chapter 1", "Chapter 2", "Chapter 3"]
        assert second_batch == ["Chapter 4"]

    @pytest.mark.asyncio
    async def test_skips_outlined_chapters(self, db, settings, make_project):
        from workflow.outline_stage import OutlineStage
        pid = make_project(chapters=2, units=2)
        service = FakeOutlineService()
        stage = OutlineStage(service, db, settings)
        assert await stage.generate_missing(db.get_project(pid), db.get_chapters(pid)) == 0
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_failure_isolated_per_chapter(self, db, settings, make_project):
        from workflow.outline_stage import OutlineStage
        pid = make_project(chapters=3)
        stage = OutlineStage(FakeOutlineService(fail_titles={"Chapter 2"}), db, settings)

        generated = await stage.generate_missing(db.get_project(pid), db.get_chapters(pid))

        assert generated == 2
        outlined = {ch.title: ch.has_outline for ch in db.get_chapters(pid)}
        assert outlined == {"Chapter 1": True, "Chapter 2": False, "Chapter 3": True}

    @pytest.mark.asyncio
    async def test_unusable_outline_not_saved(self, db, settings, make_project):
        from workflow.outline_stage import OutlineStage
        pid = make_project(chapters=1)
        service = FakeOutlineService()
        service.generate_outline = AsyncMock(return_value=[None, {"title": ""}])
        stage = OutlineStage(service, db, settings)

        assert await stage.generate_missing(db.get_project(pid), db.get_chapters(pid)) == 0
        assert not db.get_chapters(pid)[0].has_outline
