"""Shared pytest fixtures for the autowrite test suite."""

import asyncio

import pytest
from unittest.mock import MagicMock, AsyncMock


# ---------------------------------------------------------------------------
# Prose helpers
# ---------------------------------------------------------------------------

def make_prose(words: int = 50, lead: str = "alpha") -> str:
    """Two paragraphs of exactly `words` whitespace tokens."""
    first = max(words // 2, 1)
    second = words - first
    text = " ".join([lead] * first)
    if second:
        text += "\n\n" + " ".join(["omega"] * second)
    return text


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeOutlineService:
    """Returns `units_per_chapter` well-formed entries; fails for listed titles."""

    def __init__(self, units_per_chapter: int = 2, fail_titles=()):
        self.units_per_chapter = units_per_chapter
        self.fail_titles = set(fail_titles)
        self.calls = []

    async def generate_outline(self, request):
        from config.exceptions import LLMServerError
        self.calls.append(request)
        if request.chapter_title in self.fail_titles:
            raise LLMServerError("503 Service Unavailable", status_code=503)
        return [
            {
                "sequence": i + 1,
                "title": f"S{i + 1}",
                "description": f"{request.chapter_title} part {i + 1}",
                "target_words": 500,
            }
            for i in range(self.units_per_chapter)
        ]


class FakeContentService:
    """Writes `words_per_unit` words per call.

    `errors` are raised in order before any success; units whose title is in
    `fail_titles` raise `fail_error` on every attempt.
    """

    def __init__(self, words_per_unit: int = 50, errors=None, fail_titles=(), fail_error=None):
        self.words_per_unit = words_per_unit
        self.errors = list(errors or [])
        self.fail_titles = set(fail_titles)
        self.fail_error = fail_error
        self.calls = []

    async def write_unit(self, request):
        from agents.protocols import UnitDraft
        from config.exceptions import LLMRateLimitError
        from tools.text_utils import count_words
        self.calls.append(request)
        if self.errors:
            raise self.errors.pop(0)
        if request.unit.title in self.fail_titles:
            raise self.fail_error or LLMRateLimitError("429 Too Many Requests")
        text = make_prose(self.words_per_unit)
        return UnitDraft(text=text, word_count=count_words(text))


class BlockingContentService(FakeContentService):
    """Blocks inside write_unit until `release` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.blocking = True

    async def write_unit(self, request):
        if self.blocking:
            self.started.set()
            await self.release.wait()
        return await super().write_unit(request)


class FakeSummaryService:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def summarize_chapter(self, request):
        from agents.protocols import ChapterSummary
        from config.exceptions import LLMError
        self.calls.append(request)
        if self.fail:
            raise LLMError("summary unavailable")
        return ChapterSummary(
            summary=f"Summary of {request.chapter_title}",
            character_appearances=[{"name": "Ada", "actions": [f"acted in {request.chapter_title}"]}],
        )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_autowrite.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with tmp paths and no waiting."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "autowrite.db",
        recovery_hint_path=tmp_path / "hints.db",
        log_dir=tmp_path / "logs",
        retry_base_delay=0,
        retry_max_delay=0,
        outline_batch_delay=0,
        unit_delay=0,
        preview_delay=0,
    )


# ---------------------------------------------------------------------------
# LLM Client mocks
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_llm():
    """Return a MagicMock replacing AgentSDKClient."""
    llm = MagicMock()
    llm.chat = AsyncMock(return_value=make_prose(60))
    llm.chat_json = AsyncMock(return_value={
        "summary": "Ada crossed the river.",
        "characterAppearances": [{"name": "Ada", "actions": ["crossed the river"]}],
    })
    llm.chat_json_list = AsyncMock(return_value=[
        {"sequence": 1, "title": "Arrival", "description": "Ada arrives", "target_words": 600},
    ])
    return llm


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def make_project(db):
    """Factory: insert a project with `chapters` chapters.

    With `units` > 0 every chapter is pre-outlined with that many pending units.
    """
    from models.chapter import Chapter, UnitDescriptor
    from models.project import Project

    def _make(chapters: int = 2, units: int = 0, target_words: int = 50000, genre: str = "fantasy") -> int:
        project_id = db.create_project(Project(title="Test Book", genre=genre, target_word_count=target_words))
        for i in range(chapters):
            db.create_chapter(Chapter(
                project_id=project_id,
                title=f"Chapter {i + 1}",
                sort_order=i,
                units=[
                    UnitDescriptor(sequence=j + 1, title=f"S{j + 1}", description=f"Chapter {i + 1} part {j + 1}")
                    for j in range(units)
                ],
            ))
        return project_id

    return _make


@pytest.fixture
def make_orchestrator(db, settings):
    """Factory: Orchestrator wired to fake collaborators."""
    from memory.continuity import CharacterContinuityTracker
    from workflow.block_persister import BlockPersister
    from workflow.orchestrator import Orchestrator
    from workflow.outline_stage import OutlineStage
    from workflow.unit_writer import UnitWriterStage

    def _make(
        project_id: int,
        content=None,
        outline=None,
        summary=None,
        checkpoint_mode: bool = False,
        callback=None,
        hint_store=None,
    ):
        tracker = CharacterContinuityTracker(summary or FakeSummaryService(), db=db)
        return Orchestrator(
            db=db,
            project_id=project_id,
            outline_stage=OutlineStage(outline or FakeOutlineService(), db, settings),
            unit_writer=UnitWriterStage(content or FakeContentService(), settings),
            persister=BlockPersister(db),
            tracker=tracker,
            settings=settings,
            callback=callback,
            hint_store=hint_store,
            checkpoint_mode=checkpoint_mode,
        )

    return _make


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------

@pytest.fixture
def restore_logging():
    """Put the root and side-channel loggers back after setup_logging() runs."""
    import logging
    from config.logging_config import SIDE_LOGS
    names = [None, *SIDE_LOGS, "claude_agent_sdk", "asyncio"]
    saved = {n: (logging.getLogger(n).handlers[:], logging.getLogger(n).level) for n in names}
    yield
    for name, (handlers, level) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)
