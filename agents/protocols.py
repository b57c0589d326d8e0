"""Request/response shapes and protocols for the generation collaborators.

The engine only sees these boundaries; the LLM-backed agents in this package
are one implementation, tests substitute fakes.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from models.chapter import UnitDescriptor


@dataclass
class OutlineRequest:
    project_id: int
    chapter_id: int
    chapter_title: str
    genre: str = ""
    previous_chapters_summary: str = ""
    next_chapter_title: Optional[str] = None
    target_words: int = 0


@dataclass
class UnitRequest:
    chapter_id: int
    chapter_title: str
    unit: UnitDescriptor
    prior_prose: str = ""
    character_history: dict[str, list[str]] = field(default_factory=dict)
    genre: str = ""


@dataclass
class UnitDraft:
    text: str
    word_count: int


@dataclass
class SummaryRequest:
    chapter_id: int
    chapter_title: str
    chapter_text: str
    genre: str = ""


@dataclass
class ChapterSummary:
    summary: str = ""
    # [{"name": str, "actions": [str, ...]}, ...]
    character_appearances: list[dict] = field(default_factory=list)


@runtime_checkable
class OutlineService(Protocol):
    async def generate_outline(self, request: OutlineRequest) -> list:
        """Return raw unit descriptor entries; entries may be null or malformed."""
        ...


@runtime_checkable
class ContentService(Protocol):
    async def write_unit(self, request: UnitRequest) -> UnitDraft:
        """Make one generation attempt; raise a classified LLMError on failure."""
        ...


@runtime_checkable
class SummaryService(Protocol):
    async def summarize_chapter(self, request: SummaryRequest) -> ChapterSummary:
        ...
