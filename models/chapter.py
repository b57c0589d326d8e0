"""Chapter, unit descriptor, and block data models."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional

from models.enums import BlockType, ChapterGenerationStatus, UnitStatus


@dataclass
class UnitDescriptor:
    """One scene (fiction) or section (non-fiction) of a chapter outline."""
    sequence: int = 1
    title: str = ""
    description: str = ""
    target_words: int = 800
    status: UnitStatus = UnitStatus.PENDING
    key_events: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UnitDescriptor":
        return cls(
            sequence=int(data.get("sequence", 1)),
            title=data.get("title", ""),
            description=data.get("description", ""),
            target_words=int(data.get("target_words", 800)),
            status=UnitStatus(data.get("status", UnitStatus.PENDING.value)),
            key_events=list(data.get("key_events") or []),
        )


@dataclass
class Chapter:
    """Represents a single chapter and its unit breakdown."""
    id: Optional[int] = None
    project_id: int = 0
    title: str = ""
    sort_order: int = 0
    units: list[UnitDescriptor] = field(default_factory=list)
    word_count: int = 0
    generation_status: ChapterGenerationStatus = ChapterGenerationStatus.PENDING
    summary: Optional[str] = None
    character_appearances: Optional[list[dict]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_outline(self) -> bool:
        return len(self.units) > 0

    @property
    def is_resolved(self) -> bool:
        """All units reached done, failed, or skipped."""
        return self.has_outline and all(u.status.is_terminal for u in self.units)

    def count(self, status: UnitStatus) -> int:
        return sum(1 for u in self.units if u.status == status)


@dataclass
class Block:
    """An immutable paragraph of chapter text at a fixed position."""
    id: Optional[int] = None
    chapter_id: int = 0
    position: int = 0
    content: str = ""
    block_type: BlockType = BlockType.PARAGRAPH
    created_at: Optional[datetime] = None
