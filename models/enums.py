"""Enumerations for generation status tracking."""

from enum import Enum


class UnitStatus(str, Enum):
    PENDING = "pending"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (UnitStatus.DONE, UnitStatus.FAILED, UnitStatus.SKIPPED)


class ChapterGenerationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class RunStatus(str, Enum):
    IDLE = "idle"
    GENERATING_OUTLINE = "generating_outline"
    WRITING = "writing"
    PAUSED = "paused"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"
    ERROR = "error"


class BlockType(str, Enum):
    PARAGRAPH = "paragraph"
