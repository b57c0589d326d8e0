"""Models package: database, data models, and enums."""

from models.database import Database
from models.project import Project
from models.chapter import Chapter, UnitDescriptor, Block
from models.enums import (
    UnitStatus,
    ChapterGenerationStatus,
    RunStatus,
    BlockType,
)

__all__ = [
    "Database",
    "Project",
    "Chapter",
    "UnitDescriptor",
    "Block",
    "UnitStatus",
    "ChapterGenerationStatus",
    "RunStatus",
    "BlockType",
]
