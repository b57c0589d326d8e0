"""Project data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Project:
    """A document being generated; owns an ordered set of chapters."""
    id: Optional[int] = None
    title: str = ""
    genre: str = ""
    target_word_count: int = 50000
    awaiting_approval_chapter_id: Optional[int] = None
    created_at: Optional[datetime] = None
