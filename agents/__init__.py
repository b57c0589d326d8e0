"""Agents package: LLM-backed collaborators and their protocols."""

from agents.base_agent import BaseAgent
from agents.outline_agent import OutlineAgent
from agents.writer_agent import WriterAgent
from agents.protocols import (
    OutlineRequest,
    UnitRequest,
    UnitDraft,
    SummaryRequest,
    ChapterSummary,
    OutlineService,
    ContentService,
    SummaryService,
)

__all__ = [
    "BaseAgent",
    "OutlineAgent",
    "WriterAgent",
    "OutlineRequest",
    "UnitRequest",
    "UnitDraft",
    "SummaryRequest",
    "ChapterSummary",
    "OutlineService",
    "ContentService",
    "SummaryService",
]
