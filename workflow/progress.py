"""In-memory progress accounting for a generation run."""

from collections import deque
from dataclasses import asdict, dataclass
from typing import Optional

from models.chapter import Chapter
from models.enums import RunStatus, UnitStatus


@dataclass
class PendingApproval:
    """Chapter waiting for operator approval in checkpoint mode."""
    chapter_id: int
    chapter_title: str
    word_count: int


@dataclass
class ProgressSnapshot:
    total_units: int = 0
    completed_units: int = 0
    failed_units: int = 0
    skipped_units: int = 0
    total_words: int = 0
    target_words: int = 0
    current_chapter_index: int = 0
    current_unit_index: int = 0
    current_chapter_title: str = ""
    current_unit_title: str = ""
    avg_seconds_per_unit: Optional[float] = None
    eta_seconds: Optional[float] = None
    status: RunStatus = RunStatus.IDLE
    error: Optional[str] = None
    pending_approval: Optional[PendingApproval] = None

    @property
    def pending_units(self) -> int:
        return max(0, self.total_units - self.completed_units - self.failed_units - self.skipped_units)

    @property
    def percent_complete(self) -> int:
        if self.total_units == 0:
            return 0
        resolved = self.completed_units + self.failed_units + self.skipped_units
        return round(100 * resolved / self.total_units)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class ProgressModel:
    """Owns the run's ProgressSnapshot and the rolling unit-duration window."""

    def __init__(self, target_words: int = 0, duration_window: int = 10):
        self.snapshot = ProgressSnapshot(target_words=target_words)
        self._durations: deque[float] = deque(maxlen=duration_window)

    def rebuild(self, chapters: list[Chapter], target_words: Optional[int] = None) -> ProgressSnapshot:
        """Recompute counts and word totals from persisted chapter state."""
        snap = self.snapshot
        if target_words is not None:
            snap.target_words = target_words
        snap.total_units = sum(len(ch.units) for ch in chapters)
        snap.completed_units = sum(ch.count(UnitStatus.DONE) for ch in chapters)
        snap.failed_units = sum(ch.count(UnitStatus.FAILED) for ch in chapters)
        snap.skipped_units = sum(ch.count(UnitStatus.SKIPPED) for ch in chapters)
        snap.total_words = sum(ch.word_count for ch in chapters)
        self._refresh_eta()
        return snap

    def start_unit(self, chapter_index: int, unit_index: int, chapter_title: str, unit_title: str):
        snap = self.snapshot
        snap.current_chapter_index = chapter_index
        snap.current_unit_index = unit_index
        snap.current_chapter_title = chapter_title
        snap.current_unit_title = unit_title

    def unit_done(self, words: int, duration: float):
        self.snapshot.completed_units += 1
        self.snapshot.total_words += words
        self._durations.append(duration)
        self._refresh_eta()

    def unit_failed(self):
        self.snapshot.failed_units += 1
        self._refresh_eta()

    def units_skipped(self, count: int):
        self.snapshot.skipped_units += count
        self._refresh_eta()

    def _refresh_eta(self):
        snap = self.snapshot
        if not self._durations:
            snap.avg_seconds_per_unit = None
            snap.eta_seconds = None
            return
        avg = sum(self._durations) / len(self._durations)
        snap.avg_seconds_per_unit = avg
        snap.eta_seconds = avg * snap.pending_units

    def reset(self):
        """Discard all in-memory progress."""
        self.snapshot = ProgressSnapshot(target_words=self.snapshot.target_words)
        self._durations.clear()
