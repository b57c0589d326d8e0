"""Generation orchestrator: outline phase, sequential unit writing, run lifecycle.

The persistent store is the single source of truth. Every run reloads chapter
state from the database, so a resume after pause, crash, or process restart
continues from whatever units are still pending.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from agents.protocols import UnitRequest
from config.exceptions import (
    BlockPersistError,
    InvalidConfigError,
    RetryExhaustedError,
    WorkflowError,
    WorkflowStateError,
)
from config.settings import Settings
from memory.continuity import CharacterContinuityTracker
from models.chapter import Chapter, UnitDescriptor
from models.database import Database
from models.enums import ChapterGenerationStatus, RunStatus, UnitStatus
from models.project import Project
from tools.text_utils import join_sections, tail_text
from workflow.block_persister import BlockPersister
from workflow.callbacks import WorkflowCallback
from workflow.outline_stage import OutlineStage
from workflow.progress import PendingApproval, ProgressModel, ProgressSnapshot
from workflow.recovery import RecoveryHintStore
from workflow.unit_writer import UnitWriterStage

logger = logging.getLogger(__name__)


class _PauseRequested(Exception):
    """Raised inside a run when pause() interrupted it."""


class Orchestrator:
    """Drives one project from missing outlines to fully written chapters.

    At most one run is active per orchestrator. Chapters are processed in
    sort order and units within a chapter in list order; a later unit never
    starts before an earlier one has reached a terminal status.
    """

    def __init__(
        self,
        db: Database,
        project_id: int,
        outline_stage: OutlineStage,
        unit_writer: UnitWriterStage,
        persister: BlockPersister,
        tracker: CharacterContinuityTracker,
        settings: Optional[Settings] = None,
        callback: Optional[WorkflowCallback] = None,
        hint_store: Optional[RecoveryHintStore] = None,
        checkpoint_mode: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db
        self.project_id = project_id
        self.outline_stage = outline_stage
        self.unit_writer = unit_writer
        self.persister = persister
        self.tracker = tracker
        self.settings = settings or Settings()
        self.callback = callback
        self.hint_store = hint_store
        self.checkpoint_mode = checkpoint_mode
        self._sleep = sleep

        self.progress_model = ProgressModel(duration_window=self.settings.duration_window)
        self._running = False
        self._pause_requested = False
        self._reset_requested = False
        self._inflight: Optional[asyncio.Future] = None

    @property
    def progress(self) -> ProgressSnapshot:
        return self.progress_model.snapshot

    @property
    def is_running(self) -> bool:
        return self._running

    # ---- Lifecycle operations ----

    async def start(self) -> ProgressSnapshot:
        """Run until every unit is terminal, a checkpoint is reached, or pause() is called.

        Calling start() while a run is active logs a warning and returns the
        current snapshot without starting a second run.
        """
        if self._running:
            logger.warning("Run already in progress for project %d; ignoring start", self.project_id)
            return self.progress
        if self.progress.status == RunStatus.AWAITING_APPROVAL or self.restore_pending_approval():
            raise WorkflowStateError(
                "Chapter awaiting approval; call approve() or regenerate_chapter()",
                {"chapter_id": self.progress.pending_approval.chapter_id
                 if self.progress.pending_approval else None},
            )

        self._running = True
        self._pause_requested = False
        self._reset_requested = False
        try:
            await self._run()
        except _PauseRequested:
            if not self._reset_requested:
                logger.info("Run paused for project %d", self.project_id)
                self._set_status(RunStatus.PAUSED)
        except Exception as e:
            logger.exception("Run failed for project %d", self.project_id)
            self.progress.error = str(e)
            self._set_status(RunStatus.ERROR)
            if self.callback:
                self.callback.on_error(str(e))
        finally:
            self._running = False
            self._inflight = None
        return self.progress

    async def resume(self) -> ProgressSnapshot:
        """Continue a paused, errored, or interrupted run from the persisted state."""
        return await self.start()

    def pause(self) -> None:
        """Abort the in-flight request. The run stops as paused and is resumable."""
        if not self._running:
            logger.info("Pause ignored; no run in progress for project %d", self.project_id)
            return
        self._pause_requested = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._set_status(RunStatus.PAUSED)

    def reset(self) -> None:
        """Stop any run and discard in-memory progress and character history.

        Persisted chapters, units, and blocks are left as they are. A chapter
        held at a checkpoint is released.
        """
        if self._running:
            self._reset_requested = True
            self.pause()
        self.db.set_awaiting_approval(self.project_id, None)
        self.tracker.clear()
        self.progress_model.reset()
        if self.hint_store:
            self.hint_store.clear(self.project_id)
        logger.info("Run state reset for project %d", self.project_id)
        if self.callback:
            self.callback.on_status_change(RunStatus.IDLE, self.progress)

    async def approve(self) -> ProgressSnapshot:
        """Accept the chapter under review and continue with the next one."""
        pending = self.progress.pending_approval
        if self.progress.status != RunStatus.AWAITING_APPROVAL or pending is None:
            raise WorkflowStateError(
                "No chapter is awaiting approval", {"status": self.progress.status.value},
            )
        logger.info("Chapter %d (%s) approved", pending.chapter_id, pending.chapter_title)
        self._clear_approval()
        return await self.start()

    async def regenerate_chapter(self, chapter_id: int) -> ProgressSnapshot:
        """Delete a chapter's prose, reset its units to pending, and run from there."""
        self._require_idle("regenerate a chapter")
        chapter = self.db.get_chapter(chapter_id)
        if chapter is None or chapter.project_id != self.project_id:
            raise WorkflowStateError(
                "Chapter not found in project",
                {"chapter_id": chapter_id, "project_id": self.project_id},
            )
        self.db.reset_chapter(chapter_id)
        logger.info("Regenerating chapter %d (%s)", chapter_id, chapter.title)
        self._clear_approval()
        return await self.start()

    async def restart_failed_units(self) -> ProgressSnapshot:
        """Return every failed or skipped unit in the project to pending and run."""
        self._require_idle("restart failed units")
        count = self.db.reset_units(self.project_id, {UnitStatus.FAILED, UnitStatus.SKIPPED})
        logger.info("Restarting %d failed/skipped unit(s) in project %d", count, self.project_id)
        self._clear_approval()
        return await self.start()

    def restore_pending_approval(self) -> bool:
        """Re-enter awaiting_approval if the project is held at a checkpoint.

        The hold is read from the project row, so it survives process restarts
        and does not expire.

        Returns:
            True if a pending approval was restored.
        """
        if self._running:
            return False
        project = self.db.get_project(self.project_id)
        if project is None or project.awaiting_approval_chapter_id is None:
            return False
        chapter = self.db.get_chapter(project.awaiting_approval_chapter_id)
        if chapter is None:
            logger.warning(
                "Project %d held for missing chapter %d; releasing the hold",
                self.project_id, project.awaiting_approval_chapter_id,
            )
            self.db.set_awaiting_approval(self.project_id, None)
            return False
        self.progress.pending_approval = PendingApproval(
            chapter_id=chapter.id,
            chapter_title=chapter.title,
            word_count=chapter.word_count,
        )
        self.progress.status = RunStatus.AWAITING_APPROVAL
        return True

    # ---- Run internals ----

    def _require_idle(self, action: str):
        if self._running:
            raise WorkflowStateError(f"Cannot {action} while a run is in progress")

    def _clear_approval(self):
        self.db.set_awaiting_approval(self.project_id, None)
        self.progress.pending_approval = None
        if self.progress.status == RunStatus.AWAITING_APPROVAL:
            self.progress.status = RunStatus.PAUSED

    def _set_status(self, status: RunStatus):
        if self.progress.status == status:
            return
        self.progress.status = status
        self._save_hint()
        if self.callback:
            self.callback.on_status_change(status, self.progress)

    def _save_hint(self):
        if self.hint_store:
            self.hint_store.put(self.project_id, self.progress.to_dict())

    def _check_pause(self):
        if self._pause_requested:
            raise _PauseRequested()

    async def _interruptible(self, awaitable: Awaitable):
        """Await a network call or sleep so that pause() can cancel it."""
        if self._pause_requested:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise _PauseRequested()
        task = asyncio.ensure_future(awaitable)
        self._inflight = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._pause_requested and task.cancelled() and not (current and current.cancelling()):
                raise _PauseRequested() from None
            raise
        finally:
            self._inflight = None

    def _reload(self, project: Project) -> list[Chapter]:
        """Load chapters from the store, returning interrupted units to pending."""
        chapters = self.db.get_chapters(project.id)
        for chapter in chapters:
            for index, unit in enumerate(chapter.units):
                if unit.status == UnitStatus.WRITING:
                    self.db.update_unit_status(chapter.id, index, UnitStatus.PENDING)
                    unit.status = UnitStatus.PENDING
                    logger.info(
                        "Unit %d of chapter %d was interrupted; back to pending",
                        unit.sequence, chapter.id,
                    )
        self.progress_model.rebuild(chapters, target_words=project.target_word_count)
        return chapters

    async def _run(self):
        project = self.db.get_project(self.project_id)
        if project is None:
            raise WorkflowStateError("Project not found", {"project_id": self.project_id})
        if project.target_word_count <= 0:
            raise InvalidConfigError(
                "Target word count must be positive", {"target_word_count": project.target_word_count},
            )

        self.progress.error = None
        self.progress.pending_approval = None
        chapters = self._reload(project)
        logger.info(
            "Starting run for project %d '%s': %d chapter(s), %d/%d unit(s) done",
            project.id, project.title, len(chapters),
            self.progress.completed_units, self.progress.total_units,
        )

        if any(not ch.has_outline for ch in chapters):
            self._set_status(RunStatus.GENERATING_OUTLINE)
            await self._interruptible(self.outline_stage.generate_missing(project, chapters))
            chapters = self._reload(project)

        self._set_status(RunStatus.WRITING)
        prior_text = ""
        for index, chapter in enumerate(chapters):
            self._check_pause()
            if not chapter.has_outline:
                logger.warning("Chapter %d (%s) has no outline; skipping", chapter.id, chapter.title)
                continue

            chapter_text = self.db.get_chapter_text(chapter.id)
            newly_completed = chapter.generation_status != ChapterGenerationStatus.COMPLETED
            if not newly_completed and chapter.is_resolved:
                prior_text = tail_text(join_sections(prior_text, chapter_text), self.settings.prior_context_chars)
                continue

            chapter_text, wrote = await self._write_chapter(project, index, chapter, prior_text, chapter_text)
            prior_text = tail_text(join_sections(prior_text, chapter_text), self.settings.prior_context_chars)

            if not newly_completed:
                continue
            self.db.update_generation_status(chapter.id, ChapterGenerationStatus.COMPLETED)
            chapter.generation_status = ChapterGenerationStatus.COMPLETED
            self.tracker.chapter_completed(chapter.id, chapter.title, chapter_text, project.genre)
            logger.info("Chapter %d (%s) completed", chapter.id, chapter.title)

            if self.checkpoint_mode and wrote and index < len(chapters) - 1:
                self.db.set_awaiting_approval(project.id, chapter.id)
                pending = PendingApproval(
                    chapter_id=chapter.id,
                    chapter_title=chapter.title,
                    word_count=chapter.word_count,
                )
                self.progress.pending_approval = pending
                self._set_status(RunStatus.AWAITING_APPROVAL)
                if self.callback:
                    self.callback.on_awaiting_approval(pending)
                return

        self._check_pause()
        missing = [ch for ch in chapters if not ch.has_outline]
        if missing:
            raise WorkflowError(
                f"{len(missing)} chapter(s) still have no outline; resume to retry",
                {"chapter_ids": [ch.id for ch in missing]},
            )
        self._set_status(RunStatus.COMPLETED)
        logger.info(
            "Run completed for project %d: %d words, %d done / %d failed / %d skipped",
            project.id, self.progress.total_words, self.progress.completed_units,
            self.progress.failed_units, self.progress.skipped_units,
        )

    async def _write_chapter(
        self,
        project: Project,
        chapter_index: int,
        chapter: Chapter,
        prior_text: str,
        chapter_text: str,
    ) -> tuple[str, bool]:
        """Write every pending unit of one chapter.

        Returns:
            The chapter's full text, and whether any unit was written by this call.
        """
        next_position = len(self.db.get_blocks(chapter.id))
        wrote = False
        word_cutoff = project.target_word_count * self.settings.word_budget_ratio

        for unit_index, unit in enumerate(chapter.units):
            self._check_pause()
            if unit.status != UnitStatus.PENDING:
                continue

            if self.progress.total_words >= word_cutoff:
                self._skip_remaining(chapter, unit_index)
                break

            self.progress_model.start_unit(chapter_index, unit_index, chapter.title, unit.title)
            self.db.update_unit_status(chapter.id, unit_index, UnitStatus.WRITING)
            unit.status = UnitStatus.WRITING

            request = UnitRequest(
                chapter_id=chapter.id,
                chapter_title=chapter.title,
                unit=unit,
                prior_prose=tail_text(join_sections(prior_text, chapter_text), self.settings.prior_context_chars),
                character_history=self.tracker.snapshot(),
                genre=project.genre,
            )
            started = time.monotonic()
            try:
                draft = await self._interruptible(self.unit_writer.write(
                    request,
                    on_notice=self.callback.on_notice if self.callback else None,
                    on_preview=self.callback.on_preview if self.callback else None,
                ))
                blocks = self.persister.persist(
                    chapter.id, unit_index, draft.text, next_position, draft.word_count,
                )
            except (RetryExhaustedError, BlockPersistError) as e:
                logger.warning("Unit %d of chapter %d failed: %s", unit.sequence, chapter.id, e)
                self._finish_unit(chapter, unit_index, UnitStatus.FAILED)
                self.progress_model.unit_failed()
                self._unit_resolved(chapter, unit)
                continue
            except Exception:
                self.db.update_unit_status(chapter.id, unit_index, UnitStatus.PENDING)
                unit.status = UnitStatus.PENDING
                raise

            next_position += len(blocks)
            chapter.word_count += draft.word_count
            unit.status = UnitStatus.DONE
            wrote = True
            chapter_text = join_sections(chapter_text, draft.text)
            self.progress_model.unit_done(draft.word_count, time.monotonic() - started)
            self._unit_resolved(chapter, unit)

            await self._interruptible(self._sleep(self.settings.unit_delay))

        return chapter_text, wrote

    def _finish_unit(self, chapter: Chapter, unit_index: int, status: UnitStatus):
        self.db.update_unit_status(chapter.id, unit_index, status)
        chapter.units[unit_index].status = status

    def _unit_resolved(self, chapter: Chapter, unit: UnitDescriptor):
        self._save_hint()
        if self.callback:
            self.callback.on_unit_complete(chapter.title, unit, self.progress)

    def _skip_remaining(self, chapter: Chapter, from_index: int):
        skipped = 0
        for index in range(from_index, len(chapter.units)):
            if chapter.units[index].status == UnitStatus.PENDING:
                self._finish_unit(chapter, index, UnitStatus.SKIPPED)
                skipped += 1
        self.progress_model.units_skipped(skipped)
        logger.info(
            "Word budget reached (%d words); skipped %d unit(s) in chapter %d",
            self.progress.total_words, skipped, chapter.id,
        )


def build_orchestrator(
    db: Database,
    project_id: int,
    settings: Optional[Settings] = None,
    callback: Optional[WorkflowCallback] = None,
    checkpoint_mode: bool = False,
) -> Orchestrator:
    """Wire an Orchestrator to the Agent SDK backed collaborators."""
    from agents.outline_agent import OutlineAgent
    from agents.writer_agent import WriterAgent
    from memory.summarizer import Summarizer
    from tools.agent_sdk_client import AgentSDKClient

    settings = settings or Settings()
    llm = AgentSDKClient(settings)
    tracker = CharacterContinuityTracker(
        Summarizer(llm, settings), db=db, history_limit=settings.character_history_limit,
    )
    return Orchestrator(
        db=db,
        project_id=project_id,
        outline_stage=OutlineStage(OutlineAgent(llm, settings), db, settings),
        unit_writer=UnitWriterStage(WriterAgent(llm, settings), settings),
        persister=BlockPersister(db),
        tracker=tracker,
        settings=settings,
        callback=callback,
        hint_store=RecoveryHintStore(settings.recovery_hint_path, settings.recovery_hint_ttl_hours),
        checkpoint_mode=checkpoint_mode,
    )
