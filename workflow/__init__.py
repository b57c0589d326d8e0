"""Workflow package: orchestrator, pipeline stages, progress, and recovery."""

from workflow.orchestrator import Orchestrator, build_orchestrator
from workflow.outline_stage import OutlineStage, normalize_units
from workflow.unit_writer import UnitWriterStage
from workflow.block_persister import BlockPersister
from workflow.retry import RetryPolicy
from workflow.progress import ProgressModel, ProgressSnapshot, PendingApproval
from workflow.recovery import RecoveryHintStore
from workflow.callbacks import WorkflowCallback, LoggingCallback, RichProgressCallback

__all__ = [
    "Orchestrator",
    "build_orchestrator",
    "OutlineStage",
    "normalize_units",
    "UnitWriterStage",
    "BlockPersister",
    "RetryPolicy",
    "ProgressModel",
    "ProgressSnapshot",
    "PendingApproval",
    "RecoveryHintStore",
    "WorkflowCallback",
    "LoggingCallback",
    "RichProgressCallback",
]
