"""Stage status classification, batch assembly and stuck job detection."""

from proofwatch.status.assembler import BatchDataAssembler
from proofwatch.status.classifier import Status, StatusKind, classify, job_status
from proofwatch.status.stages import BatchData, StageFlags, StageInfo
from proofwatch.status.stuck import RoundStuckReport, StuckJobDetector, StuckReport

__all__ = [
    "BatchData",
    "BatchDataAssembler",
    "RoundStuckReport",
    "StageFlags",
    "StageInfo",
    "Status",
    "StatusKind",
    "StuckJobDetector",
    "StuckReport",
    "classify",
    "job_status",
]
