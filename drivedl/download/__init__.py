"""Download engine for drivedl - resumable, concurrency-bounded tree mirroring."""

from .context import RunContext, RunStats, TransferSettings, WorkTracker
from .engine import DownloadEngine
from .progress import (
    NullProgressAggregator,
    NullProgressHandle,
    ProgressAggregator,
    ProgressHandle,
)
from .scheduler import AdmissionScheduler
from .transfer import TransferState, TransferUnit
from .verifier import LocalFileVerifier, VerifyResult
from .walker import TreeWalker

__all__ = [
    "DownloadEngine",
    "TreeWalker",
    "TransferUnit",
    "TransferState",
    "LocalFileVerifier",
    "VerifyResult",
    "AdmissionScheduler",
    "ProgressAggregator",
    "ProgressHandle",
    "NullProgressAggregator",
    "NullProgressHandle",
    "RunContext",
    "RunStats",
    "TransferSettings",
    "WorkTracker",
]
