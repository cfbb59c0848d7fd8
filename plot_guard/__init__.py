"""Land plot boundary validation, overlap detection and submission sync."""

from .errors import ParseError, PersistenceError, PlotGuardError, SyncError
from .geometry import FailureKind, ValidationFailure, ValidationSuccess, find_overlaps, validate
from .models import OverlapResult, Plot, Submission, SyncResult
from .services import DraftReconciler, PlotValidationService, SyncService

__all__ = [
    "validate",
    "find_overlaps",
    "FailureKind",
    "ValidationSuccess",
    "ValidationFailure",
    "Plot",
    "Submission",
    "OverlapResult",
    "SyncResult",
    "DraftReconciler",
    "PlotValidationService",
    "SyncService",
    "PlotGuardError",
    "ParseError",
    "PersistenceError",
    "SyncError",
]
