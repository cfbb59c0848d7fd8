"""Local persistence for plots, synced submissions and sync watermarks."""

from .interfaces import PlotStore, StoreListeners, SubmissionStore, WatermarkStore
from .memory import InMemoryStore
from .sqlite import SQLiteStore

__all__ = [
    "InMemoryStore",
    "PlotStore",
    "SQLiteStore",
    "StoreListeners",
    "SubmissionStore",
    "WatermarkStore",
]
