"""Central error types used across the application."""

from __future__ import annotations


class PlotGuardError(RuntimeError):
    """Base error for plot validation, storage and sync failures."""


class ParseError(PlotGuardError, ValueError):
    """Raised when coordinate text cannot be turned into a polygon ring."""


class PersistenceError(PlotGuardError):
    """Raised when the local store is unreachable or a query fails."""


class SyncError(PlotGuardError):
    """Base error for failures while pulling submissions from the server."""


class SyncCancelledError(SyncError):
    """Raised when a sync run is cancelled before all pages were fetched."""


class KoboAPIError(SyncError):
    """Raised when the survey platform API returns an unusable response."""


class KoboPermissionError(KoboAPIError):
    """Raised when the API rejects the configured credentials."""


class KoboResourceNotFoundError(KoboAPIError):
    """Raised when the requested form (asset) does not exist."""


__all__ = [
    "PlotGuardError",
    "ParseError",
    "PersistenceError",
    "SyncError",
    "SyncCancelledError",
    "KoboAPIError",
    "KoboPermissionError",
    "KoboResourceNotFoundError",
]
