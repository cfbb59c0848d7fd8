"""Persistence contracts required by the validation and sync services."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Protocol, Sequence

from ..models import BoundingBox, Plot, Submission

LOGGER = logging.getLogger(__name__)

PLOTS_TABLE = "plots"
SUBMISSIONS_TABLE = "submissions"
WATERMARKS_TABLE = "form_metadata"

Listener = Callable[[str], None]


class PlotStore(Protocol):
    def upsert_plot(self, plot: Plot) -> None: ...

    def upsert_plots(self, plots: Sequence[Plot]) -> None: ...

    def get_plot(self, uuid: str) -> Optional[Plot]: ...

    def find_overlap_candidates(
        self, bbox: BoundingBox, exclude_uuid: str = ""
    ) -> List[Plot]:
        """Plots whose bounding box intersects ``bbox`` on both axes.

        Region labels are not part of the filter.
        """
        ...

    def find_plot_by_instance_name(self, instance_name: str) -> Optional[Plot]: ...

    def find_plot_by_submission_uuid(self, submission_uuid: str) -> Optional[Plot]: ...

    def list_drafts(self) -> List[Plot]: ...

    def list_plots(self, form_id: Optional[str] = None) -> List[Plot]: ...

    def promote_draft(self, instance_name: str, submission_uuid: str) -> int:
        """Confirm drafts with ``instance_name``; plots already confirmed are untouched."""
        ...


class SubmissionStore(Protocol):
    def upsert_submissions(self, submissions: Sequence[Submission]) -> None: ...

    def get_submission(self, uuid: str) -> Optional[Submission]: ...

    def find_submission_by_instance_name(
        self, instance_name: str
    ) -> Optional[Submission]: ...

    def list_submissions(self, form_id: Optional[str] = None) -> List[Submission]: ...

    def latest_submission_time(self, form_id: str) -> Optional[int]: ...

    def count_submissions(self, form_id: str) -> int: ...


class WatermarkStore(Protocol):
    def get_watermark(self, form_id: str) -> Optional[int]: ...

    def set_watermark(self, form_id: str, timestamp: int) -> None:
        """Persist the watermark; a lower value than the stored one is ignored."""
        ...


class StoreListeners:
    """Publish-subscribe hook notified with the table name after each write."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def notify(self, table: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(table)
            except Exception:
                LOGGER.debug("Store listener failed for table %s", table, exc_info=True)
