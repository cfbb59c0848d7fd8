"""In-memory store used by tests and short-lived tooling."""

from __future__ import annotations

from threading import RLock
from typing import Callable, Dict, List, Optional, Sequence

from ..models import BoundingBox, Plot, Submission
from .interfaces import (
    PLOTS_TABLE,
    SUBMISSIONS_TABLE,
    WATERMARKS_TABLE,
    Listener,
    StoreListeners,
)


class InMemoryStore:
    """Thread-safe plot, submission and watermark store backed by dicts."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._plots: Dict[str, Plot] = {}
        self._submissions: Dict[str, Submission] = {}
        self._watermarks: Dict[str, int] = {}
        self._listeners = StoreListeners()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    # --- Plots ---------------------------------------------------------
    def upsert_plot(self, plot: Plot) -> None:
        self.upsert_plots([plot])

    def upsert_plots(self, plots: Sequence[Plot]) -> None:
        with self._lock:
            for plot in plots:
                self._plots[plot.uuid] = plot
        self._listeners.notify(PLOTS_TABLE)

    def get_plot(self, uuid: str) -> Optional[Plot]:
        with self._lock:
            return self._plots.get(uuid)

    def find_overlap_candidates(
        self, bbox: BoundingBox, exclude_uuid: str = ""
    ) -> List[Plot]:
        with self._lock:
            return [
                plot
                for plot in self._plots.values()
                if plot.uuid != exclude_uuid and plot.bbox.intersects(bbox)
            ]

    def find_plot_by_instance_name(self, instance_name: str) -> Optional[Plot]:
        with self._lock:
            return next(
                (p for p in self._plots.values() if p.instance_name == instance_name),
                None,
            )

    def find_plot_by_submission_uuid(self, submission_uuid: str) -> Optional[Plot]:
        with self._lock:
            return next(
                (
                    p
                    for p in self._plots.values()
                    if p.submission_uuid == submission_uuid
                ),
                None,
            )

    def list_drafts(self) -> List[Plot]:
        with self._lock:
            return [p for p in self._plots.values() if p.is_draft]

    def list_plots(self, form_id: Optional[str] = None) -> List[Plot]:
        with self._lock:
            plots = [
                p for p in self._plots.values() if form_id is None or p.form_id == form_id
            ]
        return sorted(plots, key=lambda p: p.created_at, reverse=True)

    def promote_draft(self, instance_name: str, submission_uuid: str) -> int:
        updated = 0
        with self._lock:
            for uuid, plot in list(self._plots.items()):
                if plot.is_draft and plot.instance_name == instance_name:
                    self._plots[uuid] = plot.confirmed(submission_uuid)
                    updated += 1
        if updated:
            self._listeners.notify(PLOTS_TABLE)
        return updated

    # --- Submissions ---------------------------------------------------
    def upsert_submissions(self, submissions: Sequence[Submission]) -> None:
        with self._lock:
            for submission in submissions:
                self._submissions[submission.uuid] = submission
        self._listeners.notify(SUBMISSIONS_TABLE)

    def get_submission(self, uuid: str) -> Optional[Submission]:
        with self._lock:
            return self._submissions.get(uuid)

    def find_submission_by_instance_name(
        self, instance_name: str
    ) -> Optional[Submission]:
        with self._lock:
            matches = [
                s for s in self._submissions.values() if s.instance_name == instance_name
            ]
        if not matches:
            return None
        return max(matches, key=lambda s: s.submission_time)

    def list_submissions(self, form_id: Optional[str] = None) -> List[Submission]:
        with self._lock:
            subs = [
                s
                for s in self._submissions.values()
                if form_id is None or s.form_id == form_id
            ]
        return sorted(subs, key=lambda s: s.submission_time, reverse=True)

    def latest_submission_time(self, form_id: str) -> Optional[int]:
        with self._lock:
            times = [
                s.submission_time
                for s in self._submissions.values()
                if s.form_id == form_id
            ]
        return max(times) if times else None

    def count_submissions(self, form_id: str) -> int:
        with self._lock:
            return sum(1 for s in self._submissions.values() if s.form_id == form_id)

    # --- Watermarks ----------------------------------------------------
    def get_watermark(self, form_id: str) -> Optional[int]:
        with self._lock:
            return self._watermarks.get(form_id)

    def set_watermark(self, form_id: str, timestamp: int) -> None:
        with self._lock:
            current = self._watermarks.get(form_id)
            if current is not None and timestamp <= current:
                return
            self._watermarks[form_id] = timestamp
        self._listeners.notify(WATERMARKS_TABLE)


__all__ = ["InMemoryStore"]
