"""Submission sync service (application layer).

Pulls submissions for a form page by page, persists each page as it
arrives, advances the per-form watermark and then runs draft
reconciliation. Already persisted pages are never rolled back: a failed or
cancelled run is simply retried later, which is safe because submissions are
upserted by uuid.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterator, List, Optional, Protocol

from ..errors import SyncCancelledError
from ..kobo_client.submissions import SubmissionsAPI, submission_from_payload
from ..models import Submission, SyncResult
from ..storage.interfaces import SubmissionStore, WatermarkStore
from .reconciler import DraftReconciler


class SubmissionPager(Protocol):
    def iter_pages(
        self, form_id: str, *, since_ms: Optional[int] = None
    ) -> Iterator[List[dict]]: ...


class SyncService:
    def __init__(
        self,
        submissions: SubmissionStore,
        watermarks: WatermarkStore,
        reconciler: DraftReconciler,
        api: SubmissionPager | None = None,
    ) -> None:
        self._submissions = submissions
        self._watermarks = watermarks
        self._reconciler = reconciler
        self._api = api or SubmissionsAPI()
        self._log = logging.getLogger(self.__class__.__name__)
        # Per-form locks keep two syncs of the same form from interleaving
        self._form_locks: Dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()

    def _get_form_lock(self, form_id: str) -> threading.Lock:
        with self._locks_lock:
            if form_id not in self._form_locks:
                self._form_locks[form_id] = threading.Lock()
            return self._form_locks[form_id]

    def sync(
        self, form_id: str, cancel_event: threading.Event | None = None
    ) -> SyncResult:
        """Full fetch on first run, delta fetch afterwards.

        Returns a SyncResult with the number of fetched records, or with the
        error that aborted the run.
        """

        with self._get_form_lock(form_id):
            try:
                fetched = self._run(form_id, cancel_event)
            except Exception as exc:
                self._log.error(
                    "Sync failed for form=%s: %s", form_id, exc, exc_info=True
                )
                return SyncResult(form_id=form_id, error=exc)
            return SyncResult(form_id=form_id, fetched_count=fetched)

    def _run(self, form_id: str, cancel_event: threading.Event | None) -> int:
        watermark = self._watermarks.get_watermark(form_id)
        if watermark is None:
            self._log.info("Full fetch for form=%s (no previous sync)", form_id)
        else:
            self._log.info("Delta fetch for form=%s since=%s", form_id, watermark)

        total = 0
        pages = self._api.iter_pages(form_id, since_ms=watermark)
        try:
            page_number = 0
            while True:
                self._raise_if_cancelled(form_id, cancel_event, page_number)
                try:
                    records = next(pages)
                except StopIteration:
                    break
                page_number += 1
                submissions = self._to_submissions(form_id, records)
                if submissions:
                    self._submissions.upsert_submissions(submissions)
                    total += len(submissions)
                self._log.debug(
                    "Persisted page %d for form=%s (%d records, total=%d)",
                    page_number,
                    form_id,
                    len(submissions),
                    total,
                )
        finally:
            close = getattr(pages, "close", None)
            if callable(close):
                close()

        if total > 0:
            self._advance_watermark(form_id)
            self._reconciler.reconcile(form_id)
        self._log.info("Sync finished for form=%s fetched=%d", form_id, total)
        return total

    def _to_submissions(self, form_id: str, records: List[dict]) -> List[Submission]:
        submissions: List[Submission] = []
        for record in records:
            submission = submission_from_payload(form_id, record)
            if submission is not None:
                submissions.append(submission)
        dropped = len(records) - len(submissions)
        if dropped:
            self._log.warning(
                "Dropped %d records without identity fields for form=%s",
                dropped,
                form_id,
            )
        return submissions

    def _advance_watermark(self, form_id: str) -> None:
        latest = self._submissions.latest_submission_time(form_id)
        if latest is None:
            return
        previous = self._watermarks.get_watermark(form_id)
        if previous is not None and latest <= previous:
            return
        self._watermarks.set_watermark(form_id, latest)
        self._log.info("Watermark for form=%s advanced to %s", form_id, latest)

    def _raise_if_cancelled(
        self, form_id: str, cancel_event: threading.Event | None, pages_done: int
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            self._log.info(
                "Cancellation requested for form=%s after %d pages; stopping.",
                form_id,
                pages_done,
            )
            raise SyncCancelledError(
                f"Sync for form {form_id} cancelled after {pages_done} pages"
            )


__all__ = ["SubmissionPager", "SyncService"]
