"""Draft reconciliation run after each successful sync batch.

Two passes, in order:

* promotion links locally drawn draft plots to the submission that shares
  their instance name;
* extraction creates confirmed plots for submissions that have none yet.

Both passes are idempotent, so re-running them (or calling ``reconcile``
directly) never duplicates plots or re-links confirmed ones.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models import ReconcileSummary
from ..storage.interfaces import PlotStore, SubmissionStore
from .plot_extractor import PlotExtractor


class DraftReconciler:
    def __init__(
        self,
        plots: PlotStore,
        submissions: SubmissionStore,
        extractor: PlotExtractor | None = None,
    ) -> None:
        self._plots = plots
        self._submissions = submissions
        self._extractor = extractor or PlotExtractor()
        self._log = logging.getLogger(self.__class__.__name__)

    def reconcile(self, form_id: Optional[str] = None) -> ReconcileSummary:
        """Promote matching drafts, then extract plots for ``form_id`` (or all forms)."""

        summary = ReconcileSummary()
        summary.promoted = self.promote_drafts()
        self.extract_plots(form_id, summary)
        self._log.info(
            "Reconciled form=%s promoted=%d extracted=%d skipped=%d",
            form_id or "*",
            summary.promoted,
            summary.extracted,
            len(summary.skipped_submissions),
        )
        return summary

    def promote_drafts(self) -> int:
        promoted = 0
        for draft in self._plots.list_drafts():
            submission = self._submissions.find_submission_by_instance_name(
                draft.instance_name
            )
            if submission is None:
                continue
            updated = self._plots.promote_draft(draft.instance_name, submission.uuid)
            if updated:
                self._log.debug(
                    "Draft %s (%s) linked to submission %s",
                    draft.uuid,
                    draft.instance_name,
                    submission.uuid,
                )
            promoted += updated
        return promoted

    def extract_plots(
        self, form_id: Optional[str] = None, summary: ReconcileSummary | None = None
    ) -> int:
        summary = summary if summary is not None else ReconcileSummary()
        for submission in self._submissions.list_submissions(form_id):
            if self._plots.find_plot_by_submission_uuid(submission.uuid) is not None:
                continue
            plot = self._extractor.extract_plot(submission)
            if plot is None:
                # Not every submission carries a boundary.
                summary.skipped_submissions.append(submission.uuid)
                continue
            self._plots.upsert_plot(plot)
            summary.extracted += 1
        return summary.extracted


__all__ = ["DraftReconciler"]
