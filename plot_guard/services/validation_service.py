"""Caller-facing plot validation: structure, then overlap with stored plots."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Iterator, List, Optional, Tuple

from ..config import OVERLAP_THRESHOLD_PERCENT, SERIALIZE_DRAFT_REGISTRATION
from ..errors import PersistenceError
from ..geometry.bounding_box import bounding_box
from ..geometry.overlap import find_overlaps
from ..geometry.validator import (
    FailureKind,
    PolygonValidator,
    ValidationFailure,
    ValidationResult,
    ValidationSuccess,
    ValidatorConfig,
)
from ..models import OverlapResult, Plot
from ..plots import build_plot
from ..storage.interfaces import PlotStore

# Shared by every service instance in the process.
_registration_lock = threading.Lock()


class PlotValidationService:
    def __init__(
        self,
        plots: PlotStore,
        validator_config: ValidatorConfig | None = None,
        threshold_percent: float = OVERLAP_THRESHOLD_PERCENT,
        serialize: bool = SERIALIZE_DRAFT_REGISTRATION,
    ) -> None:
        self._plots = plots
        self._validator = PolygonValidator(validator_config)
        self.threshold_percent = threshold_percent
        self._serialize = serialize
        self._log = logging.getLogger(self.__class__.__name__)

    def check(self, raw_text: str, exclude_uuid: str = "") -> ValidationResult:
        """Validate ``raw_text`` and compare it against stored plots.

        ``exclude_uuid`` skips one stored plot, used when re-checking an
        edited plot against everything else. A store failure fails closed.
        """

        result = self._validator.validate(raw_text)
        if isinstance(result, ValidationFailure):
            return result

        bbox = bounding_box(result.ring)
        try:
            candidates = self._plots.find_overlap_candidates(bbox, exclude_uuid)
        except PersistenceError as exc:
            self._log.error("Overlap candidate lookup failed: %s", exc)
            return ValidationFailure(
                FailureKind.PERSISTENCE_ERROR,
                "Could not check for overlapping plots. Please try again.",
            )

        overlaps = find_overlaps(result.ring, candidates, self.threshold_percent)
        self._log.debug(
            "Overlap check: candidates=%d overlaps=%d", len(candidates), len(overlaps)
        )
        if overlaps:
            return ValidationFailure(
                FailureKind.OVERLAP_DETECTED,
                overlap_message(overlaps),
                overlaps=tuple(overlaps),
            )
        return result

    def register_draft(
        self,
        raw_text: str,
        plot_name: str,
        instance_name: str,
        form_id: str,
        region: str = "",
        sub_region: str = "",
    ) -> Tuple[ValidationResult, Optional[Plot]]:
        """Check and store a new draft plot.

        Returns the validation outcome and the stored plot, or ``None`` when
        the outcome is a failure.
        """

        with self._write_guard():
            result = self.check(raw_text)
            if not isinstance(result, ValidationSuccess):
                return result, None
            plot = build_plot(
                result.ring,
                plot_name=plot_name,
                instance_name=instance_name,
                form_id=form_id,
                region=region,
                sub_region=sub_region,
            )
            try:
                self._plots.upsert_plot(plot)
            except PersistenceError as exc:
                self._log.error("Storing draft %s failed: %s", instance_name, exc)
                return (
                    ValidationFailure(
                        FailureKind.PERSISTENCE_ERROR,
                        "Could not save the plot. Please try again.",
                    ),
                    None,
                )
        self._log.info("Registered draft plot %s (%s)", plot.uuid, instance_name)
        return result, plot

    @contextlib.contextmanager
    def _write_guard(self) -> Iterator[None]:
        if not self._serialize:
            yield
            return
        with _registration_lock:
            yield


def overlap_message(overlaps: List[OverlapResult]) -> str:
    names = ", ".join(
        f"{o.plot_name} ({o.overlap_percentage:.1f}%)" for o in overlaps
    )
    return f"Polygon overlaps with existing plots: {names}"


__all__ = ["PlotValidationService", "overlap_message"]
