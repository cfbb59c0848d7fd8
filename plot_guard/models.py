from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, TypeAlias

LonLat: TypeAlias = Tuple[float, float]
Ring: TypeAlias = Tuple[LonLat, ...]


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def intersects(self, other: "BoundingBox") -> bool:
        """True when the boxes overlap (or touch) on both axes."""
        return (
            self.min_lon <= other.max_lon
            and self.max_lon >= other.min_lon
            and self.min_lat <= other.max_lat
            and self.max_lat >= other.min_lat
        )


@dataclass(frozen=True, slots=True)
class Plot:
    uuid: str
    plot_name: str
    instance_name: str
    # Closed ring as WKT; bbox is always derived from it (see plots.build_plot)
    polygon: str
    bbox: BoundingBox
    form_id: str
    region: str = ""
    sub_region: str = ""
    is_draft: bool = True
    submission_uuid: Optional[str] = None
    created_at: int = 0

    def confirmed(self, submission_uuid: str) -> "Plot":
        """Return a copy linked to a submission. Confirmed plots are final."""
        if not self.is_draft:
            raise ValueError(f"Plot {self.uuid} is already confirmed")
        return replace(self, is_draft=False, submission_uuid=submission_uuid)


@dataclass(frozen=True, slots=True)
class Submission:
    uuid: str
    form_id: str
    submission_time: int
    submission_id: Optional[str] = None
    submitted_by: Optional[str] = None
    instance_name: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)
    system_data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True, slots=True)
class SyncWatermark:
    form_id: str
    last_sync_timestamp: int


@dataclass(frozen=True, slots=True)
class OverlapResult:
    uuid: str
    plot_name: str
    overlap_percentage: float


@dataclass(slots=True)
class SyncResult:
    form_id: str
    fetched_count: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class ReconcileSummary:
    promoted: int = 0
    extracted: int = 0
    skipped_submissions: List[str] = field(default_factory=list)
