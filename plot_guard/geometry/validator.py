"""Structural validation of a drawn plot boundary.

Checks run in a fixed order and stop at the first failure:

1. vertex count of the closed ring,
2. approximate area in square metres,
3. simplicity (edges must not cross).

Expected failures are returned as :class:`ValidationFailure` values rather
than raised, so callers can show the message and let the user redraw.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple, Union

import numpy as np
from shapely.geometry import Polygon
from shapely.validation import explain_validity

from ..config import METERS_PER_DEGREE_AT_EQUATOR, MIN_AREA_SQ_METERS, MIN_VERTICES
from ..errors import ParseError
from ..models import LonLat, OverlapResult, Ring
from .parser import parse_ring

LOGGER = logging.getLogger(__name__)


class FailureKind(str, Enum):
    PARSE_ERROR = "parse_error"
    TOO_FEW_VERTICES = "too_few_vertices"
    AREA_TOO_SMALL = "area_too_small"
    SELF_INTERSECTING = "self_intersecting"
    OVERLAP_DETECTED = "overlap_detected"
    PERSISTENCE_ERROR = "persistence_error"


@dataclass(frozen=True, slots=True)
class ValidationSuccess:
    ring: Ring
    area_square_meters: float


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    kind: FailureKind
    message: str
    # Populated for OVERLAP_DETECTED only
    overlaps: Tuple[OverlapResult, ...] = ()


ValidationResult = Union[ValidationSuccess, ValidationFailure]


@dataclass(frozen=True, slots=True)
class ValidatorConfig:
    min_vertices: int = MIN_VERTICES
    min_area_square_meters: float = MIN_AREA_SQ_METERS


def planar_area_and_centroid(ring: Sequence[LonLat]) -> Tuple[float, LonLat]:
    """Shoelace area (square degrees) and area centroid of a closed ring.

    Coordinates are shifted to the first vertex before the cross products so
    plot-sized rings far from the origin keep their precision. A degenerate
    ring (zero area) reports the vertex mean as its centroid.
    """

    coords = np.asarray(ring, dtype=float)
    origin = coords[0]
    shifted = coords - origin
    x0, y0 = shifted[:-1, 0], shifted[:-1, 1]
    x1, y1 = shifted[1:, 0], shifted[1:, 1]
    cross = x0 * y1 - x1 * y0
    signed_area = float(cross.sum()) / 2.0
    if signed_area == 0.0:
        mean = coords[:-1].mean(axis=0)
        return 0.0, (float(mean[0]), float(mean[1]))
    cx = float(((x0 + x1) * cross).sum()) / (6.0 * signed_area)
    cy = float(((y0 + y1) * cross).sum()) / (6.0 * signed_area)
    return abs(signed_area), (cx + float(origin[0]), cy + float(origin[1]))


def area_square_meters(ring: Sequence[LonLat]) -> float:
    """Approximate ring area in m² using the centroid latitude.

    Longitude degrees shrink by ``cos(latitude)``. No correction is applied
    for large extents; this is only meant for plot-sized shapes.
    """

    area_deg2, (_, centroid_lat) = planar_area_and_centroid(ring)
    meters_per_degree_lat = METERS_PER_DEGREE_AT_EQUATOR
    meters_per_degree_lon = METERS_PER_DEGREE_AT_EQUATOR * math.cos(
        math.radians(centroid_lat)
    )
    return area_deg2 * meters_per_degree_lat * meters_per_degree_lon


class PolygonValidator:
    def __init__(self, config: ValidatorConfig | None = None) -> None:
        self.config = config or ValidatorConfig()

    def validate(self, text: str) -> ValidationResult:
        try:
            ring = parse_ring(text)
        except ParseError as exc:
            LOGGER.debug("Polygon parse failed: %s", exc)
            return ValidationFailure(
                FailureKind.PARSE_ERROR,
                f"Invalid polygon format. Unable to parse the shape data ({exc}).",
            )
        return self.validate_ring(ring)

    def validate_ring(self, ring: Ring) -> ValidationResult:
        if len(ring) < self.config.min_vertices:
            return ValidationFailure(
                FailureKind.TOO_FEW_VERTICES,
                "Polygon has too few vertices. A valid shape requires at least "
                f"{max(self.config.min_vertices - 1, 3)} points.",
            )

        area_m2 = area_square_meters(ring)
        if area_m2 < self.config.min_area_square_meters:
            return ValidationFailure(
                FailureKind.AREA_TOO_SMALL,
                "Polygon area is too small. Minimum required: "
                f"{self.config.min_area_square_meters:g} square meters "
                f"(got {area_m2:.1f}).",
            )

        polygon = Polygon(ring)
        if not polygon.is_valid:
            LOGGER.debug("Polygon topology invalid: %s", explain_validity(polygon))
            return ValidationFailure(
                FailureKind.SELF_INTERSECTING,
                "Polygon lines intersect or cross each other. Please redraw the shape.",
            )

        return ValidationSuccess(ring=ring, area_square_meters=area_m2)


def validate(text: str, config: ValidatorConfig | None = None) -> ValidationResult:
    """Parse and validate raw polygon text with the given thresholds."""

    return PolygonValidator(config).validate(text)


__all__ = [
    "FailureKind",
    "PolygonValidator",
    "ValidationFailure",
    "ValidationResult",
    "ValidationSuccess",
    "ValidatorConfig",
    "area_square_meters",
    "planar_area_and_centroid",
    "validate",
]
