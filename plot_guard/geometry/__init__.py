"""Polygon parsing, validation and overlap detection (pure, no I/O)."""

from .bounding_box import bounding_box  # noqa: F401
from .overlap import find_overlaps, overlap_percentage  # noqa: F401
from .parser import parse_ring, ring_to_wkt  # noqa: F401
from .validator import (  # noqa: F401
    FailureKind,
    PolygonValidator,
    ValidationFailure,
    ValidationResult,
    ValidationSuccess,
    ValidatorConfig,
    area_square_meters,
    validate,
)
