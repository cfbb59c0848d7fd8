"""Exact overlap detection between a new plot and stored candidates.

Candidates are expected to be pre-filtered by bounding box. The overlap
percentage always uses the smaller polygon's area as denominator, so a small
plot entirely inside a large one reports ~100%.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Sequence

from cachetools import LRUCache, cached
from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from ..config import OVERLAP_THRESHOLD_PERCENT, PARSED_POLYGON_CACHE_SIZE
from ..errors import ParseError
from ..models import LonLat, OverlapResult, Plot
from .parser import parse_ring

LOGGER = logging.getLogger(__name__)

_polygon_cache: LRUCache[str, Polygon] = LRUCache(maxsize=PARSED_POLYGON_CACHE_SIZE)
_polygon_cache_lock = threading.Lock()


@cached(_polygon_cache, lock=_polygon_cache_lock)
def polygon_from_text(text: str) -> Polygon:
    """Parse stored polygon text into a shapely polygon (memoised)."""

    return Polygon(parse_ring(text))


def clear_polygon_cache() -> None:
    with _polygon_cache_lock:
        _polygon_cache.clear()


def overlap_percentage(first: Polygon, second: Polygon) -> float:
    """Intersection area as a percentage of the smaller polygon's area.

    Boundary-only contact (shared edge or vertex) yields 0.0.
    """

    if not first.intersects(second):
        return 0.0
    intersection_area = first.intersection(second).area
    if intersection_area <= 0:
        return 0.0
    smaller_area = min(first.area, second.area)
    if smaller_area <= 0:
        return 0.0
    return intersection_area / smaller_area * 100.0


def find_overlaps(
    new_ring: Sequence[LonLat],
    candidates: Iterable[Plot],
    threshold_percent: float = OVERLAP_THRESHOLD_PERCENT,
) -> List[OverlapResult]:
    """Return candidates overlapping ``new_ring`` by at least ``threshold_percent``."""

    new_polygon = Polygon(new_ring)
    results: List[OverlapResult] = []
    for candidate in candidates:
        try:
            candidate_polygon = polygon_from_text(candidate.polygon)
        except ParseError as exc:
            LOGGER.warning(
                "Skipping plot %s: stored geometry unreadable (%s)",
                candidate.uuid,
                exc,
            )
            continue
        try:
            percentage = overlap_percentage(new_polygon, candidate_polygon)
        except ShapelyError as exc:
            LOGGER.warning(
                "Failed to check overlap with plot %s: %s", candidate.uuid, exc
            )
            continue
        if percentage <= 0:
            continue
        LOGGER.debug(
            "Plot %s (%s) overlaps by %.2f%%",
            candidate.uuid,
            candidate.plot_name,
            percentage,
        )
        if percentage >= threshold_percent:
            results.append(
                OverlapResult(
                    uuid=candidate.uuid,
                    plot_name=candidate.plot_name,
                    overlap_percentage=percentage,
                )
            )
    return results


__all__ = [
    "clear_polygon_cache",
    "find_overlaps",
    "overlap_percentage",
    "polygon_from_text",
]
