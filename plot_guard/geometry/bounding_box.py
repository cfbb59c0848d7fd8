"""Axis-aligned envelope of a ring."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..models import BoundingBox, LonLat


def bounding_box(ring: Sequence[LonLat]) -> BoundingBox:
    """Return ``(min_lat, max_lat, min_lon, max_lon)`` over all vertices."""

    coords = np.asarray(ring, dtype=float)
    if coords.ndim != 2 or coords.shape[0] == 0 or coords.shape[1] < 2:
        raise ValueError("bounding_box requires a non-empty sequence of (lon, lat)")
    lons = coords[:, 0]
    lats = coords[:, 1]
    return BoundingBox(
        min_lat=float(lats.min()),
        max_lat=float(lats.max()),
        min_lon=float(lons.min()),
        max_lon=float(lons.max()),
    )


__all__ = ["bounding_box"]
