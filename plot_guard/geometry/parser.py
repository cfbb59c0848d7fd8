"""Coordinate text parsing.

Two encodings are accepted:

* ODK geoshape: ``"lat lon alt acc; lat lon alt acc; ..."``. Only the first
  two tokens of each vertex are used; altitude and accuracy are optional.
* WKT: ``"POLYGON ((x y, x y, ...))"`` with ``x`` = longitude and
  ``y`` = latitude. Z/M ordinates are ignored.

Both produce a closed ring of ``(lon, lat)`` pairs.
"""

from __future__ import annotations

import math
import re
from typing import List, Sequence

from shapely.geometry import Polygon

from ..errors import ParseError
from ..models import LonLat, Ring

__all__ = ["parse_ring", "parse_odk_geoshape", "parse_wkt_polygon", "ring_to_wkt"]

_WHITESPACE = re.compile(r"\s+")
_WKT_POLYGON = re.compile(
    r"^POLYGON\s*(?:ZM|Z|M)?\s*\((?P<body>.*)\)$", re.IGNORECASE | re.DOTALL
)
_WKT_RING = re.compile(r"\(([^()]*)\)")


def parse_ring(text: str) -> Ring:
    """Parse either supported encoding into a closed ``(lon, lat)`` ring."""

    if not isinstance(text, str) or not text.strip():
        raise ParseError("Empty polygon input")
    stripped = text.strip()
    if stripped[:7].upper() == "POLYGON":
        return parse_wkt_polygon(stripped)
    return parse_odk_geoshape(stripped)


def parse_odk_geoshape(text: str) -> Ring:
    points: List[LonLat] = []
    for raw_vertex in text.split(";"):
        vertex = raw_vertex.strip()
        if not vertex:
            continue
        parts = _WHITESPACE.split(vertex)
        if len(parts) < 2:
            raise ParseError(f"Vertex {vertex!r} needs latitude and longitude")
        lat = _to_float(parts[0])
        lon = _to_float(parts[1])
        points.append((lon, lat))
    return _close(points)


def parse_wkt_polygon(text: str) -> Ring:
    match = _WKT_POLYGON.match(text.strip())
    if match is None:
        raise ParseError(f"Not a WKT polygon: {_preview(text)}")
    body = match.group("body").strip()
    rings = _WKT_RING.findall(body)
    leftover = _WKT_RING.sub("", body).replace(",", "").strip()
    if not rings or leftover:
        raise ParseError(f"Malformed WKT polygon: {_preview(text)}")
    if len(rings) > 1:
        raise ParseError("Polygons with interior rings are not supported")

    points: List[LonLat] = []
    for raw_coord in rings[0].split(","):
        coord = raw_coord.strip()
        if not coord:
            raise ParseError(f"Empty coordinate in WKT polygon: {_preview(text)}")
        parts = _WHITESPACE.split(coord)
        if len(parts) < 2:
            raise ParseError(f"Coordinate {coord!r} needs x and y")
        points.append((_to_float(parts[0]), _to_float(parts[1])))
    return _close(points)


def ring_to_wkt(ring: Sequence[LonLat]) -> str:
    """Serialise a ring as WKT for storage."""

    return Polygon(ring).wkt


def _close(points: List[LonLat]) -> Ring:
    distinct = set(points)
    if len(distinct) < 3:
        raise ParseError(
            f"A polygon needs at least 3 distinct vertices (got {len(distinct)})"
        )
    if points[0] != points[-1]:
        points.append(points[0])
    return tuple(points)


def _to_float(token: str) -> float:
    try:
        value = float(token)
    except ValueError as exc:
        raise ParseError(f"Non-numeric coordinate {token!r}") from exc
    if not math.isfinite(value):
        raise ParseError(f"Non-finite coordinate {token!r}")
    return value


def _preview(text: str, limit: int = 60) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."
