import logging
from dataclasses import replace

import pytest
from shapely.geometry import Polygon

from conftest import make_plot, square_ring
from plot_guard.geometry.bounding_box import bounding_box
from plot_guard.geometry.overlap import find_overlaps, overlap_percentage
from plot_guard.models import BoundingBox


def _pct(a, b):
    return overlap_percentage(Polygon(a), Polygon(b))


def test_bounding_box_covers_all_vertices():
    ring = ((38.7, 9.1), (38.9, 9.0), (38.8, 9.3), (38.7, 9.1))
    assert bounding_box(ring) == BoundingBox(
        min_lat=9.0, max_lat=9.3, min_lon=38.7, max_lon=38.9
    )


def test_bounding_box_rejects_empty_ring():
    with pytest.raises(ValueError):
        bounding_box([])


def test_identical_squares_overlap_fully():
    assert _pct(square_ring(0, 0, 10), square_ring(0, 0, 10)) == pytest.approx(100.0)


def test_half_overlap_respects_threshold():
    existing = make_plot(square_ring(5, 0, 10), "half")
    new_ring = square_ring(0, 0, 10)

    results = find_overlaps(new_ring, [existing], threshold_percent=5.0)
    assert [r.uuid for r in results] == ["half"]
    assert results[0].overlap_percentage == pytest.approx(50.0)
    assert results[0].plot_name == "Plot half"

    assert find_overlaps(new_ring, [existing], threshold_percent=60.0) == []


@pytest.mark.parametrize(
    "other",
    [
        square_ring(10, 0, 10),  # shared edge
        square_ring(10, 10, 10),  # shared corner
    ],
)
def test_boundary_contact_is_zero_and_never_reported(other):
    assert _pct(square_ring(0, 0, 10), other) == 0.0
    candidate = make_plot(other, "touching")
    assert find_overlaps(square_ring(0, 0, 10), [candidate], threshold_percent=0.0) == []


def test_containment_uses_smaller_area():
    assert _pct(square_ring(20, 20, 10), square_ring(0, 0, 100)) == pytest.approx(100.0)
    assert _pct(square_ring(0, 0, 100), square_ring(20, 20, 10)) == pytest.approx(100.0)


def test_disjoint_candidates_are_skipped():
    candidate = make_plot(square_ring(50, 50, 10), "far")
    assert find_overlaps(square_ring(0, 0, 10), [candidate]) == []


def test_unparseable_candidate_is_skipped_and_logged(caplog):
    good = make_plot(square_ring(0, 0, 10), "good")
    broken = replace(good, uuid="broken", polygon="POLYGON ((garbage))")

    with caplog.at_level(logging.WARNING):
        results = find_overlaps(square_ring(0, 0, 10), [broken, good])

    assert [r.uuid for r in results] == ["good"]
    assert "broken" in caplog.text
