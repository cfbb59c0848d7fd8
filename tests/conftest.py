"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable ring/plot/submission
factories plus store fixtures shared by the geometry, storage and service
tests.
"""
from __future__ import annotations

import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from plot_guard.geometry.overlap import clear_polygon_cache
from plot_guard.models import Submission
from plot_guard.plots import build_plot
from plot_guard.storage import InMemoryStore, SQLiteStore


# --- Factory helpers -------------------------------------------------
def square_ring(min_lon, min_lat, size):
    """Closed counter-clockwise square ring of (lon, lat) pairs."""
    return (
        (min_lon, min_lat),
        (min_lon + size, min_lat),
        (min_lon + size, min_lat + size),
        (min_lon, min_lat + size),
        (min_lon, min_lat),
    )


def square_geoshape(min_lon, min_lat, size):
    """Same square in ODK geoshape text (``lat lon alt acc`` per vertex)."""
    return "; ".join(f"{lat} {lon} 0 0" for lon, lat in square_ring(min_lon, min_lat, size))


def make_plot(ring, uuid, **kwargs):
    kwargs.setdefault("plot_name", f"Plot {uuid}")
    kwargs.setdefault("instance_name", f"inst-{uuid}")
    kwargs.setdefault("form_id", "form-a")
    return build_plot(ring, uuid=uuid, **kwargs)


def make_submission(uuid, submission_time, form_id="form-a", instance_name=None, raw_data=None):
    return Submission(
        uuid=uuid,
        form_id=form_id,
        submission_time=submission_time,
        submission_id=uuid.replace("sub-", ""),
        instance_name=instance_name,
        raw_data=raw_data or {},
    )


# --- Fixtures --------------------------------------------------------
@pytest.fixture(autouse=True)
def fresh_polygon_cache():
    clear_polygon_cache()
    yield
    clear_polygon_cache()


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Every store implementation, so behaviour is checked against both."""
    if request.param == "memory":
        yield InMemoryStore()
        return
    sqlite_store = SQLiteStore(":memory:")
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def memory_store():
    return InMemoryStore()
