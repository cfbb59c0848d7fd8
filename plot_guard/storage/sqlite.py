"""SQLite-backed store.

Each bounding box column carries its own index; the overlap candidate query
is four independent range predicates.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence

from ..errors import PersistenceError
from ..models import BoundingBox, Plot, Submission
from ..utils import json_dumps_sorted
from .interfaces import (
    PLOTS_TABLE,
    SUBMISSIONS_TABLE,
    WATERMARKS_TABLE,
    Listener,
    StoreListeners,
)

LOGGER = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS plots (
    uuid TEXT PRIMARY KEY,
    plot_name TEXT NOT NULL,
    instance_name TEXT NOT NULL,
    polygon_wkt TEXT NOT NULL,
    min_lat REAL NOT NULL,
    max_lat REAL NOT NULL,
    min_lon REAL NOT NULL,
    max_lon REAL NOT NULL,
    is_draft INTEGER NOT NULL DEFAULT 1,
    form_id TEXT NOT NULL,
    region TEXT NOT NULL DEFAULT '',
    sub_region TEXT NOT NULL DEFAULT '',
    created_at INTEGER NOT NULL,
    submission_uuid TEXT
);
CREATE INDEX IF NOT EXISTS idx_plots_min_lat ON plots(min_lat);
CREATE INDEX IF NOT EXISTS idx_plots_max_lat ON plots(max_lat);
CREATE INDEX IF NOT EXISTS idx_plots_min_lon ON plots(min_lon);
CREATE INDEX IF NOT EXISTS idx_plots_max_lon ON plots(max_lon);
CREATE INDEX IF NOT EXISTS idx_plots_instance_name ON plots(instance_name);
CREATE INDEX IF NOT EXISTS idx_plots_submission_uuid ON plots(submission_uuid);

CREATE TABLE IF NOT EXISTS submissions (
    uuid TEXT PRIMARY KEY,
    form_id TEXT NOT NULL,
    submission_id TEXT,
    submission_time INTEGER NOT NULL,
    submitted_by TEXT,
    instance_name TEXT,
    raw_data TEXT NOT NULL,
    system_data TEXT
);
CREATE INDEX IF NOT EXISTS idx_submissions_form_time
    ON submissions(form_id, submission_time);
CREATE INDEX IF NOT EXISTS idx_submissions_instance_name
    ON submissions(instance_name);

CREATE TABLE IF NOT EXISTS form_metadata (
    form_id TEXT PRIMARY KEY,
    last_sync_timestamp INTEGER NOT NULL
);
"""

_PLOT_COLUMNS = (
    "uuid, plot_name, instance_name, polygon_wkt, min_lat, max_lat, min_lon, "
    "max_lon, is_draft, form_id, region, sub_region, created_at, submission_uuid"
)
_SUBMISSION_COLUMNS = (
    "uuid, form_id, submission_id, submission_time, submitted_by, instance_name, "
    "raw_data, system_data"
)


class SQLiteStore:
    """Plot, submission and watermark store on a single SQLite connection."""

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._lock = threading.RLock()
        self._listeners = StoreListeners()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            with self._conn:
                self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open plot database {path!r}: {exc}") from exc
        LOGGER.debug("Opened plot database %s", path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    @contextmanager
    def _cursor(self, operation: str, *, write: bool = False) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            try:
                if write:
                    with self._conn:
                        yield self._conn.cursor()
                else:
                    yield self._conn.cursor()
            except sqlite3.Error as exc:
                LOGGER.error("SQLite %s failed on %s: %s", operation, self.path, exc)
                raise PersistenceError(f"{operation} failed: {exc}") from exc

    # --- Plots ---------------------------------------------------------
    def upsert_plot(self, plot: Plot) -> None:
        self.upsert_plots([plot])

    def upsert_plots(self, plots: Sequence[Plot]) -> None:
        rows = [_plot_to_row(plot) for plot in plots]
        with self._cursor("upsert plots", write=True) as cur:
            cur.executemany(
                f"INSERT OR REPLACE INTO plots ({_PLOT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        self._listeners.notify(PLOTS_TABLE)

    def get_plot(self, uuid: str) -> Optional[Plot]:
        with self._cursor("get plot") as cur:
            row = cur.execute(
                f"SELECT {_PLOT_COLUMNS} FROM plots WHERE uuid = ?", (uuid,)
            ).fetchone()
        return _row_to_plot(row) if row else None

    def find_overlap_candidates(
        self, bbox: BoundingBox, exclude_uuid: str = ""
    ) -> List[Plot]:
        with self._cursor("find overlap candidates") as cur:
            rows = cur.execute(
                f"""
                SELECT {_PLOT_COLUMNS} FROM plots
                WHERE uuid != ?
                AND min_lon <= ? AND max_lon >= ?
                AND min_lat <= ? AND max_lat >= ?
                """,
                (exclude_uuid, bbox.max_lon, bbox.min_lon, bbox.max_lat, bbox.min_lat),
            ).fetchall()
        return [_row_to_plot(row) for row in rows]

    def find_plot_by_instance_name(self, instance_name: str) -> Optional[Plot]:
        with self._cursor("find plot by instance name") as cur:
            row = cur.execute(
                f"SELECT {_PLOT_COLUMNS} FROM plots WHERE instance_name = ? LIMIT 1",
                (instance_name,),
            ).fetchone()
        return _row_to_plot(row) if row else None

    def find_plot_by_submission_uuid(self, submission_uuid: str) -> Optional[Plot]:
        with self._cursor("find plot by submission uuid") as cur:
            row = cur.execute(
                f"SELECT {_PLOT_COLUMNS} FROM plots WHERE submission_uuid = ? LIMIT 1",
                (submission_uuid,),
            ).fetchone()
        return _row_to_plot(row) if row else None

    def list_drafts(self) -> List[Plot]:
        with self._cursor("list drafts") as cur:
            rows = cur.execute(
                f"SELECT {_PLOT_COLUMNS} FROM plots WHERE is_draft = 1"
            ).fetchall()
        return [_row_to_plot(row) for row in rows]

    def list_plots(self, form_id: Optional[str] = None) -> List[Plot]:
        query = f"SELECT {_PLOT_COLUMNS} FROM plots"
        params: tuple[Any, ...] = ()
        if form_id is not None:
            query += " WHERE form_id = ?"
            params = (form_id,)
        query += " ORDER BY created_at DESC"
        with self._cursor("list plots") as cur:
            rows = cur.execute(query, params).fetchall()
        return [_row_to_plot(row) for row in rows]

    def promote_draft(self, instance_name: str, submission_uuid: str) -> int:
        with self._cursor("promote draft", write=True) as cur:
            cur.execute(
                """
                UPDATE plots
                SET is_draft = 0, submission_uuid = ?
                WHERE instance_name = ?
                AND is_draft = 1
                """,
                (submission_uuid, instance_name),
            )
            updated = cur.rowcount
        if updated:
            self._listeners.notify(PLOTS_TABLE)
        return updated

    # --- Submissions ---------------------------------------------------
    def upsert_submissions(self, submissions: Sequence[Submission]) -> None:
        rows = [_submission_to_row(sub) for sub in submissions]
        with self._cursor("upsert submissions", write=True) as cur:
            cur.executemany(
                f"INSERT OR REPLACE INTO submissions ({_SUBMISSION_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        self._listeners.notify(SUBMISSIONS_TABLE)

    def get_submission(self, uuid: str) -> Optional[Submission]:
        with self._cursor("get submission") as cur:
            row = cur.execute(
                f"SELECT {_SUBMISSION_COLUMNS} FROM submissions WHERE uuid = ?",
                (uuid,),
            ).fetchone()
        return _row_to_submission(row) if row else None

    def find_submission_by_instance_name(
        self, instance_name: str
    ) -> Optional[Submission]:
        with self._cursor("find submission by instance name") as cur:
            row = cur.execute(
                f"""
                SELECT {_SUBMISSION_COLUMNS} FROM submissions
                WHERE instance_name = ?
                ORDER BY submission_time DESC
                LIMIT 1
                """,
                (instance_name,),
            ).fetchone()
        return _row_to_submission(row) if row else None

    def list_submissions(self, form_id: Optional[str] = None) -> List[Submission]:
        query = f"SELECT {_SUBMISSION_COLUMNS} FROM submissions"
        params: tuple[Any, ...] = ()
        if form_id is not None:
            query += " WHERE form_id = ?"
            params = (form_id,)
        query += " ORDER BY submission_time DESC"
        with self._cursor("list submissions") as cur:
            rows = cur.execute(query, params).fetchall()
        return [_row_to_submission(row) for row in rows]

    def latest_submission_time(self, form_id: str) -> Optional[int]:
        with self._cursor("latest submission time") as cur:
            row = cur.execute(
                "SELECT MAX(submission_time) FROM submissions WHERE form_id = ?",
                (form_id,),
            ).fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def count_submissions(self, form_id: str) -> int:
        with self._cursor("count submissions") as cur:
            row = cur.execute(
                "SELECT COUNT(*) FROM submissions WHERE form_id = ?", (form_id,)
            ).fetchone()
        return int(row[0])

    # --- Watermarks ----------------------------------------------------
    def get_watermark(self, form_id: str) -> Optional[int]:
        with self._cursor("get watermark") as cur:
            row = cur.execute(
                "SELECT last_sync_timestamp FROM form_metadata WHERE form_id = ?",
                (form_id,),
            ).fetchone()
        return int(row[0]) if row else None

    def set_watermark(self, form_id: str, timestamp: int) -> None:
        with self._cursor("set watermark", write=True) as cur:
            cur.execute(
                """
                INSERT INTO form_metadata (form_id, last_sync_timestamp)
                VALUES (?, ?)
                ON CONFLICT(form_id) DO UPDATE SET
                    last_sync_timestamp = MAX(last_sync_timestamp, excluded.last_sync_timestamp)
                """,
                (form_id, int(timestamp)),
            )
        self._listeners.notify(WATERMARKS_TABLE)


def _plot_to_row(plot: Plot) -> tuple[Any, ...]:
    return (
        plot.uuid,
        plot.plot_name,
        plot.instance_name,
        plot.polygon,
        plot.bbox.min_lat,
        plot.bbox.max_lat,
        plot.bbox.min_lon,
        plot.bbox.max_lon,
        1 if plot.is_draft else 0,
        plot.form_id,
        plot.region,
        plot.sub_region,
        plot.created_at,
        plot.submission_uuid,
    )


def _row_to_plot(row: sqlite3.Row) -> Plot:
    return Plot(
        uuid=row["uuid"],
        plot_name=row["plot_name"],
        instance_name=row["instance_name"],
        polygon=row["polygon_wkt"],
        bbox=BoundingBox(
            min_lat=row["min_lat"],
            max_lat=row["max_lat"],
            min_lon=row["min_lon"],
            max_lon=row["max_lon"],
        ),
        form_id=row["form_id"],
        region=row["region"],
        sub_region=row["sub_region"],
        is_draft=bool(row["is_draft"]),
        submission_uuid=row["submission_uuid"],
        created_at=row["created_at"],
    )


def _submission_to_row(submission: Submission) -> tuple[Any, ...]:
    return (
        submission.uuid,
        submission.form_id,
        submission.submission_id,
        submission.submission_time,
        submission.submitted_by,
        submission.instance_name,
        json_dumps_sorted(submission.raw_data),
        json_dumps_sorted(submission.system_data)
        if submission.system_data is not None
        else None,
    )


def _row_to_submission(row: sqlite3.Row) -> Submission:
    system_data = row["system_data"]
    return Submission(
        uuid=row["uuid"],
        form_id=row["form_id"],
        submission_id=row["submission_id"],
        submission_time=row["submission_time"],
        submitted_by=row["submitted_by"],
        instance_name=row["instance_name"],
        raw_data=json.loads(row["raw_data"]),
        system_data=json.loads(system_data) if system_data else None,
    )


__all__ = ["SQLiteStore"]
