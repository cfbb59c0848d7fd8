"""Command line entry point.

Usage examples:

    # Structural checks only
    plot-guard validate "9.0 38.7; 9.0 38.7001; 9.0001 38.7001; 9.0001 38.7"

    # Structural checks plus overlap against plots stored in a database
    plot-guard validate "POLYGON ((...))" --db plot_guard.sqlite3 --threshold 10

    # Pull new submissions for one or more forms
    plot-guard sync aBcD1234 eFgH5678
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Sequence

from .config import (
    DATABASE_PATH,
    MIN_AREA_SQ_METERS,
    MIN_VERTICES,
    OVERLAP_THRESHOLD_PERCENT,
    PLOT_EXTRACTION_CONFIG_FILE,
)
from .errors import PersistenceError
from .geometry.validator import (
    PolygonValidator,
    ValidationFailure,
    ValidationResult,
    ValidatorConfig,
)
from .kobo_client.submissions import SubmissionsAPI
from .services.plot_extractor import PlotExtractor, load_extraction_config
from .services.reconciler import DraftReconciler
from .services.sync_service import SyncService
from .services.validation_service import PlotValidationService
from .storage.sqlite import SQLiteStore


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plot-guard",
        description="Validate land plot boundaries and sync survey submissions.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    validate_cmd = commands.add_parser(
        "validate", help="Check a boundary drawn as ODK geoshape or WKT text"
    )
    validate_cmd.add_argument("text", help="Polygon text to validate")
    validate_cmd.add_argument(
        "--min-vertices",
        type=int,
        default=MIN_VERTICES,
        help=f"Minimum closed-ring vertex count (default: {MIN_VERTICES})",
    )
    validate_cmd.add_argument(
        "--min-area",
        type=float,
        default=MIN_AREA_SQ_METERS,
        help=f"Minimum area in square metres (default: {MIN_AREA_SQ_METERS:g})",
    )
    validate_cmd.add_argument(
        "--threshold",
        type=float,
        default=OVERLAP_THRESHOLD_PERCENT,
        help="Overlap percentage reported as a conflict "
        f"(default: {OVERLAP_THRESHOLD_PERCENT:g})",
    )
    validate_cmd.add_argument(
        "--db",
        default=None,
        help="Plot database to check overlaps against (omit for structural checks only)",
    )

    sync_cmd = commands.add_parser("sync", help="Fetch new submissions for forms")
    sync_cmd.add_argument("form_ids", nargs="+", metavar="FORM_ID")
    sync_cmd.add_argument(
        "--db",
        default=DATABASE_PATH,
        help=f"Plot database path (default: {DATABASE_PATH})",
    )
    sync_cmd.add_argument(
        "--extraction-config",
        default=PLOT_EXTRACTION_CONFIG_FILE,
        help="JSON file mapping submission fields to plot attributes",
    )
    return parser


def _print_result(result: ValidationResult) -> int:
    if isinstance(result, ValidationFailure):
        print(f"INVALID [{result.kind.value}]: {result.message}")
        for overlap in result.overlaps:
            print(
                f"  - {overlap.plot_name} ({overlap.uuid}): "
                f"{overlap.overlap_percentage:.2f}%"
            )
        return 1
    print(
        f"VALID: {len(result.ring)} vertices, "
        f"{result.area_square_meters:.1f} square meters"
    )
    return 0


def _run_validate(args: argparse.Namespace) -> int:
    config = ValidatorConfig(
        min_vertices=args.min_vertices, min_area_square_meters=args.min_area
    )
    if args.db is None:
        return _print_result(PolygonValidator(config).validate(args.text))

    store = SQLiteStore(args.db)
    try:
        service = PlotValidationService(
            store, validator_config=config, threshold_percent=args.threshold
        )
        return _print_result(service.check(args.text))
    finally:
        store.close()


def _run_sync(args: argparse.Namespace) -> int:
    store = SQLiteStore(args.db)
    try:
        extractor = PlotExtractor(load_extraction_config(args.extraction_config))
        service = SyncService(
            store,
            store,
            DraftReconciler(store, store, extractor),
            api=SubmissionsAPI(),
        )
        failures = 0
        for form_id in args.form_ids:
            result = service.sync(form_id)
            if result.ok:
                print(f"{form_id}: fetched {result.fetched_count} submissions")
            else:
                failures += 1
                print(f"{form_id}: FAILED ({result.error})")
        return 1 if failures else 0
    finally:
        store.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _setup_logging(args.log_level)

    try:
        if args.command == "validate":
            return _run_validate(args)
        return _run_sync(args)
    except PersistenceError as exc:
        logging.error("Plot database unavailable: %s", exc)
        return 2


__all__: List[str] = ["main"]
