"""
purchase-planner command line.

Usage:
    purchase-planner project   BUNDLE SKU_KEY
    purchase-planner coverage  BUNDLE --date 2026-11-30 [--save-edits edits.json]
    purchase-planner export-csv BUNDLE [--output plan.csv]
    purchase-planner snapshot  BUNDLE [--output scenario.json]
    purchase-planner summary   BUNDLE
    purchase-planner query     BUNDLE [--search TEXT] [--status critical] [--page 2]

Common options: --reference-date YYYY-MM-DD (default: the bundle's own
reference date, then today in UTC), --edits FILE (JSON list of
["SKU|YYYY_MM", qty] pairs), --settings FILE (default: data/settings.json),
--workers N, --log-dir DIR.
"""
import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from .analytics.kpi import portfolio_summary
from .config import default_workers, load_settings
from .domain.calendar import format_month_label
from .domain.models import SkuProjection
from .errors import PlanningError
from .persistence.bundle_store import default_snapshot_name, load_bundle, save_bundle
from .persistence.csv_export import default_csv_name, export_projection_csv
from .utils.error_formatting import ErrorFormatter
from .utils.logging_config import setup_logging
from .workflows.parallel import recompute_portfolio_parallel
from .workflows.planning import PlanningSession
from .workflows.query import flatten_session, query_skus

logger = logging.getLogger(__name__)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r} (expected YYYY-MM-DD)")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("bundle", type=Path, help="Planning bundle JSON file")
    common.add_argument(
        "--reference-date", type=_iso_date, help="Planning date (default: bundle reference date, then today UTC)"
    )
    common.add_argument("--edits", type=Path, help="JSON file with manual order edits")
    common.add_argument("--settings", type=Path, help="settings.json to use instead of the default one")
    common.add_argument("--workers", type=int, help="Worker processes for the portfolio recompute")
    common.add_argument("--log-dir", type=Path, help="Log directory")

    parser = argparse.ArgumentParser(
        prog="purchase-planner",
        description="Purchase and inventory planning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("project", parents=[common], help="Month series of one SKU")
    p.add_argument("sku", help="SKU key")

    p = sub.add_parser("coverage", parents=[common], help="Coverage order up to a date")
    p.add_argument("--date", type=_iso_date, help="Coverage date (default: reference + default_coverage_days)")
    p.add_argument("--save-edits", type=Path, help="Write the resulting edits to this file")

    p = sub.add_parser("export-csv", parents=[common], help="Flat CSV export")
    p.add_argument("--output", type=Path, help="Output file (default: purchase_plan_<date>.csv)")

    p = sub.add_parser("snapshot", parents=[common], help="Full JSON snapshot")
    p.add_argument("--output", type=Path, help="Output file (default: purchase_scenario_<date>.json)")

    sub.add_parser("summary", parents=[common], help="Portfolio KPIs")

    p = sub.add_parser("query", parents=[common], help="Filter / sort / paginate SKUs")
    p.add_argument("--search", default="")
    p.add_argument("--status", default="ALL", choices=["ALL", "ok", "warning", "critical"])
    p.add_argument("--supplier")
    p.add_argument("--sort-by", default="key")
    p.add_argument("--sort-dir", default="asc", choices=["asc", "desc"])
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, help="Page size (default: page_size setting)")

    return parser


# ============================================================
# Helpers
# ============================================================

def _open_session(args, settings: Dict[str, Any]) -> PlanningSession:
    bundle = load_bundle(args.bundle, args.reference_date)
    session = PlanningSession(bundle, warning_ratio=settings["warning_ratio"])
    if args.edits:
        with open(args.edits, "r", encoding="utf-8") as f:
            pairs = json.load(f)
        try:
            session.restore_overrides(pairs)
        except (ValueError, TypeError) as e:
            raise PlanningError(f"Invalid edits file {args.edits}: {e}") from e
    return session


def _current_projections(session: PlanningSession, workers: int) -> List[SkuProjection]:
    if workers <= 1 or session.override_count == 0:
        return session.projections()
    series = recompute_portfolio_parallel(session.bundle, session.overrides, workers)
    return [SkuProjection(key=key, months=months) for key, months in series.items()]


# ============================================================
# Commands
# ============================================================

def cmd_project(args, session: PlanningSession) -> int:
    entry = session.entry(args.sku)
    series = session.projection(args.sku)
    print(f"{entry.key}  {entry.product_name}  ({entry.supplier})")
    print(f"Status: {session.status(args.sku).value}")
    print()
    print(f"{'Month':<8}{'SellOut':>10}{'Order':>10}{'Arrival':>10}{'Stock':>10}{'Objective':>11}")
    for month in session.months:
        record = series.get(month)
        if record is None:
            continue
        print(
            f"{format_month_label(month):<8}{record.sell_out:>10}{record.order:>10}"
            f"{record.arrival:>10}{record.projected_stock:>10}{record.objective_stock:>11}"
        )
    return 0


def cmd_coverage(args, session: PlanningSession, settings: Dict[str, Any]) -> int:
    coverage_date = args.date or session.reference_date + timedelta(days=settings["default_coverage_days"])
    results = [r for r in session.coverage(coverage_date) if r.coverage_order > 0]

    print(f"Coverage until {coverage_date.isoformat()}: {len(results)} SKUs")
    print(f"{'SKU':<24}{'Normal':>10}{'Anticipated':>13}{'Coverage':>10}")
    for result in results:
        print(f"{result.key:<24}{result.normal_order_month1:>10}{result.total_anticipated:>13}{result.coverage_order:>10}")

    if args.save_edits:
        overrides = session.apply_coverage(results)
        args.save_edits.parent.mkdir(parents=True, exist_ok=True)
        with open(args.save_edits, "w", encoding="utf-8") as f:
            json.dump(overrides.to_pairs(), f, indent=2)
        print(f"Edits written: {args.save_edits} ({overrides.count} cells)")
    return 0


def cmd_export_csv(args, session: PlanningSession, workers: int) -> int:
    output = args.output or Path(default_csv_name())
    rows = export_projection_csv(session.bundle, output, _current_projections(session, workers))
    print(f"CSV written: {output} ({rows} rows)")
    return 0


def cmd_snapshot(args, session: PlanningSession, workers: int) -> int:
    output = args.output or Path(default_snapshot_name())
    bundle = replace(session.bundle, projections=_current_projections(session, workers))
    save_bundle(bundle, output)
    print(f"Snapshot written: {output}")
    return 0


def cmd_summary(args, session: PlanningSession, workers: int, settings: Dict[str, Any]) -> int:
    summary = portfolio_summary(
        session.bundle,
        _current_projections(session, workers),
        warning_ratio=session.warning_ratio,
        days_per_month=settings["kpi_days_per_month"],
        target_coverage_days=settings["target_coverage_days"],
    )
    for key, value in summary.items():
        print(f"{key:<26}{'-' if value is None else value}")
    return 0


def cmd_query(args, session: PlanningSession, settings: Dict[str, Any]) -> int:
    result = query_skus(
        flatten_session(session),
        search=args.search,
        status=args.status,
        supplier=args.supplier,
        sort_by=args.sort_by,
        sort_dir=args.sort_dir,
        page=args.page,
        limit=args.limit or settings["page_size"],
    )
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


# ============================================================
# CLI Entry Point
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_dir)
    settings = load_settings(args.settings)
    workers = args.workers if args.workers is not None else default_workers(settings)

    try:
        session = _open_session(args, settings)
        if args.command == "project":
            return cmd_project(args, session)
        if args.command == "coverage":
            return cmd_coverage(args, session, settings)
        if args.command == "export-csv":
            return cmd_export_csv(args, session, workers)
        if args.command == "snapshot":
            return cmd_snapshot(args, session, workers)
        if args.command == "summary":
            return cmd_summary(args, session, workers, settings)
        return cmd_query(args, session, settings)

    except (PlanningError, OSError, json.JSONDecodeError) as e:
        context = ErrorFormatter.format_planning_error(
            e,
            operation=args.command,
            sku=getattr(args, "sku", None),
            additional_context={"Bundle": str(args.bundle)},
        )
        logger.error(context.format_for_log())
        print(context.format_for_display(), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
