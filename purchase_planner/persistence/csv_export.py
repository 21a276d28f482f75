"""
Flat CSV export of a projection: one row per (SKU, month).

Semicolon-delimited, UTF-8 with BOM so spreadsheet tools pick the encoding.
Registry attributes are repeated on every row of a SKU.
"""
import csv
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from ..config import CSV_DELIMITER
from ..domain.models import PlanningBundle, SkuProjection

logger = logging.getLogger(__name__)

HEADER = [
    "KEY", "Supplier", "Product", "DC", "SKU", "Category",
    "Stock", "Pending", "LT", "NNA", "Frequency", "SafetyDays",
    "Impact", "StoreFill",
    "Month", "SellOut", "Order", "Arrival", "ProjectedStock", "ObjectiveStock",
]


def _number(value) -> Union[int, float]:
    """Whole floats are written without a trailing .0"""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def export_projection_csv(
    bundle: PlanningBundle,
    path: Union[str, Path],
    projections: Optional[Iterable[SkuProjection]] = None,
) -> int:
    """
    Write the projection CSV.

    Args:
        bundle: Bundle providing registry and horizon
        path: Output file
        projections: Series to export (default: the bundle's own). Pass the
            current overrides-applied series, never a stale baseline.

    Returns:
        Number of data rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    registry = bundle.registry_map()
    months = list(bundle.metadata.months)
    rows_written = 0

    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.writer(f, delimiter=CSV_DELIMITER, lineterminator="\n")
        writer.writerow(HEADER)

        for proj in (projections if projections is not None else bundle.projections):
            entry = registry.get(proj.key)
            if entry is None:
                logger.warning("CSV export: skipping SKU %s without registry entry", proj.key)
                continue
            for month in months:
                record = proj.months.get(month)
                if record is None:
                    continue
                writer.writerow([
                    entry.key,
                    entry.supplier,
                    entry.product_name,
                    entry.dc_code,
                    entry.product_code,
                    entry.category_l3,
                    _number(entry.on_hand),
                    _number(entry.pending),
                    entry.lead_time_days,
                    _number(entry.inbound_adjustment),
                    entry.frequency_days,
                    entry.safety_days,
                    _number(entry.impact),
                    _number(entry.store_fill),
                    month,
                    record.sell_out,
                    record.order,
                    record.arrival,
                    record.projected_stock,
                    record.objective_stock,
                ])
                rows_written += 1

    logger.info("CSV export: %d rows written to %s", rows_written, path)
    return rows_written


def default_csv_name(day: Optional[date] = None) -> str:
    day = day or datetime.now(timezone.utc).date()
    return f"purchase_plan_{day.isoformat()}.csv"
