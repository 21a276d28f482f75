"""
Filter / sort / paginate over the recomputed portfolio.

Rows are flattened from a PlanningSession, so status and orders always
reflect the current (overrides-applied) series.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from purchase_planner.config import DEFAULT_PAGE_SIZE
from purchase_planner.workflows.planning import PlanningSession

logger = logging.getLogger(__name__)

ROW_FIELDS = (
    "key",
    "product_code",
    "product_name",
    "supplier",
    "category",
    "subcategory",
    "dc",
    "status",
    "on_hand",
    "pending",
    "lead_time_days",
    "order_current_month",
    "total_orders",
    "projected_stock_current_month",
    "objective_stock_current_month",
)

STATUS_ALL = "ALL"


def flatten_session(session: PlanningSession) -> List[Dict[str, Any]]:
    """One row per SKU with registry attributes and current-month figures."""
    months = session.months
    current = months[0] if months else None
    rows = []

    for key in session.sku_keys():
        entry = session.entry(key)
        series = session.projection(key)
        record = series.get(current) if current is not None else None
        rows.append({
            "key": key,
            "product_code": entry.product_code,
            "product_name": entry.product_name,
            "supplier": entry.supplier,
            "category": entry.category_l3,
            "subcategory": entry.category_l4,
            "dc": entry.dc_code,
            "status": session.status(key).value,
            "on_hand": entry.on_hand,
            "pending": entry.pending,
            "lead_time_days": entry.lead_time_days,
            "order_current_month": record.order if record else 0,
            "total_orders": sum(series[m].order for m in months if m in series),
            "projected_stock_current_month": record.projected_stock if record else 0,
            "objective_stock_current_month": record.objective_stock if record else 0,
        })
    return rows


def _sort_key(field: str):
    def key(row: Dict[str, Any]):
        value = row.get(field)
        if isinstance(value, str):
            value = value.lower()
        # None sorts after every value
        return (value is None, value if value is not None else 0)
    return key


def query_skus(
    rows: List[Dict[str, Any]],
    search: str = "",
    status: str = STATUS_ALL,
    supplier: Optional[str] = None,
    category: Optional[str] = None,
    dc: Optional[int] = None,
    sort_by: str = "key",
    sort_dir: str = "asc",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    """
    Filter, sort and paginate flattened rows.

    Args:
        rows: Output of flatten_session()
        search: Case-insensitive substring of key, product name or product code
        status: "ALL" or a status value ("ok", "warning", "critical")
        supplier: Exact supplier name
        category: Exact level-3 category
        dc: Distribution center code
        sort_by: Row field; unknown fields sort by key
        sort_dir: "asc" or "desc"
        page: 1-based page number (values below 1 read as 1)
        limit: Page size (values below 1 use the default)

    Returns:
        {"data": [...], "meta": {"total_items", "total_pages", "current_page", "limit"}}
    """
    page = max(1, int(page or 1))
    limit = int(limit) if limit and int(limit) > 0 else DEFAULT_PAGE_SIZE

    filtered = list(rows)

    if search:
        needle = search.lower()
        filtered = [
            row for row in filtered
            if needle in str(row.get("key", "")).lower()
            or needle in str(row.get("product_name", "")).lower()
            or needle in str(row.get("product_code", "")).lower()
        ]

    if status and status != STATUS_ALL:
        filtered = [row for row in filtered if row.get("status") == status]
    if supplier:
        filtered = [row for row in filtered if row.get("supplier") == supplier]
    if category:
        filtered = [row for row in filtered if row.get("category") == category]
    if dc is not None:
        filtered = [row for row in filtered if row.get("dc") == dc]

    if sort_by not in ROW_FIELDS:
        logger.debug("Unknown sort field %r, sorting by key", sort_by)
        sort_by = "key"
    filtered.sort(key=_sort_key(sort_by), reverse=(sort_dir == "desc"))

    total_items = len(filtered)
    start = (page - 1) * limit

    return {
        "data": filtered[start:start + limit],
        "meta": {
            "total_items": total_items,
            "total_pages": math.ceil(total_items / limit),
            "current_page": page,
            "limit": limit,
        },
    }
