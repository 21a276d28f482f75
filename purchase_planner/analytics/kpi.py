"""
KPI calculation for purchase plans.

- Approval KPIs: coverage of the suppliers and of the order, expected
  arrival, coverage on arrival and SKU health, frozen at submission time
- Portfolio summary: stock, orders, health counts, coverage and lead time
  over the whole horizon

Daily demand uses a flat month: current month sell-out / days_per_month
(30 by default, see config.KPI_DAYS_PER_MONTH).
Every ratio returns None when its denominator is zero.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from ..config import KPI_DAYS_PER_MONTH, TARGET_COVERAGE_DAYS
from ..domain.models import (
    ApprovalItem,
    ApprovalKPIs,
    MonthRecord,
    PlanningBundle,
    RegistryEntry,
    SkuProjection,
    SkuStatus,
)
from ..domain.numeric import round_half_up, to_quantity
from ..domain.status import WARNING_RATIO, classify_status

Series = Mapping[str, MonthRecord]


def _month_sell_out(series: Optional[Series], month: Optional[str]) -> float:
    if series is None or month is None:
        return 0.0
    record = series.get(month)
    return float(record.sell_out) if record is not None else 0.0


def _weighted_coverage_days(
    on_hand: List[float],
    sell_out: List[float],
    days_per_month: int = KPI_DAYS_PER_MONTH,
) -> Optional[int]:
    """
    Demand-weighted mean of on_hand / daily demand.

    SKUs without demand are excluded. None when no SKU has demand.
    """
    stock = np.asarray(on_hand, dtype=float)
    demand = np.asarray(sell_out, dtype=float)
    mask = demand > 0
    if not mask.any():
        return None
    days = stock[mask] / (demand[mask] / days_per_month)
    return round_half_up(float(np.average(days, weights=demand[mask])))


# ============================================================
# Approval KPIs
# ============================================================

def approval_kpis(
    items: Iterable[ApprovalItem],
    registry: Mapping[str, RegistryEntry],
    projections: Mapping[str, Series],
    months: List[str],
    now: Optional[datetime] = None,
    warning_ratio: float = WARNING_RATIO,
    days_per_month: int = KPI_DAYS_PER_MONTH,
) -> ApprovalKPIs:
    """
    KPIs of an approval request.

    Args:
        items: Request items (SKUs with quantities)
        registry: Registry entries by key
        projections: Current series by SKU key (whole portfolio)
        months: Ordered horizon; months[0] is the current month
        now: Submission time (default: now, UTC)
        warning_ratio: Threshold used for the SKU health counts
        days_per_month: Month length used for daily demand

    Returns:
        ApprovalKPIs
    """
    items = list(items)
    now = now or datetime.now(timezone.utc)
    current = months[0] if months else None

    # Supplier coverage: every SKU of the suppliers in the request
    suppliers = {item.supplier for item in items}
    supplier_stock, supplier_demand = [], []
    for key, series in projections.items():
        entry = registry.get(key)
        if entry is None or entry.supplier not in suppliers:
            continue
        supplier_stock.append(to_quantity(entry.on_hand))
        supplier_demand.append(_month_sell_out(series, current))

    # Order coverage and health: only the SKUs being bought
    order_stock, order_demand = [], []
    counts = {SkuStatus.OK: 0, SkuStatus.WARNING: 0, SkuStatus.CRITICAL: 0}
    for item in items:
        entry = registry.get(item.key)
        series = projections.get(item.key)
        if entry is None or series is None:
            continue
        order_stock.append(to_quantity(entry.on_hand))
        order_demand.append(_month_sell_out(series, current))
        counts[classify_status(series, months, warning_ratio)] += 1

    # Expected arrival: lead time weighted by ordered volume
    lt_values, lt_weights = [], []
    for item in items:
        entry = registry.get(item.key)
        if entry is None or not entry.lead_time_days or entry.lead_time_days <= 0:
            continue
        lt_values.append(entry.lead_time_days)
        lt_weights.append(item.total_qty)

    mean_lt: Optional[int] = None
    weights = np.asarray(lt_weights, dtype=float)
    if weights.size and weights.sum() > 0:
        mean_lt = round_half_up(float(np.average(np.asarray(lt_values, dtype=float), weights=weights)))

    expected_arrival = None
    coverage_at_arrival = None
    if mean_lt is not None:
        expected_arrival = (now + timedelta(days=mean_lt)).isoformat()

        stock_at_arrival = 0.0
        daily_total = 0.0
        for item in items:
            entry = registry.get(item.key)
            series = projections.get(item.key)
            if entry is None or series is None:
                continue
            daily = _month_sell_out(series, current) / days_per_month
            lead_time = entry.lead_time_days or mean_lt
            stock_at_arrival += max(0.0, to_quantity(entry.on_hand) - daily * lead_time) + item.total_qty
            daily_total += daily
        if daily_total > 0:
            coverage_at_arrival = round_half_up(stock_at_arrival / daily_total)

    return ApprovalKPIs(
        supplier_coverage_days=_weighted_coverage_days(supplier_stock, supplier_demand, days_per_month),
        order_coverage_days=_weighted_coverage_days(order_stock, order_demand, days_per_month),
        expected_arrival=expected_arrival,
        coverage_at_arrival_days=coverage_at_arrival,
        skus_ok=counts[SkuStatus.OK],
        skus_warning=counts[SkuStatus.WARNING],
        skus_critical=counts[SkuStatus.CRITICAL],
    )


# ============================================================
# Portfolio summary
# ============================================================

def portfolio_summary(
    bundle: PlanningBundle,
    projections: Optional[Iterable[SkuProjection]] = None,
    warning_ratio: float = WARNING_RATIO,
    days_per_month: int = KPI_DAYS_PER_MONTH,
    target_coverage_days: int = TARGET_COVERAGE_DAYS,
) -> Dict[str, Any]:
    """
    Headline KPIs of a portfolio.

    Args:
        bundle: Planning bundle (registry + horizon)
        projections: Series to summarize (default: the bundle's own)
        warning_ratio: Threshold used for the warning count
        days_per_month: Month length used for daily demand
        target_coverage_days: Coverage that counts as 100% progress

    Returns:
        Dict with:
            - total_skus, horizon_months
            - total_on_hand: Sum of current on-hand stock
            - total_orders: Sum of orders over the horizon
            - skus_critical, skus_warning
            - coverage_days: total_on_hand / (current month sell-out / days_per_month)
            - projected_coverage_days: Same with current month projected stock
            - mean_lead_time_days: Over SKUs with LT > 0
            - skus_with_lead_time
            - stock_change_pct: Projected vs current stock of the current month
            - coverage_progress_pct: coverage_days against the target (capped at 100)
    """
    projections = list(projections if projections is not None else bundle.projections)
    registry = bundle.registry_map()
    months = list(bundle.metadata.months)
    current = months[0] if months else None

    on_hand = []
    lead_times = []
    orders = []
    sell_out_m0 = []
    projected_m0 = []
    critical = 0
    warning = 0

    for proj in projections:
        entry = registry.get(proj.key)
        if entry is not None:
            on_hand.append(to_quantity(entry.on_hand))
            if entry.lead_time_days and entry.lead_time_days > 0:
                lead_times.append(entry.lead_time_days)

        orders.extend(proj.months[m].order for m in months if m in proj.months)

        if current is not None and current in proj.months:
            sell_out_m0.append(proj.months[current].sell_out)
            projected_m0.append(proj.months[current].projected_stock)

        status = classify_status(proj.months, months, warning_ratio)
        if status is SkuStatus.CRITICAL:
            critical += 1
        elif status is SkuStatus.WARNING:
            warning += 1

    total_on_hand = float(np.sum(on_hand)) if on_hand else 0.0
    total_projected = float(np.sum(projected_m0)) if projected_m0 else 0.0
    daily_demand = (float(np.sum(sell_out_m0)) if sell_out_m0 else 0.0) / days_per_month

    coverage_days = round_half_up(total_on_hand / daily_demand) if daily_demand > 0 else None
    projected_days = round_half_up(total_projected / daily_demand) if daily_demand > 0 else None
    mean_lt = round_half_up(float(np.mean(lead_times))) if lead_times else None

    stock_change = None
    if total_on_hand > 0 and total_projected > 0:
        stock_change = round_half_up((total_projected - total_on_hand) / total_on_hand * 100)

    progress = 0.0
    if coverage_days is not None:
        progress = min(100.0, coverage_days / target_coverage_days * 100)

    return {
        "total_skus": len(projections),
        "horizon_months": len(months),
        "total_on_hand": total_on_hand,
        "total_orders": int(np.sum(orders)) if orders else 0,
        "skus_critical": critical,
        "skus_warning": warning,
        "coverage_days": coverage_days,
        "projected_coverage_days": projected_days,
        "mean_lead_time_days": mean_lt,
        "skus_with_lead_time": len(lead_times),
        "stock_change_pct": stock_change,
        "coverage_progress_pct": progress,
    }
