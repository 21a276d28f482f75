"""
Month-by-month stock projection for a single SKU.

Converts registry data (lead time, frequency, safety days, pending stock)
and monthly sell-out into suggested orders, arrivals, projected stock and
objective stock. Manual order overrides are honored exactly; every other
month is re-simulated around them.

Key formulas:
- initial stock   = on_hand - impact - store_fill + pending + inbound_adjustment
- objective[m]    = sell_out[m] / days_in_month(m) * (LT + frequency + safety) + impact
- projected[m]    = projected[m-1] + arrival[m] - sell_out[m]
- order[i]        = max(0, objective[j] - stock expected at arrival month j)

The simulation runs in two passes: pass 1 fixes every order quantity
(scheduling tentative arrivals as it goes), pass 2 rebuilds arrivals from
the final orders and accumulates the stock strictly forward. Order
decisions use float demand and stock; suggested orders are whole units.
The emitted stock is carried from the emitted (rounded) sell-out and
arrivals, starting at the rounded initial stock, so every emitted month
satisfies projected = previous projected + arrival - sell_out exactly.
"""
import logging
import math
from datetime import date as Date
from typing import Dict, List, Mapping, Optional

from .calendar import add_days, days_in_month, month_key_for, parse_month_key
from .models import MonthRecord, RegistryEntry
from .numeric import is_quantity, round_half_up, to_quantity

logger = logging.getLogger(__name__)


def initial_stock(entry: RegistryEntry) -> float:
    """
    Notional stock at the start of the first month.

    Nets out the permanent impact and the store-fill deduction, adds
    pending purchase orders and other inbound adjustments.
    """
    return (
        to_quantity(entry.on_hand)
        - to_quantity(entry.impact)
        - to_quantity(entry.store_fill)
        + to_quantity(entry.pending)
        + to_quantity(entry.inbound_adjustment)
    )


def objective_stock_by_month(
    entry: RegistryEntry,
    months: List[str],
    demand_by_month: Mapping[str, float]
) -> Dict[str, float]:
    """
    Target stock of every month (unrounded).

    Independent of ordering decisions and overrides:
    daily demand of the month x (lead time + frequency + safety days) + impact.

    Raises:
        MonthKeyError: If a month key is malformed
    """
    cover_days = (entry.lead_time_days or 0) + (entry.frequency_days or 0) + (entry.safety_days or 0)
    impact = to_quantity(entry.impact)

    objectives = {}
    for month in months:
        year, month_num = parse_month_key(month)
        daily_demand = to_quantity(demand_by_month.get(month)) / days_in_month(year, month_num)
        objectives[month] = daily_demand * cover_days + impact
    return objectives


def arrival_month_index(
    order_index: int,
    lead_time_days: int,
    months: List[str],
    reference_date: Optional[Date] = None
) -> int:
    """
    Index of the month in which an order placed at ``months[order_index]`` lands.

    The first month orders on the reference date (if given), every other
    month on its first day. Arrival = order date + lead time. When the
    arrival month lies outside the horizon, the index is approximated as
    order_index + ceil(LT / 30), capped at the last month.

    Args:
        order_index: Index of the ordering month
        lead_time_days: Supplier lead time
        months: Ordered horizon ("YYYY_MM")
        reference_date: Planning date (day precision) for the first month

    Returns:
        Index into months

    Raises:
        MonthKeyError: If the ordering month key is malformed
    """
    year, month = parse_month_key(months[order_index])

    if order_index == 0 and reference_date is not None:
        order_date = reference_date
    else:
        order_date = Date(year, month, 1)

    arrival_key = month_key_for(add_days(order_date, lead_time_days))

    try:
        return months.index(arrival_key)
    except ValueError:
        clamped = min(order_index + math.ceil(lead_time_days / 30), len(months) - 1)
        logger.debug(
            "Arrival month %s outside horizon (order month %s, LT=%d): clamped to %s",
            arrival_key, months[order_index], lead_time_days, months[clamped],
        )
        return clamped


def _whole_units(need: float) -> float:
    """Suggested order for a stock gap: never negative, whole units."""
    return float(round_half_up(max(0.0, need)))


def recompute_sku_projection(
    entry: RegistryEntry,
    months: List[str],
    demand_by_month: Mapping[str, float],
    manual_overrides: Optional[Mapping[str, Optional[float]]] = None,
    reference_date: Optional[Date] = None
) -> Dict[str, MonthRecord]:
    """
    Recompute the full projection of one SKU.

    Args:
        entry: Registry entry of the SKU
        months: Ordered horizon ("YYYY_MM")
        demand_by_month: Sell-out per month; missing/non-numeric/NaN = 0
        manual_overrides: Order per month chosen by the planner. None (or a
            missing month) means "compute normally"; any number, including
            0, is used as-is.
        reference_date: Planning date; orders of the first month are
            placed on it instead of the 1st

    Returns:
        {month: MonthRecord} with integer sell_out, projected_stock,
        objective_stock, order and arrival

    Raises:
        MonthKeyError: If a month key is malformed
    """
    overrides = manual_overrides or {}
    lead_time = entry.lead_time_days or 0
    n = len(months)

    sell_out = []
    for month in months:
        raw = demand_by_month.get(month)
        if raw is not None and not is_quantity(raw):
            logger.debug("SKU %s %s: non-numeric sell-out %r read as 0", entry.key, month, raw)
        sell_out.append(to_quantity(raw))

    objectives = objective_stock_by_month(entry, months, demand_by_month)
    start_stock = initial_stock(entry)

    # Arrival month of an order placed in each month; computed once
    arrival_idx = [arrival_month_index(i, lead_time, months, reference_date) for i in range(n)]

    # ---- Pass 1: fix order quantities ----
    orders = [0.0] * n
    scheduled = [0.0] * n
    stock_before = start_stock

    for i, month in enumerate(months):
        stock_before_order = stock_before + scheduled[i] - sell_out[i]
        target = arrival_idx[i]

        override = overrides.get(month)
        if override is not None:
            orders[i] = float(override)
        elif target == i:
            orders[i] = _whole_units(objectives[month] - stock_before_order)
        else:
            # Stock expected when the order lands in a later month
            stock_at_arrival = stock_before_order
            for j in range(i + 1, min(target, n - 1) + 1):
                stock_at_arrival += scheduled[j] - sell_out[j]
            orders[i] = _whole_units(objectives[months[target]] - stock_at_arrival)

        if orders[i] > 0:
            scheduled[target] += orders[i]

        stock_before = stock_before + scheduled[i] - sell_out[i]

    # ---- Pass 2: rebuild arrivals from final orders, accumulate forward ----
    arrivals = [0.0] * n
    for i in range(n):
        if orders[i] > 0:
            arrivals[arrival_idx[i]] += orders[i]

    result = {}
    stock = round_half_up(start_stock)
    for i, month in enumerate(months):
        month_sell_out = round_half_up(sell_out[i])
        month_arrival = round_half_up(arrivals[i])
        stock = stock + month_arrival - month_sell_out
        result[month] = MonthRecord(
            sell_out=month_sell_out,
            projected_stock=stock,
            objective_stock=round_half_up(objectives[month]),
            order=round_half_up(orders[i]),
            arrival=month_arrival,
        )

    return result
