"""
Coverage ("buy until date X") calculator.

Derives one consolidated order that covers demand up to a target date:
the normal order of the first month plus the share of each following
month's normal order that falls before the coverage date. Future months
keep the share that was not anticipated.

Steps:
1. Run the projection without manual overrides (the normal plan).
2. N = days from the reference date to the coverage date.
3. Days still ahead in the current month are consumed first (week by
   week after the coverage date when it is inside the current month;
   the whole remainder of the month otherwise).
4. Remaining days are pulled from the following months, block by block
   from day 1, each month's normal order spread over its week blocks.
   A partially covered block contributes proportionally.
5. Coverage order = normal month-1 order + everything anticipated.
"""
import logging
from datetime import date as Date, datetime, timezone
from typing import Dict, List, Mapping, Optional, Union

from .calendar import days_between, days_in_month, parse_month_key, remaining_week_blocks
from .distribution import distribute_simple
from .models import CoverageMonthDetail, CoverageResult, RegistryEntry
from .numeric import round_half_up
from .projection import recompute_sku_projection

logger = logging.getLogger(__name__)


def _as_date(value: Union[Date, datetime]) -> Date:
    """Calendar date of a date/datetime (aware datetimes are read in UTC)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def _days_consumed_in_current_month(
    coverage_date: Date,
    year: int,
    month: int,
    days_covered: int,
    remaining_days: int
) -> int:
    """Days of the coverage window already served by the current month's plan."""
    if coverage_date.year != year or coverage_date.month != month:
        return remaining_days

    consumed = 0
    first_pulled_day = coverage_date.day + 1
    if first_pulled_day > days_in_month(year, month):
        return consumed

    to_consume = days_covered
    for block in remaining_week_blocks(year, month, first_pulled_day):
        if to_consume <= 0:
            break
        taken = min(block.days, to_consume)
        consumed += taken
        to_consume -= taken
    return consumed


def compute_coverage_by_date(
    entry: RegistryEntry,
    months: List[str],
    demand_by_month: Mapping[str, float],
    coverage_date: Union[Date, datetime],
    reference_date: Union[Date, datetime]
) -> CoverageResult:
    """
    Compute the proportional coverage order of one SKU.

    Args:
        entry: Registry entry of the SKU
        months: Ordered horizon; months[0] is the current month
        demand_by_month: Sell-out per month
        coverage_date: Date the order must cover up to
        reference_date: Planning date (today)

    Returns:
        CoverageResult; coverage_order >= normal_order_month1 always

    Raises:
        MonthKeyError: If a month key is malformed
    """
    coverage_day = _as_date(coverage_date)
    reference_day = _as_date(reference_date)

    normal = recompute_sku_projection(entry, months, demand_by_month, None, reference_day)

    current = parse_month_key(months[0])
    current_month_days = days_in_month(current.year, current.month)
    remaining_days = current_month_days - reference_day.day

    days_covered = days_between(reference_day, coverage_day)
    normal_month1 = normal[months[0]].order

    consumed = _days_consumed_in_current_month(
        coverage_day, current.year, current.month, days_covered, remaining_days
    )
    days_to_anticipate = max(0, days_covered - consumed)

    total_anticipated = 0
    details: List[CoverageMonthDetail] = []
    adjusted = []

    days_left = days_to_anticipate
    for month_key in months[1:]:
        if days_left <= 0:
            break

        year, month = parse_month_key(month_key)
        month_days = days_in_month(year, month)
        normal_order = normal[month_key].order

        blocks = remaining_week_blocks(year, month, 1)
        week_values = distribute_simple(normal_order, blocks)

        days_anticipated = 0
        amount = 0
        for block, value in zip(blocks, week_values):
            if days_left <= 0:
                break
            if block.days <= days_left:
                amount += value
                days_anticipated += block.days
                days_left -= block.days
            else:
                amount += round_half_up(value * (days_left / block.days))
                days_anticipated += days_left
                days_left = 0

        # Remainder-absorbing blocks may be negative for tiny orders; keep the pull within [0, order]
        amount = max(0, min(amount, normal_order))
        kept = normal_order - amount
        fraction = 1.0 if days_anticipated >= month_days else days_anticipated / month_days

        total_anticipated += amount
        details.append(CoverageMonthDetail(
            month=month_key,
            normal_order=normal_order,
            days_in_month=month_days,
            days_anticipated=days_anticipated,
            fraction_anticipated=fraction,
            amount_anticipated=amount,
            amount_kept=kept,
        ))
        adjusted.append((month_key, normal_order, kept))

    if days_left > 0:
        logger.debug("Coverage for %s runs past the horizon by %d days", entry.key, days_left)

    return CoverageResult(
        key=entry.key,
        product_name=entry.product_name,
        dc_code=entry.dc_code,
        supplier=entry.supplier,
        coverage_order=normal_month1 + total_anticipated,
        normal_order_month1=normal_month1,
        total_anticipated=total_anticipated,
        on_hand=entry.on_hand,
        lead_time_days=entry.lead_time_days,
        days_covered=days_covered,
        remaining_days_current_month=remaining_days,
        month_details=details,
        adjusted_months=adjusted,
    )


def coverage_overrides(result: CoverageResult, months: List[str]) -> Dict[str, int]:
    """
    Manual overrides that apply a coverage result.

    The coverage order goes to the first month; each touched future month
    keeps only its non-anticipated share (0 when fully anticipated).
    """
    overrides = {months[0]: result.coverage_order}
    for month_key, _original, kept in result.adjusted_months:
        overrides[month_key] = kept
    return overrides


def coverage_weekly_override(result: CoverageResult, n_blocks: int) -> Optional[List[int]]:
    """Week values placing the whole coverage order in the first open block."""
    if n_blocks <= 0 or result.coverage_order <= 0:
        return None
    values = [0] * n_blocks
    values[0] = result.coverage_order
    return values
