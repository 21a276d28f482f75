"""
Weekly distribution of monthly order quantities.

Spreads a month's order over its week blocks in proportion to block days.
Every variant reconciles exactly: the values sum to the monthly total
because the last participating block absorbs the rounding remainder.

Variants:
- distribute_simple: all blocks participate
- distribute_eligible: only blocks whose arrival lands in the same month
- distribute_multi_month: blocks grouped by arrival month, each group
  spread with that month's own order
"""
from typing import Dict, List

from .models import WeekBlock, WeekDistribution
from .numeric import round_half_up


def _is_eligible(block: WeekBlock) -> bool:
    # Blocks without lead-time information count as eligible
    return block.eligible is not False


def _spread(total: int, days: List[int], denominator: int) -> List[int]:
    """Proportional shares of ``total``; the last entry takes the remainder."""
    values = []
    accumulated = 0
    for i, block_days in enumerate(days):
        if i == len(days) - 1:
            values.append(total - accumulated)
        else:
            value = round_half_up(total * (block_days / denominator))
            values.append(value)
            accumulated += value
    return values


def distribute_simple(monthly_total: int, blocks: List[WeekBlock]) -> List[int]:
    """
    Distribute a monthly order over ALL blocks, ignoring eligibility.

    Args:
        monthly_total: Order quantity of the month
        blocks: Week blocks of the month

    Returns:
        One value per block, summing to monthly_total (all zeros when the
        blocks hold no days)

    Example:
        >>> blocks = [WeekBlock("S1", 1, 7, 7), WeekBlock("S2", 8, 14, 7), WeekBlock("S3", 15, 28, 14)]
        >>> distribute_simple(100, blocks)
        [25, 25, 50]
    """
    if not blocks:
        return []

    total_days = sum(block.days for block in blocks)
    if total_days == 0:
        return [0] * len(blocks)

    return _spread(monthly_total, [block.days for block in blocks], total_days)


def distribute_eligible(monthly_total: int, blocks: List[WeekBlock]) -> List[int]:
    """
    Distribute a monthly order over eligible blocks only.

    Ineligible blocks (arrival after month end) receive exactly 0; the last
    eligible block absorbs the rounding remainder.

    Args:
        monthly_total: Order quantity of the month
        blocks: Week blocks, usually from week_blocks_with_lead_time()

    Returns:
        One value per block, summing to monthly_total when any eligible
        block has days, else all zeros
    """
    if not blocks:
        return []

    eligible_days = sum(block.days for block in blocks if _is_eligible(block))
    if eligible_days == 0:
        return [0] * len(blocks)

    eligible_idx = [i for i, block in enumerate(blocks) if _is_eligible(block)]
    shares = _spread(monthly_total, [blocks[i].days for i in eligible_idx], eligible_days)

    values = [0] * len(blocks)
    for i, share in zip(eligible_idx, shares):
        values[i] = share
    return values


def distribute_multi_month(
    current_month: str,
    order_by_month: Dict[str, int],
    blocks: List[WeekBlock]
) -> List[WeekDistribution]:
    """
    Distribute orders by arrival month.

    Blocks are grouped by the month their arrival lands in (blocks without
    an arrival month belong to ``current_month``). Each group is spread with
    the order of its own month, independently of the other groups.

    Args:
        current_month: "YYYY_MM" of the month being planned
        order_by_month: Order quantity per month key (missing = 0)
        blocks: Week blocks from week_blocks_with_lead_time()

    Returns:
        One WeekDistribution per block, tagged with its source month and
        whether that month is the current one or an anticipated future one
    """
    if not blocks:
        return []

    groups: Dict[str, List[int]] = {}
    for idx, block in enumerate(blocks):
        groups.setdefault(block.arrival_month or current_month, []).append(idx)

    result: List[WeekDistribution] = [None] * len(blocks)  # type: ignore[list-item]

    for month_key, indices in groups.items():
        order = order_by_month.get(month_key, 0) or 0
        total_days = sum(blocks[i].days for i in indices)
        is_current = month_key == current_month

        if total_days == 0:
            shares = [0] * len(indices)
        else:
            shares = _spread(order, [blocks[i].days for i in indices], total_days)

        for i, share in zip(indices, shares):
            result[i] = WeekDistribution(value=share, source_month=month_key, is_current_month=is_current)

    return result
