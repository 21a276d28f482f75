"""
SKU health classification from a projected month series.
"""
from typing import List, Mapping

from .models import MonthRecord, SkuStatus

WARNING_RATIO = 0.8


def classify_status(
    series: Mapping[str, MonthRecord],
    months: List[str],
    warning_ratio: float = WARNING_RATIO
) -> SkuStatus:
    """
    Classify a SKU as ok / warning / critical.

    The first month is skipped: its stock can no longer be remediated.
    Any examined month with negative projected stock makes the SKU
    critical; otherwise any month below ``warning_ratio`` of its objective
    makes it a warning. Months missing from the series are ignored.

    Args:
        series: {month: MonthRecord} from recompute_sku_projection()
        months: Ordered horizon
        warning_ratio: Fraction of objective stock below which a month warns

    Returns:
        SkuStatus
    """
    has_warning = False

    for month in months[1:]:
        record = series.get(month)
        if record is None:
            continue
        if record.projected_stock < 0:
            return SkuStatus.CRITICAL
        if record.projected_stock < record.objective_stock * warning_ratio:
            has_warning = True

    return SkuStatus.WARNING if has_warning else SkuStatus.OK
