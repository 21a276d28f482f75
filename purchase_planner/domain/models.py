"""
Domain models for purchase-planner.

Pure data classes + value objects. No I/O, no side effects.
Deterministic and fully testable.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from datetime import date as Date
from typing import Dict, List, Optional, Tuple


class SkuStatus(Enum):
    """Health of a SKU's projected stock against its objective."""
    OK = "ok"
    WARNING = "warning"      # Projected stock below 80% of objective in some month
    CRITICAL = "critical"    # Projected stock negative in some month


class ApprovalStatus(Enum):
    """Lifecycle of a submitted approval request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RegistryEntry:
    """
    Registry data for one (product, distribution center) pair - immutable.

    Quantities are in units, durations in days.
    """
    key: str
    on_hand: float = 0              # Current on-hand stock
    pending: float = 0              # Incoming stock from purchase orders already placed
    lead_time_days: int = 0
    frequency_days: int = 0         # Review cycle
    safety_days: int = 0            # Safety stock, expressed in days of demand
    impact: float = 0               # Permanent extra demand added to the objective
    store_fill: float = 0           # One-off store-fill deduction
    inbound_adjustment: float = 0   # Other inbound adjustment (NNA)

    # Descriptive fields
    supplier: str = ""
    status_label: str = ""
    dc_code: int = 0
    product_code: int = 0
    product_name: str = ""
    category_l3: str = ""
    category_l4: str = ""

    def __post_init__(self):
        if not self.key or not self.key.strip():
            raise ValueError("Registry key cannot be empty")
        if self.lead_time_days < 0:
            raise ValueError("Lead time cannot be negative")
        if self.frequency_days < 0:
            raise ValueError("Frequency cannot be negative")
        if self.safety_days < 0:
            raise ValueError("Safety stock days cannot be negative")


@dataclass(frozen=True)
class MonthRecord:
    """Projected month for a SKU. All values rounded at emission."""
    sell_out: int
    projected_stock: int
    objective_stock: int
    order: int
    arrival: int


@dataclass(frozen=True)
class WeekBlock:
    """
    Fixed 7-day block of a month (S1..S5), clipped to the reference day.

    The lead-time fields are only set by week_blocks_with_lead_time().
    """
    label: str
    start: int
    end: int
    days: int
    order_date: Optional[Date] = None
    arrival_date: Optional[Date] = None
    eligible: Optional[bool] = None     # Arrival lands inside the same month
    arrival_month: Optional[str] = None  # "YYYY_MM"


@dataclass(frozen=True)
class WeekDistribution:
    """One block's share of a multi-month weekly distribution."""
    value: int
    source_month: str
    is_current_month: bool


@dataclass(frozen=True)
class CoverageMonthDetail:
    """How much of a future month's normal order is pulled into month 1."""
    month: str
    normal_order: int
    days_in_month: int
    days_anticipated: int
    fraction_anticipated: float
    amount_anticipated: int
    amount_kept: int


@dataclass
class CoverageResult:
    """Coverage (anticipation) plan for one SKU."""
    key: str
    product_name: str
    dc_code: int
    supplier: str
    coverage_order: int
    normal_order_month1: int
    total_anticipated: int
    on_hand: float
    lead_time_days: int
    days_covered: int
    remaining_days_current_month: int
    month_details: List[CoverageMonthDetail] = field(default_factory=list)
    adjusted_months: List[Tuple[str, int, int]] = field(default_factory=list)  # (month, original, kept)


@dataclass(frozen=True)
class BundleMetadata:
    """Planning bundle header."""
    reference_date: Date
    horizon_months: int
    months: Tuple[str, ...]
    total_skus: int
    days_per_month: int = 30


@dataclass
class SkuProjection:
    """Month series of one SKU, keyed by "YYYY_MM"."""
    key: str
    months: Dict[str, MonthRecord]


@dataclass
class PlanningBundle:
    """Metadata + registry + per-SKU month series."""
    metadata: BundleMetadata
    registry: List[RegistryEntry]
    projections: List[SkuProjection]
    demand: Dict[str, Dict[str, float]] = field(default_factory=dict)  # Raw baseline sell-out by SKU

    def registry_map(self) -> Dict[str, RegistryEntry]:
        """Registry entries by key (O(1) lookups)."""
        return {entry.key: entry for entry in self.registry}

    def demand_for(self, key: str) -> Dict[str, float]:
        """Sell-out by month for a SKU (0 for months without a record)."""
        if key in self.demand:
            raw = self.demand[key]
            return {month: raw.get(month, 0) for month in self.metadata.months}
        for proj in self.projections:
            if proj.key == key:
                return {
                    month: proj.months[month].sell_out if month in proj.months else 0
                    for month in self.metadata.months
                }
        return {month: 0 for month in self.metadata.months}


@dataclass(frozen=True)
class ApprovalItem:
    """Order quantities of one SKU over the selected week blocks."""
    key: str
    product_name: str
    supplier: str
    dc_code: int
    weeks: Dict[str, int]   # {"S2": 150, "S3": 220}
    total_qty: int


@dataclass(frozen=True)
class ApprovalKPIs:
    """KPIs frozen at submission time. None means no demand/no lead time."""
    supplier_coverage_days: Optional[int]
    order_coverage_days: Optional[int]
    expected_arrival: Optional[str]      # ISO timestamp
    coverage_at_arrival_days: Optional[int]
    skus_ok: int
    skus_warning: int
    skus_critical: int


@dataclass(frozen=True)
class ApprovalRequest:
    """Snapshot of selected week-block orders sent for approval."""
    id: str
    created_at: str                     # ISO timestamp
    selected_weeks: Tuple[str, ...]
    status: ApprovalStatus
    items: Tuple[ApprovalItem, ...]
    total_skus: int
    total_qty: int
    supplier_name: str = ""
    kpis: Optional[ApprovalKPIs] = None

    def with_status(self, status: ApprovalStatus) -> "ApprovalRequest":
        """Return a copy with a new status (the only mutable field)."""
        return replace(self, status=status)
