"""
Planning session: edit/undo surface and recompute orchestration.

Holds the sparse override maps of one planning session, re-runs the
projection engine only for SKUs the planner has edited and merges the
result with the untouched baseline series.
"""
import hashlib
import json
import logging
from dataclasses import asdict, replace
from datetime import date as Date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from purchase_planner.domain.calendar import parse_month_key, remaining_week_blocks
from purchase_planner.domain.coverage import (
    compute_coverage_by_date,
    coverage_overrides,
    coverage_weekly_override,
)
from purchase_planner.domain.distribution import distribute_simple
from purchase_planner.domain.models import (
    CoverageResult,
    MonthRecord,
    PlanningBundle,
    RegistryEntry,
    SkuProjection,
    SkuStatus,
    WeekBlock,
)
from purchase_planner.domain.overrides import OverrideMap, WeeklyOverrideMap
from purchase_planner.domain.projection import recompute_sku_projection
from purchase_planner.domain.status import WARNING_RATIO, classify_status
from purchase_planner.errors import MonthKeyError, UnknownSkuError

logger = logging.getLogger(__name__)

Series = Dict[str, MonthRecord]


class PlanningSession:
    """
    Edit/undo state of one planning session.

    Override maps are copy-on-write: every edit swaps in a new snapshot, so
    ``session.overrides`` can be stored and later passed back to
    ``restore_overrides`` to undo a batch of edits.
    """

    def __init__(
        self,
        bundle: PlanningBundle,
        overrides: Optional[OverrideMap] = None,
        warning_ratio: float = WARNING_RATIO,
    ):
        self._bundle = bundle
        self._months: List[str] = list(bundle.metadata.months)
        self._registry: Dict[str, RegistryEntry] = bundle.registry_map()
        self._baseline: Dict[str, Series] = {p.key: p.months for p in bundle.projections}
        self._warning_ratio = warning_ratio

        self._overrides = OverrideMap()
        self._weekly_manual = WeeklyOverrideMap()
        self._weekly_coverage = WeeklyOverrideMap()
        # SKU -> (content hash, series) of its latest edited state
        self._memo: Dict[str, Tuple[str, Series]] = {}

        if overrides is not None:
            self.restore_overrides(overrides)

    # ============ Properties ============

    @property
    def bundle(self) -> PlanningBundle:
        return self._bundle

    @property
    def months(self) -> List[str]:
        return list(self._months)

    @property
    def reference_date(self) -> Date:
        return self._bundle.metadata.reference_date

    @property
    def warning_ratio(self) -> float:
        return self._warning_ratio

    @property
    def overrides(self) -> OverrideMap:
        """Current override snapshot (never mutated in place)."""
        return self._overrides

    @property
    def weekly_overrides(self) -> WeeklyOverrideMap:
        return self._weekly_manual

    @property
    def coverage_weekly_overrides(self) -> WeeklyOverrideMap:
        return self._weekly_coverage

    @property
    def override_count(self) -> int:
        return self._overrides.count

    def sku_keys(self) -> List[str]:
        """SKU keys with a projection, in bundle order."""
        return [p.key for p in self._bundle.projections]

    def entry(self, sku: str) -> RegistryEntry:
        self._check_sku(sku)
        return self._registry[sku]

    # ============ Validation ============

    def _check_sku(self, sku: str) -> None:
        if sku not in self._registry or sku not in self._baseline:
            raise UnknownSkuError(f"Unknown SKU: {sku}")

    def _check_month(self, month: str) -> None:
        parse_month_key(month)
        if month not in self._months:
            raise MonthKeyError(f"Month {month} is outside the planning horizon")

    # ============ Edit / undo surface ============

    def set_override(self, sku: str, month: str, value: Optional[float]) -> OverrideMap:
        """
        Set a manual order for one (SKU, month) cell.

        Args:
            sku: SKU key
            month: Month key inside the horizon
            value: Order quantity (0 is a valid order); None clears the cell

        Returns:
            The new override snapshot

        Raises:
            UnknownSkuError: If the SKU is not in the registry
            MonthKeyError: If the month is malformed or outside the horizon
            ValueError: If value is not a number
        """
        self._check_sku(sku)
        self._check_month(month)
        self._overrides = self._overrides.set(sku, month, value)
        logger.debug("Override %s %s = %s", sku, month, value)
        return self._overrides

    def clear_override(self, sku: str, month: str) -> OverrideMap:
        self._check_sku(sku)
        self._check_month(month)
        self._overrides = self._overrides.clear(sku, month)
        return self._overrides

    def clear_all_overrides(self) -> OverrideMap:
        """Drop every monthly and weekly override."""
        self._overrides = self._overrides.clear_all()
        self._weekly_manual = self._weekly_manual.clear_all()
        self._weekly_coverage = self._weekly_coverage.clear_all()
        return self._overrides

    def is_overridden(self, sku: str, month: str) -> bool:
        return self._overrides.is_overridden(sku, month)

    def restore_overrides(self, overrides: Union[OverrideMap, Iterable[Sequence]]) -> OverrideMap:
        """
        Replace the override map (undo to a snapshot, or load persisted edits).

        Cells of SKUs missing from the registry or months outside the
        horizon are dropped with a warning.

        Args:
            overrides: An OverrideMap or ["SKU|YYYY_MM", value] pairs
        """
        if not isinstance(overrides, OverrideMap):
            overrides = OverrideMap.from_pairs(overrides)

        kept = {}
        for sku, month in overrides:
            if sku in self._registry and month in self._months:
                kept[(sku, month)] = overrides.get(sku, month)
            else:
                logger.warning("Dropping override %s|%s: not in the current plan", sku, month)

        self._overrides = overrides if len(kept) == len(overrides) else OverrideMap(kept)
        return self._overrides

    # ============ Projection ============

    def _content_hash(self, entry: RegistryEntry, demand: Dict[str, float], manual: Dict[str, float]) -> str:
        payload = json.dumps(
            {
                "entry": asdict(entry),
                "months": self._months,
                "demand": demand,
                "overrides": manual,
                "reference_date": self.reference_date.isoformat(),
            },
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def projection(self, sku: str) -> Series:
        """
        Current (overrides-applied) month series of a SKU.

        Raises:
            UnknownSkuError: If the SKU is not in the registry
        """
        self._check_sku(sku)
        manual = self._overrides.for_sku(sku)
        if not manual:
            return self._baseline[sku]

        entry = self._registry[sku]
        demand = self._bundle.demand_for(sku)
        digest = self._content_hash(entry, demand, manual)
        cached = self._memo.get(sku)
        if cached is not None and cached[0] == digest:
            return cached[1]

        series = recompute_sku_projection(entry, self._months, demand, manual, self.reference_date)
        self._memo[sku] = (digest, series)
        return series

    def projections(self) -> List[SkuProjection]:
        """Current series of every SKU (baseline for unedited ones)."""
        return [SkuProjection(key=key, months=self.projection(key)) for key in self.sku_keys()]

    def status(self, sku: str) -> SkuStatus:
        return classify_status(self.projection(sku), self._months, self._warning_ratio)

    def current_bundle(self) -> PlanningBundle:
        """Bundle carrying the current series, for export and snapshots."""
        return replace(self._bundle, projections=self.projections())

    # ============ Coverage ============

    def coverage(self, coverage_date: Union[Date, datetime]) -> List[CoverageResult]:
        """Coverage plan of every SKU up to ``coverage_date`` (ignores overrides)."""
        results = []
        for key in self.sku_keys():
            results.append(compute_coverage_by_date(
                self._registry[key],
                self._months,
                self._bundle.demand_for(key),
                coverage_date,
                self.reference_date,
            ))
        return results

    def _current_blocks(self) -> List[WeekBlock]:
        """Remaining week blocks of the current month (empty if out of horizon)."""
        if not self._months:
            return []
        year, month = parse_month_key(self._months[0])
        ref = self.reference_date
        if (ref.year, ref.month) != (year, month):
            return []
        return remaining_week_blocks(year, month, ref.day)

    def apply_coverage(self, results: Iterable[CoverageResult]) -> OverrideMap:
        """
        Turn coverage results into overrides.

        SKUs with a zero coverage order are left alone. Each applied SKU also
        gets a weekly override placing the whole coverage order in the first
        remaining week of the current month.
        """
        if not self._months:
            return self._overrides

        n_blocks = len(self._current_blocks())
        overrides = self._overrides
        weekly = {}
        applied = 0

        for result in results:
            if result.coverage_order <= 0 or result.key not in self._registry:
                continue
            overrides = overrides.set_many(result.key, coverage_overrides(result, self._months))
            week_values = coverage_weekly_override(result, n_blocks)
            if week_values is not None:
                weekly[result.key] = week_values
            applied += 1

        self._overrides = overrides
        if weekly:
            self._weekly_coverage = self._weekly_coverage.update(weekly)
        logger.info("Coverage applied to %d SKUs", applied)
        return self._overrides

    # ============ Weekly view ============

    def set_weekly_override(self, sku: str, values: Optional[Sequence[int]]) -> WeeklyOverrideMap:
        """Manual week-block quantities of a SKU (None clears them)."""
        self._check_sku(sku)
        if values is None:
            self._weekly_manual = self._weekly_manual.clear(sku)
        else:
            self._weekly_manual = self._weekly_manual.set(sku, values)
        return self._weekly_manual

    def week_values(self, sku: str) -> List[int]:
        """
        Order quantities of the current month's remaining week blocks.

        Resolution: manual weekly edit, then coverage weekly override, then
        the month-0 order spread over the blocks by days.
        """
        self._check_sku(sku)
        blocks = self._current_blocks()

        for weekly in (self._weekly_manual, self._weekly_coverage):
            values = weekly.get(sku)
            if values is not None and len(values) == len(blocks):
                return list(values)

        record = self.projection(sku).get(self._months[0]) if self._months else None
        month_order = record.order if record is not None else 0
        return distribute_simple(month_order, blocks)

    def week_labels(self) -> List[str]:
        return [block.label for block in self._current_blocks()]
