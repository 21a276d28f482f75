"""
Tests for approval KPIs and the portfolio summary.

Daily demand = current month sell-out / 30.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from purchase_planner.analytics.kpi import approval_kpis, portfolio_summary
from purchase_planner.domain.models import (
    ApprovalItem,
    BundleMetadata,
    MonthRecord,
    PlanningBundle,
    RegistryEntry,
    SkuProjection,
)

MONTHS = ["2026_02", "2026_03"]
NOW = datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc)


def _series(sell_out, stock_m1=100, objective_m1=100):
    return {
        "2026_02": MonthRecord(sell_out=sell_out, projected_stock=100, objective_stock=100, order=0, arrival=0),
        "2026_03": MonthRecord(sell_out=sell_out, projected_stock=stock_m1, objective_stock=objective_m1, order=0, arrival=0),
    }


def _item(key, supplier, qty):
    return ApprovalItem(key=key, product_name=key, supplier=supplier, dc_code=1, weeks={"S2": qty}, total_qty=qty)


@pytest.fixture
def registry():
    return {
        "X": RegistryEntry(key="X", on_hand=300, supplier="S", lead_time_days=10),
        "Y": RegistryEntry(key="Y", on_hand=600, supplier="S", lead_time_days=20),
        "Z": RegistryEntry(key="Z", on_hand=100, supplier="T"),
    }


@pytest.fixture
def projections():
    return {
        "X": _series(300),
        "Y": _series(600, stock_m1=10),    # below 80% of objective
        "Z": _series(300),
    }


class TestApprovalKpis:
    """Test KPIs frozen into an approval request."""

    def test_coverage_and_arrival(self, registry, projections):
        items = [_item("X", "S", 100), _item("Y", "S", 300)]
        kpis = approval_kpis(items, registry, projections, MONTHS, NOW)

        # X: 300 / 10 per day, Y: 600 / 20 per day
        assert kpis.supplier_coverage_days == 30
        assert kpis.order_coverage_days == 30
        # (10 * 100 + 20 * 300) / 400 = 17.5 -> 18
        assert kpis.expected_arrival == (NOW + timedelta(days=18)).isoformat()
        # X: 300 - 100 + 100, Y: 600 - 400 + 300 = 800 units over 30 per day
        assert kpis.coverage_at_arrival_days == 27

    def test_supplier_coverage_includes_skus_not_ordered(self, registry, projections):
        registry = dict(registry)
        registry["Z"] = RegistryEntry(key="Z", on_hand=100, supplier="S")
        kpis = approval_kpis([_item("X", "S", 100)], registry, projections, MONTHS, NOW)

        assert kpis.order_coverage_days == 30
        # X, Y and Z: (30 * 300 + 30 * 600 + 10 * 300) / 1200
        assert kpis.supplier_coverage_days == 25

    def test_health_counts_cover_ordered_skus(self, registry, projections):
        items = [_item("X", "S", 100), _item("Y", "S", 300)]
        kpis = approval_kpis(items, registry, projections, MONTHS, NOW)
        assert (kpis.skus_ok, kpis.skus_warning, kpis.skus_critical) == (1, 1, 0)

    def test_no_lead_time_means_no_arrival(self, registry, projections):
        kpis = approval_kpis([_item("Z", "T", 50)], registry, projections, MONTHS, NOW)
        assert kpis.expected_arrival is None
        assert kpis.coverage_at_arrival_days is None
        assert kpis.order_coverage_days == 10

    def test_no_demand_means_no_coverage(self, registry):
        projections = {"X": _series(0), "Y": _series(0)}
        kpis = approval_kpis([_item("X", "S", 100)], registry, projections, MONTHS, NOW)
        assert kpis.supplier_coverage_days is None
        assert kpis.order_coverage_days is None
        assert kpis.coverage_at_arrival_days is None

    def test_stock_at_arrival_never_negative(self):
        registry = {"A": RegistryEntry(key="A", on_hand=10, supplier="S", lead_time_days=30)}
        projections = {"A": _series(300)}
        kpis = approval_kpis([_item("A", "S", 60)], registry, projections, MONTHS, NOW)
        # max(0, 10 - 300) + 60 = 60 units at 10 per day
        assert kpis.coverage_at_arrival_days == 6


class TestPortfolioSummary:
    """Test headline KPIs over the sample bundle."""

    def test_sample_bundle(self, bundle):
        summary = portfolio_summary(bundle)

        assert summary["total_skus"] == 3
        assert summary["horizon_months"] == 3
        assert summary["total_on_hand"] == 1000
        assert summary["total_orders"] == 890
        assert summary["skus_critical"] == 0
        assert summary["skus_warning"] == 0
        # 1000 units over (280 + 100) / 30 per day
        assert summary["coverage_days"] == 79
        assert summary["projected_coverage_days"] == 71
        assert summary["mean_lead_time_days"] is None
        assert summary["skus_with_lead_time"] == 0
        assert summary["stock_change_pct"] == -10
        assert summary["coverage_progress_pct"] == pytest.approx(79 / 90 * 100)

    def test_uses_given_projections(self, session):
        session.set_override("1001|10", "2026_02", 0)
        session.set_override("1001|10", "2026_03", 0)
        summary = portfolio_summary(session.bundle, session.projections())

        assert summary["skus_critical"] == 1
        assert summary["total_orders"] == 890

    def test_lead_time_mean(self):
        metadata = BundleMetadata(reference_date=date(2026, 2, 1), horizon_months=2, months=tuple(MONTHS), total_skus=2)
        bundle = PlanningBundle(
            metadata=metadata,
            registry=[RegistryEntry(key="A", lead_time_days=10), RegistryEntry(key="B", lead_time_days=25)],
            projections=[SkuProjection("A", _series(30)), SkuProjection("B", _series(30))],
        )
        summary = portfolio_summary(bundle)
        assert summary["mean_lead_time_days"] == 18
        assert summary["skus_with_lead_time"] == 2
        assert summary["total_on_hand"] == 0
        assert summary["stock_change_pct"] is None

    def test_progress_capped(self):
        metadata = BundleMetadata(reference_date=date(2026, 2, 1), horizon_months=2, months=tuple(MONTHS), total_skus=1)
        bundle = PlanningBundle(
            metadata=metadata,
            registry=[RegistryEntry(key="A", on_hand=10000)],
            projections=[SkuProjection("A", _series(30))],
        )
        assert portfolio_summary(bundle)["coverage_progress_pct"] == 100.0
