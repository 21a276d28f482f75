"""
Tests for the flat projection CSV export.
"""
import csv
import tempfile
from datetime import date
from pathlib import Path

import pytest

from purchase_planner.domain.models import SkuProjection
from purchase_planner.persistence.csv_export import HEADER, default_csv_name, export_projection_csv


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _read_rows(path):
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return list(csv.reader(f, delimiter=";"))


class TestExportProjectionCsv:
    """Test CSV layout and content."""

    def test_bom_and_header(self, temp_dir, bundle):
        path = temp_dir / "plan.csv"
        export_projection_csv(bundle, path)

        assert path.read_bytes().startswith(b"\xef\xbb\xbf")
        assert _read_rows(path)[0] == HEADER
        assert len(HEADER) == 20

    def test_one_row_per_sku_month(self, temp_dir, bundle):
        path = temp_dir / "plan.csv"
        written = export_projection_csv(bundle, path)

        rows = _read_rows(path)[1:]
        assert written == 9
        assert len(rows) == 9
        assert [row[14] for row in rows[:3]] == ["2026_02", "2026_03", "2026_04"]

    def test_row_values(self, temp_dir, bundle):
        path = temp_dir / "plan.csv"
        export_projection_csv(bundle, path)

        row = dict(zip(HEADER, _read_rows(path)[4]))
        assert row["KEY"] == "2002|10"
        assert row["Supplier"] == "BETA"
        assert row["Stock"] == "1000"
        assert row["Month"] == "2026_02"
        assert row["SellOut"] == "100"
        assert row["ProjectedStock"] == "900"
        assert row["Order"] == "0"

    def test_exports_given_projections(self, temp_dir, session):
        session.set_override("1001|10", "2026_02", 330)
        path = temp_dir / "plan.csv"
        export_projection_csv(session.bundle, path, session.projections())

        row = dict(zip(HEADER, _read_rows(path)[1]))
        assert row["Order"] == "330"

    def test_unregistered_sku_skipped(self, temp_dir, bundle):
        extra = SkuProjection(key="9999|99", months=bundle.projections[0].months)
        path = temp_dir / "plan.csv"
        written = export_projection_csv(bundle, path, list(bundle.projections) + [extra])
        assert written == 9

    def test_creates_parent_directory(self, temp_dir, bundle):
        path = temp_dir / "exports" / "plan.csv"
        export_projection_csv(bundle, path)
        assert path.exists()

    def test_default_name(self):
        assert default_csv_name(date(2026, 2, 13)) == "purchase_plan_2026-02-13.csv"
