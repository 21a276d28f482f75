"""
Tests for the command line entry point.
"""
import csv
import json
import tempfile
from pathlib import Path

import pytest

from purchase_planner.cli import build_parser, main

from conftest import make_bundle_data


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def bundle_file(temp_dir):
    path = temp_dir / "bundle.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(make_bundle_data(), f, ensure_ascii=False)
    return path


def _run(command, bundle_file, temp_dir, *extra):
    return main([
        command, str(bundle_file),
        "--reference-date", "2026-02-13",
        "--workers", "1",
        "--log-dir", str(temp_dir / "logs"),
        "--settings", str(temp_dir / "missing_settings.json"),
        *extra,
    ])


class TestParser:
    """Test argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_invalid_reference_date(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["summary", "b.json", "--reference-date", "13/02/2026"])

    def test_common_options(self):
        args = build_parser().parse_args(["summary", "b.json", "--reference-date", "2026-02-13", "--workers", "3"])
        assert args.command == "summary"
        assert args.workers == 3
        assert args.reference_date.isoformat() == "2026-02-13"


class TestCommands:
    """Test commands end to end."""

    def test_summary(self, bundle_file, temp_dir, capsys):
        assert _run("summary", bundle_file, temp_dir) == 0
        out = capsys.readouterr().out
        assert "total_skus" in out
        assert "890" in out

    def test_project(self, bundle_file, temp_dir, capsys):
        assert _run("project", bundle_file, temp_dir, "1001|10") == 0
        out = capsys.readouterr().out
        assert "Dipirona 500mg" in out
        assert "Fev/26" in out

    def test_unknown_sku(self, bundle_file, temp_dir, capsys):
        assert _run("project", bundle_file, temp_dir, "nope") == 1
        assert "PLAN_003" in capsys.readouterr().err

    def test_missing_bundle(self, temp_dir, capsys):
        assert _run("summary", temp_dir / "missing.json", temp_dir) == 1
        assert "PLAN_001" in capsys.readouterr().err

    def test_export_csv(self, bundle_file, temp_dir):
        output = temp_dir / "plan.csv"
        assert _run("export-csv", bundle_file, temp_dir, "--output", str(output)) == 0
        with open(output, encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f, delimiter=";"))
        assert len(rows) == 10

    def test_coverage_edits_feed_other_commands(self, bundle_file, temp_dir, capsys):
        edits = temp_dir / "edits.json"
        assert _run("coverage", bundle_file, temp_dir, "--date", "2026-02-23", "--save-edits", str(edits)) == 0
        with open(edits, encoding="utf-8") as f:
            assert json.load(f) == [["1001|10|2026_02", 330], ["1001|10|2026_03", 260]]

        snapshot = temp_dir / "scenario.json"
        assert _run("snapshot", bundle_file, temp_dir, "--edits", str(edits), "--output", str(snapshot)) == 0
        with open(snapshot, encoding="utf-8") as f:
            data = json.load(f)
        assert data["projections"][0]["months"]["2026_02"]["order"] == 330
        assert data["projections"][0]["months"]["2026_03"]["order"] == 260

    def test_invalid_edits_file(self, bundle_file, temp_dir, capsys):
        edits = temp_dir / "edits.json"
        edits.write_text('[["no-separator", 1]]', encoding="utf-8")
        assert _run("summary", bundle_file, temp_dir, "--edits", str(edits)) == 1
        assert "PLAN_999" in capsys.readouterr().err

    def test_query(self, bundle_file, temp_dir, capsys):
        assert _run("query", bundle_file, temp_dir, "--search", "dipirona") == 0
        result = json.loads(capsys.readouterr().out)
        assert [row["key"] for row in result["data"]] == ["1001|10"]
        assert result["meta"]["total_items"] == 1

    def test_non_numeric_edit_value(self, bundle_file, temp_dir, capsys):
        edits = temp_dir / "edits.json"
        edits.write_text('[["1001|10|2026_02", "abc"]]', encoding="utf-8")
        assert _run("project", bundle_file, temp_dir, "1001|10", "--edits", str(edits)) == 1
        err = capsys.readouterr().err
        assert "PLAN_999" in err
        assert "Traceback" not in err


class TestSettings:
    """Test settings.json values reaching the commands."""

    @pytest.fixture
    def safety_bundle_file(self, temp_dir):
        # 300 safety days on 2002|10: March ends at 971 against an objective of 968
        data = make_bundle_data()
        data["cadastro"][1]["EST_SEGURANCA"] = 300
        path = temp_dir / "bundle_safety.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        return path

    def _settings(self, temp_dir, **values):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps(values), encoding="utf-8")
        return str(path)

    def _warning_keys(self, bundle_file, temp_dir, capsys, settings):
        assert _run("query", bundle_file, temp_dir, "--status", "warning", "--settings", settings) == 0
        return [row["key"] for row in json.loads(capsys.readouterr().out)["data"]]

    def test_warning_ratio_changes_status_filter(self, safety_bundle_file, temp_dir, capsys):
        default = self._settings(temp_dir)
        assert self._warning_keys(safety_bundle_file, temp_dir, capsys, default) == []

        strict = self._settings(temp_dir, warning_ratio=1.05)
        assert self._warning_keys(safety_bundle_file, temp_dir, capsys, strict) == ["2002|10"]

    def test_page_size_is_default_limit(self, bundle_file, temp_dir, capsys):
        settings = self._settings(temp_dir, page_size=2)
        assert _run("query", bundle_file, temp_dir, "--settings", settings) == 0
        result = json.loads(capsys.readouterr().out)
        assert len(result["data"]) == 2
        assert result["meta"]["total_pages"] == 2

    def test_default_coverage_days(self, bundle_file, temp_dir, capsys):
        settings = self._settings(temp_dir, default_coverage_days=10)
        assert _run("coverage", bundle_file, temp_dir, "--settings", settings) == 0
        assert "Coverage until 2026-02-23" in capsys.readouterr().out


class TestReferenceDate:
    """Test where the planning date comes from."""

    def test_bundle_reference_date_used_without_argument(self, temp_dir, capsys):
        data = make_bundle_data()
        data["metadata"]["data_referencia"] = "2026-02-13"
        path = temp_dir / "bundle.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)

        exit_code = main([
            "coverage", str(path),
            "--workers", "1",
            "--log-dir", str(temp_dir / "logs"),
            "--settings", str(temp_dir / "missing_settings.json"),
        ])
        assert exit_code == 0
        assert "Coverage until 2026-03-15" in capsys.readouterr().out
