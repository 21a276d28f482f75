"""
Project configuration and constants.
"""
from pathlib import Path
import json
import os
import sys
from numbers import Real
from typing import Any, Dict, Optional


def _resolve_base_dir() -> Path:
    """
    Return the application's root directory.

    - Frozen executable: directory containing the executable
    - Development: repository root (parent of this package)
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


def _try_writable(path: Path) -> bool:
    """Return True if *path* can be created and written to."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        canary = path / ".write_probe"
        canary.touch()
        canary.unlink()
        return True
    except OSError:
        return False


PROJECT_ROOT = _resolve_base_dir()

# Data directory: next to the project, falling back to the home directory
_data_primary = PROJECT_ROOT / "data"
if _try_writable(_data_primary):
    DATA_DIR = _data_primary
else:
    DATA_DIR = Path.home() / ".purchase_planner" / "data"

LOGS_DIR = DATA_DIR.parent / "logs"
SETTINGS_FILE = DATA_DIR / "settings.json"
APPROVALS_FILE = DATA_DIR / "approval_requests.json"

# Planning defaults
WARNING_RATIO = 0.8             # Projected stock below 80% of objective = warning
DEFAULT_COVERAGE_DAYS = 30      # Default coverage date = reference date + 30 days

# KPIs use a flat 30-day month for daily demand
KPI_DAYS_PER_MONTH = 30
TARGET_COVERAGE_DAYS = 90

# Query / export
DEFAULT_PAGE_SIZE = 50
CSV_DELIMITER = ";"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "warning_ratio": WARNING_RATIO,
    "default_coverage_days": DEFAULT_COVERAGE_DAYS,
    "kpi_days_per_month": KPI_DAYS_PER_MONTH,
    "target_coverage_days": TARGET_COVERAGE_DAYS,
    "page_size": DEFAULT_PAGE_SIZE,
    "workers": 0,               # 0 = cpu_count - 1
}


def _valid_setting(key: str, value: Any) -> bool:
    """Known key with a positive value of the same numeric kind as its default."""
    if key not in DEFAULT_SETTINGS or isinstance(value, bool):
        return False
    kind = int if isinstance(DEFAULT_SETTINGS[key], int) else Real
    if not isinstance(value, kind):
        return False
    return value > 0 or (key == "workers" and value == 0)


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings.json merged over DEFAULT_SETTINGS.

    A missing or unreadable file yields the defaults; unknown keys and
    values of the wrong type (or not positive) are ignored.

    Args:
        path: Settings file (default: SETTINGS_FILE)

    Returns:
        Settings dict
    """
    settings = dict(DEFAULT_SETTINGS)
    settings_path = Path(path) if path is not None else SETTINGS_FILE

    if settings_path.exists():
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                stored = json.load(f)
            if isinstance(stored, dict):
                settings.update({k: v for k, v in stored.items() if _valid_setting(k, v)})
        except (json.JSONDecodeError, OSError):
            pass  # Fallback to defaults

    return settings


def save_settings(settings: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """
    Save settings to settings.json.

    Returns:
        True if successful, False otherwise
    """
    settings_path = Path(path) if path is not None else SETTINGS_FILE
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(settings_path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
        return True
    except OSError:
        return False


def default_workers(settings: Optional[Dict[str, Any]] = None) -> int:
    """Worker processes for portfolio recompute (leaves one CPU free)."""
    configured = (settings or {}).get("workers", 0)
    if isinstance(configured, int) and configured > 0:
        return configured
    return max(1, (os.cpu_count() or 2) - 1)
