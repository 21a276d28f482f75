"""
Exception hierarchy for purchase-planner.

Structural problems (malformed month keys, unreadable bundles) raise one of
these. Data-quality problems (missing demand, unmapped SKUs) never do: they
are tolerated and degraded locally by the engine.
"""


class PlanningError(Exception):
    """Base exception for planning operations."""
    pass


class MonthKeyError(PlanningError, ValueError):
    """Month key is not in canonical "YYYY_MM" form (or not in the horizon)."""
    pass


class BundleLoadError(PlanningError):
    """Planning bundle could not be read or is structurally invalid."""
    pass


class UnknownSkuError(PlanningError, KeyError):
    """SKU key not present in the registry."""

    def __str__(self):
        # KeyError quotes its argument; keep the plain message instead
        return str(self.args[0]) if self.args else ""


class ApprovalError(PlanningError):
    """Invalid approval request or status transition."""
    pass
