"""Analytics package for purchase plan KPIs."""

from .kpi import approval_kpis, portfolio_summary

__all__ = [
    "approval_kpis",
    "portfolio_summary",
]
