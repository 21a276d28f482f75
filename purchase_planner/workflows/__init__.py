"""Workflows module."""
from .planning import PlanningSession
from .approval import build_approval_request, transition
from .parallel import recompute_portfolio_parallel
from .query import flatten_session, query_skus

__all__ = [
    'PlanningSession',
    'build_approval_request',
    'transition',
    'recompute_portfolio_parallel',
    'flatten_session',
    'query_skus',
]
