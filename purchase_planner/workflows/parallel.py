"""
Parallel portfolio recompute.

Each SKU is recomputed independently, so the portfolio splits into even
chunks processed by a ProcessPoolExecutor.

Architecture
------------
* Module-scope worker only, so it pickles under the "spawn" start method.
* Registry entries, demand and overrides are converted to plain dicts of
  primitives before pickling; the worker rebuilds the dataclasses.
* A failing chunk is logged and its SKUs are recomputed in-process, so the
  result always covers every SKU.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import asdict
from datetime import date
from typing import Callable, Dict, List, Optional

from purchase_planner.domain.models import MonthRecord, PlanningBundle, RegistryEntry
from purchase_planner.domain.overrides import OverrideMap
from purchase_planner.domain.projection import recompute_sku_projection

logger = logging.getLogger(__name__)


# ── Primitive serialization helpers ──────────────────────────────────────────

def _record_to_tuple(record: MonthRecord) -> tuple:
    """MonthRecord → (sell_out, projected_stock, objective_stock, order, arrival)"""
    return (
        record.sell_out,
        record.projected_stock,
        record.objective_stock,
        record.order,
        record.arrival,
    )


def _serialize_skus(bundle: PlanningBundle, overrides: OverrideMap) -> list:
    """One primitive dict per SKU with a registry entry."""
    registry = bundle.registry_map()
    items = []
    for proj in bundle.projections:
        entry = registry.get(proj.key)
        if entry is None:
            continue
        items.append({
            "key": proj.key,
            "entry": asdict(entry),
            "demand": dict(bundle.demand_for(proj.key)),
            "overrides": overrides.for_sku(proj.key),
        })
    return items


def _recompute_item(item: dict, months: List[str], reference_date: date) -> Dict[str, tuple]:
    entry = RegistryEntry(**item["entry"])
    series = recompute_sku_projection(
        entry, months, item["demand"], item["overrides"] or None, reference_date
    )
    return {month: _record_to_tuple(record) for month, record in series.items()}


# ── Worker (runs in a spawned subprocess) ────────────────────────────────────

def _projection_chunk_worker(chunk_args: dict) -> dict:
    """
    Recompute one chunk of SKUs.

    ``chunk_args`` keys
    -------------------
    months : list[str]
    reference_date_iso : str
    skus : list[dict]
        ``key``, ``entry`` (RegistryEntry fields), ``demand`` and
        ``overrides`` ({month: value})

    Returns
    -------
    dict  {sku_key: {month: record_tuple}}
    """
    months: List[str] = chunk_args["months"]
    reference_date = date.fromisoformat(chunk_args["reference_date_iso"])
    return {
        item["key"]: _recompute_item(item, months, reference_date)
        for item in chunk_args["skus"]
    }


def _rebuild(raw: Dict[str, tuple]) -> Dict[str, MonthRecord]:
    return {month: MonthRecord(*values) for month, values in raw.items()}


# ── Orchestrator ─────────────────────────────────────────────────────────────

def recompute_portfolio_parallel(
    bundle: PlanningBundle,
    overrides: Optional[OverrideMap] = None,
    n_workers: int = 1,
    on_progress: Optional[Callable[[int], None]] = None,
) -> Dict[str, Dict[str, MonthRecord]]:
    """
    Recompute the series of every SKU of a bundle.

    Parameters
    ----------
    bundle : PlanningBundle
    overrides : OverrideMap | None
        Manual orders applied during the recompute.
    n_workers : int
        Worker processes; ``<= 1`` runs sequentially in-process.
    on_progress : callable(n_done: int) | None
        Called after each chunk with the cumulative number of SKUs done.

    Returns
    -------
    dict  {sku_key: {month: MonthRecord}}
    """
    overrides = overrides or OverrideMap()
    items = _serialize_skus(bundle, overrides)
    n = len(items)
    if n == 0:
        return {}

    months = list(bundle.metadata.months)
    reference_date = bundle.metadata.reference_date

    if n_workers <= 1:
        results = {
            item["key"]: _rebuild(_recompute_item(item, months, reference_date))
            for item in items
        }
        if on_progress:
            on_progress(n)
        return results

    chunk_size = max(1, math.ceil(n / n_workers))
    chunks = [items[i : i + chunk_size] for i in range(0, n, chunk_size)]

    raw_results: dict = {}
    done_count = 0

    with ProcessPoolExecutor(max_workers=n_workers) as executor:
        future_map = {
            executor.submit(
                _projection_chunk_worker,
                {
                    "months": months,
                    "reference_date_iso": reference_date.isoformat(),
                    "skus": chunk,
                },
            ): chunk
            for chunk in chunks
        }

        for future in as_completed(future_map):
            chunk = future_map[future]
            try:
                raw_results.update(future.result())
            except Exception as exc:
                logger.error(
                    "Projection chunk failed (%d SKUs), recomputing in-process: %s",
                    len(chunk), exc,
                )
                for item in chunk:
                    raw_results[item["key"]] = _recompute_item(item, months, reference_date)

            done_count += len(chunk)
            if on_progress:
                on_progress(done_count)

    # Keep bundle order
    return {item["key"]: _rebuild(raw_results[item["key"]]) for item in items}
