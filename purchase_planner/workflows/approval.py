"""
Approval workflow: snapshot week-block orders for approval.

Builds an ApprovalRequest from the current week values of a planning
session and enforces the request lifecycle (pending -> approved|rejected).
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from purchase_planner.analytics.kpi import approval_kpis
from purchase_planner.domain.models import ApprovalItem, ApprovalRequest, ApprovalStatus
from purchase_planner.errors import ApprovalError
from purchase_planner.workflows.planning import PlanningSession

logger = logging.getLogger(__name__)

# Allowed status transitions
_TRANSITIONS = {
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.APPROVED: set(),
    ApprovalStatus.REJECTED: set(),
}


def build_approval_request(
    session: PlanningSession,
    selected_week_indices: Sequence[int],
    sku_keys: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> ApprovalRequest:
    """
    Create an approval request from the selected week blocks.

    Args:
        session: Planning session holding the current plan
        selected_week_indices: Indices into the current month's remaining
            week blocks (0 = first open block)
        sku_keys: Restrict to these SKUs (e.g. a filtered view); default all
        now: Submission time (default: now, UTC)

    Returns:
        Pending ApprovalRequest with KPIs

    Raises:
        ApprovalError: If no week is selected or no SKU has quantities in
            the selected weeks
    """
    labels = session.week_labels()
    selected = sorted({i for i in selected_week_indices if 0 <= i < len(labels)})
    if not selected:
        raise ApprovalError("No week selected")

    now = now or datetime.now(timezone.utc)
    registry = session.bundle.registry_map()
    keys = list(sku_keys) if sku_keys is not None else session.sku_keys()

    items: List[ApprovalItem] = []
    for key in keys:
        entry = registry.get(key)
        if entry is None:
            continue
        values = session.week_values(key)
        weeks = {labels[i]: (values[i] if i < len(values) else 0) for i in selected}
        total = sum(weeks.values())
        if total == 0:
            continue
        items.append(ApprovalItem(
            key=key,
            product_name=entry.product_name,
            supplier=entry.supplier,
            dc_code=entry.dc_code,
            weeks=weeks,
            total_qty=total,
        ))

    if not items:
        raise ApprovalError("No SKU with quantities in the selected weeks")

    projections = {key: session.projection(key) for key in session.sku_keys()}
    kpis = approval_kpis(items, registry, projections, session.months, now, session.warning_ratio)

    suppliers = list(dict.fromkeys(item.supplier for item in items))

    request = ApprovalRequest(
        id=str(int(now.timestamp() * 1000)),
        created_at=now.isoformat(),
        selected_weeks=tuple(labels[i] for i in selected),
        status=ApprovalStatus.PENDING,
        items=tuple(items),
        total_skus=len(items),
        total_qty=sum(item.total_qty for item in items),
        supplier_name=", ".join(suppliers),
        kpis=kpis,
    )
    logger.info(
        "Approval request %s: %d SKUs, %d units (%s)",
        request.id, request.total_skus, request.total_qty, ", ".join(request.selected_weeks),
    )
    return request


def transition(request: ApprovalRequest, new_status: ApprovalStatus) -> ApprovalRequest:
    """
    Move a request to a new status.

    Raises:
        ApprovalError: If the transition is not allowed
    """
    if new_status not in _TRANSITIONS[request.status]:
        raise ApprovalError(
            f"Cannot change request {request.id} from {request.status.value} to {new_status.value}"
        )
    return request.with_status(new_status)
