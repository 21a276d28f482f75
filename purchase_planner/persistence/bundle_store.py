"""
JSON persistence for planning bundles, edits and approval requests.

Bundles are read in either field naming (the upstream Portuguese export or
the English names written by save_bundle) and ALWAYS recomputed through the
projection engine: orders stored in the file are never trusted.
"""
import json
import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..domain.calendar import parse_month_key
from ..domain.models import (
    ApprovalItem,
    ApprovalKPIs,
    ApprovalRequest,
    ApprovalStatus,
    BundleMetadata,
    PlanningBundle,
    RegistryEntry,
    SkuProjection,
)
from ..domain.numeric import is_quantity, to_quantity
from ..domain.overrides import OverrideMap
from ..domain.projection import recompute_sku_projection
from ..errors import ApprovalError, BundleLoadError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Clock = Callable[[], date]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ============ Field naming ============

# field -> (english name, upstream name)
REGISTRY_FIELDS = {
    "key": ("key", "CHAVE"),
    "on_hand": ("on_hand", "ESTOQUE"),
    "pending": ("pending", "PENDENCIA"),
    "lead_time_days": ("lead_time_days", "LT"),
    "frequency_days": ("frequency_days", "FREQUENCIA"),
    "safety_days": ("safety_days", "EST_SEGURANCA"),
    "impact": ("impact", "IMPACTO"),
    "store_fill": ("store_fill", "PREECHIMENTO_DEMANDA_LOJA"),
    "inbound_adjustment": ("inbound_adjustment", "NNA"),
    "supplier": ("supplier", "fornecedor comercial"),
    "status_label": ("status_label", "situacao"),
    "dc_code": ("dc_code", "codigo_deposito_pd"),
    "product_code": ("product_code", "codigo_produto"),
    "product_name": ("product_name", "nome produto"),
    "category_l3": ("category_l3", "nome nível 3"),
    "category_l4": ("category_l4", "nome nível 4"),
}

INT_FIELDS = ("lead_time_days", "frequency_days", "safety_days", "dc_code", "product_code")
FLOAT_FIELDS = ("on_hand", "pending", "impact", "store_fill", "inbound_adjustment")

MONTH_FIELDS = {
    "sell_out": ("sell_out", "SELL_OUT"),
    "projected_stock": ("projected_stock", "ESTOQUE_PROJETADO"),
    "objective_stock": ("objective_stock", "ESTOQUE_OBJETIVO"),
    "order": ("order", "PEDIDO"),
    "arrival": ("arrival", "ENTRADA"),
}

METADATA_FIELDS = {
    "reference_date": ("reference_date", "data_referencia"),
    "horizon_months": ("horizon_months", "horizonte_meses"),
    "months": ("months", "meses"),
    "total_skus": ("total_skus", "total_skus"),
    "days_per_month": ("days_per_month", "dias_mes"),
}

SECTIONS = {
    "metadata": ("metadata", "metadata"),
    "registry": ("registry", "cadastro"),
    "projections": ("projections", "projecao"),
}


def _pick(row: Dict[str, Any], names, default=None):
    """First present value among the field's accepted names."""
    for name in names:
        if name in row:
            return row[name]
    return default


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None


# ============ Parsing ============

def parse_registry_entry(row: Dict[str, Any]) -> RegistryEntry:
    """
    Build a RegistryEntry from a bundle row.

    Missing numeric fields default to 0; non-numeric values read as 0.

    Raises:
        ValueError: If the key is empty or a duration is negative
    """
    values = {}
    for field_name, names in REGISTRY_FIELDS.items():
        raw = _pick(row, names)
        if field_name in INT_FIELDS:
            values[field_name] = int(to_quantity(raw))
        elif field_name in FLOAT_FIELDS:
            values[field_name] = to_quantity(raw)
        else:
            values[field_name] = "" if raw is None else str(raw)
    return RegistryEntry(**values)


def _parse_metadata(raw: Dict[str, Any], reference_date: Optional[date]) -> BundleMetadata:
    months = _pick(raw, METADATA_FIELDS["months"])
    if not isinstance(months, list):
        raise BundleLoadError("Bundle metadata has no month list")
    for month in months:
        parse_month_key(month)

    file_reference = _parse_date(_pick(raw, METADATA_FIELDS["reference_date"]))
    return BundleMetadata(
        reference_date=reference_date or file_reference or utc_today(),
        horizon_months=int(_pick(raw, METADATA_FIELDS["horizon_months"], len(months))),
        months=tuple(months),
        total_skus=int(_pick(raw, METADATA_FIELDS["total_skus"], 0)),
        days_per_month=int(_pick(raw, METADATA_FIELDS["days_per_month"], 30)),
    )


def parse_bundle(data: Dict[str, Any], reference_date: Optional[date] = None) -> PlanningBundle:
    """
    Build a recomputed PlanningBundle from decoded bundle JSON.

    Args:
        data: Decoded JSON object
        reference_date: Planning date overriding the one in the file

    Returns:
        PlanningBundle; every SKU recomputed without overrides

    Raises:
        BundleLoadError: If a section is missing or a month key is malformed
    """
    if not isinstance(data, dict):
        raise BundleLoadError("Bundle root must be a JSON object")

    raw_metadata = _pick(data, SECTIONS["metadata"])
    raw_registry = _pick(data, SECTIONS["registry"])
    raw_projections = _pick(data, SECTIONS["projections"])
    for name, section in (("metadata", raw_metadata), ("registry", raw_registry), ("projections", raw_projections)):
        if section is None:
            raise BundleLoadError(f"Bundle has no {name} section")

    try:
        metadata = _parse_metadata(raw_metadata, reference_date)
    except (ValueError, TypeError) as e:
        raise BundleLoadError(f"Invalid bundle metadata: {e}") from e

    registry: List[RegistryEntry] = []
    for row in raw_registry:
        try:
            registry.append(parse_registry_entry(row))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping invalid registry row: %s", e)

    registry_map = {entry.key: entry for entry in registry}
    months = list(metadata.months)

    projections: List[SkuProjection] = []
    demand: Dict[str, Dict[str, float]] = {}
    skipped = 0
    for row in raw_projections:
        key = _pick(row, REGISTRY_FIELDS["key"])
        entry = registry_map.get(key)
        if entry is None:
            skipped += 1
            logger.warning("Skipping SKU %s: no registry entry", key)
            continue

        raw_months = _pick(row, ("months", "meses"), {}) or {}
        sku_demand = {}
        for month in months:
            month_row = raw_months.get(month) or {}
            raw_sell_out = _pick(month_row, MONTH_FIELDS["sell_out"])
            if raw_sell_out is not None and not is_quantity(raw_sell_out):
                logger.debug("SKU %s %s: non-numeric sell-out %r read as 0", key, month, raw_sell_out)
            sku_demand[month] = to_quantity(raw_sell_out)

        series = recompute_sku_projection(entry, months, sku_demand, None, metadata.reference_date)
        projections.append(SkuProjection(key=key, months=series))
        demand[key] = sku_demand

    if metadata.total_skus != len(projections):
        metadata = replace(metadata, total_skus=len(projections))

    logger.info("Bundle loaded: %d SKUs, %d skipped, %d months", len(projections), skipped, len(months))
    return PlanningBundle(metadata=metadata, registry=registry, projections=projections, demand=demand)


def load_bundle(path: PathLike, reference_date: Optional[date] = None) -> PlanningBundle:
    """
    Read and recompute a bundle file.

    Raises:
        BundleLoadError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot load bundle %s: %s", path, e)
        raise BundleLoadError(f"Cannot read bundle {path}: {e}") from e
    return parse_bundle(data, reference_date)


# ============ Serialization ============

def bundle_to_dict(bundle: PlanningBundle) -> Dict[str, Any]:
    """Structured snapshot of a bundle (English field names)."""
    meta = bundle.metadata
    return {
        "metadata": {
            "reference_date": meta.reference_date.isoformat(),
            "horizon_months": meta.horizon_months,
            "months": list(meta.months),
            "total_skus": meta.total_skus,
            "days_per_month": meta.days_per_month,
        },
        "registry": [
            {field_name: getattr(entry, field_name) for field_name in REGISTRY_FIELDS}
            for entry in bundle.registry
        ],
        "projections": [
            {
                "key": proj.key,
                "months": {
                    month: {field_name: getattr(record, field_name) for field_name in MONTH_FIELDS}
                    for month, record in proj.months.items()
                },
            }
            for proj in bundle.projections
        ],
    }


def save_bundle(bundle: PlanningBundle, path: PathLike) -> Path:
    """Write a bundle snapshot as JSON; returns the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(bundle_to_dict(bundle), f, indent=2, ensure_ascii=False)
    return path


def default_snapshot_name(day: Optional[date] = None) -> str:
    return f"purchase_scenario_{(day or utc_today()).isoformat()}.json"


# ============ Bundle cache ============

class BundleCache:
    """
    Loaded bundle cached per reference month.

    ``loader`` receives the clock's date (the reference date to plan on);
    the cached bundle is reused until the clock enters a new month.
    """

    def __init__(self, loader: Callable[[date], PlanningBundle], clock: Clock = utc_today):
        self._loader = loader
        self._clock = clock
        self._bundle: Optional[PlanningBundle] = None
        self._month: Optional[str] = None

    @property
    def cached_month(self) -> Optional[str]:
        return self._month

    def get(self) -> PlanningBundle:
        today = self._clock()
        month = today.strftime("%Y-%m")
        if self._bundle is not None and self._month == month:
            logger.debug("Bundle cache hit (%s)", month)
            return self._bundle

        if self._bundle is not None:
            logger.debug("Bundle cache invalidated: %s -> %s", self._month, month)
        self._bundle = None
        self._month = None

        bundle = self._loader(today)
        self._bundle = bundle
        self._month = month
        return bundle

    def invalidate(self) -> None:
        self._bundle = None
        self._month = None


# ============ Override persistence ============

class OverrideFileStore:
    """Manual overrides persisted per reference month (edits_YYYY-MM.json)."""

    def __init__(self, data_dir: PathLike, clock: Clock = utc_today):
        self.data_dir = Path(data_dir)
        self._clock = clock

    @property
    def path(self) -> Path:
        return self.data_dir / f"edits_{self._clock().strftime('%Y-%m')}.json"

    def load(self) -> OverrideMap:
        """Edits of the current month; unreadable or missing files load empty."""
        path = self.path
        if not path.exists():
            return OverrideMap()
        try:
            with open(path, "r", encoding="utf-8") as f:
                return OverrideMap.from_pairs(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable edits file %s: %s", path, e)
            return OverrideMap()

    def save(self, overrides: OverrideMap) -> bool:
        path = self.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(overrides.to_pairs(), f)
            return True
        except OSError as e:
            logger.error("Cannot save edits to %s: %s", path, e)
            return False


# ============ Approval persistence ============

def approval_to_dict(request: ApprovalRequest) -> Dict[str, Any]:
    kpis = request.kpis
    return {
        "id": request.id,
        "created_at": request.created_at,
        "selected_weeks": list(request.selected_weeks),
        "status": request.status.value,
        "items": [
            {
                "key": item.key,
                "product_name": item.product_name,
                "supplier": item.supplier,
                "dc_code": item.dc_code,
                "weeks": dict(item.weeks),
                "total_qty": item.total_qty,
            }
            for item in request.items
        ],
        "total_skus": request.total_skus,
        "total_qty": request.total_qty,
        "supplier_name": request.supplier_name,
        "kpis": None if kpis is None else {
            "supplier_coverage_days": kpis.supplier_coverage_days,
            "order_coverage_days": kpis.order_coverage_days,
            "expected_arrival": kpis.expected_arrival,
            "coverage_at_arrival_days": kpis.coverage_at_arrival_days,
            "skus_ok": kpis.skus_ok,
            "skus_warning": kpis.skus_warning,
            "skus_critical": kpis.skus_critical,
        },
    }


def approval_from_dict(data: Dict[str, Any]) -> ApprovalRequest:
    kpis = data.get("kpis")
    return ApprovalRequest(
        id=str(data["id"]),
        created_at=data.get("created_at", ""),
        selected_weeks=tuple(data.get("selected_weeks", [])),
        status=ApprovalStatus(data.get("status", ApprovalStatus.PENDING.value)),
        items=tuple(
            ApprovalItem(
                key=item["key"],
                product_name=item.get("product_name", ""),
                supplier=item.get("supplier", ""),
                dc_code=int(item.get("dc_code", 0)),
                weeks={label: int(qty) for label, qty in item.get("weeks", {}).items()},
                total_qty=int(item.get("total_qty", 0)),
            )
            for item in data.get("items", [])
        ),
        total_skus=int(data.get("total_skus", 0)),
        total_qty=int(data.get("total_qty", 0)),
        supplier_name=data.get("supplier_name", ""),
        kpis=None if kpis is None else ApprovalKPIs(**kpis),
    )


class ApprovalFileStore:
    """Approval requests in one JSON file, newest first."""

    def __init__(self, path: PathLike):
        self.path = Path(path)

    def all(self) -> List[ApprovalRequest]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable approvals file %s: %s", self.path, e)
            return []

        requests = []
        for row in rows:
            try:
                requests.append(approval_from_dict(row))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping invalid approval request: %s", e)
        return requests

    def _write(self, requests: List[ApprovalRequest]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([approval_to_dict(r) for r in requests], f, indent=2, ensure_ascii=False)

    def get(self, request_id: str) -> Optional[ApprovalRequest]:
        for request in self.all():
            if request.id == request_id:
                return request
        return None

    def add(self, request: ApprovalRequest) -> None:
        self._write([request] + [r for r in self.all() if r.id != request.id])

    def update_status(self, request_id: str, status: ApprovalStatus) -> ApprovalRequest:
        """
        Change the status of a stored request.

        Raises:
            ApprovalError: If the request does not exist or the transition
                is not allowed
        """
        from ..workflows.approval import transition

        requests = self.all()
        for i, request in enumerate(requests):
            if request.id == request_id:
                updated = transition(request, status)
                requests[i] = updated
                self._write(requests)
                return updated
        raise ApprovalError(f"Approval request {request_id} not found")

    def remove(self, request_id: str) -> bool:
        requests = self.all()
        kept = [r for r in requests if r.id != request_id]
        if len(kept) == len(requests):
            return False
        self._write(kept)
        return True
