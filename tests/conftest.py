"""
Shared fixtures: a small three-month planning bundle in the upstream field naming.

Reference date 2026-02-13, horizon Feb-Apr 2026, all lead times 0:
- 1001|10  no stock, demand 280/310/300 -> baseline orders equal demand
- 2002|10  1000 on hand, demand 100/month -> no orders
- 3003|20  no stock, no demand (one month with a non-numeric sell-out)
- 9999|99  projection without registry entry (dropped on load)
"""
from datetime import date

import pytest

from purchase_planner.persistence.bundle_store import parse_bundle
from purchase_planner.workflows.planning import PlanningSession

REFERENCE_DATE = date(2026, 2, 13)
MONTHS = ["2026_02", "2026_03", "2026_04"]


def _months(sell_out, order=0):
    return {
        month: {
            "SELL_OUT": value,
            "ESTOQUE_PROJETADO": 0,
            "ESTOQUE_OBJETIVO": 0,
            "PEDIDO": order,
            "ENTRADA": 0,
        }
        for month, value in zip(MONTHS, sell_out)
    }


def _registry_row(key, on_hand, supplier, dc, product_code, name, category):
    return {
        "CHAVE": key,
        "ESTOQUE": on_hand,
        "PENDENCIA": 0,
        "LT": 0,
        "NNA": 0,
        "FREQUENCIA": 0,
        "EST_SEGURANCA": 0,
        "IMPACTO": 0,
        "PREECHIMENTO_DEMANDA_LOJA": 0,
        "fornecedor comercial": supplier,
        "situacao": "ATIVO",
        "codigo_deposito_pd": dc,
        "codigo_produto": product_code,
        "nome produto": name,
        "nome nível 3": category,
        "nome nível 4": "",
    }


def make_bundle_data():
    return {
        "metadata": {
            "data_referencia": "2026-01-05",
            "horizonte_meses": 3,
            "meses": list(MONTHS),
            "total_skus": 4,
            "dias_mes": 30,
        },
        "cadastro": [
            _registry_row("1001|10", 0, "ACME", 10, 1001, "Dipirona 500mg", "Analgesicos"),
            _registry_row("2002|10", 1000, "BETA", 10, 2002, "Soro Fisiologico", "Hidratacao"),
            _registry_row("3003|20", 0, "ACME", 20, 3003, "Paracetamol Gotas", "Analgesicos"),
        ],
        "projecao": [
            # Stored orders are stale on purpose: loading must recompute them
            {"CHAVE": "1001|10", "meses": _months([280, 310, 300], order=999)},
            {"CHAVE": "2002|10", "meses": _months([100, 100, 100])},
            {"CHAVE": "3003|20", "meses": _months([0, "n/a", 0])},
            {"CHAVE": "9999|99", "meses": _months([50, 50, 50])},
        ],
    }


@pytest.fixture
def bundle_data():
    """Raw bundle JSON (upstream field naming)."""
    return make_bundle_data()


@pytest.fixture
def bundle(bundle_data):
    """Recomputed bundle planned on REFERENCE_DATE."""
    return parse_bundle(bundle_data, REFERENCE_DATE)


@pytest.fixture
def session(bundle):
    """Fresh planning session without edits."""
    return PlanningSession(bundle)
