"""Deterministic product datasets for sweeps and auto-tuning."""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from packages.allocation import Product

SCENARIOS = ("new", "seeding", "low_sales", "high_stock")

# Band name -> (min warehouse, max warehouse, scenario)
BANDS: Dict[str, Tuple[int, int, str]] = {
    "low": (20, 40, "new"),
    "medium": (50, 85, "seeding"),
    "high": (110, 200, "high_stock"),
}
DEFAULT_BAND_COUNTS: Dict[str, int] = {"low": 20, "medium": 20, "high": 20}


def outlet_ids(count: int) -> List[str]:
    return [f"OUT-{index}" for index in range(1, max(1, int(count)) + 1)]


def demo_products(count: int = 50, outlets: int = 6) -> List[Product]:
    """Cycle through the four stocking scenarios, one product at a time.

    Product ``i`` uses scenario ``i % 4`` (new, seeding, low sales, high stock)
    and a warehouse quantity inside that scenario's band.
    """

    ids = outlet_ids(outlets)
    products: List[Product] = []
    for i in range(1, max(1, int(count)) + 1):
        scenario = SCENARIOS[i % 4]
        products.append(_product(f"P-DEMO-{i}", _demo_warehouse(scenario, i), scenario, i, ids))
    return products


def banded_products(bands: Optional[Mapping[str, int]] = None, outlets: int = 8) -> List[Product]:
    """Products grouped into low, medium and high warehouse bands.

    Ids run ``P-CUST-1`` upward across the bands in low, medium, high order.
    """

    counts = dict(DEFAULT_BAND_COUNTS if bands is None else bands)
    unknown = sorted(set(counts) - set(BANDS))
    if unknown:
        raise ValueError(f"Unknown warehouse bands: {', '.join(unknown)}")
    ids = outlet_ids(outlets)
    products: List[Product] = []
    i = 0
    for band, (low, high, scenario) in BANDS.items():
        for _ in range(max(0, int(counts.get(band, 0) or 0))):
            i += 1
            warehouse = low + (i * 7) % max(1, high - low + 1)
            products.append(_product(f"P-CUST-{i}", warehouse, scenario, i, ids))
    return products


def products_from_payload(entries: Iterable[Mapping[str, object]]) -> List[Product]:
    """Build products from raw payload entries.

    Entries without a ``product_id`` or ``warehouse_stock`` are skipped; other
    invalid values raise ``ValueError``.
    """

    products: List[Product] = []
    for entry in entries or []:
        if not isinstance(entry, Mapping):
            raise ValueError(f"Product entry must be a mapping, got {entry!r}")
        if entry.get("product_id") in (None, "") or entry.get("warehouse_stock") is None:
            continue
        products.append(Product.from_mapping(entry))
    return products


def _demo_warehouse(scenario: str, i: int) -> int:
    if scenario == "new":
        return 24 + (i * 3) % 12
    if scenario == "seeding":
        return 55 + (i * 5) % 25
    if scenario == "low_sales":
        return 28 + (i * 2) % 14
    return 120 + (i * 7) % 80


def _outlet_profile(scenario: str, i: int, idx: int) -> Tuple[int, float]:
    if scenario == "new":
        return (1 if (i + idx) % 5 == 0 else 0), float(1 + (idx + i) % 2)
    if scenario == "seeding":
        return idx % 2, float(2 + (idx + 1) % 3)
    if scenario == "low_sales":
        return 1 + (i + idx) % 4, float(1 + (i + idx) % 2)
    return (i + idx) % 8, float(2 + (4 if idx < 3 else 2) + (i + idx) % 2)


def _product(product_id: str, warehouse: int, scenario: str, i: int, ids: List[str]) -> Product:
    stocks: Dict[str, int] = {}
    velocity: Dict[str, float] = {}
    for idx, outlet in enumerate(ids):
        stocks[outlet], velocity[outlet] = _outlet_profile(scenario, i, idx)
    return Product(product_id=product_id, warehouse_stock=warehouse, outlet_stocks=stocks, sales_velocity=velocity)


__all__ = [
    "BANDS",
    "DEFAULT_BAND_COUNTS",
    "SCENARIOS",
    "banded_products",
    "demo_products",
    "outlet_ids",
    "products_from_payload",
]
