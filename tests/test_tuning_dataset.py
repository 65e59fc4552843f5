from __future__ import annotations

import pytest

from services.tuning.dataset import banded_products, demo_products, products_from_payload


def test_demo_products_are_deterministic() -> None:
    assert demo_products(12, outlets=4) == demo_products(12, outlets=4)


def test_demo_products_cycle_scenarios() -> None:
    products = demo_products(8, outlets=6)

    assert [p.product_id for p in products[:2]] == ["P-DEMO-1", "P-DEMO-2"]
    assert products[0].outlets == [f"OUT-{index}" for index in range(1, 7)]
    # i=1 seeding, i=2 low sales, i=3 high stock, i=4 new
    assert 55 <= products[0].warehouse_stock <= 79
    assert 28 <= products[1].warehouse_stock <= 41
    assert 120 <= products[2].warehouse_stock <= 199
    assert 24 <= products[3].warehouse_stock <= 35
    assert all(stock <= 1 for stock in products[3].outlet_stocks.values())


def test_banded_products_respect_band_ranges() -> None:
    products = banded_products({"low": 3, "medium": 2, "high": 4}, outlets=5)

    assert [p.product_id for p in products] == [f"P-CUST-{index}" for index in range(1, 10)]
    assert all(20 <= p.warehouse_stock <= 40 for p in products[:3])
    assert all(50 <= p.warehouse_stock <= 85 for p in products[3:5])
    assert all(110 <= p.warehouse_stock <= 200 for p in products[5:])
    assert len(products[0].outlet_stocks) == 5


def test_banded_products_default_sizes_and_unknown_band() -> None:
    assert len(banded_products()) == 60
    with pytest.raises(ValueError, match="Unknown warehouse bands"):
        banded_products({"huge": 3})


def test_products_from_payload_skips_incomplete_entries() -> None:
    products = products_from_payload(
        [
            {"product_id": "P-1", "warehouse_stock": 10, "sales_velocity": {"OUT-1": 2}},
            {"warehouse_stock": 5},
            {"product_id": "P-3"},
            {"product_id": "", "warehouse_stock": 5},
        ]
    )

    assert [p.product_id for p in products] == ["P-1"]


def test_products_from_payload_rejects_invalid_values() -> None:
    with pytest.raises(ValueError):
        products_from_payload([{"product_id": "P-1", "warehouse_stock": -4}])
