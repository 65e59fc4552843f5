"""Data structures exchanged with the stock allocator."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence

WEIGHT_METHODS = ("power", "softmax")
MAX_RESERVE_PERCENT = 0.9
MIN_WEIGHT_GAMMA = 0.1


@dataclass(frozen=True)
class Product:
    """Warehouse and outlet stock position for one product."""

    product_id: str
    warehouse_stock: int
    outlet_stocks: Dict[str, int] = field(default_factory=dict)
    sales_velocity: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "Product":
        product_id = data.get("product_id")
        if product_id in (None, ""):
            raise ValueError("Product payload must include a product_id")
        warehouse_stock = _coerce_non_negative_int(data.get("warehouse_stock", 0), field_name="warehouse_stock")
        outlet_stocks = {
            str(outlet): _coerce_non_negative_int(qty, field_name=f"outlet_stocks.{outlet}")
            for outlet, qty in _get_mapping(data, "outlet_stocks").items()
        }
        sales_velocity = {
            str(outlet): _coerce_non_negative_float(rate, field_name=f"sales_velocity.{outlet}")
            for outlet, rate in _get_mapping(data, "sales_velocity").items()
        }
        return cls(
            product_id=str(product_id),
            warehouse_stock=warehouse_stock,
            outlet_stocks=outlet_stocks,
            sales_velocity=sales_velocity,
        )

    @property
    def outlets(self) -> List[str]:
        return sorted(set(self.outlet_stocks) | set(self.sales_velocity))

    def to_dict(self) -> Dict[str, object]:
        return {
            "product_id": self.product_id,
            "warehouse_stock": self.warehouse_stock,
            "outlet_stocks": dict(self.outlet_stocks),
            "sales_velocity": dict(self.sales_velocity),
        }


@dataclass(frozen=True)
class AllocationConfig:
    """One point of the allocator's tunable parameter space.

    ``max_per_product`` of ``0`` means no per-product cap. ``reserve_percent``
    is clamped to ``[0, 0.9]`` and ``weight_gamma`` floored at ``0.1``.
    """

    reserve_percent: float = 0.20
    max_per_product: int = 40
    weight_method: str = "power"
    weight_gamma: float = 1.8
    dynamic_top_k: int = 0
    min_lines: int = 3
    reserve_min_units: int = 2
    softmax_tau: float = 6.0

    def __post_init__(self) -> None:
        method = str(self.weight_method).strip().lower()
        if method not in WEIGHT_METHODS:
            raise ValueError(f"Unsupported weight method: {self.weight_method!r}")
        reserve = min(max(float(self.reserve_percent), 0.0), MAX_RESERVE_PERCENT)
        gamma = max(float(self.weight_gamma), MIN_WEIGHT_GAMMA)
        tau = float(self.softmax_tau)
        if tau <= 0:
            raise ValueError(f"softmax_tau must be positive: {self.softmax_tau!r}")
        object.__setattr__(self, "weight_method", method)
        object.__setattr__(self, "reserve_percent", reserve)
        object.__setattr__(self, "weight_gamma", gamma)
        object.__setattr__(self, "softmax_tau", tau)
        object.__setattr__(self, "max_per_product", max(int(self.max_per_product), 0))
        object.__setattr__(self, "dynamic_top_k", 1 if _coerce_flag(self.dynamic_top_k) else 0)
        object.__setattr__(self, "min_lines", max(int(self.min_lines), 0))
        object.__setattr__(self, "reserve_min_units", max(int(self.reserve_min_units), 0))

    @classmethod
    def field_names(cls) -> Sequence[str]:
        return tuple(item.name for item in fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "AllocationConfig":
        known = set(cls.field_names())
        unknown = sorted(str(key) for key in data if key not in known)
        if unknown:
            raise ValueError(f"Unknown allocation parameters: {', '.join(unknown)}")
        return cls(**{str(key): value for key, value in data.items()})

    @property
    def per_product_cap(self) -> Optional[int]:
        return self.max_per_product or None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _get_mapping(data: Mapping[str, object], key: str) -> Mapping[str, object]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Product field {key!r} must be a mapping of outlet to value")
    return value


def _coerce_non_negative_int(value: object, *, field_name: str) -> int:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"Invalid numeric value for {field_name}: {value!r}") from None
    if math.isnan(number) or number < 0:
        raise ValueError(f"{field_name} must be non-negative, got {value!r}")
    return int(number)


def _coerce_non_negative_float(value: object, *, field_name: str) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"Invalid numeric value for {field_name}: {value!r}") from None
    if math.isnan(number) or math.isinf(number) or number < 0:
        raise ValueError(f"{field_name} must be a finite non-negative number, got {value!r}")
    return number


def _coerce_flag(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


__all__ = ["AllocationConfig", "Product", "WEIGHT_METHODS"]
