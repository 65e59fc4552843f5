"""Port and adapter around the external stock allocator."""
from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence

from .model import AllocationConfig, Product


class Allocator(Protocol):
    """Callable that turns a configuration and product list into allocations."""

    def __call__(self, config: AllocationConfig, products: Sequence[Product]) -> Mapping[str, Any]:
        ...


class AllocationFormatError(ValueError):
    """Raised when an allocator response matches neither supported shape."""


@dataclass(frozen=True)
class AllocationLine:
    """A positive transfer quantity for one product and outlet."""

    product_id: str
    outlet_id: str
    quantity: int

    def to_dict(self) -> Dict[str, object]:
        return {"product_id": self.product_id, "outlet_id": self.outlet_id, "quantity": self.quantity}


def normalize_allocation(result: Mapping[str, Any]) -> List[AllocationLine]:
    """Flatten an allocator response into positive allocation lines.

    Flat ``allocations`` take precedence; when they are empty the
    ``decision_trace`` rows whose reason is ``allocated`` are used instead.
    """

    if not isinstance(result, Mapping):
        raise AllocationFormatError(f"Allocator returned {type(result).__name__}, expected a mapping")

    allocations = result.get("allocations")
    if allocations:
        rows = _flat_rows(allocations)
    elif result.get("decision_trace"):
        rows = _trace_rows(result["decision_trace"])
    else:
        return []
    return [line for line in rows if line.quantity > 0]


def allocation_plan(lines: Iterable[AllocationLine]) -> Dict[str, Dict[str, int]]:
    """Merge allocation lines into ``{product_id: {outlet_id: quantity}}``."""

    plan: Dict[str, Dict[str, int]] = {}
    for line in lines:
        if line.quantity <= 0:
            continue
        outlets = plan.setdefault(line.product_id, {})
        outlets[line.outlet_id] = outlets.get(line.outlet_id, 0) + line.quantity
    return plan


def load_allocator(reference: str) -> Callable[..., Mapping[str, Any]]:
    """Resolve ``package.module:attribute`` into an allocator callable."""

    module_name, _, attribute = str(reference).partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Allocator reference must look like 'module:attribute', got {reference!r}")
    module = importlib.import_module(module_name)
    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part)
    if isinstance(target, type):
        target = target()
    if not callable(target):
        raise ValueError(f"Allocator {reference!r} is not callable")
    return target


def _flat_rows(allocations: object) -> Iterator[AllocationLine]:
    if not isinstance(allocations, Mapping):
        raise AllocationFormatError("'allocations' must map product ids to row lists")
    for product_id, rows in allocations.items():
        for row in _as_rows(rows, product_id):
            yield AllocationLine(str(product_id), _outlet(row), _quantity(row.get("quantity")))


def _trace_rows(trace: object) -> Iterator[AllocationLine]:
    if not isinstance(trace, Mapping):
        raise AllocationFormatError("'decision_trace' must map product ids to trace entries")
    for product_id, entry in trace.items():
        outlets = entry.get("outlets") if isinstance(entry, Mapping) else None
        for row in _as_rows(outlets or [], product_id):
            if row.get("reason") != "allocated":
                continue
            yield AllocationLine(str(product_id), _outlet(row), _quantity(row.get("allocated_qty")))


def _as_rows(rows: object, product_id: object) -> Sequence[Mapping[str, Any]]:
    if not isinstance(rows, (list, tuple)):
        raise AllocationFormatError(f"Rows for product {product_id!r} must be a list")
    for row in rows:
        if not isinstance(row, Mapping):
            raise AllocationFormatError(f"Row for product {product_id!r} must be a mapping, got {row!r}")
    return rows


def _outlet(row: Mapping[str, Any]) -> str:
    value = row.get("outlet_id")
    return "" if value is None else str(value)


def _quantity(value: Optional[object]) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


__all__ = [
    "AllocationFormatError",
    "AllocationLine",
    "Allocator",
    "allocation_plan",
    "load_allocator",
    "normalize_allocation",
]
