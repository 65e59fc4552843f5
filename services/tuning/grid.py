"""Cartesian grids over the allocator's tunable parameters."""
from __future__ import annotations

import itertools
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from packages.allocation import WEIGHT_METHODS, AllocationConfig

DEFAULT_AXES: Dict[str, Tuple[object, ...]] = {
    "reserve_percent": (0.15, 0.20, 0.25),
    "max_per_product": (30, 40),
    "weight_method": ("power", "softmax"),
    "weight_gamma": (1.6, 1.8),
    "dynamic_top_k": (0, 1),
}


class ConfigurationGrid:
    """Ordered Cartesian product of axis values.

    Axes iterate outer to inner in the order they are declared, so truncating
    the iteration after ``n`` points always selects the same ``n``
    configurations. Values in ``base`` are applied to every point.
    """

    def __init__(
        self,
        axes: Mapping[str, Sequence[object]],
        *,
        base: Optional[Mapping[str, object]] = None,
    ) -> None:
        known = set(AllocationConfig.field_names())
        self._axes: List[Tuple[str, Tuple[object, ...]]] = []
        for name, values in axes.items():
            if name not in known:
                raise ValueError(f"Unknown sweep axis: {name!r}")
            candidates = tuple(values)
            if not candidates:
                raise ValueError(f"Sweep axis {name!r} has no values")
            self._axes.append((name, candidates))
        self._base: Dict[str, object] = dict(base or {})
        overlap = sorted(set(self._base) & {name for name, _ in self._axes})
        if overlap:
            raise ValueError(f"Parameters cannot be both fixed and swept: {', '.join(overlap)}")
        unknown_base = sorted(set(self._base) - known)
        if unknown_base:
            raise ValueError(f"Unknown allocation parameters: {', '.join(unknown_base)}")

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, object]],
        *,
        defaults: Optional[Mapping[str, Sequence[object]]] = None,
        base: Optional[Mapping[str, object]] = None,
    ) -> "ConfigurationGrid":
        """Build a grid from raw values (lists or CSV strings), keeping default axis order."""

        resolved_defaults = dict(defaults if defaults is not None else DEFAULT_AXES)
        data = dict(data or {})
        axes: Dict[str, Sequence[object]] = {}
        for name, fallback in resolved_defaults.items():
            axes[name] = parse_axis(name, data.pop(name, None), fallback)
        for name, raw in data.items():
            axes[name] = parse_axis(name, raw, ())
        return cls(axes, base=base)

    @property
    def axes(self) -> Dict[str, Tuple[object, ...]]:
        return dict(self._axes)

    @property
    def size(self) -> int:
        total = 1
        for _, values in self._axes:
            total *= len(values)
        return total

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[AllocationConfig]:
        names = [name for name, _ in self._axes]
        for combo in itertools.product(*(values for _, values in self._axes)):
            params = dict(self._base)
            params.update(zip(names, combo))
            yield AllocationConfig.from_mapping(params)

    def points(self, limit: Optional[int] = None) -> List[AllocationConfig]:
        return list(itertools.islice(self, limit))


def parse_axis(name: str, raw: object, fallback: Sequence[object]) -> Tuple[object, ...]:
    """Coerce an axis given as a list or CSV string, falling back when empty."""

    parser = _AXIS_PARSERS.get(name, _parse_float)
    if raw in (None, ""):
        return tuple(fallback)
    if isinstance(raw, str):
        items: Sequence[object] = [part.strip() for part in raw.split(",") if part.strip()]
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        items = [raw]
    values: List[object] = []
    for item in items:
        value = parser(item)
        if value is not None:
            values.append(value)
    return tuple(values) if values else tuple(fallback)


def _parse_float(value: object) -> Optional[float]:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"Invalid numeric axis value: {value!r}") from None


def _parse_int(value: object) -> Optional[int]:
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"Invalid integer axis value: {value!r}") from None


def _parse_method(value: object) -> Optional[str]:
    method = str(value).strip().lower()
    return method if method in WEIGHT_METHODS else None


def _parse_flag(value: object) -> Optional[int]:
    if isinstance(value, str):
        return 1 if value.strip().lower() in {"1", "true", "yes"} else 0
    return 1 if value else 0


_AXIS_PARSERS: Dict[str, Callable[[object], Optional[object]]] = {
    "reserve_percent": _parse_float,
    "max_per_product": _parse_int,
    "weight_method": _parse_method,
    "weight_gamma": _parse_float,
    "dynamic_top_k": _parse_flag,
    "min_lines": _parse_int,
    "reserve_min_units": _parse_int,
    "softmax_tau": _parse_float,
}


__all__ = ["ConfigurationGrid", "DEFAULT_AXES", "parse_axis"]
