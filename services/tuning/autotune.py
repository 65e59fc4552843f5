"""Coarse search over both weighting methods with a coverage heuristic."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple

from packages.allocation import AllocationConfig, Allocator, Product

from .grid import ConfigurationGrid, parse_axis
from .metrics import RunMetrics
from .sweep import RunRecord, SweepEngine

LOGGER = logging.getLogger("transfergate.tuning.autotune")

QUANTITY_SOFT_LIMIT = 500

DEFAULT_SEARCH_SPACE: Dict[str, Tuple[object, ...]] = {
    "max_per_product": (10, 12, 16, 20, 40),
    "min_lines": (3, 5),
    "weight_gamma": (1.5, 1.7, 1.8, 1.9, 2.0),
    "softmax_tau": (4.0, 6.0, 8.0),
    "reserve_percent": (0.10, 0.15, 0.20, 0.25),
}


def heuristic_score(metrics: RunMetrics) -> float:
    """Reward lines, outlet coverage and even spread; penalise bulk quantity."""

    overshoot = max(0, metrics.units - QUANTITY_SOFT_LIMIT)
    score = metrics.lines * 2 + metrics.outlets_affected + metrics.fairness_outlet * 5 - overshoot * 0.01
    return round(score, 6)


@dataclass(frozen=True)
class AutoTuneResult:
    best: Optional[RunRecord]
    results: Tuple[RunRecord, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        return {
            "best": _entry(self.best) if self.best else None,
            "results": [_entry(run) for run in self.results],
        }


class AutoTuner:
    """Sweep a power grid then a softmax grid and keep the top heuristic score.

    Each grid crosses its method-specific axis (``weight_gamma`` or
    ``softmax_tau``) with ``max_per_product``, ``min_lines`` and
    ``reserve_percent``. The first run reaching the highest score wins.
    """

    def __init__(
        self,
        allocate: Allocator,
        *,
        methods: Sequence[str] = ("power", "softmax"),
        search_space: Optional[Mapping[str, Sequence[object]]] = None,
        base: Optional[Mapping[str, object]] = None,
        **engine_kwargs: Any,
    ) -> None:
        space = dict(DEFAULT_SEARCH_SPACE)
        for name, raw in (search_space or {}).items():
            if name not in space:
                raise ValueError(f"Unknown auto-tune axis: {name!r}")
            space[name] = parse_axis(name, raw, space[name])
        self.search_space = space
        self.methods = list(parse_axis("weight_method", list(methods), ()))
        self.base = dict(base or {})
        self.engine = SweepEngine(allocate, objective=heuristic_score, **engine_kwargs)

    def grids(self) -> Iterator[ConfigurationGrid]:
        shared = ("max_per_product", "min_lines")
        for method in self.methods:
            specific = "weight_gamma" if method == "power" else "softmax_tau"
            axes = {name: self.search_space[name] for name in (*shared, specific, "reserve_percent")}
            base = {key: value for key, value in self.base.items() if key not in axes}
            base["weight_method"] = method
            yield ConfigurationGrid(axes, base=base)

    def configs(self) -> Iterator[AllocationConfig]:
        for grid in self.grids():
            yield from grid

    def run(
        self,
        dataset: Sequence[Product | Mapping[str, object]],
        max_runs: Optional[int] = None,
    ) -> AutoTuneResult:
        outcome = self.engine.run(dataset, self.configs(), max_runs)
        results = tuple(outcome.successful)
        best: Optional[RunRecord] = None
        for run in results:
            if best is None or (run.score or 0.0) > (best.score or 0.0):
                best = run
        if best is not None:
            LOGGER.info(
                "Auto-tune picked run %d (%s) score=%.6f out of %d",
                best.index,
                best.params.weight_method,
                best.score or 0.0,
                len(results),
            )
        return AutoTuneResult(best=best, results=results)


def _entry(run: RunRecord) -> Dict[str, object]:
    metrics = run.metrics or RunMetrics()
    return {
        "config": run.params.to_dict(),
        "metrics": metrics.to_dict(),
        "score": run.score,
        "fairness": metrics.fairness_outlet,
    }


__all__ = [
    "AutoTuneResult",
    "AutoTuner",
    "DEFAULT_SEARCH_SPACE",
    "QUANTITY_SOFT_LIMIT",
    "heuristic_score",
]
