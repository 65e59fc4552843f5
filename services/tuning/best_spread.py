"""Pick the sweep configuration that spreads stock most evenly."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from packages.allocation import AllocationConfig, Allocator, Product

from .metrics import RunMetrics
from .sweep import RunRecord, SweepEngine, SweepOutcome

LOGGER = logging.getLogger("transfergate.tuning.best_spread")

TOP_LIMIT = 5


@dataclass(frozen=True)
class ObjectiveWeights:
    outlet_weight: float = 0.5
    product_weight: float = 0.5
    units_weight: float = 0.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ObjectiveWeights":
        data = data or {}
        defaults = cls()
        return cls(
            outlet_weight=_as_float(data.get("outlet_weight"), defaults.outlet_weight),
            product_weight=_as_float(data.get("product_weight"), defaults.product_weight),
            units_weight=_as_float(data.get("units_weight"), defaults.units_weight),
        )

    def normalized(self) -> Tuple[float, float, float]:
        """Floor each weight at zero and divide by ``max(1, total)``."""

        weights = [max(0.0, self.outlet_weight), max(0.0, self.product_weight), max(0.0, self.units_weight)]
        total = max(1.0, sum(weights))
        return weights[0] / total, weights[1] / total, weights[2] / total

    def to_dict(self) -> Dict[str, float]:
        return {
            "outlet_weight": self.outlet_weight,
            "product_weight": self.product_weight,
            "units_weight": self.units_weight,
        }


@dataclass(frozen=True)
class ScoredRun:
    run: RunRecord
    fairness_combined: float
    score: float

    def to_dict(self, *, include_allocation: bool = False) -> Dict[str, object]:
        payload = self.run.to_dict(include_allocation=include_allocation)
        payload["fairness_combined"] = self.fairness_combined
        payload["score"] = self.score
        return payload


@dataclass(frozen=True)
class BestSpreadResult:
    best: Optional[ScoredRun]
    top: Tuple[ScoredRun, ...]
    outcome: SweepOutcome

    def to_dict(self) -> Dict[str, object]:
        summary = self.outcome.summary
        return {
            "best": self.best.to_dict(include_allocation=True) if self.best else None,
            "top": [entry.to_dict() for entry in self.top],
            "summary": {
                "runs": summary.runs,
                "failed_runs": summary.failed_runs,
                "avg_fairness_outlet": summary.avg_fairness_outlet,
                "avg_fairness_product": summary.avg_fairness_product,
            },
        }


class BestSpreadSelector:
    """Score successful sweep runs with weighted fairness and rank them.

    Units are normalised against the largest unit count among the successful
    runs, so scores are only comparable within one sweep.
    """

    def __init__(self, weights: Optional[ObjectiveWeights] = None, *, top_limit: int = TOP_LIMIT) -> None:
        self.weights = weights or ObjectiveWeights()
        self.top_limit = top_limit

    def score(self, runs: Sequence[RunRecord]) -> List[ScoredRun]:
        outlet_w, product_w, units_w = self.weights.normalized()
        successful = [(run, run.metrics) for run in runs if run.ok and run.metrics is not None]
        max_units = max((metrics.units for _, metrics in successful), default=0)
        scored: List[ScoredRun] = []
        for run, metrics in successful:
            normalized_units = metrics.units / max_units if max_units > 0 else 0.0
            combined = outlet_w * metrics.fairness_outlet + product_w * metrics.fairness_product_avg
            scored.append(
                ScoredRun(
                    run=run,
                    fairness_combined=round(combined, 6),
                    score=round(combined + units_w * normalized_units, 6),
                )
            )
        return scored

    def rank(self, runs: Sequence[RunRecord]) -> List[ScoredRun]:
        return sorted(self.score(runs), key=_rank_key)

    def select(self, outcome: SweepOutcome) -> BestSpreadResult:
        ranked = self.rank(outcome.runs)
        best = ranked[0] if ranked else None
        if best is not None:
            LOGGER.info(
                "Best spread run %d score=%.6f fairness_outlet=%.6f",
                best.run.index,
                best.score,
                best.run.metrics.fairness_outlet if best.run.metrics else 0.0,
            )
        else:
            LOGGER.warning("No successful runs to rank (%d failed)", outcome.summary.failed_runs)
        return BestSpreadResult(best=best, top=tuple(ranked[: self.top_limit]), outcome=outcome)


def best_spread(
    dataset: Sequence[Product | Mapping[str, object]],
    grid: Iterable[AllocationConfig],
    allocate: Allocator,
    *,
    weights: Optional[ObjectiveWeights] = None,
    max_runs: Optional[int] = None,
    **engine_kwargs: Any,
) -> BestSpreadResult:
    """Sweep ``grid`` keeping allocations, then select the most even spread."""

    engine = SweepEngine(allocate, keep_allocation=True, **engine_kwargs)
    outcome = engine.run(dataset, grid, max_runs)
    return BestSpreadSelector(weights).select(outcome)


def _rank_key(entry: ScoredRun) -> Tuple[float, float, int, float, int]:
    metrics = entry.run.metrics or RunMetrics()
    return (
        -entry.score,
        -metrics.fairness_outlet,
        -metrics.units,
        -metrics.units_per_line,
        entry.run.index,
    )


def _as_float(value: Any, default: float) -> float:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid objective weight: {value!r}") from None


__all__ = [
    "BestSpreadResult",
    "BestSpreadSelector",
    "ObjectiveWeights",
    "ScoredRun",
    "TOP_LIMIT",
    "best_spread",
]
