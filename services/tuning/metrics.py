"""Distribution metrics derived from one allocation run."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from packages.allocation import AllocationLine, fairness_one_minus_gini, mean


@dataclass(frozen=True)
class RunMetrics:
    """Coverage, volume and evenness of a single allocation."""

    lines: int = 0
    units: int = 0
    outlets_affected: int = 0
    fairness_outlet: float = 0.0
    fairness_product_avg: float = 0.0
    units_per_line: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "lines": self.lines,
            "units": self.units,
            "outlets_affected": self.outlets_affected,
            "fairness_outlet": self.fairness_outlet,
            "fairness_product_avg": self.fairness_product_avg,
            "units_per_line": self.units_per_line,
        }


def compute_metrics(lines: Iterable[AllocationLine]) -> RunMetrics:
    line_count = 0
    units = 0
    per_outlet: Dict[str, int] = {}
    per_product: Dict[str, Dict[str, int]] = {}

    for line in lines:
        if line.quantity <= 0:
            continue
        line_count += 1
        units += line.quantity
        # Rows without an outlet still count as lines and units.
        if not line.outlet_id:
            continue
        per_outlet[line.outlet_id] = per_outlet.get(line.outlet_id, 0) + line.quantity
        outlets = per_product.setdefault(line.product_id, {})
        outlets[line.outlet_id] = outlets.get(line.outlet_id, 0) + line.quantity

    outlet_totals = [total for total in per_outlet.values() if total > 0]
    product_scores = [
        fairness_one_minus_gini(distribution.values())
        for distribution in per_product.values()
        if any(quantity > 0 for quantity in distribution.values())
    ]
    return RunMetrics(
        lines=line_count,
        units=units,
        outlets_affected=len(outlet_totals),
        fairness_outlet=fairness_one_minus_gini(outlet_totals),
        fairness_product_avg=mean(product_scores),
        units_per_line=round(units / line_count, 2) if line_count else 0.0,
    )


__all__ = ["RunMetrics", "compute_metrics"]
