"""Evenness metric for allocation quantities."""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence


def fairness_one_minus_gini(values: Iterable[Optional[float]]) -> float:
    """Return ``1 - Gini`` over the quantities, clamped to ``[0, 1]``.

    Negative entries are dropped. Zeros stay in the population so that
    ``[100, 0, 0]`` scores as uneven; an input with no positive quantity yields
    ``0.0`` and a single positive value is perfectly even (``1.0``).
    """

    quantities = sorted(float(value) for value in values if value is not None and float(value) >= 0)
    count = len(quantities)
    if count == 0:
        return 0.0
    total = math.fsum(quantities)
    if total <= 0:
        return 0.0
    cumulative = math.fsum((index + 1) * value for index, value in enumerate(quantities))
    gini = (2 * (cumulative / total) - (count + 1)) / count
    fairness = 1.0 - gini
    if fairness < 0:
        return 0.0
    if fairness > 1:
        return 1.0
    return round(fairness, 6)


fairness = fairness_one_minus_gini


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean rounded to six places; empty input gives ``0.0``."""

    if not values:
        return 0.0
    return round(math.fsum(values) / len(values), 6)


__all__ = ["fairness", "fairness_one_minus_gini", "mean"]
