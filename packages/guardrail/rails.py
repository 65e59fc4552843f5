"""Standard pricing and transfer guardrails."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from .chain import GuardrailChain, Outcome

NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class GuardrailThresholds:
    """Default limits applied when the context does not override them."""

    min_margin_pct: float = 0.22
    delta_cap_pct: float = 0.07
    min_roi: float = 1.0
    donor_min_dsr: float = 5.0
    receiver_max_dsr: float = 28.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "GuardrailThresholds":
        if not data:
            return cls()
        defaults = cls()
        values: Dict[str, float] = {}
        for name in ("min_margin_pct", "delta_cap_pct", "min_roi", "donor_min_dsr", "receiver_max_dsr"):
            fallback = getattr(defaults, name)
            try:
                values[name] = float(data.get(name, fallback))
            except (TypeError, ValueError):
                values[name] = fallback
        return cls(**values)


class BaseGuardrail:
    """Shared helpers for guardrails that emit mapping outcomes."""

    code = ""

    def __init__(self, thresholds: Optional[GuardrailThresholds] = None) -> None:
        self.thresholds = thresholds or GuardrailThresholds()

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        raise NotImplementedError

    def _outcome(self, status: str, message: str, *, reason: Optional[str] = None, **meta: Any) -> Dict[str, Any]:
        outcome: Dict[str, Any] = {"status": status, "message": message, "meta": meta}
        if reason is not None:
            outcome["reason"] = reason
        return outcome

    def _not_applicable(self, *missing: str) -> Dict[str, Any]:
        return self._outcome("PASS", "Not applicable", reason=NOT_APPLICABLE, missing=list(missing))

    def _threshold(self, context: Mapping[str, Any], key: str) -> float:
        override = _signal(context, key)
        if override is not None:
            return override
        return float(getattr(self.thresholds, key))


class CostFloorGuardrail(BaseGuardrail):
    """Block prices that fall below cost plus the minimum margin."""

    code = "GR_COST_FLOOR"

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        cost = _signal(context, "cost")
        price = _signal(context, "candidate_price")
        if cost is None or price is None:
            return self._not_applicable("cost", "candidate_price")
        min_margin = self._threshold(context, "min_margin_pct")
        floor = round(cost * (1.0 + min_margin), 4)
        if price < floor:
            return self._outcome(
                "BLOCK",
                "Below cost floor",
                candidate_price=price,
                floor_price=floor,
                min_margin_pct=min_margin,
            )
        return self._outcome("PASS", "", candidate_price=price, floor_price=floor)


class DeltaCapGuardrail(BaseGuardrail):
    """Block price changes larger than the permitted relative delta."""

    code = "GR_DELTA_CAP"

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        current = _signal(context, "current_price")
        candidate = _signal(context, "candidate_price")
        if current is None or candidate is None or current <= 0:
            return self._not_applicable("current_price", "candidate_price")
        cap = self._threshold(context, "delta_cap_pct")
        delta_pct = round(abs(candidate - current) / current, 6)
        if delta_pct > cap:
            return self._outcome("BLOCK", "Price delta exceeds cap", delta_pct=delta_pct, delta_cap_pct=cap)
        return self._outcome("PASS", "", delta_pct=delta_pct, delta_cap_pct=cap)


class RoiViabilityGuardrail(BaseGuardrail):
    """Block negative ROI and warn when ROI is under the minimum."""

    code = "GR_ROI_VIABILITY"

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        roi = _signal(context, "projected_roi")
        if roi is None:
            return self._not_applicable("projected_roi")
        min_roi = self._threshold(context, "min_roi")
        if roi < 0:
            return self._outcome("BLOCK", "Negative projected ROI", projected_roi=roi, min_roi=min_roi)
        if roi < min_roi:
            return self._outcome("WARN", "Projected ROI below minimum", projected_roi=roi, min_roi=min_roi)
        return self._outcome("PASS", "", projected_roi=roi, min_roi=min_roi)


class DonorFloorGuardrail(BaseGuardrail):
    """Block transfers that leave the donor outlet under its stock floor."""

    code = "GR_DONOR_FLOOR"

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        donor_dsr = _signal(context, "donor_dsr_post")
        if donor_dsr is None:
            return self._not_applicable("donor_dsr_post")
        floor = self._threshold(context, "donor_min_dsr")
        if donor_dsr < floor:
            return self._outcome("BLOCK", "Donor below DSR floor", donor_dsr_post=donor_dsr, donor_min_dsr=floor)
        return self._outcome("PASS", "", donor_dsr_post=donor_dsr, donor_min_dsr=floor)


class ReceiverOvershootGuardrail(BaseGuardrail):
    """Warn when a transfer pushes the receiver past its DSR ceiling."""

    code = "GR_RECEIVER_OVERSHOOT"

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        receiver_dsr = _signal(context, "receiver_dsr_post")
        if receiver_dsr is None:
            return self._not_applicable("receiver_dsr_post")
        ceiling = self._threshold(context, "receiver_max_dsr")
        if receiver_dsr > ceiling:
            return self._outcome(
                "WARN",
                "Receiver overshoots DSR ceiling",
                receiver_dsr_post=receiver_dsr,
                receiver_max_dsr=ceiling,
            )
        return self._outcome("PASS", "", receiver_dsr_post=receiver_dsr, receiver_max_dsr=ceiling)


class FunctionGuardrail:
    """Adapt a plain callable into a guardrail with a fixed code."""

    def __init__(self, code: str, func: Callable[[Mapping[str, Any]], Outcome]) -> None:
        self.code = code
        self._func = func

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        return self._func(context)

    def __repr__(self) -> str:
        return f"FunctionGuardrail(code={self.code!r})"


STANDARD_GUARDRAILS = (
    CostFloorGuardrail,
    DeltaCapGuardrail,
    DonorFloorGuardrail,
    ReceiverOvershootGuardrail,
    RoiViabilityGuardrail,
)


def build_default_chain(thresholds: Optional[GuardrailThresholds] = None, **chain_kwargs: Any) -> GuardrailChain:
    """Return a fresh chain holding every standard guardrail."""

    chain = GuardrailChain(**chain_kwargs)
    for rail_cls in STANDARD_GUARDRAILS:
        chain.register(rail_cls(thresholds))
    return chain


def _signal(context: Mapping[str, Any], key: str) -> Optional[float]:
    value = context.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Context signal {key!r} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Context signal {key!r} must be numeric, got {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"Context signal {key!r} must be finite, got {value!r}")
    return number


__all__ = [
    "BaseGuardrail",
    "CostFloorGuardrail",
    "DeltaCapGuardrail",
    "DonorFloorGuardrail",
    "FunctionGuardrail",
    "GuardrailThresholds",
    "NOT_APPLICABLE",
    "ReceiverOvershootGuardrail",
    "RoiViabilityGuardrail",
    "STANDARD_GUARDRAILS",
    "build_default_chain",
]
