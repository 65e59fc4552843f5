"""Map guardrail verdicts onto execution decisions for proposed actions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from packages.guardrail import ChainResult, GuardrailChain, RuleStatus

LOGGER = logging.getLogger("transfergate.policy.gate")

BLOCKED = "blocked"
EXECUTABLE = "executable"
PROPOSED = "proposed"
REJECTED = "rejected"
GATE_STATUSES = (BLOCKED, EXECUTABLE, PROPOSED, REJECTED)


@dataclass(frozen=True)
class GateThresholds:
    """Score hints needed to auto-apply or to propose an action."""

    auto_apply_min: float = 0.65
    propose_min: float = 0.15

    def __post_init__(self) -> None:
        if not 0.0 <= self.propose_min <= self.auto_apply_min <= 1.0:
            raise ValueError(
                "Gate thresholds must satisfy 0 <= propose_min <= auto_apply_min <= 1, "
                f"got propose_min={self.propose_min} auto_apply_min={self.auto_apply_min}"
            )

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "GateThresholds":
        if not data:
            return cls()
        values: Dict[str, float] = {}
        for name in ("auto_apply_min", "propose_min"):
            fallback = getattr(cls, name)
            try:
                values[name] = float(data.get(name, fallback))  # type: ignore[arg-type]
            except (TypeError, ValueError):
                values[name] = fallback
        return cls(**values)


@dataclass(frozen=True)
class GateDecision:
    status: str
    verdict: ChainResult
    context: Mapping[str, Any] = field(default_factory=dict)

    @property
    def score_hint(self) -> float:
        return self.verdict.score_hint

    @property
    def blocked_by(self) -> Optional[str]:
        return self.verdict.blocked_by

    @property
    def warnings(self) -> Tuple[str, ...]:
        return tuple(result.code for result in self.verdict.results if result.status is RuleStatus.WARN)

    @property
    def is_executable(self) -> bool:
        return self.status == EXECUTABLE

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "score_hint": self.score_hint,
            "blocked_by": self.blocked_by,
            "warnings": list(self.warnings),
        }


class ActionGate:
    """Run the guardrail chain and classify the proposed action.

    A blocking verdict always wins. Otherwise the chain's ``score_hint``
    decides between auto-applying, proposing for review and rejecting.
    """

    def __init__(
        self,
        chain: GuardrailChain,
        thresholds: Optional[GateThresholds] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.chain = chain
        self.thresholds = thresholds or GateThresholds()
        self._logger = logger or LOGGER

    def classify(self, verdict: ChainResult) -> str:
        if verdict.final_status is RuleStatus.BLOCK:
            return BLOCKED
        if verdict.score_hint >= self.thresholds.auto_apply_min:
            return EXECUTABLE
        if verdict.score_hint >= self.thresholds.propose_min:
            return PROPOSED
        return REJECTED

    def review(self, context: Mapping[str, Any]) -> GateDecision:
        verdict = self.chain.evaluate(context)
        decision = GateDecision(status=self.classify(verdict), verdict=verdict, context=dict(context))
        self._logger.info(
            "Gate %s %s score_hint=%.6f blocked_by=%s warnings=%s",
            _subject(context),
            decision.status,
            decision.score_hint,
            decision.blocked_by or "-",
            ",".join(decision.warnings) or "-",
        )
        return decision

    def review_many(self, contexts: Iterable[Mapping[str, Any]]) -> List[GateDecision]:
        return [self.review(context) for context in contexts]


def plan_contexts(
    plan: Mapping[str, Mapping[str, int]],
    signals: Optional[Mapping[str, Mapping[str, Any]]] = None,
    *,
    base: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Build one guardrail context per line of a transfer plan.

    ``signals`` is keyed by product id. Each entry holds product-level signals
    and may carry an ``outlets`` mapping with per-outlet overrides. Later
    levels win over ``base``.
    """

    signals = signals or {}
    contexts: List[Dict[str, Any]] = []
    for product_id, outlets in plan.items():
        product_signals = dict(signals.get(product_id) or {})
        outlet_signals = product_signals.pop("outlets", None) or {}
        if not isinstance(outlet_signals, Mapping):
            raise ValueError(f"Signals 'outlets' for product {product_id!r} must be a mapping")
        for outlet_id, quantity in outlets.items():
            context: Dict[str, Any] = dict(base or {})
            context.update(product_signals)
            context.update(outlet_signals.get(outlet_id) or {})
            context.update({"product_id": product_id, "outlet_id": outlet_id, "quantity": quantity})
            contexts.append(context)
    return contexts


def _subject(context: Mapping[str, Any]) -> str:
    product_id = context.get("product_id")
    outlet_id = context.get("outlet_id")
    if product_id is None and outlet_id is None:
        return "action"
    return f"{product_id or '-'}@{outlet_id or '-'}"


__all__ = [
    "ActionGate",
    "BLOCKED",
    "EXECUTABLE",
    "GATE_STATUSES",
    "GateDecision",
    "GateThresholds",
    "PROPOSED",
    "REJECTED",
    "plan_contexts",
]
