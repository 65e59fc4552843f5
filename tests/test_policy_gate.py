from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

import pytest

from packages.guardrail import FunctionGuardrail, GuardrailChain, build_default_chain
from services.policy.gate import (
    BLOCKED,
    EXECUTABLE,
    PROPOSED,
    REJECTED,
    ActionGate,
    GateThresholds,
    plan_contexts,
)


def _warn_chain(warnings: int) -> GuardrailChain:
    rails = [FunctionGuardrail(f"GR_W{index}", lambda context: {"status": "WARN", "message": "careful"}) for index in range(warnings)]
    rails.append(FunctionGuardrail("GR_OK", lambda context: {"status": "PASS"}))
    return GuardrailChain(rails)


@pytest.mark.parametrize(
    "warnings, expected",
    [
        (0, EXECUTABLE),
        (1, EXECUTABLE),
        (2, PROPOSED),
        (3, REJECTED),
    ],
)
def test_score_hint_maps_to_gate_status(warnings: int, expected: str) -> None:
    decision = ActionGate(_warn_chain(warnings)).review({})

    assert decision.status == expected
    assert len(decision.warnings) == warnings


def test_block_always_wins() -> None:
    chain = GuardrailChain([FunctionGuardrail("GR_STOP", lambda context: {"status": "BLOCK", "message": "No"})])

    decision = ActionGate(chain, GateThresholds(auto_apply_min=0.0, propose_min=0.0)).review({})

    assert decision.status == BLOCKED
    assert decision.blocked_by == "GR_STOP"
    assert not decision.is_executable
    assert decision.to_dict() == {"status": BLOCKED, "score_hint": 0.0, "blocked_by": "GR_STOP", "warnings": []}


def test_thresholds_validate_ordering() -> None:
    with pytest.raises(ValueError, match="Gate thresholds"):
        GateThresholds(auto_apply_min=0.3, propose_min=0.6)
    with pytest.raises(ValueError):
        GateThresholds(auto_apply_min=1.5)


def test_review_logs_decision(caplog: pytest.LogCaptureFixture) -> None:
    gate = ActionGate(build_default_chain())

    with caplog.at_level(logging.INFO, logger="transfergate.policy.gate"):
        gate.review({"product_id": "P-1", "outlet_id": "OUT-2", "projected_roi": 0.5})

    messages = [record.getMessage() for record in caplog.records if record.name == "transfergate.policy.gate"]
    assert messages == ["Gate P-1@OUT-2 executable score_hint=0.700000 blocked_by=- warnings=GR_ROI_VIABILITY"]


def test_plan_contexts_layer_signals() -> None:
    plan = {"P-1": {"OUT-1": 4, "OUT-2": 2}, "P-2": {"OUT-1": 1}}
    signals: Dict[str, Mapping[str, Any]] = {
        "P-1": {"cost": 10.0, "outlets": {"OUT-2": {"receiver_dsr_post": 40.0, "cost": 11.0}}},
    }

    contexts = plan_contexts(plan, signals, base={"min_roi": 1.2, "cost": 9.0})

    assert contexts == [
        {"min_roi": 1.2, "cost": 10.0, "product_id": "P-1", "outlet_id": "OUT-1", "quantity": 4},
        {
            "min_roi": 1.2,
            "cost": 11.0,
            "receiver_dsr_post": 40.0,
            "product_id": "P-1",
            "outlet_id": "OUT-2",
            "quantity": 2,
        },
        {"min_roi": 1.2, "cost": 9.0, "product_id": "P-2", "outlet_id": "OUT-1", "quantity": 1},
    ]
    assert "outlets" in signals["P-1"]


def test_plan_contexts_rejects_bad_outlet_signals() -> None:
    with pytest.raises(ValueError, match="outlets"):
        plan_contexts({"P-1": {"OUT-1": 1}}, {"P-1": {"outlets": ["OUT-1"]}})


def test_review_many_classifies_each_line() -> None:
    contexts = plan_contexts(
        {"P-1": {"OUT-1": 3, "OUT-2": 3}},
        {"P-1": {"outlets": {"OUT-1": {"donor_dsr_post": 2.0}, "OUT-2": {"receiver_dsr_post": 35.0}}}},
    )

    decisions = ActionGate(build_default_chain()).review_many(contexts)

    assert [decision.status for decision in decisions] == [BLOCKED, EXECUTABLE]
    assert decisions[0].blocked_by == "GR_DONOR_FLOOR"
    assert decisions[1].warnings == ("GR_RECEIVER_OVERSHOOT",)
