"""Action gating on top of the guardrail chain."""
from .config import PolicyConfig, load_config
from .gate import (
    BLOCKED,
    EXECUTABLE,
    PROPOSED,
    REJECTED,
    ActionGate,
    GateDecision,
    GateThresholds,
    plan_contexts,
)

__all__ = [
    "ActionGate",
    "BLOCKED",
    "EXECUTABLE",
    "GateDecision",
    "GateThresholds",
    "PROPOSED",
    "PolicyConfig",
    "REJECTED",
    "load_config",
    "plan_contexts",
]
