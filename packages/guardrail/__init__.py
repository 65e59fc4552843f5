"""Guardrail chain used to gate pricing and transfer actions."""
from .chain import Guardrail, GuardrailChain, GuardrailExecutionError, score_hint
from .rails import (
    BaseGuardrail,
    CostFloorGuardrail,
    DeltaCapGuardrail,
    DonorFloorGuardrail,
    FunctionGuardrail,
    GuardrailThresholds,
    ReceiverOvershootGuardrail,
    RoiViabilityGuardrail,
    build_default_chain,
)
from .result import ChainResult, Result, derive_reason
from .severity import RuleStatus, Severity

__all__ = [
    "BaseGuardrail",
    "ChainResult",
    "CostFloorGuardrail",
    "DeltaCapGuardrail",
    "DonorFloorGuardrail",
    "FunctionGuardrail",
    "Guardrail",
    "GuardrailChain",
    "GuardrailExecutionError",
    "GuardrailThresholds",
    "ReceiverOvershootGuardrail",
    "Result",
    "RoiViabilityGuardrail",
    "RuleStatus",
    "Severity",
    "build_default_chain",
    "derive_reason",
    "score_hint",
]
