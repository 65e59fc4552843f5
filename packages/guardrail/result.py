"""Immutable value objects describing guardrail outcomes."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .severity import RuleStatus, Severity

_REASON_PATTERN = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Result:
    """Outcome of one guardrail evaluation.

    Values are validated on construction: status and severity must be known
    levels, the duration must be non-negative and ``meta`` may only hold plain
    JSON values (mappings with string keys, sequences, strings, numbers,
    booleans and ``None``).
    """

    code: str
    status: RuleStatus
    severity: Severity
    reason: str
    message: str = ""
    meta: Mapping[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0

    def __post_init__(self) -> None:
        code = str(self.code or "").strip()
        if not code:
            raise ValueError("Result code must be a non-empty string")
        status = RuleStatus.coerce(self.status)
        severity = Severity.coerce(self.severity)
        try:
            duration_ms = float(self.duration_ms)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid duration: {self.duration_ms!r}") from None
        if math.isnan(duration_ms) or duration_ms < 0:
            raise ValueError(f"Duration must be non-negative: {self.duration_ms!r}")
        if not isinstance(self.meta, Mapping):
            raise ValueError("Result meta must be a mapping")
        meta = _freeze_json(self.meta, path="meta")

        object.__setattr__(self, "code", code)
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "severity", severity)
        object.__setattr__(self, "reason", str(self.reason))
        object.__setattr__(self, "message", str(self.message or ""))
        object.__setattr__(self, "meta", meta)
        object.__setattr__(self, "duration_ms", duration_ms)

    @classmethod
    def from_outcome(
        cls,
        outcome: Mapping[str, Any] | "Result",
        *,
        code: str,
        duration_ms: float = 0.0,
    ) -> "Result":
        """Wrap a raw rule outcome, deriving severity and reason when omitted."""

        if isinstance(outcome, Result):
            return replace(outcome, code=code, duration_ms=duration_ms)
        if not isinstance(outcome, Mapping):
            raise ValueError(f"Guardrail {code} returned an unsupported outcome: {outcome!r}")

        status = RuleStatus.coerce(outcome.get("status") or RuleStatus.PASS)
        raw_severity = outcome.get("severity")
        severity = Severity.from_status(status) if raw_severity in (None, "") else Severity.coerce(raw_severity)
        message = str(outcome.get("message") or "")
        raw_reason = outcome.get("reason")
        reason = derive_reason(message) if raw_reason in (None, "") else str(raw_reason)
        meta = outcome.get("meta")
        return cls(
            code=code,
            status=status,
            severity=severity,
            reason=reason,
            message=message,
            meta=dict(meta) if isinstance(meta, Mapping) else ({} if meta is None else meta),
            duration_ms=duration_ms,
        )

    @property
    def is_passing(self) -> bool:
        return self.status is RuleStatus.PASS

    @property
    def is_warning(self) -> bool:
        return self.status is RuleStatus.WARN

    @property
    def is_blocking(self) -> bool:
        return self.status is RuleStatus.BLOCK

    @property
    def severity_weight(self) -> int:
        return self.severity.weight

    def to_dict(self) -> Dict[str, object]:
        """Return a JSON-serialisable representation."""

        return {
            "code": self.code,
            "status": self.status.value,
            "severity": self.severity.value,
            "reason": self.reason,
            "message": self.message,
            "meta": _thaw_json(self.meta),
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class ChainResult:
    """Aggregate verdict produced by one guardrail chain evaluation."""

    results: Tuple[Result, ...]
    final_status: RuleStatus
    blocked_by: Optional[str]
    total_duration_ms: float
    score_hint: float
    total_rails: int = 0

    @property
    def executed_rails(self) -> int:
        return len(self.results)

    @property
    def is_blocked(self) -> bool:
        return self.final_status is RuleStatus.BLOCK

    @property
    def warn_count(self) -> int:
        return sum(1 for result in self.results if result.is_warning)

    def codes(self) -> list[str]:
        return [result.code for result in self.results]

    def to_dict(self) -> Dict[str, object]:
        return {
            "results": [result.to_dict() for result in self.results],
            "final_status": self.final_status.value,
            "blocked_by": self.blocked_by,
            "total_rails": self.total_rails,
            "executed_rails": self.executed_rails,
            "total_duration_ms": self.total_duration_ms,
            "score_hint": self.score_hint,
        }


def derive_reason(message: str) -> str:
    """Turn a human message into a stable snake_case reason token."""

    if not message:
        return "passed"
    reason = _REASON_PATTERN.sub("_", message.lower()).strip("_")
    return reason or "check_failed"


def _freeze_json(value: Any, *, path: str) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"{path} contains a non-finite number")
        return value
    if isinstance(value, Mapping):
        frozen: Dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path} keys must be strings, got {key!r}")
            frozen[key] = _freeze_json(item, path=f"{path}.{key}")
        return MappingProxyType(frozen)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_json(item, path=f"{path}[{index}]") for index, item in enumerate(value))
    raise ValueError(f"{path} is not JSON-serialisable: {type(value).__name__}")


def _thaw_json(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw_json(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw_json(item) for item in value]
    return value


__all__ = ["ChainResult", "Result", "derive_reason"]
