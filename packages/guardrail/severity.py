"""Status and severity levels shared by guardrail results."""
from __future__ import annotations

from enum import Enum
from typing import Dict


class RuleStatus(str, Enum):
    """Outcome of a single guardrail evaluation."""

    PASS = "PASS"
    WARN = "WARN"
    BLOCK = "BLOCK"

    @classmethod
    def coerce(cls, value: object) -> "RuleStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Invalid status: {value!r}") from None


class Severity(str, Enum):
    """Importance of a guardrail result, weighted for scoring and sorting."""

    INFO = "INFO"
    WARN = "WARN"
    BLOCK = "BLOCK"

    @property
    def weight(self) -> int:
        return _WEIGHTS[self]

    @classmethod
    def is_valid(cls, value: object) -> bool:
        if isinstance(value, cls):
            return True
        return isinstance(value, str) and value in cls._value2member_map_

    @classmethod
    def coerce(cls, value: object) -> "Severity":
        if isinstance(value, cls):
            return value
        if not cls.is_valid(value):
            raise ValueError(f"Invalid severity: {value!r}")
        return cls(value)

    @classmethod
    def from_status(cls, status: RuleStatus | str) -> "Severity":
        return _STATUS_SEVERITY[RuleStatus.coerce(status)]


_WEIGHTS: Dict[Severity, int] = {
    Severity.INFO: 10,
    Severity.WARN: 50,
    Severity.BLOCK: 100,
}

_STATUS_SEVERITY: Dict[RuleStatus, Severity] = {
    RuleStatus.PASS: Severity.INFO,
    RuleStatus.WARN: Severity.WARN,
    RuleStatus.BLOCK: Severity.BLOCK,
}


__all__ = ["RuleStatus", "Severity"]
