"""Deterministic execution of guardrails against a candidate action."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from .result import ChainResult, Result
from .severity import RuleStatus

LOGGER = logging.getLogger("transfergate.guardrail.chain")

WARN_PENALTY = 0.3
Outcome = Union[Mapping[str, Any], Result]


@runtime_checkable
class Guardrail(Protocol):
    """A single safety check identified by a stable code."""

    code: str

    def evaluate(self, context: Mapping[str, Any]) -> Outcome:
        ...


class GuardrailExecutionError(RuntimeError):
    """Raised when a guardrail fails while evaluating a context."""

    def __init__(self, code: str, original: BaseException) -> None:
        super().__init__(f"Guardrail {code} failed: {original}")
        self.code = code
        self.original = original


class GuardrailChain:
    """Run registered guardrails in code order and aggregate their verdict.

    Rails execute in ascending order of ``code`` regardless of registration
    order. Execution stops at the first ``BLOCK``; rails after it are neither
    run nor timed. A rail that raises aborts the evaluation with
    :class:`GuardrailExecutionError`.
    """

    def __init__(
        self,
        rails: Iterable[Guardrail] = (),
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._rails: List[Guardrail] = []
        self._logger = logger or LOGGER
        for rail in rails:
            self.register(rail)

    def register(self, rail: Guardrail) -> None:
        code = _rail_code(rail)
        if any(_rail_code(existing) == code for existing in self._rails):
            raise ValueError(f"Guardrail code {code!r} is already registered")
        self._rails.append(rail)

    @property
    def rails(self) -> Sequence[Guardrail]:
        return tuple(sorted(self._rails, key=_rail_code))

    def __len__(self) -> int:
        return len(self._rails)

    def evaluate(self, context: Mapping[str, Any]) -> ChainResult:
        rails = self.rails
        results: List[Result] = []
        blocked_by: Optional[str] = None

        for rail in rails:
            code = _rail_code(rail)
            started = time.perf_counter()
            try:
                outcome = rail.evaluate(context)
            except Exception as exc:
                self._logger.error("Guardrail %s raised during evaluation; aborting chain", code)
                raise GuardrailExecutionError(code, exc) from exc
            duration_ms = max((time.perf_counter() - started) * 1000.0, 0.0)

            result = Result.from_outcome(outcome, code=code, duration_ms=duration_ms)
            results.append(result)

            if result.is_blocking:
                blocked_by = result.code
                _audit(
                    self._logger,
                    logging.WARNING,
                    "guardrail.chain.blocked",
                    code=result.code,
                    reason=result.reason,
                    message=result.message,
                )
                break

        final_status = _final_status(results)
        chain_result = ChainResult(
            results=tuple(results),
            final_status=final_status,
            blocked_by=blocked_by,
            total_duration_ms=sum(result.duration_ms for result in results),
            score_hint=score_hint(results, final_status),
            total_rails=len(rails),
        )
        _audit(
            self._logger,
            logging.INFO,
            "guardrail.chain.result",
            final_status=final_status.value,
            blocked_by=blocked_by,
            total_rails=chain_result.total_rails,
            executed_rails=chain_result.executed_rails,
            total_duration_ms=chain_result.total_duration_ms,
            score_hint=chain_result.score_hint,
        )
        return chain_result


def score_hint(results: Sequence[Result], final_status: RuleStatus) -> float:
    """Confidence in ``[0, 1]``: zero when blocked, reduced by each warning."""

    if final_status is RuleStatus.BLOCK:
        return 0.0
    warn_count = sum(1 for result in results if result.is_warning)
    return round(max(0.0, 1.0 - WARN_PENALTY * warn_count), 6)


def _final_status(results: Sequence[Result]) -> RuleStatus:
    if any(result.is_blocking for result in results):
        return RuleStatus.BLOCK
    if any(result.is_warning for result in results):
        return RuleStatus.WARN
    return RuleStatus.PASS


def _rail_code(rail: Guardrail) -> str:
    code = getattr(rail, "code", None)
    if not isinstance(code, str) or not code.strip():
        raise ValueError(f"Guardrail {rail!r} must expose a non-empty code")
    return code.strip()


def _audit(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    logger.log(level, "%s %s", event, json.dumps(payload, sort_keys=True), extra={"audit": payload})


__all__ = ["Guardrail", "GuardrailChain", "GuardrailExecutionError", "WARN_PENALTY", "score_hint"]
