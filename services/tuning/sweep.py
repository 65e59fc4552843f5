"""Run the allocator across a parameter grid and collect per-run metrics."""
from __future__ import annotations

import copy
import itertools
import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from packages.allocation import AllocationConfig, Allocator, Product, mean, normalize_allocation

from .grid import ConfigurationGrid
from .metrics import RunMetrics, compute_metrics

LOGGER = logging.getLogger("transfergate.tuning.sweep")

RUN_OK = "ok"
RUN_FAILED = "failed"

Objective = Callable[[RunMetrics], float]


@dataclass(frozen=True)
class RunRecord:
    """Outcome of the allocator for a single grid point."""

    index: int
    params: AllocationConfig
    status: str = RUN_OK
    metrics: Optional[RunMetrics] = None
    score: Optional[float] = None
    error: Optional[str] = None
    allocation: Optional[Mapping[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == RUN_OK

    def to_dict(self, *, include_allocation: bool = False) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "index": self.index,
            "status": self.status,
            "params": self.params.to_dict(),
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "score": self.score,
            "error": self.error,
        }
        if include_allocation:
            payload["allocation"] = copy.deepcopy(dict(self.allocation)) if self.allocation is not None else None
        return payload


@dataclass(frozen=True)
class SweepSummary:
    """Aggregate fairness over the successful runs of a sweep."""

    runs: int
    failed_runs: int
    avg_fairness_outlet: float
    avg_fairness_product: float
    best: Optional[RunRecord] = None
    worst: Optional[RunRecord] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "runs": self.runs,
            "failed_runs": self.failed_runs,
            "avg_fairness_outlet": self.avg_fairness_outlet,
            "avg_fairness_product": self.avg_fairness_product,
            "best": self.best.to_dict() if self.best else None,
            "worst": self.worst.to_dict() if self.worst else None,
        }


@dataclass(frozen=True)
class SweepOutcome:
    """Runs in canonical grid order plus their summary."""

    runs: Tuple[RunRecord, ...]
    summary: SweepSummary

    @property
    def successful(self) -> List[RunRecord]:
        return [run for run in self.runs if run.ok]

    @property
    def failed(self) -> List[RunRecord]:
        return [run for run in self.runs if not run.ok]

    def ranked(self) -> List[RunRecord]:
        """Successful runs by descending score; ties keep grid order."""

        return sorted(
            self.successful,
            key=lambda run: (-(run.score if run.score is not None else float("-inf")), run.index),
        )

    def rescore(self, objective: Objective) -> "SweepOutcome":
        runs = tuple(
            replace(run, score=float(objective(run.metrics))) if run.ok and run.metrics else run
            for run in self.runs
        )
        return SweepOutcome(runs=runs, summary=summarize(runs))

    def to_dict(self) -> Dict[str, object]:
        return {
            "runs": [run.to_dict() for run in self.runs],
            "summary": self.summary.to_dict(),
        }


class SweepEngine:
    """Evaluate the allocator once per grid point.

    Every run receives its own deep copy of the dataset. Allocator failures,
    malformed responses and timeouts are recorded as failed runs and the sweep
    carries on. With ``max_workers > 1`` or a ``run_timeout`` the points are
    evaluated on a thread pool with at most ``max_workers`` runs in flight;
    each run is timed from the moment the allocator is called. Records are
    still returned in grid order.
    """

    def __init__(
        self,
        allocate: Allocator,
        *,
        objective: Optional[Objective] = None,
        max_workers: int = 1,
        run_timeout: Optional[float] = None,
        keep_allocation: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.allocate = allocate
        self.objective = objective
        self.max_workers = max(int(max_workers or 1), 1)
        self.run_timeout = run_timeout if run_timeout and run_timeout > 0 else None
        self.keep_allocation = keep_allocation
        self._logger = logger or LOGGER

    def run(
        self,
        dataset: Sequence[Product | Mapping[str, object]],
        grid: Iterable[AllocationConfig],
        max_runs: Optional[int] = None,
    ) -> SweepOutcome:
        if max_runs is not None and int(max_runs) < 1:
            raise ValueError(f"max_runs must be at least 1, got {max_runs!r}")
        products = coerce_dataset(dataset)
        configs = list(itertools.islice(grid, max_runs))

        if self.max_workers > 1 or self.run_timeout is not None:
            runs = self._run_pooled(products, configs)
        else:
            runs = [self._execute(index, config, products) for index, config in enumerate(configs)]

        if self.objective is not None:
            runs = [self._score(run) for run in runs]

        outcome = SweepOutcome(runs=tuple(runs), summary=summarize(runs))
        self._logger.info(
            "Sweep evaluated %d grid points over %d products (%d failed)",
            len(runs),
            len(products),
            outcome.summary.failed_runs,
        )
        return outcome

    def _run_pooled(self, products: List[Product], configs: List[AllocationConfig]) -> List[RunRecord]:
        pending = deque(enumerate(configs))
        records: Dict[int, RunRecord] = {}
        started: Dict[int, float] = {}
        in_flight: Dict[Future[RunRecord], Tuple[int, AllocationConfig]] = {}
        pools: List[ThreadPoolExecutor] = []
        pool: Optional[ThreadPoolExecutor] = None
        try:
            while pending or in_flight:
                while pending and len(in_flight) < self.max_workers:
                    if pool is None:
                        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="sweep")
                        pools.append(pool)
                    index, config = pending.popleft()
                    future = pool.submit(self._timed_execute, index, config, products, started)
                    in_flight[future] = (index, config)

                done, _ = wait(
                    list(in_flight),
                    timeout=self._next_wait(in_flight, started),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    index, _ = in_flight.pop(future)
                    records[index] = future.result()
                if done or self.run_timeout is None:
                    continue

                now = time.monotonic()
                for future, (index, config) in list(in_flight.items()):
                    began = started.get(index)
                    if began is None or now - began < self.run_timeout:
                        continue
                    del in_flight[future]
                    records[index] = self._failed(index, config, f"timed out after {self.run_timeout}s")
                    # The stuck thread keeps its pool; later points start on a fresh one.
                    pool = None
            return [records[index] for index in range(len(configs))]
        finally:
            for executor in pools:
                executor.shutdown(wait=False, cancel_futures=True)

    def _next_wait(
        self,
        in_flight: Mapping[Future[RunRecord], Tuple[int, AllocationConfig]],
        started: Mapping[int, float],
    ) -> Optional[float]:
        if self.run_timeout is None:
            return None
        now = time.monotonic()
        remaining = [
            self.run_timeout - (now - started[index]) if index in started else self.run_timeout
            for index, _ in in_flight.values()
        ]
        return max(0.0, min(remaining)) if remaining else None

    def _timed_execute(
        self, index: int, config: AllocationConfig, products: List[Product], started: Dict[int, float]
    ) -> RunRecord:
        started[index] = time.monotonic()
        return self._execute(index, config, products)

    def _execute(self, index: int, config: AllocationConfig, products: List[Product]) -> RunRecord:
        try:
            response = self.allocate(config, copy.deepcopy(products))
            lines = normalize_allocation(response)
        except Exception as exc:
            return self._failed(index, config, f"{type(exc).__name__}: {exc}")
        metrics = compute_metrics(lines)
        self._logger.debug(
            "Run %d %s lines=%d units=%d fairness_outlet=%.6f",
            index,
            config.weight_method,
            metrics.lines,
            metrics.units,
            metrics.fairness_outlet,
        )
        return RunRecord(
            index=index,
            params=config,
            metrics=metrics,
            allocation=copy.deepcopy(dict(response)) if self.keep_allocation else None,
        )

    def _failed(self, index: int, config: AllocationConfig, error: str) -> RunRecord:
        self._logger.warning("Sweep run %d failed: %s", index, error)
        return RunRecord(index=index, params=config, status=RUN_FAILED, error=error)

    def _score(self, run: RunRecord) -> RunRecord:
        if not run.ok or run.metrics is None or self.objective is None:
            return run
        return replace(run, score=float(self.objective(run.metrics)))


def sweep(
    dataset: Sequence[Product | Mapping[str, object]],
    axis_values: Mapping[str, Sequence[object]],
    objective: Optional[Objective],
    max_runs: Optional[int],
    allocate: Allocator,
    **engine_kwargs: Any,
) -> SweepOutcome:
    """Sweep ``allocate`` over the Cartesian product of ``axis_values``."""

    engine = SweepEngine(allocate, objective=objective, **engine_kwargs)
    return engine.run(dataset, ConfigurationGrid(axis_values), max_runs)


def summarize(runs: Sequence[RunRecord]) -> SweepSummary:
    successful = [(run, run.metrics) for run in runs if run.ok and run.metrics is not None]
    best: Optional[Tuple[RunRecord, RunMetrics]] = None
    worst: Optional[Tuple[RunRecord, RunMetrics]] = None
    for run, metrics in successful:
        if best is None or metrics.fairness_outlet > best[1].fairness_outlet:
            best = (run, metrics)
        if worst is None or metrics.fairness_outlet < worst[1].fairness_outlet:
            worst = (run, metrics)
    return SweepSummary(
        runs=len(runs),
        failed_runs=len(runs) - len(successful),
        avg_fairness_outlet=mean([metrics.fairness_outlet for _, metrics in successful]),
        avg_fairness_product=mean([metrics.fairness_product_avg for _, metrics in successful]),
        best=best[0] if best else None,
        worst=worst[0] if worst else None,
    )


def coerce_dataset(dataset: Sequence[Product | Mapping[str, object]]) -> List[Product]:
    products: List[Product] = []
    for entry in dataset or []:
        if isinstance(entry, Product):
            products.append(entry)
        elif isinstance(entry, Mapping):
            products.append(Product.from_mapping(entry))
        else:
            raise ValueError(f"Unsupported dataset entry: {entry!r}")
    return products


__all__ = [
    "Objective",
    "RUN_FAILED",
    "RUN_OK",
    "RunRecord",
    "SweepEngine",
    "SweepOutcome",
    "SweepSummary",
    "coerce_dataset",
    "summarize",
    "sweep",
]
