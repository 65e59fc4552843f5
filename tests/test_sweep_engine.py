from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import pytest

from fake_allocators import (
    BlockingAllocator,
    StaticAllocator,
    fragile_allocator,
    malformed_allocator,
    mutating_allocator,
    proportional_allocator,
    trace_allocator,
)
from packages.allocation import AllocationConfig, AllocationLine, Product
from services.tuning.dataset import demo_products
from services.tuning.grid import DEFAULT_AXES, ConfigurationGrid
from services.tuning.metrics import compute_metrics
from services.tuning.sweep import RUN_FAILED, SweepEngine, sweep


def _products() -> List[Product]:
    return demo_products(12, outlets=5)


def test_sweep_truncates_to_first_canonical_points() -> None:
    seen: List[AllocationConfig] = []

    def recording(config: AllocationConfig, products: Sequence[Product]) -> Dict[str, Any]:
        seen.append(config)
        return proportional_allocator(config, products)

    outcome = sweep(_products(), DEFAULT_AXES, None, 7, recording)

    assert len(outcome.runs) == 7
    assert outcome.summary.runs == 7
    assert seen == ConfigurationGrid(DEFAULT_AXES).points(7)
    assert [run.index for run in outcome.runs] == list(range(7))


def test_runs_without_objective_have_no_score() -> None:
    outcome = sweep(_products(), {"weight_gamma": [1.6]}, None, None, proportional_allocator)

    assert outcome.runs[0].score is None
    assert outcome.runs[0].metrics is not None
    assert outcome.runs[0].metrics.lines > 0


def test_objective_scores_successful_runs() -> None:
    outcome = sweep(_products(), {"weight_gamma": [1.6, 1.8]}, lambda metrics: metrics.units / 10, None, proportional_allocator)

    assert all(run.score == run.metrics.units / 10 for run in outcome.runs)


def test_each_run_receives_its_own_dataset_copy() -> None:
    products = _products()
    snapshot = [product.to_dict() for product in products]

    outcome = sweep(products, {"weight_gamma": [1.8, 1.8]}, None, None, mutating_allocator)

    assert [product.to_dict() for product in products] == snapshot
    assert outcome.runs[0].metrics == outcome.runs[1].metrics


def test_allocator_failures_are_recorded_and_sweep_continues(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="transfergate.tuning.sweep"):
        outcome = sweep(_products(), {"reserve_percent": [0.2, 0.25, 0.15]}, None, None, fragile_allocator)

    statuses = [run.status for run in outcome.runs]
    assert statuses == ["ok", RUN_FAILED, "ok"]
    assert outcome.summary.failed_runs == 1
    assert outcome.summary.runs == 3
    assert "reserve too high" in (outcome.runs[1].error or "")
    assert outcome.runs[1].metrics is None
    assert any("Sweep run 1 failed" in record.getMessage() for record in caplog.records)


def test_malformed_output_becomes_failed_run() -> None:
    outcome = sweep(_products(), {"weight_gamma": [1.6]}, None, None, malformed_allocator)

    assert outcome.runs[0].status == RUN_FAILED
    assert "AllocationFormatError" in (outcome.runs[0].error or "")
    assert outcome.summary.best is None
    assert outcome.summary.avg_fairness_outlet == 0.0


def test_decision_trace_output_matches_flat_output() -> None:
    flat = sweep(_products(), {"weight_gamma": [1.8]}, None, None, proportional_allocator)
    traced = sweep(_products(), {"weight_gamma": [1.8]}, None, None, trace_allocator)

    assert flat.runs[0].metrics == traced.runs[0].metrics


def test_summary_reports_best_and_worst_outlet_fairness() -> None:
    outcome = sweep(_products(), DEFAULT_AXES, None, 8, proportional_allocator)
    fairness = [run.metrics.fairness_outlet for run in outcome.runs if run.metrics]

    assert outcome.summary.best is not None and outcome.summary.worst is not None
    assert outcome.summary.best.metrics.fairness_outlet == max(fairness)
    assert outcome.summary.worst.metrics.fairness_outlet == min(fairness)
    assert outcome.summary.best.index == fairness.index(max(fairness))


def test_ties_keep_first_encountered_run() -> None:
    allocator = StaticAllocator()
    outcome = sweep(_products(), {"weight_gamma": [1.6, 1.8, 2.0]}, None, None, allocator)

    assert allocator.calls == 3
    assert outcome.summary.best.index == 0
    assert outcome.summary.worst.index == 0


def test_empty_dataset_and_zero_lines_are_neutral() -> None:
    outcome = sweep([], {"weight_gamma": [1.8]}, None, None, proportional_allocator)

    metrics = outcome.runs[0].metrics
    assert metrics is not None
    assert metrics.lines == 0
    assert metrics.units_per_line == 0.0
    assert metrics.fairness_outlet == 0.0


def test_invalid_max_runs_is_rejected() -> None:
    with pytest.raises(ValueError, match="max_runs"):
        sweep(_products(), DEFAULT_AXES, None, 0, proportional_allocator)


def test_parallel_sweep_preserves_canonical_order() -> None:
    serial = sweep(_products(), DEFAULT_AXES, None, 10, proportional_allocator)
    parallel = sweep(_products(), DEFAULT_AXES, None, 10, proportional_allocator, max_workers=4)

    assert [run.params for run in parallel.runs] == [run.params for run in serial.runs]
    assert [run.metrics for run in parallel.runs] == [run.metrics for run in serial.runs]


def test_timeouts_are_recorded_as_failed_runs() -> None:
    allocator = BlockingAllocator()
    try:
        outcome = sweep(
            _products(),
            {"weight_method": ["power", "softmax"]},
            None,
            None,
            allocator,
            max_workers=2,
            run_timeout=0.2,
        )
    finally:
        allocator.release.set()

    assert outcome.runs[0].status == "ok"
    assert outcome.runs[1].status == RUN_FAILED
    assert "timed out" in (outcome.runs[1].error or "")


def test_hung_run_does_not_starve_queued_points_on_single_worker() -> None:
    allocator = BlockingAllocator()
    try:
        outcome = sweep(
            _products(),
            {"weight_method": ["softmax", "power", "power"]},
            None,
            None,
            allocator,
            max_workers=1,
            run_timeout=0.2,
        )
    finally:
        allocator.release.set()

    assert [run.status for run in outcome.runs] == [RUN_FAILED, "ok", "ok"]
    assert outcome.runs[0].error == "timed out after 0.2s"
    assert outcome.runs[1].metrics is not None and outcome.runs[1].metrics.lines > 0
    assert outcome.runs[1].metrics == outcome.runs[2].metrics
    assert outcome.summary.failed_runs == 1


def test_keep_allocation_retains_payload() -> None:
    engine = SweepEngine(StaticAllocator(), keep_allocation=True)
    outcome = engine.run(_products(), ConfigurationGrid({"weight_gamma": [1.8]}))

    payload = outcome.runs[0].to_dict(include_allocation=True)
    assert payload["allocation"]["allocations"]["P-1"][0]["quantity"] == 4
    assert "allocation" not in outcome.runs[0].to_dict()


def test_ranked_orders_by_score_then_index() -> None:
    outcome = sweep(_products(), {"weight_gamma": [1.6, 1.8, 2.0]}, lambda metrics: 1.0, None, proportional_allocator)

    assert [run.index for run in outcome.ranked()] == [0, 1, 2]
    rescored = outcome.rescore(lambda metrics: float(metrics.units))
    assert rescored.ranked()[0].score == max(run.metrics.units for run in outcome.runs)


def test_metrics_skip_blank_outlets_for_fairness() -> None:
    metrics = compute_metrics(
        [
            AllocationLine("P-1", "OUT-1", 4),
            AllocationLine("P-1", "OUT-2", 4),
            AllocationLine("P-2", "", 6),
            AllocationLine("P-2", "OUT-1", 0),
        ]
    )

    assert metrics.lines == 3
    assert metrics.units == 14
    assert metrics.outlets_affected == 2
    assert metrics.fairness_outlet == 1.0
    assert metrics.fairness_product_avg == 1.0
    assert metrics.units_per_line == 4.67
