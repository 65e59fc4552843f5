from __future__ import annotations

import pytest

from packages.allocation import (
    AllocationFormatError,
    AllocationLine,
    allocation_plan,
    load_allocator,
    normalize_allocation,
)


def test_flat_allocations_keep_positive_rows() -> None:
    lines = normalize_allocation(
        {
            "allocations": {
                "P-1": [
                    {"outlet_id": "OUT-1", "quantity": 5},
                    {"outlet_id": "OUT-2", "quantity": 0},
                    {"outlet_id": "OUT-3", "quantity": "2.7"},
                ],
                "P-2": [{"outlet_id": None, "quantity": 1}],
            }
        }
    )

    assert lines == [
        AllocationLine("P-1", "OUT-1", 5),
        AllocationLine("P-1", "OUT-3", 2),
        AllocationLine("P-2", "", 1),
    ]


def test_decision_trace_is_used_when_allocations_are_empty() -> None:
    lines = normalize_allocation(
        {
            "allocations": {},
            "decision_trace": {
                "P-1": {
                    "outlets": [
                        {"outlet_id": "OUT-1", "reason": "allocated", "allocated_qty": 3},
                        {"outlet_id": "OUT-2", "reason": "capped", "allocated_qty": 9},
                        {"outlet_id": "OUT-3", "reason": "allocated", "allocated_qty": 0},
                    ]
                }
            },
        }
    )

    assert lines == [AllocationLine("P-1", "OUT-1", 3)]


def test_flat_allocations_win_over_trace() -> None:
    lines = normalize_allocation(
        {
            "allocations": {"P-1": [{"outlet_id": "OUT-9", "quantity": 1}]},
            "decision_trace": {"P-1": {"outlets": [{"outlet_id": "OUT-1", "reason": "allocated", "allocated_qty": 3}]}},
        }
    )

    assert [line.outlet_id for line in lines] == ["OUT-9"]


def test_empty_response_yields_no_lines() -> None:
    assert normalize_allocation({}) == []


@pytest.mark.parametrize(
    "response",
    [
        ["not", "a", "mapping"],
        {"allocations": ["rows"]},
        {"allocations": {"P-1": {"outlet_id": "OUT-1"}}},
        {"allocations": {"P-1": ["row"]}},
        {"decision_trace": ["rows"]},
    ],
)
def test_malformed_responses_raise(response: object) -> None:
    with pytest.raises(AllocationFormatError):
        normalize_allocation(response)  # type: ignore[arg-type]


def test_allocation_plan_merges_duplicate_rows() -> None:
    plan = allocation_plan(
        [
            AllocationLine("P-1", "OUT-1", 2),
            AllocationLine("P-1", "OUT-1", 3),
            AllocationLine("P-2", "OUT-2", 1),
        ]
    )

    assert plan == {"P-1": {"OUT-1": 5}, "P-2": {"OUT-2": 1}}


def test_load_allocator_resolves_functions_and_classes() -> None:
    func = load_allocator("fake_allocators:proportional_allocator")
    instance = load_allocator("fake_allocators:StaticAllocator")

    assert callable(func)
    assert instance.__class__.__name__ == "StaticAllocator"


@pytest.mark.parametrize("reference", ["fake_allocators", ":missing", "fake_allocators:"])
def test_load_allocator_rejects_bad_references(reference: str) -> None:
    with pytest.raises(ValueError, match="module:attribute"):
        load_allocator(reference)
