from __future__ import annotations

import itertools

import pytest

from services.tuning.grid import DEFAULT_AXES, ConfigurationGrid, parse_axis


def test_default_grid_iterates_axes_outer_to_inner() -> None:
    grid = ConfigurationGrid(DEFAULT_AXES)
    points = grid.points()

    assert len(grid) == 3 * 2 * 2 * 2 * 2
    expected = list(itertools.product(*DEFAULT_AXES.values()))
    assert [
        (p.reserve_percent, p.max_per_product, p.weight_method, p.weight_gamma, p.dynamic_top_k) for p in points
    ] == expected


def test_points_truncate_to_canonical_prefix() -> None:
    grid = ConfigurationGrid(DEFAULT_AXES)

    assert grid.points(5) == grid.points()[:5]
    assert grid.points(5)[-1].dynamic_top_k == 0
    assert grid.points(5)[-1].weight_method == "softmax"


def test_base_values_apply_to_every_point() -> None:
    grid = ConfigurationGrid({"weight_gamma": [1.2, 2.0]}, base={"min_lines": 5, "weight_method": "power"})

    assert [point.min_lines for point in grid] == [5, 5]
    assert [point.weight_gamma for point in grid] == [1.2, 2.0]


@pytest.mark.parametrize(
    "axes, base, match",
    [
        ({"colour": [1]}, None, "Unknown sweep axis"),
        ({"weight_gamma": []}, None, "no values"),
        ({"weight_gamma": [1.0]}, {"weight_gamma": 2.0}, "both fixed and swept"),
        ({"weight_gamma": [1.0]}, {"colour": "red"}, "Unknown allocation parameters"),
    ],
)
def test_grid_rejects_invalid_axes(axes: dict, base: dict | None, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        ConfigurationGrid(axes, base=base)


def test_from_mapping_parses_csv_and_keeps_default_order() -> None:
    grid = ConfigurationGrid.from_mapping({"weight_method": "softmax, linear", "reserve_percent": "0.1,0.3"})

    assert list(grid.axes) == list(DEFAULT_AXES)
    assert grid.axes["reserve_percent"] == (0.1, 0.3)
    assert grid.axes["weight_method"] == ("softmax",)
    assert grid.axes["max_per_product"] == DEFAULT_AXES["max_per_product"]


def test_parse_axis_coerces_per_axis() -> None:
    assert parse_axis("max_per_product", "10, 12.0", ()) == (10, 12)
    assert parse_axis("dynamic_top_k", "1,false,true", ()) == (1, 0, 1)
    assert parse_axis("weight_method", "linear", ("power",)) == ("power",)
    assert parse_axis("weight_gamma", "", (1.8,)) == (1.8,)


def test_parse_axis_rejects_non_numeric_values() -> None:
    with pytest.raises(ValueError, match="Invalid numeric axis value"):
        parse_axis("reserve_percent", "0.1,lots", ())
