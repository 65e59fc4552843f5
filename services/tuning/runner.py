"""Command-line interface for allocator sweeps, best-spread selection and auto-tuning."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from packages.allocation import Product, load_allocator
from packages.contracts import validate_report

from services.tuning.autotune import AutoTuner
from services.tuning.best_spread import BestSpreadSelector, ObjectiveWeights
from services.tuning.config import TuningConfig, load_config, resolve_config_path
from services.tuning.dataset import DEFAULT_BAND_COUNTS, banded_products, demo_products, products_from_payload
from services.tuning.grid import ConfigurationGrid
from services.tuning.sweep import SweepEngine

REPO_ROOT = Path(__file__).resolve().parents[2]
LOGGER_NAME = "transfergate.tuning.runner"

_AXIS_OPTIONS = {
    "reserve_percent": "reserves",
    "max_per_product": "max_per",
    "weight_method": "methods",
    "weight_gamma": "gammas",
    "dynamic_top_k": "dynamic_k",
}


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _load_products(args: argparse.Namespace, *, banded: bool = False) -> List[Product]:
    if args.products:
        payload = json.loads(Path(args.products).read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("products") or []
        if not isinstance(payload, list):
            raise ValueError("Products file must contain a list or an object with a 'products' list")
        return products_from_payload(payload)
    if banded:
        return banded_products(_parse_bands(args.bands), outlets=args.outlets or 8)
    return demo_products(args.count, outlets=args.outlets or 6)


def _parse_bands(raw: Optional[str]) -> Dict[str, int]:
    if not raw:
        return dict(DEFAULT_BAND_COUNTS)
    bands: Dict[str, int] = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        name, _, value = part.partition("=")
        try:
            bands[name.strip()] = max(0, int(value))
        except ValueError:
            raise ValueError(f"Invalid band count: {part.strip()!r}") from None
    return bands


def _build_grid(args: argparse.Namespace, config: TuningConfig) -> ConfigurationGrid:
    overrides = {axis: getattr(args, option) for axis, option in _AXIS_OPTIONS.items() if getattr(args, option)}
    return ConfigurationGrid.from_mapping(overrides, defaults=config.sweep.axes)


def _engine_kwargs(args: argparse.Namespace, config: TuningConfig) -> Dict[str, Any]:
    workers = args.workers if args.workers is not None else config.sweep.max_workers
    timeout = args.timeout if args.timeout is not None else config.sweep.run_timeout
    return {"max_workers": workers, "run_timeout": timeout}


def _max_runs(args: argparse.Namespace, config: TuningConfig) -> int:
    return max(1, args.max_runs) if args.max_runs is not None else config.sweep.max_runs


def _weights(args: argparse.Namespace, config: TuningConfig) -> ObjectiveWeights:
    defaults = config.objective
    return ObjectiveWeights(
        outlet_weight=defaults.outlet_weight if args.outlet_weight is None else args.outlet_weight,
        product_weight=defaults.product_weight if args.product_weight is None else args.product_weight,
        units_weight=defaults.units_weight if args.units_weight is None else args.units_weight,
    )


def _emit(kind: str, payload: Dict[str, object]) -> None:
    validate_report(kind, payload)
    print(json.dumps(payload, indent=2, sort_keys=True))


def cmd_sweep(args: argparse.Namespace, config: TuningConfig) -> int:
    logger = logging.getLogger(LOGGER_NAME)
    try:
        allocate = load_allocator(args.allocator)
        products = _load_products(args)
        engine = SweepEngine(allocate, logger=logger.getChild("sweep"), **_engine_kwargs(args, config))
        outcome = engine.run(products, _build_grid(args, config), _max_runs(args, config))
        _emit("sweep", outcome.to_dict())
    except Exception:
        logger.exception("Sweep failed")
        return 1
    return 0


def cmd_best_spread(args: argparse.Namespace, config: TuningConfig) -> int:
    logger = logging.getLogger(LOGGER_NAME)
    try:
        allocate = load_allocator(args.allocator)
        products = _load_products(args, banded=True)
        engine = SweepEngine(
            allocate,
            keep_allocation=True,
            logger=logger.getChild("sweep"),
            **_engine_kwargs(args, config),
        )
        outcome = engine.run(products, _build_grid(args, config), _max_runs(args, config))
        result = BestSpreadSelector(_weights(args, config)).select(outcome)
        _emit("best_spread", result.to_dict())
    except Exception:
        logger.exception("Best-spread selection failed")
        return 1
    return 0


def cmd_autotune(args: argparse.Namespace, config: TuningConfig) -> int:
    logger = logging.getLogger(LOGGER_NAME)
    try:
        allocate = load_allocator(args.allocator)
        products = _load_products(args)
        search_space = {
            name: value
            for name, value in (
                ("weight_gamma", args.gammas),
                ("softmax_tau", args.taus),
                ("reserve_percent", args.reserves),
                ("max_per_product", args.max_per),
                ("min_lines", args.min_lines_set),
            )
            if value
        }
        tuner = AutoTuner(
            allocate,
            methods=(args.methods or "power,softmax").split(","),
            search_space=search_space,
            logger=logger.getChild("sweep"),
            **_engine_kwargs(args, config),
        )
        result = tuner.run(products, max(1, args.max_runs) if args.max_runs is not None else None)
        _emit("autotune", result.to_dict())
    except Exception:
        logger.exception("Auto-tune failed")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv(REPO_ROOT / ".env")

    parser = argparse.ArgumentParser(description="TransferGate allocation tuning runner")
    parser.add_argument("command", choices=["sweep", "best-spread", "autotune"], help="Command to execute")
    parser.add_argument(
        "-c",
        "--config",
        help="Path to tuning config file (default: $TRANSFERGATE_TUNING_CONFIG or the bundled config.yaml)",
    )
    parser.add_argument("--allocator", required=True, help="Allocator reference as module:attribute")
    parser.add_argument("--products", help="JSON file with a product list; demo data is generated otherwise")
    parser.add_argument("--count", type=int, default=50, help="Demo products to generate (default: %(default)s)")
    parser.add_argument("--outlets", type=int, help="Outlets per generated product (default: 6, best-spread 8)")
    parser.add_argument("--bands", help="Best-spread band sizes, e.g. low=20,medium=20,high=20")
    parser.add_argument("--max-runs", type=int, help="Stop after this many grid points")
    parser.add_argument("--reserves", help="Comma separated reserve percentages")
    parser.add_argument("--max-per", help="Comma separated per-product caps")
    parser.add_argument("--methods", help="Comma separated weight methods (power, softmax)")
    parser.add_argument("--gammas", help="Comma separated power gammas")
    parser.add_argument("--dynamic-k", help="Comma separated dynamic top-k flags (0/1)")
    parser.add_argument("--taus", help="Comma separated softmax temperatures (autotune)")
    parser.add_argument("--min-lines-set", help="Comma separated minimum line counts (autotune)")
    parser.add_argument("--outlet-weight", type=float, help="Objective weight for outlet fairness")
    parser.add_argument("--product-weight", type=float, help="Objective weight for per-product fairness")
    parser.add_argument("--units-weight", type=float, help="Objective weight for normalised units")
    parser.add_argument("--workers", type=int, help="Evaluate grid points on this many threads")
    parser.add_argument("--timeout", type=float, help="Per-run timeout in seconds")
    args = parser.parse_args(argv)

    config_path = resolve_config_path(Path(args.config) if args.config else None)
    try:
        config = load_config(config_path)
    except ValueError:
        _configure_logging("INFO")
        logging.getLogger(LOGGER_NAME).exception("Invalid tuning configuration in %s", config_path)
        return 1
    _configure_logging(config.log_level)

    if args.command == "sweep":
        return cmd_sweep(args, config)
    if args.command == "best-spread":
        return cmd_best_spread(args, config)
    if args.command == "autotune":
        return cmd_autotune(args, config)
    parser.error(f"Unknown command {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
