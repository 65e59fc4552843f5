"""Command-line interface for guardrail evaluation and plan review."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping

from dotenv import load_dotenv

from packages.allocation import allocation_plan, normalize_allocation
from packages.contracts import validate_report
from packages.guardrail import build_default_chain

from services.policy.config import PolicyConfig, load_config, resolve_config_path
from services.policy.gate import ActionGate, GateDecision, plan_contexts

REPO_ROOT = Path(__file__).resolve().parents[2]
LOGGER_NAME = "transfergate.policy.runner"


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _read_mapping(path: str, label: str) -> Mapping[str, Any]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError(f"{label} file must contain a JSON object")
    return data


def _build_gate(config: PolicyConfig, logger: logging.Logger) -> ActionGate:
    chain = build_default_chain(config.guardrails, logger=logger.getChild("chain"))
    return ActionGate(chain, config.gate, logger=logger.getChild("gate"))


def _report(decision: GateDecision) -> Dict[str, object]:
    payload = decision.verdict.to_dict()
    payload["decision"] = decision.to_dict()
    return validate_report("chain_result", payload)  # type: ignore[return-value]


def cmd_evaluate(args: argparse.Namespace, config: PolicyConfig) -> int:
    logger = logging.getLogger(LOGGER_NAME)
    try:
        context = _read_mapping(args.context, "Context")
        decision = _build_gate(config, logger).review(context)
        report = _report(decision)
    except Exception:
        logger.exception("Guardrail evaluation failed")
        return 1
    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


def cmd_review_plan(args: argparse.Namespace, config: PolicyConfig) -> int:
    logger = logging.getLogger(LOGGER_NAME)
    try:
        allocation = _read_mapping(args.plan, "Plan")
        signals = _read_mapping(args.signals, "Signals") if args.signals else {}
        plan = allocation_plan(normalize_allocation(allocation))
        contexts = plan_contexts(plan, signals.get("products") or {}, base=signals.get("defaults") or {})
        gate = _build_gate(config, logger)
        reports: List[Dict[str, object]] = []
        for context, decision in zip(contexts, gate.review_many(contexts)):
            report = _report(decision)
            report["product_id"] = context["product_id"]
            report["outlet_id"] = context["outlet_id"]
            report["quantity"] = context["quantity"]
            reports.append(report)
    except Exception:
        logger.exception("Plan review failed")
        return 1
    logger.info("Reviewed %d plan lines", len(reports))
    print(json.dumps(reports, indent=2, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv(REPO_ROOT / ".env")

    parser = argparse.ArgumentParser(description="TransferGate policy runner")
    parser.add_argument("command", choices=["evaluate", "review-plan"], help="Command to execute")
    parser.add_argument(
        "-c",
        "--config",
        help="Path to policy config file (default: $TRANSFERGATE_POLICY_CONFIG or the bundled config.yaml)",
    )
    parser.add_argument("--context", help="JSON file holding one guardrail context (evaluate)")
    parser.add_argument("--plan", help="JSON file holding an allocator response (review-plan)")
    parser.add_argument(
        "--signals",
        help="JSON file with 'defaults' and per-product 'products' signals (review-plan)",
    )
    args = parser.parse_args(argv)

    if args.command == "evaluate" and not args.context:
        parser.error("evaluate requires --context")
    if args.command == "review-plan" and not args.plan:
        parser.error("review-plan requires --plan")

    config_path = resolve_config_path(Path(args.config) if args.config else None)
    try:
        config = load_config(config_path)
    except ValueError:
        _configure_logging("INFO")
        logging.getLogger(LOGGER_NAME).exception("Invalid policy configuration in %s", config_path)
        return 1
    _configure_logging(config.log_level)

    if args.command == "evaluate":
        return cmd_evaluate(args, config)
    if args.command == "review-plan":
        return cmd_review_plan(args, config)
    parser.error(f"Unknown command {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
