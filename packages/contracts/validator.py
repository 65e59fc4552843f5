"""JSON Schema validation for the documents the runners emit."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping

from jsonschema import Draft202012Validator, ValidationError as JsonSchemaValidationError

REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_DIR = REPO_ROOT / "contracts" / "schemas"
SCHEMA_FILES: Dict[str, str] = {
    "sweep": "sweep.schema.json",
    "best_spread": "best_spread.schema.json",
    "autotune": "autotune.schema.json",
    "chain_result": "chain_result.schema.json",
}


class ContractError(ValueError):
    """Raised when a document does not match its published schema."""


@lru_cache(maxsize=None)
def get_validator(kind: str) -> Draft202012Validator:
    try:
        filename = SCHEMA_FILES[kind]
    except KeyError:
        raise ValueError(f"Unknown contract: {kind!r}") from None
    with (SCHEMA_DIR / filename).open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def validate_report(kind: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Validate ``payload`` against the ``kind`` schema and return it unchanged."""

    try:
        get_validator(kind).validate(payload)
    except JsonSchemaValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ContractError(f"{kind} report failed schema validation at {location}: {exc.message}") from exc
    return payload


__all__ = ["ContractError", "SCHEMA_DIR", "SCHEMA_FILES", "get_validator", "validate_report"]
