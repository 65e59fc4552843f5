"""Schema contracts for sweep, selection, auto-tune and guardrail reports."""
from .validator import SCHEMA_DIR, SCHEMA_FILES, ContractError, get_validator, validate_report

__all__ = ["ContractError", "SCHEMA_DIR", "SCHEMA_FILES", "get_validator", "validate_report"]
