"""Configuration helpers for the policy service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, MutableMapping

import yaml

from packages.guardrail import GuardrailThresholds

from .gate import GateThresholds

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")
CONFIG_ENV_VAR = "TRANSFERGATE_POLICY_CONFIG"


@dataclass
class PolicyConfig:
    """Top-level configuration for the policy runner."""

    log_level: str = "INFO"
    guardrails: GuardrailThresholds = field(default_factory=GuardrailThresholds)
    gate: GateThresholds = field(default_factory=GateThresholds)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "PolicyConfig":
        log_level_value = data.get("log_level", cls.log_level)
        log_level = str(log_level_value).strip() or cls.log_level
        return cls(
            log_level=log_level.upper(),
            guardrails=GuardrailThresholds.from_mapping(_get_mapping(data, "guardrails")),
            gate=GateThresholds.from_mapping(_get_mapping(data, "gate")),
        )


def resolve_config_path(path: Path | None = None) -> Path:
    if path is not None:
        return Path(path)
    override = os.getenv(CONFIG_ENV_VAR)
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> PolicyConfig:
    """Load policy configuration from YAML."""

    config_path = resolve_config_path(path)
    if not config_path.exists():
        return PolicyConfig()
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Policy configuration must be a mapping")
    return PolicyConfig.from_mapping(data)


def _get_mapping(data: Mapping[str, object], key: str) -> MutableMapping[str, object]:
    value = data.get(key)
    if isinstance(value, Mapping):
        return dict(value)
    return {}


__all__ = ["CONFIG_ENV_VAR", "DEFAULT_CONFIG_PATH", "PolicyConfig", "load_config", "resolve_config_path"]
