"""Configuration helpers for the tuning service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional, Tuple

import yaml

from .best_spread import ObjectiveWeights
from .grid import DEFAULT_AXES, parse_axis

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")
CONFIG_ENV_VAR = "TRANSFERGATE_TUNING_CONFIG"


@dataclass
class SweepSettings:
    """Grid and execution defaults for sweeps."""

    max_runs: int = 20
    max_workers: int = 1
    run_timeout: Optional[float] = None
    axes: Dict[str, Tuple[object, ...]] = field(default_factory=lambda: dict(DEFAULT_AXES))

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "SweepSettings":
        if not data:
            return cls()
        max_runs = _as_int(data.get("max_runs"), cls.max_runs, minimum=1)
        max_workers = _as_int(data.get("max_workers"), cls.max_workers, minimum=1)

        raw_timeout = data.get("run_timeout")
        run_timeout: Optional[float]
        if raw_timeout in (None, "", "null", "None"):
            run_timeout = None
        else:
            try:
                run_timeout = float(raw_timeout)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                run_timeout = None
            if run_timeout is not None and run_timeout <= 0:
                run_timeout = None

        raw_axes = _get_mapping(data, "axes")
        axes: Dict[str, Tuple[object, ...]] = {}
        for name, fallback in DEFAULT_AXES.items():
            axes[name] = parse_axis(name, raw_axes.pop(name, None), fallback)
        for name, raw in raw_axes.items():
            axes[str(name)] = parse_axis(str(name), raw, ())
        return cls(max_runs=max_runs, max_workers=max_workers, run_timeout=run_timeout, axes=axes)


@dataclass
class TuningConfig:
    """Top-level configuration for the tuning runner."""

    log_level: str = "INFO"
    sweep: SweepSettings = field(default_factory=SweepSettings)
    objective: ObjectiveWeights = field(default_factory=ObjectiveWeights)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "TuningConfig":
        log_level_value = data.get("log_level", cls.log_level)
        log_level = str(log_level_value).strip() or cls.log_level
        return cls(
            log_level=log_level.upper(),
            sweep=SweepSettings.from_mapping(_get_mapping(data, "sweep")),
            objective=ObjectiveWeights.from_mapping(_get_mapping(data, "objective")),
        )


def resolve_config_path(path: Path | None = None) -> Path:
    """Explicit path first, then ``TRANSFERGATE_TUNING_CONFIG``, then the bundled file."""

    if path is not None:
        return Path(path)
    override = os.getenv(CONFIG_ENV_VAR)
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> TuningConfig:
    """Load tuning configuration from YAML."""

    config_path = resolve_config_path(path)
    if not config_path.exists():
        return TuningConfig()
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Tuning configuration must be a mapping")
    return TuningConfig.from_mapping(data)


def _as_int(value: object, default: int, *, minimum: int = 0) -> int:
    if value in (None, ""):
        return default
    try:
        return max(minimum, int(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _get_mapping(data: Mapping[str, object], key: str) -> MutableMapping[str, object]:
    value = data.get(key)
    if isinstance(value, Mapping):
        return dict(value)
    return {}


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "SweepSettings",
    "TuningConfig",
    "load_config",
    "resolve_config_path",
]
