"""Parameter sweeps, best-spread selection and auto-tuning for the stock allocator."""
from .autotune import AutoTuner, AutoTuneResult, heuristic_score
from .best_spread import BestSpreadResult, BestSpreadSelector, ObjectiveWeights, ScoredRun, best_spread
from .config import TuningConfig, load_config
from .dataset import banded_products, demo_products, products_from_payload
from .grid import DEFAULT_AXES, ConfigurationGrid, parse_axis
from .metrics import RunMetrics, compute_metrics
from .sweep import RunRecord, SweepEngine, SweepOutcome, SweepSummary, sweep

__all__ = [
    "AutoTuneResult",
    "AutoTuner",
    "BestSpreadResult",
    "BestSpreadSelector",
    "ConfigurationGrid",
    "DEFAULT_AXES",
    "ObjectiveWeights",
    "RunMetrics",
    "RunRecord",
    "ScoredRun",
    "SweepEngine",
    "SweepOutcome",
    "SweepSummary",
    "TuningConfig",
    "banded_products",
    "best_spread",
    "compute_metrics",
    "demo_products",
    "heuristic_score",
    "load_config",
    "parse_axis",
    "products_from_payload",
    "sweep",
]
