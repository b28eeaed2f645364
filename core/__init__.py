"""Core infrastructure: config, run context, clock, errors, logging, utilities."""

from core import verbose
from core.clock import Clock, FakeClock, SystemClock
from core.config import Settings, SourceConfig, SourcesConfig, TierPolicy, load_config
from core.context import RunContext, RunKind, RunStatus, Stage
from core.errors import (
    BudgetExceeded,
    ConfigValidationError,
    HardGateRejected,
    NormalizationError,
    PipelineError,
    PrimaryScorerError,
    RateLimited,
    SourceError,
)
from core.ids import generate_run_id, key_segment, normalize_url

__all__ = [
    "BudgetExceeded",
    "Clock",
    "ConfigValidationError",
    "FakeClock",
    "HardGateRejected",
    "NormalizationError",
    "PipelineError",
    "PrimaryScorerError",
    "RateLimited",
    "RunContext",
    "RunKind",
    "RunStatus",
    "Settings",
    "SourceConfig",
    "SourceError",
    "SourcesConfig",
    "Stage",
    "SystemClock",
    "TierPolicy",
    "generate_run_id",
    "key_segment",
    "load_config",
    "normalize_url",
    "verbose",
]
