"""Pipeline error taxonomy.

Source- and record-level errors are isolated by the stage that raises them;
only ConfigValidationError is fatal, and only at startup.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigValidationError(PipelineError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class BudgetExceeded(PipelineError):
    """A source used up its daily request budget. Recoverable next day."""

    def __init__(self, source: str, used: int, budget: int):
        super().__init__(f"{source}: daily budget exhausted ({used}/{budget})")
        self.source = source
        self.used = used
        self.budget = budget


class RateLimited(PipelineError):
    """The source answered with a rate-limit response (HTTP 429)."""

    def __init__(self, source: str, retry_after: float | None = None):
        super().__init__(f"{source}: rate limited")
        self.source = source
        self.retry_after = retry_after


class SourceError(PipelineError):
    """Any other failure fetching or decoding a source page."""

    def __init__(self, source: str, message: str, status_code: int | None = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class NormalizationError(PipelineError):
    """A raw posting cannot become a canonical job (missing title or company)."""


class HardGateRejected(PipelineError):
    """A canonical job failed a non-negotiable eligibility gate."""

    def __init__(self, gate: str, detail: str = ""):
        super().__init__(f"{gate}: {detail}" if detail else gate)
        self.gate = gate
        self.detail = detail


class PrimaryScorerError(PipelineError):
    """The model-assisted scorer failed, timed out, or returned garbage."""
