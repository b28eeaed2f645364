"""Per-run bookkeeping for ingestion batches and delivery cycles.

One RunContext is booted per run and handed to every stage. A stage opens
and closes its StageLog and bumps the RunMetrics counters it owns; the
finished context is what the API and the daily entrypoint report.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.config import Settings, SourcesConfig, snapshot_config
from core.ids import generate_run_id


class RunKind(str, Enum):
    INGEST = "ingest"
    DELIVER = "deliver"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Stage(str, Enum):
    """Named steps. An ingestion batch runs the first five in order."""

    PLAN = "plan_sources"
    COLLECT = "collect"
    NORMALIZE = "normalize"
    FILTER = "filter"
    STORE = "store"
    DELIVER = "deliver"


class RunMetrics(BaseModel):
    """Counters bumped by the stages.

    Both run kinds share the model; ``for_kind`` picks the counters that
    mean something for one of them.
    """

    # Sourcing
    num_fetch_tasks: int = 0
    num_pages_fetched: int = 0
    num_raw_postings: int = 0
    num_sources_halted: int = 0

    # Normalization, gates and storage
    num_cache_hits: int = 0
    num_normalized: int = 0
    num_normalization_failed: int = 0
    num_batch_duplicates: int = 0
    num_filtered: int = 0
    num_inserted: int = 0
    num_updated: int = 0

    # Delivery
    num_users_evaluated: int = 0
    num_users_delivered: int = 0
    num_users_skipped: int = 0
    num_fallback_used: int = 0
    num_matches_delivered: int = 0

    def for_kind(self, kind: RunKind) -> dict[str, int]:
        delivery = kind == RunKind.DELIVER
        return {
            name: value
            for name, value in self.model_dump().items()
            if name.startswith(("num_users_", "num_fallback_", "num_matches_")) == delivery
        }


class StageLog(BaseModel):
    """Timing, item counts and errors of one stage."""

    stage: Stage
    started_at: datetime
    completed_at: datetime | None = None
    status: str = "running"
    items_in: int = 0
    items_out: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float | None = None

    @property
    def is_open(self) -> bool:
        return self.completed_at is None


class RunContext(BaseModel):
    """State of one run, passed to every stage."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    kind: RunKind = RunKind.INGEST
    started_at: datetime
    status: RunStatus = RunStatus.PENDING
    completed_at: datetime | None = None

    settings: Settings
    sources: SourcesConfig

    metrics: RunMetrics = Field(default_factory=RunMetrics)
    stage_logs: list[StageLog] = Field(default_factory=list)

    config_snapshot_path: Path | None = None

    @classmethod
    def boot(
        cls,
        settings: Settings,
        sources: SourcesConfig,
        run_id: str | None = None,
        write_snapshot: bool = True,
        kind: RunKind = RunKind.INGEST,
    ) -> RunContext:
        """Start a run, writing the redacted config it runs with unless told not to."""
        started_at = datetime.now(UTC)
        run_id = run_id or generate_run_id(kind.value, started_at)

        snapshot_path: Path | None = None
        if write_snapshot:
            snapshot_dir = Path(settings.config_snapshots_dir)
            snapshot_dir.mkdir(parents=True, exist_ok=True)
            snapshot_path = snapshot_dir / f"{run_id}_config.json"
            config_data = snapshot_config(settings, sources)
            config_data.update(run_id=run_id, kind=kind.value, started_at=started_at.isoformat())
            with open(snapshot_path, "w") as f:
                json.dump(config_data, f, indent=2, default=str)

        return cls(
            run_id=run_id,
            kind=kind,
            started_at=started_at,
            status=RunStatus.RUNNING,
            settings=settings,
            sources=sources,
            config_snapshot_path=snapshot_path,
        )

    def start_stage(self, stage: Stage, items_in: int = 0) -> StageLog:
        log = StageLog(stage=stage, started_at=datetime.now(UTC), items_in=items_in)
        self.stage_logs.append(log)
        return log

    def complete_stage(
        self,
        stage: Stage,
        items_out: int = 0,
        errors: list[str] | None = None,
        status: str = "completed",
    ) -> StageLog | None:
        """Close the most recent open log for ``stage``; None if nothing is open."""
        for log in reversed(self.stage_logs):
            if log.stage == stage and log.is_open:
                log.completed_at = datetime.now(UTC)
                log.items_out = items_out
                log.status = status
                if errors:
                    log.errors = list(errors)
                log.duration_seconds = (log.completed_at - log.started_at).total_seconds()
                return log
        return None

    def complete_run(self, status: RunStatus = RunStatus.COMPLETED) -> None:
        self.status = status
        self.completed_at = datetime.now(UTC)

    def fail_run(self, error: BaseException) -> None:
        """Mark the run failed and pin the error on the stage that was running."""
        self.complete_run(RunStatus.FAILED)
        if self.stage_logs:
            self.stage_logs[-1].errors.append(str(error))

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "metrics": self.metrics.for_kind(self.kind),
            "stages": [
                {
                    "stage": log.stage.value,
                    "status": log.status,
                    "items_in": log.items_in,
                    "items_out": log.items_out,
                    "duration": log.duration_seconds,
                    "errors": len(log.errors),
                }
                for log in self.stage_logs
            ],
        }
