"""Run records: per-task results, run sessions and progress summaries."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


FallbackTrigger = Literal["on_timeout", "on_error"]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TaskResult(BaseModel):
    """Outcome of one task in one run. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    status: TaskStatus
    outputs: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    fallback_triggered: FallbackTrigger | None = None
    execution_time_ms: float = 0.0
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def skipped(cls, task_id: str) -> TaskResult:
        return cls(task_id=task_id, status=TaskStatus.SKIPPED)

    @classmethod
    def failed(cls, task_id: str, error: str, execution_time_ms: float = 0.0) -> TaskResult:
        return cls(
            task_id=task_id,
            status=TaskStatus.FAILED,
            error=error,
            execution_time_ms=execution_time_ms,
        )


class RunProgress(BaseModel):
    total: int
    completed: int
    failed: int
    skipped: int
    running: int
    percentage: int


class RunSession(BaseModel):
    """Top-level record of one execution run.

    Mutated only by the wave orchestrator while the run is in progress.
    """

    session_id: str
    input_context: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, Any] = Field(default_factory=dict)
    task_results: list[TaskResult] = Field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING

    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None

    plan: list[list[str]] = Field(default_factory=list)
    plan_source: str | None = None
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    def count(self, status: TaskStatus) -> int:
        return sum(1 for r in self.task_results if r.status == status)

    def result_for(self, task_id: str) -> TaskResult | None:
        for result in self.task_results:
            if result.task_id == task_id:
                return result
        return None

    def progress(self, total_tasks: int) -> RunProgress:
        completed = self.count(TaskStatus.COMPLETED)
        failed = self.count(TaskStatus.FAILED)
        skipped = self.count(TaskStatus.SKIPPED)
        settled = completed + failed + skipped
        running = max(total_tasks - settled, 0) if self.status == RunStatus.RUNNING else 0
        percentage = int(completed * 100 / total_tasks) if total_tasks else 0
        return RunProgress(
            total=total_tasks,
            completed=completed,
            failed=failed,
            skipped=skipped,
            running=running,
            percentage=percentage,
        )

    def summary(self) -> dict[str, int]:
        """Short outcome counts: total, completed, failed, skipped."""

        return {
            "total": len(self.task_results),
            "completed": self.count(TaskStatus.COMPLETED),
            "failed": self.count(TaskStatus.FAILED),
            "skipped": self.count(TaskStatus.SKIPPED),
        }
