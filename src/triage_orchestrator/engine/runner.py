"""Runs a single task declaration against a context snapshot."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeAlias

from triage_orchestrator.engine.conditions import evaluate_condition
from triage_orchestrator.engine.context import ContextSnapshot, TaskContext
from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.errors import (
    BodyExecutionError,
    MissingInputError,
    TaskTimeoutError,
)
from triage_orchestrator.engine.results import TaskResult, TaskStatus

logger = logging.getLogger(__name__)

TaskBody: TypeAlias = Callable[[TaskContext], Mapping[str, Any] | Awaitable[Mapping[str, Any]]]
"""A task body: ``(TaskContext) -> outputs``, either sync or async.

Sync bodies run on a worker thread so they never block sibling tasks.
"""


def _is_async(body: TaskBody) -> bool:
    return inspect.iscoroutinefunction(body) or inspect.iscoroutinefunction(
        getattr(body, "__call__", None)
    )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class TaskRunner:
    """Evaluate, validate and execute one task, applying its fallback policy.

    The runner never retries and never writes to the shared context.
    """

    async def run(
        self,
        declaration: TaskDeclaration,
        body: TaskBody,
        snapshot: ContextSnapshot,
        *,
        session_id: str = "",
    ) -> TaskResult:
        task_id = declaration.id

        if not evaluate_condition(declaration.condition, snapshot.data):
            logger.info(
                "Task skipped: condition not met",
                extra={"task_id": task_id, "condition": declaration.condition_source},
            )
            return TaskResult.skipped(task_id)

        missing = snapshot.missing(declaration.inputs)
        if missing:
            error = MissingInputError(task_id, missing)
            logger.error(str(error), extra={"task_id": task_id, "missing": missing})
            return TaskResult.failed(task_id, str(error))

        started = time.perf_counter()
        try:
            outputs = await self._execute(declaration, body, snapshot.for_task(task_id, session_id))
        except TaskTimeoutError as e:
            return self._recover(declaration, e, timed_out=True, started=started)
        except Exception as e:
            return self._recover(declaration, e, timed_out=False, started=started)

        elapsed = _elapsed_ms(started)
        logger.info(
            "Task completed",
            extra={"task_id": task_id, "execution_time_ms": round(elapsed, 3)},
        )
        return TaskResult(
            task_id=task_id,
            status=TaskStatus.COMPLETED,
            outputs=outputs,
            execution_time_ms=elapsed,
        )

    async def _execute(
        self, declaration: TaskDeclaration, body: TaskBody, context: TaskContext
    ) -> dict[str, Any]:
        if _is_async(body):
            pending: Awaitable[Any] = body(context)
        else:
            pending = asyncio.to_thread(self._call_sync, body, context)

        timeout = declaration.execution.timeout_seconds
        if timeout is None:
            result = await pending
        else:
            deadline = asyncio.timeout(timeout)
            try:
                async with deadline:
                    result = await pending
            except TimeoutError as e:
                if not deadline.expired():
                    # The body's own timeout (socket, upstream read), not ours.
                    raise BodyExecutionError(declaration.id, str(e) or "TimeoutError") from e
                # asyncio cannot stop a worker thread; a sync body keeps running.
                raise TaskTimeoutError(declaration.id, timeout) from e

        if not isinstance(result, Mapping):
            raise BodyExecutionError(
                declaration.id,
                f"Task body returned {type(result).__name__}, expected a mapping",
            )
        return dict(result)

    @staticmethod
    def _call_sync(body: TaskBody, context: TaskContext) -> Any:
        result = body(context)
        if inspect.isawaitable(result):
            raise BodyExecutionError(context.task_id, "Sync task body returned an awaitable")
        return result

    def _recover(
        self,
        declaration: TaskDeclaration,
        error: Exception,
        *,
        timed_out: bool,
        started: float,
    ) -> TaskResult:
        elapsed = _elapsed_ms(started)
        message = str(error) or type(error).__name__
        fallback = declaration.fallback

        if timed_out and fallback is not None and fallback.on_timeout is not None:
            logger.warning(
                "Task timed out; using fallback",
                extra={"task_id": declaration.id, "fallback_action": fallback.on_timeout},
            )
            return TaskResult(
                task_id=declaration.id,
                status=TaskStatus.COMPLETED,
                outputs={"fallback_action": fallback.on_timeout},
                fallback_triggered="on_timeout",
                execution_time_ms=elapsed,
            )

        if fallback is not None and fallback.on_error is not None:
            logger.warning(
                "Task failed; using fallback",
                extra={
                    "task_id": declaration.id,
                    "fallback_action": fallback.on_error,
                    "error": message,
                },
            )
            return TaskResult(
                task_id=declaration.id,
                status=TaskStatus.COMPLETED,
                outputs={"fallback_action": fallback.on_error},
                fallback_triggered="on_error",
                execution_time_ms=elapsed,
            )

        logger.error(
            "Task failed",
            exc_info=error if not timed_out else None,
            extra={"task_id": declaration.id, "error": message},
        )
        return TaskResult.failed(declaration.id, message, execution_time_ms=elapsed)
