"""Wave-by-wave execution of a task set.

One run:

1. A session is created with status ``running``.
2. The planner is consulted once, up front, with the initial context.
3. For each wave, every task is launched concurrently against the same
   frozen snapshot; the wave ends only when all of them have settled.
   Results are appended in wave order and the outputs of completed tasks
   (including fallback completions) are merged into the context.
4. The session ends ``completed``. It ends ``failed`` only if the
   orchestrator itself could not proceed (e.g. no usable plan); task-level
   failures are reported per task and never abort the run.

The context is written only here and only between waves, so tasks never see
a sibling's output and no locking is needed.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from triage_orchestrator.engine.context import ContextSnapshot, ExecutionContext
from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.errors import PlanConfigurationError, SessionNotFoundError
from triage_orchestrator.engine.planner import ExecutionPlan, Planner
from triage_orchestrator.engine.results import (
    RunProgress,
    RunSession,
    RunStatus,
    TaskResult,
    TaskStatus,
    utc_now,
)
from triage_orchestrator.engine.runner import TaskBody, TaskRunner

if TYPE_CHECKING:
    from triage_orchestrator.state.sessions import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegisteredTask:
    """A declaration bound to the body that implements it."""

    declaration: TaskDeclaration
    body: TaskBody

    @property
    def id(self) -> str:
        return self.declaration.id


class WaveOrchestrator:
    def __init__(
        self,
        tasks: Sequence[RegisteredTask],
        planner: Planner,
        store: SessionStore,
        *,
        runner: TaskRunner | None = None,
        replan_each_wave: bool = False,
    ) -> None:
        """Bind tasks to a planner and a session store.

        Raises:
            PlanConfigurationError: If task ids are not unique or the planner's
                default plan does not cover every task exactly once.
        """

        ids = [t.id for t in tasks]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise PlanConfigurationError(f"Duplicate task ids: {', '.join(duplicates)}")

        self._tasks: dict[str, RegisteredTask] = {t.id: t for t in tasks}
        self._declarations: list[TaskDeclaration] = [t.declaration for t in tasks]
        self._planner = planner
        self._store = store
        self._runner = runner or TaskRunner()
        self._replan_each_wave = replan_each_wave

        planner.check_configuration(self._declarations)

    @property
    def declarations(self) -> list[TaskDeclaration]:
        return list(self._declarations)

    @property
    def store(self) -> SessionStore:
        return self._store

    def start_session(
        self,
        session_id: str,
        input_context: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> RunSession:
        session = RunSession(
            session_id=session_id,
            input_context=copy.deepcopy(dict(input_context)),
            metadata=dict(metadata or {}),
        )
        self._store.put(session_id, session)
        logger.info("Session started", extra={"session_id": session_id})
        return session

    async def execute_run(
        self,
        session_id: str,
        input_context: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> RunSession:
        """Create a session for `input_context` and run every task."""

        self.start_session(session_id, input_context, metadata)
        return await self.execute_session(session_id)

    async def execute_session(self, session_id: str) -> RunSession:
        """Run a previously started session.

        Raises:
            SessionNotFoundError: If the session is unknown or expired.
        """

        session = self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        context = ExecutionContext(session.input_context)
        logger.info(
            "Starting run",
            extra={"session_id": session_id, "task_count": len(self._declarations)},
        )

        try:
            if self._replan_each_wave:
                await self._run_replanning(session, context)
            else:
                plan = await self._planner.plan(self._declarations, context.snapshot().data)
                self._record_plan(session, plan)
                for index, wave in enumerate(plan.waves):
                    await self._run_wave(session, context, wave, index, len(plan.waves))
            session.status = RunStatus.COMPLETED
            logger.info(
                "Run completed",
                extra={"session_id": session_id, **session.summary()},
            )
        except Exception as e:
            session.status = RunStatus.FAILED
            session.error = str(e) or type(e).__name__
            logger.exception("Run failed", extra={"session_id": session_id})
        finally:
            session.finished_at = utc_now()
            self._store.put(session_id, session)

        return session

    async def _run_replanning(self, session: RunSession, context: ExecutionContext) -> None:
        remaining = list(self._declarations)
        index = 0
        while remaining:
            plan = await self._planner.plan(remaining, context.snapshot().data)
            if not plan.waves:
                raise RuntimeError("Planner returned no waves for the remaining tasks")
            wave = plan.waves[0]
            session.plan.append(list(wave))
            session.plan_source = plan.source
            await self._run_wave(session, context, wave, index, None)
            done = set(wave)
            remaining = [d for d in remaining if d.id not in done]
            index += 1

    def _record_plan(self, session: RunSession, plan: ExecutionPlan) -> None:
        session.plan = plan.to_json()
        session.plan_source = plan.source
        logger.info(
            "Execution plan ready",
            extra={
                "session_id": session.session_id,
                "source": plan.source,
                "waves": plan.to_json(),
            },
        )

    async def _run_wave(
        self,
        session: RunSession,
        context: ExecutionContext,
        wave: Sequence[str],
        index: int,
        total: int | None,
    ) -> None:
        logger.info(
            "Executing wave",
            extra={
                "session_id": session.session_id,
                "wave": index + 1,
                "wave_count": total,
                "tasks": list(wave),
            },
        )

        snapshot = context.snapshot()
        settled = await asyncio.gather(
            *(self._run_task(task_id, snapshot, session.session_id) for task_id in wave),
            return_exceptions=True,
        )

        for task_id, outcome in zip(wave, settled, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "Task raised out of the runner",
                    exc_info=outcome,
                    extra={"session_id": session.session_id, "task_id": task_id},
                )
                result = TaskResult.failed(task_id, str(outcome) or "Unknown error")
            else:
                result = outcome

            session.task_results.append(result)
            if result.status == TaskStatus.COMPLETED:
                context.merge(result.outputs)

        context.close_wave()
        session.outputs = dict(context.outputs)
        self._store.put(session.session_id, session)

    async def _run_task(
        self, task_id: str, snapshot: ContextSnapshot, session_id: str
    ) -> TaskResult:
        task = self._tasks.get(task_id)
        if task is None:
            raise LookupError(f"No task registered for {task_id}")
        return await self._runner.run(
            task.declaration, task.body, snapshot, session_id=session_id
        )

    def get_session(self, session_id: str) -> RunSession | None:
        return self._store.get(session_id)

    def get_progress(self, session_id: str) -> RunProgress | None:
        session = self._store.get(session_id)
        if session is None:
            return None
        return session.progress(len(self._declarations))

    def cleanup(self, older_than_hours: float = 24) -> int:
        """Drop sessions started more than `older_than_hours` ago."""

        return self._store.purge_older_than(older_than_hours * 3600)
