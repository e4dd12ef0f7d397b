"""Application facade: wire configuration, a pipeline definition and bodies."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from triage_orchestrator.bodies import BodyNotAvailableError, build_body
from triage_orchestrator.core.config import OrchestratorConfig
from triage_orchestrator.engine.context import TaskContext
from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.definition import PipelineDefinition
from triage_orchestrator.engine.orchestrator import RegisteredTask, WaveOrchestrator
from triage_orchestrator.engine.planner import (
    DependencyPlanner,
    LLMPlanningOracle,
    OraclePlanner,
    Planner,
    StaticPlanner,
)
from triage_orchestrator.engine.results import RunProgress, RunSession
from triage_orchestrator.engine.runner import TaskBody
from triage_orchestrator.llm.factory import LLMFactory
from triage_orchestrator.llm.provider import LLMProvider
from triage_orchestrator.state.sessions import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


def _unavailable(error: BodyNotAvailableError) -> TaskBody:
    async def body(context: TaskContext) -> Mapping[str, Any]:
        raise error

    return body


class Orchestrator:
    """Run a pipeline definition with the configured planner and store.

    Bodies passed in `bodies` take precedence; every other task gets a body
    built from its declaration (reasoning prompt or HTTP endpoint). Tasks that
    have neither fail at run time with a body-unavailable error, which their
    ``on_error`` fallback may absorb.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        definition: PipelineDefinition | None = None,
        *,
        bodies: Mapping[str, TaskBody] | None = None,
        provider: LLMProvider | None = None,
        store: SessionStore | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration object. If None, loads from environment.
            definition: Tasks and default plan. Required.
            bodies: Code-registered bodies keyed by task id.
            provider: Reasoning provider. Built from ``config.llm`` on demand.
            store: Session store. Defaults to an in-memory store with the
                configured retention.

        Raises:
            ValueError: If no definition is given.
            PlanConfigurationError: If the default plan does not cover the tasks.
        """
        if definition is None:
            raise ValueError("A pipeline definition is required")

        self.config = config or OrchestratorConfig()
        self.definition = definition
        self._provider = provider
        self._provider_failed = False
        self._bodies = dict(bodies or {})

        unknown = sorted(set(self._bodies) - set(definition.task_ids))
        if unknown:
            raise ValueError(f"Bodies registered for unknown tasks: {', '.join(unknown)}")

        self.store: SessionStore = store or InMemorySessionStore(
            ttl_seconds=self.config.session.retention_seconds
        )
        self.unavailable: dict[str, str] = {}
        tasks = [RegisteredTask(d, self._body_for(d)) for d in definition.declarations]

        self.planner = self._build_planner()
        self.engine = WaveOrchestrator(
            tasks,
            self.planner,
            self.store,
            replan_each_wave=self.config.engine.replan_each_wave,
        )

        logger.info(
            "Orchestrator initialized",
            extra={
                "task_count": len(tasks),
                "planner": self.config.engine.planner,
                "tasks_without_body": sorted(self.unavailable),
            },
        )

    @property
    def provider(self) -> LLMProvider | None:
        """The reasoning provider, created from configuration on first use.

        Returns None when the provider cannot be created (e.g. no API key).
        """
        if self._provider is None and not self._provider_failed:
            try:
                self._provider = LLMFactory.create(self.config.llm)
            except (ValueError, ImportError) as e:
                self._provider_failed = True
                logger.warning(
                    "Reasoning provider unavailable",
                    extra={"provider": self.config.llm.provider, "error": str(e)},
                )
        return self._provider

    def _body_for(self, declaration: TaskDeclaration) -> TaskBody:
        body = self._bodies.get(declaration.id)
        if body is not None:
            return body

        needs_provider = declaration.kind == "llm_reasoning" and declaration.prompt_template
        try:
            return build_body(
                declaration,
                self.provider if needs_provider else None,
                max_attempts=self.config.engine.body_max_attempts,
                base_delay_seconds=self.config.engine.body_base_delay_seconds,
            )
        except BodyNotAvailableError as e:
            self.unavailable[declaration.id] = str(e)
            return _unavailable(e)

    def _build_planner(self) -> Planner:
        engine = self.config.engine
        static = StaticPlanner(self.definition.default_plan)

        if engine.planner == "static":
            return static
        if engine.planner == "dependency":
            return DependencyPlanner()

        provider = self.provider
        if provider is None:
            logger.warning("No reasoning provider; planning falls back to the default plan")
            return static
        oracle = LLMPlanningOracle(
            provider,
            temperature=self.config.llm.openai_temperature,
            max_tokens=self.config.llm.max_tokens,
        )
        return OraclePlanner(oracle, static, timeout_seconds=engine.planner_timeout_seconds)

    async def execute(
        self,
        session_id: str,
        input_context: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> RunSession:
        return await self.engine.execute_run(session_id, input_context, metadata)

    def run(
        self,
        session_id: str,
        input_context: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> RunSession:
        """Execute one run to completion from synchronous code."""
        return asyncio.run(self.execute(session_id, input_context, metadata))

    def get_session(self, session_id: str) -> RunSession | None:
        return self.engine.get_session(session_id)

    def get_progress(self, session_id: str) -> RunProgress | None:
        return self.engine.get_progress(session_id)
