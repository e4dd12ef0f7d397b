"""Execution planning: partition task declarations into ordered waves.

Tasks inside a wave run concurrently; a wave starts only after the previous
one has fully settled. Three strategies are provided:

- `StaticPlanner`: a designer-supplied default order. Mandatory, and the
  fallback for every other strategy.
- `DependencyPlanner`: deterministic layering from declared inputs/outputs.
- `OraclePlanner`: asks a `PlanningOracle` (e.g. an LLM) once and falls back
  to the static plan if the oracle fails, times out or proposes an invalid
  partition.

Planners never execute tasks and never mutate the context.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from triage_orchestrator.engine.conditions import referenced_keys
from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.errors import (
    PlanConfigurationError,
    PlannerError,
    PlanValidationError,
)
from triage_orchestrator.llm.parsing import parse_json_reply
from triage_orchestrator.llm.provider import LLMProvider, system_and_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    waves: tuple[tuple[str, ...], ...]
    source: str = "static"
    reasoning: str = ""

    @staticmethod
    def from_waves(
        waves: Iterable[Iterable[str]], *, source: str = "static", reasoning: str = ""
    ) -> ExecutionPlan:
        return ExecutionPlan(
            waves=tuple(tuple(wave) for wave in waves), source=source, reasoning=reasoning
        )

    @property
    def task_ids(self) -> list[str]:
        return [task_id for wave in self.waves for task_id in wave]

    def as_sets(self) -> list[frozenset[str]]:
        """Order-within-wave independent view of the partition."""

        return [frozenset(wave) for wave in self.waves]

    def validate(self, task_ids: Iterable[str]) -> None:
        """Check that the plan covers `task_ids` exactly once, in non-empty waves.

        Raises:
            PlanValidationError: If the plan is structurally invalid.
        """

        expected = set(task_ids)
        seen: set[str] = set()
        for index, wave in enumerate(self.waves):
            if not wave:
                raise PlanValidationError(f"Wave {index + 1} is empty")
            for task_id in wave:
                if task_id in seen:
                    raise PlanValidationError(f"Task {task_id!r} appears more than once")
                if task_id not in expected:
                    raise PlanValidationError(f"Unknown task {task_id!r}")
                seen.add(task_id)
        missing = sorted(expected - seen)
        if missing:
            raise PlanValidationError(f"Plan is missing tasks: {', '.join(missing)}")

    def restricted_to(self, task_ids: Iterable[str]) -> ExecutionPlan:
        keep = set(task_ids)
        waves = [tuple(t for t in wave if t in keep) for wave in self.waves]
        return ExecutionPlan(
            waves=tuple(w for w in waves if w), source=self.source, reasoning=self.reasoning
        )

    def to_json(self) -> list[list[str]]:
        return [list(wave) for wave in self.waves]


def parse_plan(payload: Mapping[str, Any], *, source: str = "oracle") -> ExecutionPlan:
    """Read a ``{"waves": [[...], ...]}`` proposal.

    The ``execution_waves`` key is accepted as an alias.

    Raises:
        PlanValidationError: If the payload does not have that shape.
    """

    if not isinstance(payload, Mapping):
        raise PlanValidationError("Plan proposal must be an object")
    waves = payload.get("waves", payload.get("execution_waves"))
    if not isinstance(waves, list):
        raise PlanValidationError("Plan proposal has no 'waves' list")
    for wave in waves:
        if not isinstance(wave, list) or not all(isinstance(t, str) for t in wave):
            raise PlanValidationError("Each wave must be a list of task ids")
    reasoning = payload.get("reasoning")
    return ExecutionPlan.from_waves(
        waves, source=source, reasoning=reasoning if isinstance(reasoning, str) else ""
    )


class Planner(Protocol):
    async def plan(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> ExecutionPlan: ...

    def check_configuration(self, declarations: Sequence[TaskDeclaration]) -> None: ...


class PlanningOracle(Protocol):
    """Proposes a wave partition; may be unreliable."""

    async def propose(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> Mapping[str, Any]: ...


class StaticPlanner:
    """Plan from a fixed, designer-supplied wave order."""

    def __init__(
        self,
        waves: Iterable[Iterable[str]],
        *,
        reasoning: str = "Default execution plan",
    ) -> None:
        self._plan = ExecutionPlan.from_waves(waves, source="static", reasoning=reasoning)

    @property
    def default_plan(self) -> ExecutionPlan:
        return self._plan

    def check_configuration(self, declarations: Sequence[TaskDeclaration]) -> None:
        try:
            self._plan.validate(d.id for d in declarations)
        except PlanValidationError as e:
            raise PlanConfigurationError(f"Default plan is invalid: {e}") from e

    async def plan(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> ExecutionPlan:
        ids = [d.id for d in declarations]
        plan = self._plan.restricted_to(ids)
        plan.validate(ids)
        return plan


class DependencyPlanner:
    """Layer declarations by their input/output dependencies.

    A task depends on every other task that produces one of its inputs or a
    key read by its condition. Each task lands in the earliest wave after all
    of its producers; within a wave, declaration order is kept. Inputs that no
    task produces never block (the runner reports them as missing).
    """

    reasoning = "Layered by declared inputs and outputs"

    def check_configuration(self, declarations: Sequence[TaskDeclaration]) -> None:
        try:
            self.layer(declarations)
        except PlannerError as e:
            raise PlanConfigurationError(str(e)) from e

    def layer(self, declarations: Sequence[TaskDeclaration]) -> ExecutionPlan:
        producers: dict[str, set[str]] = defaultdict(set)
        for declaration in declarations:
            for key in declaration.outputs:
                producers[key].add(declaration.id)

        depends_on: dict[str, set[str]] = {}
        for declaration in declarations:
            keys = set(declaration.inputs) | referenced_keys(declaration.condition)
            deps: set[str] = set()
            for key in keys:
                deps |= producers.get(key, set())
            deps.discard(declaration.id)
            depends_on[declaration.id] = deps

        order = [d.id for d in declarations]
        placed: set[str] = set()
        waves: list[tuple[str, ...]] = []
        while len(placed) < len(order):
            wave = tuple(
                task_id
                for task_id in order
                if task_id not in placed and depends_on[task_id] <= placed
            )
            if not wave:
                stuck = sorted(set(order) - placed)
                raise PlannerError(f"Dependency cycle among tasks: {', '.join(stuck)}")
            waves.append(wave)
            placed.update(wave)

        return ExecutionPlan(waves=tuple(waves), source="dependency", reasoning=self.reasoning)

    async def plan(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> ExecutionPlan:
        return self.layer(declarations)

    async def propose(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        plan = self.layer(declarations)
        return {"waves": plan.to_json(), "reasoning": plan.reasoning}


class OraclePlanner:
    """Ask an oracle for a plan once; fall back to the static plan on any failure."""

    def __init__(
        self,
        oracle: PlanningOracle,
        fallback: StaticPlanner,
        *,
        timeout_seconds: float | None = 30.0,
    ) -> None:
        self._oracle = oracle
        self._fallback = fallback
        self._timeout_seconds = timeout_seconds

    def check_configuration(self, declarations: Sequence[TaskDeclaration]) -> None:
        self._fallback.check_configuration(declarations)

    async def plan(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> ExecutionPlan:
        ids = [d.id for d in declarations]
        try:
            pending = self._oracle.propose(declarations, context)
            if self._timeout_seconds is not None:
                proposal = await asyncio.wait_for(pending, timeout=self._timeout_seconds)
            else:
                proposal = await pending
            plan = parse_plan(proposal, source="oracle")
            plan.validate(ids)
        except Exception as e:
            logger.warning(
                "Planning oracle failed; using default plan",
                extra={"error": str(e) or type(e).__name__},
            )
            return await self._fallback.plan(declarations, context)

        logger.info("Planning oracle proposed a plan", extra={"waves": plan.to_json()})
        return plan


_PLANNING_SYSTEM_PROMPT = (
    "You orchestrate parallel processes. Analyse task dependencies and group "
    "tasks into execution waves that maximise parallelism. Reply with JSON only."
)


def build_planning_prompt(
    declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
) -> str:
    lines = ["TASK EXECUTION PLANNING", "", "Available context:"]
    lines.append(json.dumps(dict(context), indent=2, ensure_ascii=False, default=str))
    lines.extend(["", f"{len(declarations)} TASKS:"])
    for index, declaration in enumerate(declarations, start=1):
        line = (
            f"{index}. {declaration.id} - needs: {', '.join(declaration.inputs) or 'nothing'}"
            f"; produces: {', '.join(declaration.outputs) or 'nothing'}"
        )
        if declaration.condition_source:
            line += f"; runs only if: {declaration.condition_source}"
        lines.append(line)
    lines.extend(
        [
            "",
            "RULES:",
            "- Put every task in exactly one wave.",
            "- A task must come after every task producing one of its inputs.",
            "- Tasks without unmet dependencies go in the earliest possible wave.",
            "- Never put a producer and a consumer of the same key in the same wave.",
            "",
            "Return JSON:",
            '{"waves": [["task_a", "task_b"], ["task_c"]], "reasoning": "..."}',
        ]
    )
    return "\n".join(lines)


class LLMPlanningOracle:
    """Planning oracle backed by a chat model."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        temperature: float = 0.1,
        max_tokens: int = 800,
        model: str | None = None,
    ) -> None:
        self._provider = provider
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._model = model

    async def propose(
        self, declarations: Sequence[TaskDeclaration], context: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        messages = system_and_user(
            _PLANNING_SYSTEM_PROMPT, build_planning_prompt(declarations, context)
        )
        reply = await asyncio.to_thread(
            self._provider.chat,
            messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            model=self._model,
        )
        return parse_json_reply(reply)
