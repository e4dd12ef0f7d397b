"""Static task declarations.

A declaration describes one unit of work: what it reads, what it produces,
when it should run and how failures degrade. Declarations are created once
when a pipeline is loaded and never mutated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from triage_orchestrator.engine.conditions import Condition, Invalid, compile_condition
from triage_orchestrator.engine.errors import DeclarationError

TaskKind = Literal["llm_reasoning", "local_inference", "api_call", "distributed"]
TaskPriority = Literal["critical", "high", "medium", "low"]

TASK_KINDS: tuple[str, ...] = ("llm_reasoning", "local_inference", "api_call", "distributed")
TASK_PRIORITIES: tuple[str, ...] = ("critical", "high", "medium", "low")
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE")

_DURATION_RE = re.compile(r"^(\d+)(ms|s|m|h)$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_timeout(value: object) -> float | None:
    """Parse a timeout into seconds.

    Accepts ``None``, a positive number of seconds, or a duration string such
    as ``"10ms"``, ``"30s"``, ``"5m"`` or ``"1h"``.
    """

    if value is None:
        return None
    if isinstance(value, bool):
        raise DeclarationError(f"Invalid timeout: {value!r}")
    if isinstance(value, (int, float)):
        if value <= 0:
            raise DeclarationError(f"Timeout must be positive: {value!r}")
        return float(value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value.strip())
        if not match:
            raise DeclarationError(f"Invalid timeout format: {value!r}")
        amount, unit = match.groups()
        seconds = int(amount) * _UNIT_SECONDS[unit]
        if seconds <= 0:
            raise DeclarationError(f"Timeout must be positive: {value!r}")
        return seconds
    raise DeclarationError(f"Invalid timeout: {value!r}")


def _format_timeout(seconds: float) -> str:
    millis = round(seconds * 1000)
    if millis % 1000:
        return f"{millis}ms"
    return f"{millis // 1000}s"


@dataclass(frozen=True, slots=True)
class ExecutionPolicy:
    """How a task body is executed.

    `max_retries` caps the attempts of built reasoning bodies (0 means the
    engine default); the task runner itself never retries.
    """

    timeout_seconds: float | None = None
    max_retries: int = 0
    synchronous: bool = False
    model: str | None = None
    max_tokens: int | None = None
    endpoint: str | None = None
    method: str = "POST"


@dataclass(frozen=True, slots=True)
class FallbackPolicy:
    """Substitute outputs used when a task times out or errors."""

    on_timeout: str | None = None
    on_error: str | None = None


@dataclass(frozen=True, slots=True)
class TaskDeclaration:
    id: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    condition: Condition | None = None
    condition_source: str | None = None
    execution: ExecutionPolicy = field(default_factory=ExecutionPolicy)
    fallback: FallbackPolicy | None = None

    name: str = ""
    description: str = ""
    kind: TaskKind = "local_inference"
    prompt_template: str | None = None
    priority: TaskPriority | None = None

    @classmethod
    def create(
        cls,
        id: str,
        *,
        inputs: tuple[str, ...] | list[str] = (),
        outputs: tuple[str, ...] | list[str] = (),
        condition: str | None = None,
        timeout: object = None,
        max_retries: int = 0,
        synchronous: bool = False,
        on_timeout: str | None = None,
        on_error: str | None = None,
        **extra: object,
    ) -> TaskDeclaration:
        """Convenience constructor that parses the condition and timeout."""

        fallback = None
        if on_timeout is not None or on_error is not None:
            fallback = FallbackPolicy(on_timeout=on_timeout, on_error=on_error)
        return cls(
            id=id,
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            condition=compile_condition(condition),
            condition_source=condition,
            execution=ExecutionPolicy(
                timeout_seconds=parse_timeout(timeout),
                max_retries=max_retries,
                synchronous=synchronous,
            ),
            fallback=fallback,
            **extra,  # type: ignore[arg-type]
        )

    @property
    def has_valid_condition(self) -> bool:
        return not isinstance(self.condition, Invalid)

    @staticmethod
    def from_json(obj: dict[str, object]) -> TaskDeclaration:
        """Build a declaration from its JSON form.

        Both ``id`` and the original ``task_id`` spelling are accepted.

        Raises:
            DeclarationError: If the object is malformed.
        """

        if not isinstance(obj, dict):
            raise DeclarationError("Task declaration must be an object")

        task_id = obj.get("id", obj.get("task_id"))
        if not isinstance(task_id, str) or not task_id.strip():
            raise DeclarationError("Task declaration requires a non-empty 'id'")

        def _keys(name: str) -> tuple[str, ...]:
            raw = obj.get(name, [])
            if not isinstance(raw, list) or not all(isinstance(k, str) for k in raw):
                raise DeclarationError(f"Task {task_id}: '{name}' must be a list of strings")
            return tuple(raw)

        def _opt_str(source: dict[str, object], name: str) -> str | None:
            value = source.get(name)
            if value is None:
                return None
            if not isinstance(value, str):
                raise DeclarationError(f"Task {task_id}: '{name}' must be a string")
            return value

        condition_raw = _opt_str(obj, "condition")

        execution_raw = obj.get("execution", {})
        if not isinstance(execution_raw, dict):
            raise DeclarationError(f"Task {task_id}: 'execution' must be an object")
        max_retries = execution_raw.get("max_retries", 0)
        if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
            raise DeclarationError(f"Task {task_id}: 'max_retries' must be a non-negative int")
        max_tokens = execution_raw.get("max_tokens")
        if max_tokens is not None and (not isinstance(max_tokens, int) or max_tokens <= 0):
            raise DeclarationError(f"Task {task_id}: 'max_tokens' must be a positive int")
        method = str(execution_raw.get("method", "POST")).upper()
        if method not in HTTP_METHODS:
            raise DeclarationError(f"Task {task_id}: unsupported method {method!r}")
        try:
            timeout_seconds = parse_timeout(execution_raw.get("timeout"))
        except DeclarationError as e:
            raise DeclarationError(f"Task {task_id}: {e}") from e
        execution = ExecutionPolicy(
            timeout_seconds=timeout_seconds,
            max_retries=max_retries,
            synchronous=bool(execution_raw.get("sync", False)),
            model=_opt_str(execution_raw, "model"),
            max_tokens=max_tokens,
            endpoint=_opt_str(execution_raw, "endpoint"),
            method=method,
        )

        fallback: FallbackPolicy | None = None
        fallback_raw = obj.get("fallback")
        if fallback_raw is not None:
            if not isinstance(fallback_raw, dict):
                raise DeclarationError(f"Task {task_id}: 'fallback' must be an object")
            fallback = FallbackPolicy(
                on_timeout=_opt_str(fallback_raw, "on_timeout"),
                on_error=_opt_str(fallback_raw, "on_error"),
            )

        kind = obj.get("type", obj.get("kind", "local_inference"))
        if kind not in TASK_KINDS:
            raise DeclarationError(f"Task {task_id}: unsupported type {kind!r}")
        priority = obj.get("priority")
        if priority is not None and priority not in TASK_PRIORITIES:
            raise DeclarationError(f"Task {task_id}: unsupported priority {priority!r}")

        return TaskDeclaration(
            id=task_id,
            inputs=_keys("inputs"),
            outputs=_keys("outputs"),
            condition=compile_condition(condition_raw),
            condition_source=condition_raw,
            execution=execution,
            fallback=fallback,
            name=_opt_str(obj, "name") or "",
            description=_opt_str(obj, "description") or "",
            kind=kind,  # type: ignore[arg-type]
            prompt_template=_opt_str(obj, "prompt_template"),
            priority=priority,  # type: ignore[arg-type]
        )

    def to_json(self) -> dict[str, object]:
        execution: dict[str, object] = {
            "sync": self.execution.synchronous,
            "max_retries": self.execution.max_retries,
        }
        if self.execution.timeout_seconds is not None:
            execution["timeout"] = _format_timeout(self.execution.timeout_seconds)
        if self.execution.model is not None:
            execution["model"] = self.execution.model
        if self.execution.max_tokens is not None:
            execution["max_tokens"] = self.execution.max_tokens
        if self.execution.endpoint is not None:
            execution["endpoint"] = self.execution.endpoint
            execution["method"] = self.execution.method

        out: dict[str, object] = {
            "id": self.id,
            "type": self.kind,
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
            "execution": execution,
        }
        if self.name:
            out["name"] = self.name
        if self.description:
            out["description"] = self.description
        if self.condition_source is not None:
            out["condition"] = self.condition_source
        if self.fallback is not None:
            fallback: dict[str, str] = {}
            if self.fallback.on_timeout is not None:
                fallback["on_timeout"] = self.fallback.on_timeout
            if self.fallback.on_error is not None:
                fallback["on_error"] = self.fallback.on_error
            out["fallback"] = fallback
        if self.prompt_template is not None:
            out["prompt_template"] = self.prompt_template
        if self.priority is not None:
            out["priority"] = self.priority
        return out
