"""Run-scoped execution context.

The context holds the facts known before the run (`inputs`) and the outputs
accumulated from finished waves. Tasks only ever see frozen snapshots; the
wave orchestrator is the only writer and writes between waves.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True, slots=True)
class ContextSnapshot:
    """A read-only view of the context at a wave boundary."""

    inputs: Mapping[str, Any]
    outputs: Mapping[str, Any]
    data: Mapping[str, Any]
    wave_index: int = 0

    def missing(self, keys: tuple[str, ...] | list[str]) -> list[str]:
        """Keys absent from the merged view or bound to None."""

        return [key for key in keys if self.data.get(key) is None]

    def for_task(self, task_id: str, session_id: str) -> TaskContext:
        """A private copy of the view; nested values a body mutates stay its own."""

        inputs, outputs = copy.deepcopy((dict(self.inputs), dict(self.outputs)))
        return TaskContext(
            task_id=task_id,
            session_id=session_id,
            inputs=MappingProxyType(inputs),
            outputs=MappingProxyType(outputs),
            data=MappingProxyType({**inputs, **outputs}),
        )


@dataclass(frozen=True, slots=True)
class TaskContext:
    """What a task body receives."""

    task_id: str
    session_id: str
    inputs: Mapping[str, Any]
    outputs: Mapping[str, Any]
    data: Mapping[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    attempt: int = 1

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class ExecutionContext:
    def __init__(self, inputs: Mapping[str, Any] | None = None) -> None:
        self._inputs: Mapping[str, Any] = MappingProxyType(copy.deepcopy(dict(inputs or {})))
        self._outputs: dict[str, Any] = {}
        self._waves_merged = 0

    @property
    def inputs(self) -> Mapping[str, Any]:
        return self._inputs

    @property
    def outputs(self) -> Mapping[str, Any]:
        return MappingProxyType(self._outputs)

    def snapshot(self) -> ContextSnapshot:
        outputs = dict(self._outputs)
        return ContextSnapshot(
            inputs=self._inputs,
            outputs=MappingProxyType(outputs),
            data=MappingProxyType({**self._inputs, **outputs}),
            wave_index=self._waves_merged,
        )

    def merge(self, outputs: Mapping[str, Any]) -> None:
        self._outputs.update(copy.deepcopy(dict(outputs)))

    def close_wave(self) -> None:
        self._waves_merged += 1
