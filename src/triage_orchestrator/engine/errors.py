"""Error taxonomy for the orchestration engine.

Task-level errors (condition, missing input, timeout, body) are recorded in a
`TaskResult` and never escape the wave orchestrator. Planner configuration
errors are raised at construction time.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for engine errors."""


class ConditionEvaluationError(OrchestratorError):
    """A condition expression could not be parsed or evaluated.

    Never fatal: the owning task is skipped.
    """


class MissingInputError(OrchestratorError):
    """A task's declared inputs are absent from the merged context."""

    def __init__(self, task_id: str, missing: list[str]) -> None:
        self.task_id = task_id
        self.missing = missing
        super().__init__(f"missing inputs: [{', '.join(missing)}]")


class TaskTimeoutError(OrchestratorError):
    """A task body did not finish within its declared timeout."""

    def __init__(self, task_id: str, timeout_seconds: float) -> None:
        self.task_id = task_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Task timeout after {timeout_seconds * 1000:.0f}ms")


class BodyExecutionError(OrchestratorError):
    """A task body raised or returned something other than a mapping."""

    def __init__(self, task_id: str, message: str) -> None:
        self.task_id = task_id
        super().__init__(message)


class PlannerError(OrchestratorError):
    """The planner could not produce a plan."""


class PlanValidationError(PlannerError):
    """A proposed plan is structurally invalid for the declared task set."""


class PlanConfigurationError(OrchestratorError):
    """The statically configured fallback plan is malformed."""


class DeclarationError(ValueError):
    """A task declaration or pipeline definition is malformed."""


class SessionNotFoundError(KeyError):
    """No run session exists for the given id."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(session_id)

    def __str__(self) -> str:
        return f"Session {self.session_id} not found"
