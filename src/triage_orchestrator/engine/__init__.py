"""Task orchestration engine.

Declarations, condition evaluation, per-task execution, planning and
wave-by-wave orchestration.
"""

from triage_orchestrator.engine.conditions import evaluate, parse_condition
from triage_orchestrator.engine.context import ExecutionContext, TaskContext
from triage_orchestrator.engine.declarations import (
    ExecutionPolicy,
    FallbackPolicy,
    TaskDeclaration,
)
from triage_orchestrator.engine.definition import PipelineDefinition, load_definition
from triage_orchestrator.engine.orchestrator import RegisteredTask, WaveOrchestrator
from triage_orchestrator.engine.planner import (
    DependencyPlanner,
    ExecutionPlan,
    LLMPlanningOracle,
    OraclePlanner,
    StaticPlanner,
)
from triage_orchestrator.engine.results import RunSession, RunStatus, TaskResult, TaskStatus
from triage_orchestrator.engine.runner import TaskRunner

__all__ = [
    "DependencyPlanner",
    "ExecutionContext",
    "ExecutionPlan",
    "ExecutionPolicy",
    "FallbackPolicy",
    "LLMPlanningOracle",
    "OraclePlanner",
    "PipelineDefinition",
    "RegisteredTask",
    "RunSession",
    "RunStatus",
    "StaticPlanner",
    "TaskContext",
    "TaskDeclaration",
    "TaskResult",
    "TaskRunner",
    "TaskStatus",
    "WaveOrchestrator",
    "evaluate",
    "load_definition",
    "parse_condition",
]
