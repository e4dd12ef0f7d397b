"""CLI entrypoint: validate, plan and run pipeline definitions."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from triage_orchestrator import __version__
from triage_orchestrator.core.config import OrchestratorConfig
from triage_orchestrator.core.orchestrator import Orchestrator
from triage_orchestrator.engine.definition import PipelineDefinition, load_definition
from triage_orchestrator.engine.errors import OrchestratorError, PlannerError
from triage_orchestrator.engine.planner import DependencyPlanner, StaticPlanner
from triage_orchestrator.engine.results import RunStatus
from triage_orchestrator.engine.runner import TaskBody
from triage_orchestrator.logging import configure_logging

logger = logging.getLogger(__name__)


def _load_context(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: context must be a JSON object")
    return data


def _load_bodies(spec: str | None) -> Mapping[str, TaskBody]:
    """Import a ``module:attribute`` mapping of task id to body."""
    if not spec:
        return {}
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError("--bodies must look like 'package.module:ATTRIBUTE'")
    bodies = getattr(importlib.import_module(module_name), attr)
    if not isinstance(bodies, Mapping):
        raise ValueError(f"{spec} is not a mapping of task id to body")
    return bodies


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="triage-orchestrator",
        description="Run declared task pipelines in dependency-ordered waves",
    )
    parser.add_argument(
        "--version", action="version", version=f"triage-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser(
        "validate", help="Check a definition's default plan and fallback coverage"
    )
    validate.add_argument("definition", type=Path, help="Pipeline definition JSON")

    plan = subparsers.add_parser("plan", help="Print the plan the configured planner produces")
    plan.add_argument("definition", type=Path, help="Pipeline definition JSON")
    plan.add_argument("--context", type=Path, default=None, help="Input context JSON")

    run = subparsers.add_parser("run", help="Execute a definition against an input context")
    run.add_argument("definition", type=Path, help="Pipeline definition JSON")
    run.add_argument("--context", type=Path, required=True, help="Input context JSON")
    run.add_argument("--session-id", default=None, help="Session id (random when omitted)")
    run.add_argument(
        "--bodies",
        default=None,
        help="Code-registered bodies as 'package.module:MAPPING' (task id -> callable)",
    )

    return parser


def _validate(definition: PipelineDefinition) -> dict[str, Any]:
    errors: list[str] = []
    warnings: list[str] = []

    try:
        StaticPlanner(definition.default_plan).check_configuration(definition.declarations)
    except OrchestratorError as e:
        errors.append(str(e))

    try:
        DependencyPlanner().layer(definition.declarations)
    except PlannerError as e:
        errors.append(str(e))

    for declaration in definition.declarations:
        if declaration.condition_source and not declaration.has_valid_condition:
            warnings.append(
                f"{declaration.id}: condition {declaration.condition_source!r} does not parse; "
                "the task will always be skipped"
            )
        fallback = declaration.fallback
        if declaration.execution.timeout_seconds and not (fallback and fallback.on_timeout):
            warnings.append(f"{declaration.id}: has a timeout but no on_timeout fallback")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = OrchestratorConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    # stdout carries the command output.
    configure_logging(
        "DEBUG" if config.debug else config.log_level,
        json_output=config.json_logs,
        stream=sys.stderr,
    )

    try:
        definition = load_definition(args.definition)

        if args.command == "validate":
            report = _validate(definition)
            _print_json(report)
            return 0 if report["valid"] else 1

        if args.command == "plan":
            orchestrator = Orchestrator(config, definition)
            context = _load_context(args.context)
            execution_plan = asyncio.run(
                orchestrator.planner.plan(list(definition.declarations), context)
            )
            _print_json(
                {
                    "source": execution_plan.source,
                    "reasoning": execution_plan.reasoning,
                    "waves": execution_plan.to_json(),
                }
            )
            return 0

        if args.command == "run":
            orchestrator = Orchestrator(config, definition, bodies=_load_bodies(args.bodies))
            session_id = args.session_id or f"session_{uuid.uuid4().hex[:12]}"
            session = orchestrator.run(session_id, _load_context(args.context))
            _print_json(session.model_dump(mode="json"))
            return 0 if session.status == RunStatus.COMPLETED else 1

        parser.error(f"Unknown command: {args.command}")
        return 2
    except (OrchestratorError, ValueError, OSError, ImportError, AttributeError) as e:
        logger.error("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
