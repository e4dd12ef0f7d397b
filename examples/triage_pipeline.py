#!/usr/bin/env python3
"""Run the example triage pipeline.

Reasoning tasks get their bodies from the definition's prompt templates; the
three operational tasks are registered here as plain Python callables.

* configure ``ORCHESTRATOR_LLM_OPENAI_API_KEY`` (or a compatible gateway) in `.env`
* run ``python examples/triage_pipeline.py``

Without a reasoning provider the planner falls back to the default plan and
the reasoning tasks degrade to their configured fallbacks.
"""

from __future__ import annotations

import argparse
import json
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from triage_orchestrator.core.config import OrchestratorConfig
from triage_orchestrator.core.orchestrator import Orchestrator
from triage_orchestrator.engine.context import TaskContext
from triage_orchestrator.engine.definition import load_definition

DEFINITION = Path(__file__).with_name("triage_pipeline.json")

_WRISTBANDS = {
    "red": ("1", "Apply RED wristband - EMERGENCY - immediate care"),
    "orange": ("2", "Apply ORANGE wristband - VERY URGENT - care within 10 minutes"),
    "yellow": ("3", "Apply YELLOW wristband - URGENT - care within 60 minutes"),
    "green": ("4", "Apply GREEN wristband - STANDARD - care within 120 minutes"),
    "blue": ("5", "Apply BLUE wristband - NON URGENT - care within 240 minutes"),
}

_QUEUE = [
    {"patient_id": "P001", "priority": "red"},
    {"patient_id": "P002", "priority": "orange"},
    {"patient_id": "P003", "priority": "yellow"},
    {"patient_id": "P004", "priority": "green"},
]


def assign_wristband(context: TaskContext) -> dict[str, Any]:
    color = context.get("final_priority_color")
    code, instruction = _WRISTBANDS.get(color, _WRISTBANDS["yellow"])
    return {
        "wristband_instruction": instruction,
        "patient_identification": {
            "color": color,
            "color_code": code,
            "applied_at": context.timestamp.isoformat(),
            "session_id": context.session_id,
        },
    }


def record_classification(context: TaskContext) -> dict[str, Any]:
    record = {
        "patient_id": context.get("patient_id"),
        "priority_color": context.get("final_priority_color"),
        "selected_flowchart": context.get("selected_flowchart"),
        "classified_at": context.timestamp.isoformat(),
    }
    return {
        "record_id": f"REC-{context.session_id}",
        "confirmation": record,
        "audit_trail_created": True,
    }


def queue_management(context: TaskContext) -> dict[str, Any]:
    ranks = list(_WRISTBANDS)
    color = context.get("final_priority_color")
    rank = ranks.index(color) if color in ranks else ranks.index("yellow")
    ahead = sum(1 for entry in _QUEUE if ranks.index(entry["priority"]) <= rank)
    return {
        "queue_position": ahead + 1,
        "estimated_wait_time": f"{context.get('final_priority_time', 60)}min",
        "physician_notified": color in ("red", "orange"),
    }


BODIES = {
    "assign_wristband": assign_wristband,
    "record_classification": record_classification,
    "queue_management": queue_management,
}

SAMPLE_CONTEXT: dict[str, Any] = {
    "patient_id": "P100",
    "arrival_time": datetime.now(tz=UTC).isoformat(),
    "chief_complaint": "Crushing chest pain radiating to the left arm for 40 minutes",
    "temperature": 36.8,
    "heart_rate": 112,
    "blood_pressure": "150/95",
    "oxygen_saturation": 94,
    "consciousness_level": "alert",
    "pain_score": 8,
    "symptom_onset": "40 minutes ago",
    "chest_pain_characteristics": "oppressive, radiating, sweating",
    "sepsis_suspected": False,
    "neurological_deficit_present": False,
}


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the example triage pipeline.")
    parser.add_argument(
        "--context",
        type=Path,
        default=None,
        help="Input context JSON (defaults to a built-in chest pain case)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = OrchestratorConfig()
    config.setup_logging()

    context = SAMPLE_CONTEXT
    if args.context is not None:
        context = json.loads(args.context.read_text(encoding="utf-8"))

    orchestrator = Orchestrator(config, load_definition(DEFINITION), bodies=BODIES)
    session = orchestrator.run(f"session_{uuid.uuid4().hex[:12]}", context)

    print(f"Run {session.session_id}: {session.status.value} via {session.plan_source} plan")
    for result in session.task_results:
        suffix = f" ({result.fallback_triggered})" if result.fallback_triggered else ""
        print(f"  {result.task_id:<36} {result.status.value}{suffix}")
    print(json.dumps(session.summary()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
