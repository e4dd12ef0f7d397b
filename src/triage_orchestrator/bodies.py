"""Reusable task bodies.

A task body is any callable ``(TaskContext) -> Mapping`` (sync or async).
This module provides the generic bodies used by declaration-driven pipelines:

- `LLMReasoningBody`: render a prompt from the context, ask the reasoning
  service, parse the JSON reply.
- `HttpCallBody`: post the task's inputs to an HTTP endpoint.

Retrying a flaky reasoning service is the body's job, not the runner's; see
`retry_with_backoff`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

import requests

from triage_orchestrator.engine.context import TaskContext
from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.runner import TaskBody
from triage_orchestrator.llm.parsing import parse_json_reply
from triage_orchestrator.llm.provider import LLMProvider, system_and_user

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

DEFAULT_SYSTEM_PROMPT = (
    "You automate operational steps of a hospital triage process. "
    "Be precise and objective, base every decision on the data provided, "
    "and always reply with valid JSON."
)


class BodyNotAvailableError(LookupError):
    """No body can be built for a declaration; register one in code."""


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    base_delay_seconds: float = 1.0,
    description: str = "operation",
) -> T:
    """Await `operation` up to `max_attempts` times.

    After failed attempt ``i`` (0-based) the next attempt waits
    ``base_delay_seconds * 2**i``. The last error is re-raised.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            if attempt == max_attempts - 1:
                raise
            delay = base_delay_seconds * 2**attempt
            logger.warning(
                "Attempt failed; retrying",
                extra={
                    "operation": description,
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "delay_seconds": delay,
                    "error": str(e),
                },
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")


def render_prompt(template: str, data: Mapping[str, Any]) -> str:
    """Substitute ``{key}`` placeholders from `data`.

    Strings are inserted as-is, other values as JSON, missing keys as empty.
    """

    def _value(match: re.Match[str]) -> str:
        value = data.get(match.group(1))
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False, default=str)

    return _PLACEHOLDER_RE.sub(_value, template)


class LLMReasoningBody:
    """Ask the reasoning service and return its JSON answer as outputs."""

    def __init__(
        self,
        provider: LLMProvider,
        prompt_template: str,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        max_attempts: int = 2,
        base_delay_seconds: float = 1.0,
        output_keys: Sequence[str] | None = None,
    ) -> None:
        self.provider = provider
        self.prompt_template = prompt_template
        self.system_prompt = system_prompt
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.output_keys = tuple(output_keys) if output_keys else None

    async def __call__(self, context: TaskContext) -> dict[str, Any]:
        messages = system_and_user(
            self.system_prompt, render_prompt(self.prompt_template, context.data)
        )

        async def _ask() -> dict[str, Any]:
            reply = await asyncio.to_thread(
                self.provider.chat,
                messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                model=self.model,
            )
            return parse_json_reply(reply)

        parsed = await retry_with_backoff(
            _ask,
            max_attempts=self.max_attempts,
            base_delay_seconds=self.base_delay_seconds,
            description=f"reasoning call for {context.task_id}",
        )

        if self.output_keys is None:
            return parsed
        outputs = {key: parsed[key] for key in self.output_keys if key in parsed}
        if "reasoning" in parsed:
            outputs.setdefault("reasoning", parsed["reasoning"])
        return outputs


class HttpCallBody:
    """Send the task's inputs to an HTTP endpoint and return the JSON reply.

    This is a sync body; the runner executes it on a worker thread.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        method: str = "POST",
        input_keys: Sequence[str] = (),
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.method = method.upper()
        self.input_keys = tuple(input_keys)
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def __call__(self, context: TaskContext) -> dict[str, Any]:
        payload = {key: context.get(key) for key in self.input_keys}
        if self.method == "GET":
            response = self._session.request(
                self.method, self.endpoint, params=payload, timeout=self.timeout_seconds
            )
        else:
            response = self._session.request(
                self.method, self.endpoint, json=payload, timeout=self.timeout_seconds
            )

        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise RuntimeError("API call returned a non-object JSON body")
        return data


def build_body(
    declaration: TaskDeclaration,
    provider: LLMProvider | None,
    *,
    max_attempts: int = 2,
    base_delay_seconds: float = 1.0,
) -> TaskBody:
    """Build a body from a declaration's own description.

    Raises:
        BodyNotAvailableError: If the declaration cannot be executed without a
            code-registered body.
    """

    if declaration.kind == "llm_reasoning" and declaration.prompt_template:
        if provider is None:
            raise BodyNotAvailableError(
                f"Task {declaration.id} needs a reasoning provider but none is configured"
            )
        return LLMReasoningBody(
            provider,
            declaration.prompt_template,
            model=declaration.execution.model,
            max_tokens=declaration.execution.max_tokens,
            max_attempts=declaration.execution.max_retries or max_attempts,
            base_delay_seconds=base_delay_seconds,
            output_keys=declaration.outputs or None,
        )

    if declaration.kind == "api_call":
        if not declaration.execution.endpoint:
            raise BodyNotAvailableError(f"Task {declaration.id}: API endpoint not specified")
        return HttpCallBody(
            declaration.execution.endpoint,
            method=declaration.execution.method,
            input_keys=declaration.inputs,
            timeout_seconds=declaration.execution.timeout_seconds or 30.0,
        )

    raise BodyNotAvailableError(
        f"Task {declaration.id} ({declaration.kind}) has no body; register one in code"
    )
