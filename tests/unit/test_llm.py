"""Unit tests for reasoning providers and reply parsing."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from triage_orchestrator.core.config import LLMConfig
from triage_orchestrator.llm.factory import LLMFactory
from triage_orchestrator.llm.openai_provider import OpenAIProvider
from triage_orchestrator.llm.parsing import parse_json_reply


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.parametrize(
    "reply",
    [
        '{"color": "red"}',
        'Sure!\n```json\n{"color": "red"}\n```\nAnything else?',
        'The answer is {"color": "red"} as requested.',
    ],
)
def test_parse_json_reply(reply: str) -> None:
    assert parse_json_reply(reply) == {"color": "red"}


@pytest.mark.parametrize("reply", ["no json here", "[1, 2, 3]", "{broken"])
def test_parse_json_reply_rejects(reply: str) -> None:
    with pytest.raises(ValueError, match="Failed to parse JSON"):
        parse_json_reply(reply)


def test_openai_provider_requires_api_key() -> None:
    with pytest.raises(ValueError, match="API key"):
        OpenAIProvider(LLMConfig(openai_api_key=None))


def test_openai_provider_chat_uses_defaults_and_overrides(llm_config: LLMConfig) -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion('{"ok": true}')
    provider = OpenAIProvider(llm_config, client=client)

    reply = provider.chat([{"role": "user", "content": "hi"}])
    assert reply == '{"ok": true}'
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 800
    assert kwargs["temperature"] == 0.1

    provider.chat([{"role": "user", "content": "hi"}], model="other", max_tokens=50, temperature=0)
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "other"
    assert kwargs["max_tokens"] == 50
    assert kwargs["temperature"] == 0


def test_openai_provider_generate_wraps_prompt(llm_config: LLMConfig) -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(None)
    provider = OpenAIProvider(llm_config, client=client)

    assert provider.generate("plan this") == ""
    messages = client.chat.completions.create.call_args.kwargs["messages"]
    assert messages == [{"role": "user", "content": "plan this"}]
    assert provider.count_tokens("x" * 40) == 10


def test_factory_creates_openai_provider(llm_config: LLMConfig) -> None:
    assert isinstance(LLMFactory.create(llm_config), OpenAIProvider)


def test_factory_llama_requires_model_path() -> None:
    with pytest.raises(ValueError, match="model path"):
        LLMFactory.create(LLMConfig(provider="llama"))
