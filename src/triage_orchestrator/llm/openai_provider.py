"""Chat-completions provider for OpenAI and compatible gateways."""

import logging
from typing import Any

from openai import OpenAI

from triage_orchestrator.core.config import LLMConfig
from triage_orchestrator.llm.provider import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Talks to ``/chat/completions``.

    ``openai_base_url`` points the client at any gateway speaking the same
    protocol (hosted inference platforms, a local vLLM or Ollama server).
    Tests pass a pre-built ``client`` instead of an API key.
    """

    def __init__(self, config: LLMConfig, client: OpenAI | None = None) -> None:
        if client is None and not config.openai_api_key:
            raise ValueError(
                "OpenAI API key is required (set ORCHESTRATOR_LLM_OPENAI_API_KEY)"
            )

        self.config = config
        self.model = config.openai_model
        self.temperature = config.openai_temperature
        self.max_tokens = config.max_tokens
        self.client = client or OpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.request_timeout_seconds,
        )

        logger.info(
            "Reasoning provider ready",
            extra={"provider": "openai", "model": self.model, "base_url": config.openai_base_url},
        )

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        messages: list[ChatMessage] = [{"role": "user", "content": prompt}]
        return self.chat(messages, max_tokens, temperature, model, **kwargs)

    def chat(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        model_name = model or self.model
        logger.debug(
            "Reasoning request",
            extra={
                "model": model_name,
                "messages": len(messages),
                "approx_prompt_tokens": sum(self.count_tokens(m["content"]) for m in messages),
            },
        )

        response = self.client.chat.completions.create(
            model=model_name,
            messages=messages,  # type: ignore[arg-type]
            **self._sampling(max_tokens, temperature),
            **kwargs,
        )
        return response.choices[0].message.content or ""

    def count_tokens(self, text: str) -> int:
        # No tokenizer dependency; roughly four characters per token.
        return len(text) // 4
