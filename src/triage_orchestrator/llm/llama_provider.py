"""In-process reasoning with a local GGUF model."""

import logging
from typing import Any

from triage_orchestrator.core.config import LLMConfig
from triage_orchestrator.llm.provider import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)


class LLaMAProvider(LLMProvider):
    """Runs a llama.cpp model inside the process.

    For deployments where patient data may not leave the host. Needs the
    ``llama`` extra (``pip install "triage-orchestrator[llama]"``). One model
    is loaded per provider, so per-task ``model`` overrides are ignored.
    """

    def __init__(self, config: LLMConfig) -> None:
        if not config.llama_model_path:
            raise ValueError(
                "LLaMA model path is required (set ORCHESTRATOR_LLM_LLAMA_MODEL_PATH)"
            )

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise ImportError(
                'The llama provider needs llama-cpp-python: pip install "triage-orchestrator[llama]"'
            ) from e

        self.config = config
        self.max_tokens = config.max_tokens
        self.temperature = config.openai_temperature

        logger.info(
            "Loading local model",
            extra={"provider": "llama", "model_path": str(config.llama_model_path)},
        )
        self.llm = Llama(
            model_path=str(config.llama_model_path),
            n_ctx=config.llama_n_ctx,
            n_threads=config.llama_n_threads,
            verbose=False,
        )

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        result = self.llm(prompt, **self._sampling(max_tokens, temperature), **kwargs)
        return result["choices"][0]["text"]

    def chat(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        if model and model != self.config.openai_model:
            logger.debug("Local model ignores per-task override", extra={"model": model})

        result = self.llm.create_chat_completion(
            messages=messages,  # type: ignore[arg-type]
            **self._sampling(max_tokens, temperature),
            **kwargs,
        )
        return result["choices"][0]["message"]["content"] or ""

    def count_tokens(self, text: str) -> int:
        return len(self.llm.tokenize(text.encode("utf-8")))
