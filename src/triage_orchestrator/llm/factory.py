"""Builds the configured reasoning provider."""

import logging
from collections.abc import Callable

from triage_orchestrator.core.config import LLMConfig
from triage_orchestrator.llm.llama_provider import LLaMAProvider
from triage_orchestrator.llm.openai_provider import OpenAIProvider
from triage_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

_PROVIDERS: dict[str, Callable[[LLMConfig], LLMProvider]] = {
    "openai": OpenAIProvider,
    "llama": LLaMAProvider,
}


class LLMFactory:
    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Instantiate the provider named by ``config.provider``.

        Raises:
            ValueError: Unknown provider, or the provider is missing its
                credentials or model path.
            ImportError: The local provider's optional dependency is absent.
        """
        try:
            provider_cls = _PROVIDERS[config.provider]
        except KeyError:
            raise ValueError(f"Unsupported LLM provider: {config.provider}") from None

        logger.debug("Creating reasoning provider", extra={"provider": config.provider})
        return provider_cls(config)
