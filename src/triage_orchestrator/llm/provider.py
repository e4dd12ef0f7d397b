"""Reasoning-service interface shared by task bodies and the planning oracle."""

from abc import ABC, abstractmethod
from typing import Any, TypedDict


class ChatMessage(TypedDict):
    role: str
    content: str


def system_and_user(system_prompt: str, prompt: str) -> list[ChatMessage]:
    """The two-message conversation every reasoning call in the engine uses."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompt},
    ]


class LLMProvider(ABC):
    """A blocking chat-completion backend.

    Implementations must be safe to call from worker threads: the engine runs
    every call through ``asyncio.to_thread`` so that one slow reply does not
    stall the other tasks of a wave. ``model`` and ``max_tokens`` overrides
    come from the task declaration; ``None`` means the configured default.
    """

    max_tokens: int = 800
    temperature: float = 0.1

    def _sampling(self, max_tokens: int | None, temperature: float | None) -> dict[str, Any]:
        return {
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
        }

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Complete a single free-form prompt and return the reply text."""

    @abstractmethod
    def chat(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Answer a conversation and return the assistant's reply text.

        An empty reply is returned as ``""``; callers decide whether that is
        an error (task bodies do, because they expect JSON).
        """

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Approximate prompt size, used for logging request budgets."""
