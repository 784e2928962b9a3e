"""LLM adapter protocol: defines the interface for multimodal inference services."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

SYSTEM_PROMPT = (
    "You are an intelligent assistant. Answer like a human, keep it short, "
    "clear, consistent, and do not use markdown formatting."
)

IMAGE_INSTRUCTION = "Describe this image in detail"


@runtime_checkable
class LLMAdapter(Protocol):
    """Protocol for one-shot multimodal LLM adapters."""

    async def infer(self, image: bytes | None, text: str) -> str:
        """Answer ``text``, optionally grounded on ``image``.

        Returns the concatenated textual reply (possibly empty).
        Raises ``InferenceError`` on failure or when no text is returned.
        """
        ...

    async def close(self) -> None:
        """Close the client and release resources."""
        ...
