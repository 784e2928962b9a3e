"""Gemini LLM adapter: OpenAI-compatible chat completions via AsyncOpenAI.

Google exposes Gemini behind an OpenAI-compatible endpoint, which accepts
images as base64 data URLs inside ``image_url`` content parts.
"""

from __future__ import annotations

import asyncio
import base64
import random
from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
)

from pisight.adapters.llm.base import IMAGE_INSTRUCTION, SYSTEM_PROMPT
from pisight.config import Settings
from pisight.errors import InferenceError
from pisight.logging import get_logger

logger = get_logger("llm.gemini")

_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_image_mime(image: bytes, default: str = "image/png") -> str:
    """Guess an image MIME type from its magic bytes."""
    for signature, mime in _IMAGE_SIGNATURES:
        if image.startswith(signature):
            return mime
    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"
    return default


def build_messages(image: bytes | None, text: str) -> list[dict[str, Any]]:
    """Compose the chat turns: system, user text, then the image turn if any."""
    messages: list[dict[str, Any]] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": [{"type": "text", "text": text}]},
    ]
    if image is not None:
        encoded = base64.b64encode(image).decode("ascii")
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": IMAGE_INSTRUCTION},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{sniff_image_mime(image)};base64,{encoded}"},
                    },
                ],
            }
        )
    return messages


def extract_text(completion: Any) -> str:
    """Join every textual segment of a completion in emission order.

    Raises InferenceError if the completion carries no text segment at all.
    An empty-string segment counts as text.
    """
    segments = [
        choice.message.content
        for choice in (completion.choices or [])
        if choice.message is not None and choice.message.content is not None
    ]
    if not segments:
        raise InferenceError("Model returned no textual content")
    return "\n".join(segments)


class GeminiOpenAIAdapter:
    """Gemini LLM adapter using AsyncOpenAI against the compatibility endpoint.

    Features:
    - Exponential backoff with jitter on retryable errors (408, 429, 5xx, connection)
    - Every failure surfaces as InferenceError
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client = AsyncOpenAI(
            api_key=settings.google_api_key,
            base_url=settings.gemini_openai_base_url,
            timeout=settings.gemini_timeout_s,
            max_retries=0,  # Retries handled here so they map onto InferenceError
        )
        self._model = settings.gemini_model
        self._max_retries = settings.gemini_max_retries

    async def infer(self, image: bytes | None, text: str) -> str:
        messages = build_messages(image, text)

        last_exc: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                completion = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,  # type: ignore[arg-type]
                )
                return extract_text(completion)

            except asyncio.CancelledError:
                raise
            except (APIConnectionError, APITimeoutError) as exc:
                last_exc = exc
                logger.warning(
                    "Gemini connection/timeout error (attempt %d/%d): %s",
                    attempt + 1,
                    self._max_retries + 1,
                    exc,
                )
            except APIStatusError as exc:
                last_exc = exc
                status = exc.status_code
                if status in (408, 429) or status >= 500:
                    logger.warning(
                        "Gemini retryable error %d (attempt %d/%d): %s",
                        status,
                        attempt + 1,
                        self._max_retries + 1,
                        exc,
                    )
                else:
                    logger.error("Gemini non-retryable error %d: %s", status, exc)
                    raise InferenceError(f"Gemini request failed ({status}): {exc.message}") from exc
            except OpenAIError as exc:
                logger.error("Gemini request error: %s", exc)
                raise InferenceError(f"Gemini request failed: {exc}") from exc

            # Exponential backoff with jitter
            if attempt < self._max_retries:
                backoff = min(2**attempt + random.uniform(0, 1), 10.0)
                logger.info("Retrying in %.1fs...", backoff)
                await asyncio.sleep(backoff)

        raise InferenceError(f"Gemini request failed: {last_exc}") from last_exc

    async def close(self) -> None:
        """Close the AsyncOpenAI client."""
        await self._client.close()
        logger.info("Gemini LLM adapter closed")
