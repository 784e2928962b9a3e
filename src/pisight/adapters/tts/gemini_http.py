"""Gemini TTS adapter: HTTP transport.

Calls ``models/{model}:generateContent`` with an AUDIO response modality.
The model answers with base64 raw PCM (mono, 24kHz, 16-bit) that is framed
into WAV before it leaves this adapter.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from pathlib import Path
from typing import Any

import aiohttp

from pisight.config import Settings
from pisight.errors import SynthesisError
from pisight.logging import get_logger
from pisight.pipeline.audio_codec import GEMINI_TTS_FORMAT, frame_wav

logger = get_logger("tts.gemini_http")


def extract_audio_payload(data: dict[str, Any]) -> bytes:
    """Pull the raw PCM out of a generateContent response.

    Raises SynthesisError when the response carries no audio part.
    """
    try:
        encoded = data["candidates"][0]["content"]["parts"][0]["inlineData"]["data"]
    except (KeyError, IndexError, TypeError):
        encoded = None
    if not encoded:
        raise SynthesisError("No audio data returned from Gemini API.")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SynthesisError(f"Gemini audio payload is not valid base64: {exc}") from exc


class GeminiHTTPAdapter:
    """HTTP-based TTS adapter for Gemini speech generation.

    Implements the TTSAdapter protocol.  Owns the only bridge between raw
    model output and playable audio.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._url = settings.gemini_tts_url
        self._api_key = settings.google_api_key
        self._voice = settings.gemini_tts_voice
        self._timeout_s = settings.gemini_tts_timeout_s
        self._save_dir = Path(settings.debug_audio_dir) if settings.debug_save_audio else None
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"x-goog-api-key": self._api_key},
                timeout=aiohttp.ClientTimeout(total=self._timeout_s),
            )
        return self._session

    def _payload(self, text: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {
                        "prebuiltVoiceConfig": {"voiceName": self._voice},
                    },
                },
            },
        }

    async def synthesize(self, text: str) -> bytes:
        session = await self._ensure_session()
        try:
            async with session.post(self._url, json=self._payload(text)) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    logger.error("GeminiTTS error %d: %s", resp.status, error_text)
                    raise SynthesisError(f"HTTP {resp.status}: {error_text}")
                data = await resp.json()
        except asyncio.CancelledError:
            raise
        except SynthesisError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("GeminiTTS synthesis error: %s", exc)
            raise SynthesisError(f"Speech synthesis request failed: {exc}") from exc

        pcm = extract_audio_payload(data)
        framed = frame_wav(pcm, GEMINI_TTS_FORMAT)

        if self._save_dir is not None:
            await self._save_debug_copy(framed)
        return framed

    async def _save_debug_copy(self, framed: bytes) -> None:
        path = self._save_dir / f"tts_output_{int(time.time() * 1000)}.wav"
        try:
            await asyncio.to_thread(path.write_bytes, framed)
        except OSError as exc:
            logger.warning("Could not save debug audio to %s: %s", path, exc)
            return
        logger.info("TTS audio saved: %s", path)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("GeminiTTS closed")
