"""AssemblyAI STT adapter: HTTP transport.

Batch transcription in three steps: upload the raw audio, create a
transcript job against the returned URL, then poll the job until it reaches
a terminal status or the configured wait bound is exceeded.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import aiohttp

from pisight.adapters.stt.base import JobStatus, TranscriptJob
from pisight.config import Settings
from pisight.errors import TranscriptionError, TranscriptionTimeout, UploadError
from pisight.logging import get_logger

logger = get_logger("stt.assemblyai_http")


class AssemblyAIHTTPAdapter:
    """HTTP-based STT adapter for the AssemblyAI v2 REST API.

    Implements the STTAdapter protocol.  Each ``transcribe`` call creates a
    new remote job; nothing is cached between calls.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.assemblyai_api_key
        self._upload_url = settings.assemblyai_upload_url
        self._transcript_url = settings.assemblyai_transcript_url
        self._timeout_s = settings.assemblyai_timeout_s
        self._poll_interval_s = settings.transcription_poll_interval_s
        self._max_wait_s = settings.transcription_max_wait_s
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"authorization": self._api_key},
                timeout=aiohttp.ClientTimeout(total=self._timeout_s),
            )
        return self._session

    async def transcribe(self, audio: bytes) -> str:
        upload_url = await self.upload(audio)
        job = await self.create_job(upload_url)
        job = await self.wait_for_job(job)
        return job.text or ""

    async def upload(self, audio: bytes) -> str:
        """Upload raw audio bytes; return the vendor-hosted URL."""
        session = await self._ensure_session()
        try:
            async with session.post(
                self._upload_url,
                data=audio,
                headers={"Content-Type": "application/octet-stream"},
            ) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise UploadError(f"Upload failed: HTTP {resp.status}: {error_text}")
                data = await resp.json()
        except asyncio.CancelledError:
            raise
        except UploadError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise UploadError(f"Upload failed: {exc}") from exc

        upload_url = data.get("upload_url")
        if not upload_url:
            raise UploadError("Upload response did not include an upload_url")
        logger.debug("Uploaded %d bytes of audio", len(audio))
        return upload_url

    async def create_job(self, audio_url: str) -> TranscriptJob:
        """Create a transcript job for previously uploaded audio."""
        data = await self._request("POST", self._transcript_url, json={"audio_url": audio_url})
        job = self._parse_job(data)
        logger.info("Transcription job %s created (%s)", job.id, job.status.value)
        return job

    async def get_job(self, job_id: str) -> TranscriptJob:
        data = await self._request("GET", f"{self._transcript_url}/{job_id}")
        return self._parse_job(data)

    async def wait_for_job(self, job: TranscriptJob) -> TranscriptJob:
        """Poll until the job completes.

        Raises:
            TranscriptionError: The job reached the ``error`` status.
            TranscriptionTimeout: ``transcription_max_wait_s`` elapsed first.
        """
        started = time.monotonic()
        while True:
            job = await self.get_job(job.id)
            if job.status.is_terminal:
                if job.status is JobStatus.ERROR:
                    raise TranscriptionError(job.error or f"Transcription job {job.id} failed")
                logger.info(
                    "Transcription job %s completed in %.1fs",
                    job.id,
                    time.monotonic() - started,
                )
                return job

            waited = time.monotonic() - started
            if waited + self._poll_interval_s > self._max_wait_s:
                logger.warning("Transcription job %s timed out after %.1fs", job.id, waited)
                raise TranscriptionTimeout(job.id, waited)
            await asyncio.sleep(self._poll_interval_s)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        session = await self._ensure_session()
        try:
            async with session.request(method, url, **kwargs) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise TranscriptionError(f"HTTP {resp.status}: {error_text}")
                return await resp.json()
        except asyncio.CancelledError:
            raise
        except TranscriptionError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc

    @staticmethod
    def _parse_job(data: dict[str, Any]) -> TranscriptJob:
        try:
            return TranscriptJob(
                id=str(data["id"]),
                status=JobStatus(data["status"]),
                text=data.get("text"),
                error=data.get("error"),
            )
        except (KeyError, ValueError) as exc:
            raise TranscriptionError(f"Unexpected transcript payload: {data!r}") from exc

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("AssemblyAIHTTP closed")
