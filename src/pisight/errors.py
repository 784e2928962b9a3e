"""Failure taxonomy for the relay pipeline stages."""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for every pipeline-stage failure."""


class UploadError(RelayError):
    """Raised when audio cannot be uploaded to the transcription store."""


class TranscriptionError(RelayError):
    """Raised when a transcription job cannot be created or ends in error."""


class TranscriptionTimeout(TranscriptionError):
    """Raised when a transcription job does not finish within the wait bound."""

    def __init__(self, job_id: str, waited_s: float) -> None:
        super().__init__(
            f"Transcription job {job_id} did not complete within {waited_s:.1f}s"
        )
        self.job_id = job_id
        self.waited_s = waited_s


class InferenceError(RelayError):
    """Raised when the language model call fails or yields no text."""


class SynthesisError(RelayError):
    """Raised when speech synthesis fails or returns no audio payload."""


class EncodingError(RelayError):
    """Raised when raw samples cannot be framed into a playable container."""


class BusyRejection(Exception):
    """Admission-control signal: a pipeline is already in flight.

    Not a failure.  The session never raises it across its boundary; it is
    surfaced to the client as an ``error`` event of type ``busy``.
    """

    message = "Still processing previous request"

    def __init__(self) -> None:
        super().__init__(self.message)
