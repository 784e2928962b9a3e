"""Centralised configuration via pydantic-settings + .env."""

from __future__ import annotations

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All knobs live here.  Loaded from environment / .env in project root."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Server ───────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: list[str] = ["*"]
    max_http_buffer_size: int = 50_000_000  # large audio / images

    # ── AssemblyAI STT ──────────────────────────────────
    assemblyai_api_key: str = Field(default="", validate_default=True)
    assemblyai_base_url: str = "https://api.assemblyai.com"
    assemblyai_timeout_s: float = 30.0
    transcription_poll_interval_s: float = 3.0
    transcription_max_wait_s: float = 120.0

    # ── Gemini LLM (OpenAI-compatible endpoint) ─────────
    google_api_key: str = Field(default="", validate_default=True)
    gemini_openai_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    gemini_model: str = "gemini-2.5-flash"
    gemini_timeout_s: float = 60.0
    gemini_max_retries: int = 2

    # ── Gemini TTS ──────────────────────────────────────
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_tts_model: str = "gemini-2.5-flash-preview-tts"
    gemini_tts_voice: str = "Kore"
    gemini_tts_timeout_s: float = 60.0

    # ── Logging / Metrics ───────────────────────────────
    log_level: str = "INFO"
    log_transcripts: bool = False
    metrics_enabled: bool = True

    # ── Debug ────────────────────────────────────────────
    debug_save_audio: bool = False
    debug_audio_dir: str = "."

    @property
    def assemblyai_upload_url(self) -> str:
        return f"{self.assemblyai_base_url}/v2/upload"

    @property
    def assemblyai_transcript_url(self) -> str:
        return f"{self.assemblyai_base_url}/v2/transcript"

    @property
    def gemini_tts_url(self) -> str:
        return f"{self.gemini_base_url}/models/{self.gemini_tts_model}:generateContent"

    @field_validator("assemblyai_api_key", "google_api_key")
    @classmethod
    def _key_not_empty(cls, v: str, info: ValidationInfo) -> str:
        if not v:
            raise ValueError(
                f"{info.field_name.upper()} is required. "
                "Set it in .env or as an environment variable."
            )
        return v


def get_settings() -> Settings:
    """Singleton-ish factory; import and call where needed."""
    return Settings()
