"""Tests for settings validation and the structured log formatter."""

import json
import logging

import pytest
from pydantic import ValidationError

from pisight.config import Settings
from pisight.logging import StructuredFormatter, bind, get_logger


class TestSettings:
    def test_missing_keys_rejected(self, monkeypatch):
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

        with pytest.raises(ValidationError, match="ASSEMBLYAI_API_KEY is required"):
            Settings(_env_file=None, google_api_key="g")

    def test_keys_from_environment(self, monkeypatch):
        monkeypatch.setenv("ASSEMBLYAI_API_KEY", "aai")
        monkeypatch.setenv("GOOGLE_API_KEY", "goog")
        monkeypatch.setenv("TRANSCRIPTION_MAX_WAIT_S", "30")

        settings = Settings(_env_file=None)

        assert settings.assemblyai_api_key == "aai"
        assert settings.transcription_max_wait_s == 30.0

    def test_defaults(self):
        settings = Settings(_env_file=None, assemblyai_api_key="a", google_api_key="g")

        assert settings.transcription_poll_interval_s == 3.0
        assert settings.max_http_buffer_size == 50_000_000
        assert settings.gemini_tts_voice == "Kore"
        assert settings.assemblyai_transcript_url == "https://api.assemblyai.com/v2/transcript"
        assert settings.gemini_tts_url.endswith(
            "/models/gemini-2.5-flash-preview-tts:generateContent"
        )


class TestStructuredFormatter:
    def test_context_fields_included(self):
        logger = get_logger("test")
        record = logger.makeRecord(
            logger.name, logging.INFO, __file__, 1, "Image received: %d bytes", (42,), None,
            extra={"sid": "abc", "event": "image_received"},
        )

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["logger"] == "pisight.test"
        assert entry["message"] == "Image received: 42 bytes"
        assert entry["sid"] == "abc"
        assert entry["event"] == "image_received"
        assert "session_id" not in entry


class TestBoundLogger:
    def test_bound_context_merged_with_call_extra(self, caplog):
        log = bind(get_logger("test"), session_id="s-1", sid="abc")

        with caplog.at_level(logging.INFO, logger="pisight.test"):
            log.info("Image cleared", extra={"event": "image_cleared", "sid": "override"})

        [record] = caplog.records
        assert record.session_id == "s-1"
        assert record.sid == "override"
        assert record.event == "image_cleared"

    def test_empty_context_fields_omitted(self):
        logger = get_logger("test")
        record = logger.makeRecord(
            logger.name, logging.INFO, __file__, 1, "Session closed", (), None,
            extra={"session_id": "s-1", "sid": "", "event": "session_closed"},
        )

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["session_id"] == "s-1"
        assert "sid" not in entry
