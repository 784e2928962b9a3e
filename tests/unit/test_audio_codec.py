"""Tests for WAV framing of headerless PCM."""

import io
import struct
import wave

import pytest

from pisight.errors import EncodingError
from pisight.pipeline.audio_codec import GEMINI_TTS_FORMAT, AudioFormat, frame_wav


def _sine_like_pcm(n_samples: int) -> bytes:
    return struct.pack(f"<{n_samples}h", *((i * 97) % 65536 - 32768 for i in range(n_samples)))


class TestFrameWav:
    """Framing must be self-describing and lossless."""

    def test_header_matches_format(self):
        pcm = _sine_like_pcm(2400)
        framed = frame_wav(pcm, GEMINI_TTS_FORMAT)

        with wave.open(io.BytesIO(framed), "rb") as wf:
            assert wf.getnchannels() == 1
            assert wf.getframerate() == 24000
            assert wf.getsampwidth() == 2
            assert wf.getnframes() == 2400
            assert wf.readframes(wf.getnframes()) == pcm

    def test_payload_follows_44_byte_header(self):
        pcm = _sine_like_pcm(1000)
        framed = frame_wav(pcm, GEMINI_TTS_FORMAT)

        assert framed[:4] == b"RIFF"
        assert framed[8:12] == b"WAVE"
        assert len(framed) == 44 + len(pcm)
        assert framed[44:] == pcm

    def test_stereo_frame_count(self):
        fmt = AudioFormat(channels=2, sample_rate=16000, bit_depth=16)
        pcm = b"\x01\x00\x02\x00" * 500
        framed = frame_wav(pcm, fmt)

        with wave.open(io.BytesIO(framed), "rb") as wf:
            assert wf.getnchannels() == 2
            assert wf.getnframes() == 500

    def test_empty_buffer_is_valid(self):
        framed = frame_wav(b"", GEMINI_TTS_FORMAT)
        with wave.open(io.BytesIO(framed), "rb") as wf:
            assert wf.getnframes() == 0


class TestFrameWavErrors:
    """Malformed input raises EncodingError and returns nothing."""

    def test_partial_sample_rejected(self):
        with pytest.raises(EncodingError, match="whole number"):
            frame_wav(b"\x00\x01\x02", GEMINI_TTS_FORMAT)

    def test_partial_stereo_frame_rejected(self):
        fmt = AudioFormat(channels=2, sample_rate=24000, bit_depth=16)
        with pytest.raises(EncodingError):
            frame_wav(b"\x00" * 6, fmt)

    def test_unsupported_bit_depth(self):
        with pytest.raises(EncodingError):
            frame_wav(b"\x00" * 4, AudioFormat(channels=1, sample_rate=24000, bit_depth=12))

    def test_zero_channels(self):
        with pytest.raises(EncodingError):
            frame_wav(b"", AudioFormat(channels=0, sample_rate=24000, bit_depth=16))

    def test_sample_width_beyond_wave_limit(self):
        with pytest.raises(EncodingError, match="WAV framing failed"):
            frame_wav(b"\x00" * 5, AudioFormat(channels=1, sample_rate=24000, bit_depth=40))
