"""Pipeline factory: wires the vendor adapters into a RelayPipeline.

Pipeline order:
1. STT (AssemblyAI)  - Audio → transcript      (audio turns only)
2. LLM (Gemini)      - Text (+ image) → reply text
3. TTS (Gemini)      - Reply text → framed WAV
"""

from __future__ import annotations

from pisight.adapters.llm.gemini_openai import GeminiOpenAIAdapter
from pisight.adapters.stt.assemblyai_http import AssemblyAIHTTPAdapter
from pisight.adapters.tts.gemini_http import GeminiHTTPAdapter
from pisight.config import Settings
from pisight.logging import get_logger
from pisight.pipeline.relay import RelayPipeline

logger = get_logger("pipeline.factory")


def build_pipeline(settings: Settings) -> RelayPipeline:
    """Construct the process-wide pipeline.

    The adapters are stateless between calls (each call carries its own
    inputs), so a single pipeline is shared by every connection.
    """
    pipeline = RelayPipeline(
        stt=AssemblyAIHTTPAdapter(settings),
        llm=GeminiOpenAIAdapter(settings),
        tts=GeminiHTTPAdapter(settings),
        log_transcripts=settings.log_transcripts,
    )
    logger.info(
        "Pipeline built: stt=assemblyai llm=%s tts=%s voice=%s",
        settings.gemini_model,
        settings.gemini_tts_model,
        settings.gemini_tts_voice,
    )
    return pipeline
