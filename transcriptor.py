import logging

from llm_backends import EngineError, clean_llm_response, parse_json_response
from prompt_templates import PromptBuilder, PromptTemplates

logger = logging.getLogger(__name__)

NO_TRANSCRIPTION = "(No speech or lyrics detected.)"


def transcribe_audio(backend, audio_bytes: bytes, mime_type: str) -> str:
    """Transcribe speech or sung lyrics from a short audio clip.

    Returns:
        Transcribed text, or a placeholder when nothing was recognized.
    """
    if not audio_bytes:
        raise ValueError("audio_bytes is empty")
    text = clean_llm_response(backend.transcribe(audio_bytes, mime_type))
    logger.info("Transcribed %d bytes of %s audio", len(audio_bytes), mime_type)
    return text or NO_TRANSCRIPTION


def transcribe_score(backend, audio_bytes: bytes, mime_type: str) -> dict:
    """Transcribe the melody of an audio file into ABC notation.

    Returns:
        Dict with ``notation`` (ABC text) and ``analysis`` (prose).
    """
    if not audio_bytes:
        raise ValueError("audio_bytes is empty")
    system = PromptBuilder.build_system_prompt("score")
    raw = backend.generate_with_audio(
        PromptTemplates.TASKS["score"], system, audio_bytes, mime_type, json_mode=True,
    )
    data = parse_json_response(raw)
    notation = clean_llm_response(str(data.get("abc") or data.get("notation") or ""))
    if not notation:
        raise EngineError("The model returned no notation.")
    return {"notation": notation, "analysis": str(data.get("analysis") or "").strip()}
