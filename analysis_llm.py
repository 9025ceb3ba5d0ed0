import logging

from pydantic import ValidationError

from llm_backends import EngineError, clean_llm_response, parse_json_response
from models import AnalysisResult
from prompt_templates import PromptBuilder

logger = logging.getLogger(__name__)


def analyze_artist(backend, artist_name):
    """Ask the model for a full profile of *artist_name*.

    Raises EngineError when the backend fails or the answer cannot be turned
    into an AnalysisResult (including when the model could not identify the
    artist).
    """
    system = PromptBuilder.build_system_prompt("analysis")
    prompt = PromptBuilder.build_analysis_prompt(artist_name)
    data = parse_json_response(backend.generate(prompt, system, json_mode=True))

    if data.get("error"):
        raise EngineError(f"Model could not analyze {artist_name}: {data['error']}")
    if not str(data.get("name") or "").strip():
        data["name"] = artist_name
    try:
        result = AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise EngineError(f"Unusable analysis for {artist_name}: {e}")
    if not result.mood_variations:
        raise EngineError(f"Analysis for {artist_name} contained no style prompts")
    logger.info("Analyzed %s (%d mood variations)", result.name, len(result.mood_variations))
    return result


def _revise(backend, task, key, user_prompt):
    system = PromptBuilder.build_system_prompt(task)
    data = parse_json_response(backend.generate(user_prompt, system, json_mode=True))
    text = clean_llm_response(str(data.get(key) or data.get("prompt") or ""))
    if not text:
        raise EngineError(f"The model returned no {task}d prompt.")
    return text


def refine_prompt(backend, artist_name, vocal_texture_reference, current_prompt, instruction=None):
    """Return an improved version of *current_prompt*."""
    user_prompt = PromptBuilder.build_revision_prompt(
        artist_name, vocal_texture_reference, current_prompt, instruction=instruction,
    )
    return _revise(backend, "refine", "refinedPrompt", user_prompt)


def tailor_prompt(backend, artist_name, vocal_texture_reference, current_prompt, reference_track):
    """Return *current_prompt* rewritten to sound like *reference_track*."""
    if not reference_track or not reference_track.strip():
        raise ValueError("reference_track is required")
    user_prompt = PromptBuilder.build_revision_prompt(
        artist_name, vocal_texture_reference, current_prompt, reference_track=reference_track.strip(),
    )
    return _revise(backend, "tailor", "tailoredPrompt", user_prompt)
