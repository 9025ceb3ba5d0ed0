import logging
import re

from llm_backends import EngineError, clean_llm_response
from prompt_templates import PromptBuilder

logger = logging.getLogger(__name__)

_SECTION_TAG = re.compile(r"\[[^\[\]\n]*\]")


def strip_section_tags(text):
    """Remove every ``[...]`` marker and collapse whitespace to single spaces."""
    return " ".join(_SECTION_TAG.sub(" ", text or "").split())


def is_content_preserved(raw_lyrics, structured_lyrics):
    """True when *structured_lyrics* is *raw_lyrics* plus section markers only."""
    return strip_section_tags(structured_lyrics) == strip_section_tags(raw_lyrics)


def artist_context_from_result(result):
    """Style context for structuring lyrics after an analyzed artist."""
    return {
        "name": result.name,
        "style_summary": result.style.localized or result.style.reference,
        "vocal_summary": result.vocal_texture.localized or result.vocal_texture.reference,
    }


def structure_lyrics(backend, raw_lyrics, artist_context=None):
    """Return *raw_lyrics* annotated with section markers.

    *artist_context* (``name``, ``style_summary``, ``vocal_summary``) is passed
    through to the prompt as given; without it the lyrics get a generic form.
    """
    system = PromptBuilder.build_system_prompt("structure")
    prompt = PromptBuilder.build_structure_prompt(raw_lyrics, artist_context)
    structured = clean_llm_response(backend.generate(prompt, system))
    if not structured:
        raise EngineError("The model returned no lyrics.")
    if not is_content_preserved(raw_lyrics, structured):
        logger.warning("Structured lyrics differ from the original beyond section markers")
    return structured
