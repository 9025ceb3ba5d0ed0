"""Modular prompt template system for the artist analysis engines.

Prompts are assembled from reusable components: a shared role, a
task-specific instruction block and, for JSON tasks, an output schema.
"""

from typing import Dict, List, Optional

from config import LOCALIZED_LANGUAGE, MAX_MOOD_VARIATIONS


class PromptTemplates:
    """Container for modular prompt template components."""

    # Tier 1: Base components (shared across all prompts)
    BASE_ROLE = "You are an expert vocal coach, music critic and AI music prompt engineer."

    STYLE_TAG_RULES = """Style prompts are comma-separated English tags for an AI music generator (Suno-style "Style of Music" field).
- Combine genre, era, mood, tempo, instrumentation and vocal texture tags (e.g. "airy female vocals", "raspy belting", "breathy falsetto").
- NEVER include any artist, band or song name. Describe the sound, not who made it.
- Keep each prompt under 200 characters."""

    JSON_ONLY = "Respond with a single JSON object and nothing else. No markdown, no commentary."

    # Tier 2: Task instructions
    TASKS = {
        "analysis": f"""Analyze the requested singer in specific, professional detail.
1. Describe their main musical style and their vocal texture/technique, each in at least 2-3 detailed sentences.
2. Write every description twice: once in {LOCALIZED_LANGUAGE} and once in English.
3. List their representative songs.
4. Write between 3 and {MAX_MOOD_VARIATIONS} mood variations, each a style prompt that maximizes the singer's vocal character for that mood. Always include an energetic dance version, an emotional ballad version and a dreamy atmospheric version.
5. Write a "vocal DNA" prompt: tags describing ONLY the timbre and technique of the voice, with no genre and no names.""",

        "refine": """Improve the given style prompt so it captures the singer's vocal character more precisely.
Keep what already works, tighten vague tags, and apply the user's instruction if one is given.""",

        "tailor": """Rewrite the given style prompt so a generated song sounds like the reference track while keeping the singer's vocal character.
Reflect the track's genre, tempo, arrangement and production in the tags.""",

        "structure": """Add song-structure section markers to the lyrics for an AI music generator.
Use markers such as [Intro], [Verse 1], [Pre-Chorus], [Chorus], [Bridge], [Outro] on their own lines.
CRITICAL PRESERVATION RULES:
1. Every word and character of the original lyrics MUST be preserved EXACTLY, in the original order.
2. Do NOT rewrite, translate, correct, add or remove any lyric text.
3. The ONLY thing you may add is section markers in square brackets and line breaks around them.""",

        "score": """Listen to the audio and transcribe its main melody as ABC notation.
Include the X:, T:, M:, L:, Q: and K: header fields. Keep it to a simplified single-voice lead sheet.
Also write a short musical analysis (key, tempo, meter, form, notable harmonic or melodic features).""",
    }

    # Tier 3: Output schemas
    SCHEMAS = {
        "analysis": """{
  "name": "canonical artist name",
  "styleKo": "musical style analysis (localized)",
  "styleEn": "musical style analysis (English)",
  "vocalTextureKo": "vocal texture and technique analysis (localized)",
  "vocalTextureEn": "vocal texture and technique analysis (English)",
  "vocalDnaPrompt": "comma,separated,timbre,tags",
  "representativeSongs": [{"title": "song title", "url": "optional link"}],
  "moodVariations": [{"mood": "mood name", "prompt": "comma,separated,style,tags"}],
  "moodTags": ["short", "keywords"],
  "sources": [{"title": "source title", "uri": "https://...", "snippet": "optional"}]
}""",
        "refine": """{"refinedPrompt": "comma,separated,style,tags"}""",
        "tailor": """{"tailoredPrompt": "comma,separated,style,tags"}""",
        "score": """{"abc": "X:1\\nT:...\\nK:C\\n...", "analysis": "short musical analysis"}""",
    }


class PromptBuilder:
    """Builds system and user prompts for each engine call."""

    @staticmethod
    def build_system_prompt(task: str) -> str:
        """Build the system prompt for *task* (a key of ``PromptTemplates.TASKS``)."""
        parts = [PromptTemplates.BASE_ROLE, "", PromptTemplates.TASKS[task]]

        if task in ("analysis", "refine", "tailor"):
            parts.append("")
            parts.append(PromptTemplates.STYLE_TAG_RULES)

        schema = PromptTemplates.SCHEMAS.get(task)
        if schema:
            parts.append("")
            parts.append(PromptTemplates.JSON_ONLY)
            parts.append("Use exactly this JSON shape:")
            parts.append(schema)

        return "\n".join(parts)

    @staticmethod
    def build_analysis_prompt(artist_name: str) -> str:
        return f'Analyze the singer "{artist_name}". Return the JSON object.'

    @staticmethod
    def build_revision_prompt(artist_name: str, vocal_texture: str, current_prompt: str,
                              instruction: Optional[str] = None,
                              reference_track: Optional[str] = None) -> str:
        """User prompt shared by refinement and tailoring."""
        parts = [
            f"Singer: {artist_name}",
            f"Vocal texture: {vocal_texture}",
            f"Current prompt: {current_prompt}",
        ]
        if reference_track:
            parts.append(f"Reference track: {reference_track}")
        if instruction and instruction.strip():
            parts.append(f"Instruction: {instruction.strip()}")
        parts.append("")
        parts.append("Return the JSON object.")
        return "\n".join(parts)

    @staticmethod
    def build_structure_prompt(raw_lyrics: str, artist_context: Optional[Dict[str, str]] = None) -> str:
        parts: List[str] = []
        if artist_context:
            parts.append(f"Structure these lyrics in the style of {artist_context['name']}.")
            parts.append(f"Artist style: {artist_context['style_summary']}")
            parts.append(f"Vocal character: {artist_context['vocal_summary']}")
            parts.append("Let the artist's typical song form guide where sections start; do not change the words.")
        else:
            parts.append("Structure these lyrics using a conventional pop song form.")
        parts.append("")
        parts.append("Lyrics:")
        parts.append(raw_lyrics)
        parts.append("")
        parts.append("Output ONLY the lyrics with section markers.")
        return "\n".join(parts)
