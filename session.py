"""Working state for the artist analysis screen.

The session holds the active AnalysisResult plus editable copies of its
prompts: one text per mood variation and the vocal DNA text. Edits and
AI revisions change only these copies, never the result or its history entry.

Model calls run on Gradio worker threads. Each prompt slot allows one
revision in flight; a second request for a busy slot is dropped. Every call
remembers which analysis it was issued against and its answer is thrown away
if a different analysis became active in the meantime.
"""

import logging
import threading

from analysis_llm import analyze_artist, refine_prompt, tailor_prompt
from config import VOCAL_DNA_LABEL
from llm_backends import EngineError
from models import strip_name_from_tags

logger = logging.getLogger(__name__)

DNA_SLOT = ("dna",)


def mood_slot(index):
    return ("mood", index)


class AnalysisFailed(EngineError):
    """The artist could not be analyzed; the message is safe to show users."""

    MESSAGE = "Could not analyze this artist. Check the name or try again in a moment."


class SessionState:
    def __init__(self, backend, history, library):
        self.backend = backend
        self.history = history
        self.library = library
        self.result = None
        self.mood_prompts = []
        self.vocal_dna = ""
        self.analyzing = False
        self.last_error = None
        self._generation = 0
        self._busy = set()
        self._lock = threading.Lock()

    # ─── Analysis ───

    def run_analysis(self, query):
        """Analyze the artist named *query* and make it the active result.

        Returns None without calling the model for a blank query or while
        another analysis is running. On failure raises AnalysisFailed and
        leaves the current result and prompts as they were.
        """
        query = (query or "").strip()
        if not query:
            return None
        with self._lock:
            if self.analyzing:
                return None
            self.analyzing = True
            self.last_error = None
        try:
            result = analyze_artist(self.backend, query)
        except EngineError as e:
            logger.error("Analysis of %s failed: %s", query, e)
            self.last_error = AnalysisFailed.MESSAGE
            raise AnalysisFailed(AnalysisFailed.MESSAGE) from e
        finally:
            with self._lock:
                self.analyzing = False
        self._activate(result)
        self.history.record(result)
        return result

    def load_history_entry(self, entry_id):
        """Show a past result again. Returns None if the entry is gone."""
        result = self.history.select(entry_id)
        if result is None:
            return None
        self._activate(result)
        return result

    def _activate(self, result):
        with self._lock:
            self.result = result
            self.mood_prompts = [m.prompt for m in result.mood_variations]
            self.vocal_dna = result.vocal_dna_prompt
            self.last_error = None
            self._generation += 1

    @property
    def track_titles(self):
        if self.result is None:
            return []
        return [t.title for t in self.result.representative_tracks]

    # ─── Direct edits ───

    def set_mood_prompt_text(self, index, text):
        """Overwrite mood prompt *index*.

        An index outside the current prompts raises IndexError.
        """
        with self._lock:
            if not 0 <= index < len(self.mood_prompts):
                raise IndexError(f"mood prompt index {index} out of range")
            self.mood_prompts[index] = text

    def set_vocal_dna_text(self, text):
        with self._lock:
            self.vocal_dna = text

    # ─── AI revisions ───

    def is_busy(self, slot):
        with self._lock:
            return (self._generation,) + slot in self._busy

    def _read_slot(self, slot):
        if slot == DNA_SLOT:
            return self.vocal_dna
        index = slot[1]
        if not 0 <= index < len(self.mood_prompts):
            raise IndexError(f"mood prompt index {index} out of range")
        return self.mood_prompts[index]

    def _write_slot(self, slot, text):
        if slot == DNA_SLOT:
            self.vocal_dna = strip_name_from_tags(text, self.result.name)
        else:
            self.mood_prompts[slot[1]] = text

    def _revise_slot(self, slot, revise):
        """Run *revise* for one slot and store its answer.

        *revise* is called as ``revise(artist_name, vocal_texture, current_text)``
        outside the lock. Returns the new text, or None when the slot was
        busy, no result is active, or the answer arrived for a result that is
        no longer active. Engine errors propagate and leave the text alone.
        """
        with self._lock:
            if self.result is None:
                return None
            current = self._read_slot(slot)
            key = (self._generation,) + slot
            if key in self._busy:
                logger.info("Ignoring revision request for busy slot %s", slot)
                return None
            self._busy.add(key)
            generation = self._generation
            artist = self.result.name
            texture = self.result.vocal_texture.reference
        try:
            text = revise(artist, texture, current)
        finally:
            with self._lock:
                self._busy.discard(key)
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding revision for %s: a different analysis is now active", artist)
                return None
            self._write_slot(slot, text)
            return self._read_slot(slot)

    def refine_mood_prompt(self, index, instruction=None):
        return self._revise_slot(
            mood_slot(index),
            lambda artist, texture, current: refine_prompt(
                self.backend, artist, texture, current, instruction=instruction),
        )

    def tailor_mood_prompt_to_track(self, index, track_title):
        if not track_title or not track_title.strip():
            return None
        return self._revise_slot(
            mood_slot(index),
            lambda artist, texture, current: tailor_prompt(
                self.backend, artist, texture, current, track_title),
        )

    def refine_vocal_dna(self, instruction=None):
        return self._revise_slot(
            DNA_SLOT,
            lambda artist, texture, current: refine_prompt(
                self.backend, artist, texture, current, instruction=instruction),
        )

    def tailor_vocal_dna_to_track(self, track_title):
        if not track_title or not track_title.strip():
            return None
        return self._revise_slot(
            DNA_SLOT,
            lambda artist, texture, current: tailor_prompt(
                self.backend, artist, texture, current, track_title),
        )

    # ─── Saving ───

    def save_mood_prompt(self, index, folder_id=None):
        """Save the current text of mood prompt *index* to the library."""
        with self._lock:
            if self.result is None:
                return None
            text = self._read_slot(mood_slot(index))
            artist = self.result.name
            mood = self.result.mood_variations[index].mood
        return self.library.save_prompt(artist, mood, text, folder_id=folder_id)

    def save_vocal_dna(self, folder_id=None):
        with self._lock:
            if self.result is None or not self.vocal_dna.strip():
                return None
            text = self.vocal_dna
            artist = self.result.name
        return self.library.save_prompt(artist, VOCAL_DNA_LABEL, text, folder_id=folder_id)
