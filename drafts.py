"""Lyric and score drafts that outlive page switches within a session."""

import logging
import os
import tempfile
import threading

from config import OUTPUT_DIR
from lyrics_llm import artist_context_from_result, structure_lyrics
from models import LyricDraft, ScoreDraft
from transcriptor import transcribe_score

logger = logging.getLogger(__name__)

EXPORT_SUFFIX = "_transcription.abc"


class LyricWorkflow:
    """Single lyric draft moving from raw text to section-tagged lyrics.

    States: empty -> drafting (raw text only) -> structured. Saving to the
    library keeps the draft structured so it can be refined further.
    """

    EMPTY = "empty"
    DRAFTING = "drafting"
    STRUCTURED = "structured"

    def __init__(self, backend, history, library):
        self.backend = backend
        self.history = history
        self.library = library
        self.draft = LyricDraft()
        self.structuring = False
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def state(self):
        if self.draft.structured.strip():
            return self.STRUCTURED
        if self.draft.raw.strip():
            return self.DRAFTING
        return self.EMPTY

    def update(self, **fields):
        """Edit draft fields (``title``, ``artist_id``, ``raw``, ``structured``).

        Changing the raw text or the artist invalidates a structuring pass
        that is still running.
        """
        with self._lock:
            draft = self.draft.updated(**fields)
            if (draft.raw, draft.artist_id) != (self.draft.raw, self.draft.artist_id):
                self._generation += 1
            self.draft = draft
        return self.draft

    def _selected_entry(self, artist_id):
        return self.history.get(artist_id) if artist_id else None

    def structure(self):
        """Send the raw lyrics to the model and store the structured result.

        Returns None when there is nothing to structure, a pass is already
        running, or the draft was cleared or its lyrics changed before the
        answer arrived. Engine errors propagate; the draft keeps its previous
        output.
        """
        with self._lock:
            if self.structuring or not self.draft.raw.strip():
                return None
            self.structuring = True
            raw = self.draft.raw
            artist_id = self.draft.artist_id
            generation = self._generation
        try:
            entry = self._selected_entry(artist_id)
            context = artist_context_from_result(entry.result) if entry else None
            structured = structure_lyrics(self.backend, raw, context)
        finally:
            with self._lock:
                self.structuring = False
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding structured lyrics: the draft changed while they were generated")
                return None
            self.draft = self.draft.updated(structured=structured)
        return structured

    def save(self, folder_id=None):
        """Commit the structured lyrics to the library."""
        with self._lock:
            draft = self.draft
        if not draft.structured.strip():
            return None
        entry = self._selected_entry(draft.artist_id)
        return self.library.save_lyric(
            draft.title,
            entry.name if entry else None,
            draft.raw,
            draft.structured,
            folder_id=folder_id,
        )

    def clear(self):
        with self._lock:
            self.draft = LyricDraft()
            self._generation += 1


class ScoreWorkflow:
    """Single audio-to-notation draft.

    A new transcription replaces the draft only once it succeeds, so the
    previous notation stays visible while a new file is processed.
    """

    def __init__(self, backend):
        self.backend = backend
        self.draft = None
        self.transcribing = False
        self._lock = threading.Lock()

    def transcribe(self, audio_bytes, mime_type, file_name):
        with self._lock:
            if self.transcribing:
                return None
            self.transcribing = True
        try:
            result = transcribe_score(self.backend, audio_bytes, mime_type)
        finally:
            with self._lock:
                self.transcribing = False
        with self._lock:
            self.draft = ScoreDraft(
                file_name=file_name,
                notation=result["notation"],
                analysis=result["analysis"],
            )
        logger.info("Transcribed score for %s", file_name)
        return self.draft

    def edit_notation(self, text):
        """Replace the notation locally. Edits are never sent back to the model."""
        with self._lock:
            if self.draft is None:
                return None
            self.draft.notation = text
            return self.draft

    def export_filename(self):
        name = os.path.basename(self.draft.file_name) if self.draft else ""
        stem = os.path.splitext(name)[0]
        return f"{stem or 'score'}{EXPORT_SUFFIX}"

    def export(self, output_dir=OUTPUT_DIR):
        """Write the notation to *output_dir* and return the file path."""
        with self._lock:
            if self.draft is None or not self.draft.notation.strip():
                return None
            notation = self.draft.notation
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, self.export_filename())
        fd, tmp = tempfile.mkstemp(dir=output_dir, suffix=".abc")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(notation)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        return path
