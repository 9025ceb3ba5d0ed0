"""Saved prompts, saved lyrics and the folders that organize them.

Folder references on saved items are weak: an item whose ``folder_id`` is
missing or points at a folder that no longer exists is uncategorized.
Deleting a folder keeps its items and clears their ``folder_id``.
"""

import logging
import threading

from config import FOLDER_COLORS, STORAGE_KEYS, UNTITLED_LYRIC, DEFAULT_THEME
from models import Folder, SavedLyric, SavedPrompt, load_items, new_id, now_iso

logger = logging.getLogger(__name__)

# Marks an argument that was not passed at all, as opposed to an explicit None.
UNSET = object()

# Folder filters accepted by filter_prompts() / filter_lyrics().
ALL = "__all__"
UNCATEGORIZED = "__uncategorized__"

THEMES = ("dark", "light")


def _matches(query, *fields):
    if not query:
        return True
    query = query.lower()
    return any(query in (f or "").lower() for f in fields)


def _uncategorize(item, folder_id):
    return item.model_copy(update={"folder_id": None}) if item.folder_id == folder_id else item


class LibraryStore:
    def __init__(self, store):
        self._store = store
        self._lock = threading.Lock()
        self._prompts = load_items(self._store.read(STORAGE_KEYS["prompts"], []),
                                   SavedPrompt, "saved prompt")
        self._lyrics = load_items(self._store.read(STORAGE_KEYS["lyrics"], []),
                                  SavedLyric, "saved lyric")
        self._folders = load_items(self._store.read(STORAGE_KEYS["folders"], []),
                                   Folder, "folder")

    def _save_prompts(self, prompts):
        self._store.write(STORAGE_KEYS["prompts"], [p.model_dump(mode="json") for p in prompts])
        self._prompts = prompts

    def _save_lyrics(self, lyrics):
        self._store.write(STORAGE_KEYS["lyrics"], [l.model_dump(mode="json") for l in lyrics])
        self._lyrics = lyrics

    def _save_folders(self, folders):
        self._store.write(STORAGE_KEYS["folders"], [f.model_dump(mode="json") for f in folders])
        self._folders = folders

    # ─── Prompts ───

    def prompts(self):
        with self._lock:
            return list(self._prompts)

    def get_prompt(self, prompt_id):
        with self._lock:
            return next((p for p in self._prompts if p.id == prompt_id), None)

    def save_prompt(self, artist_name, mood, prompt, folder_id=None):
        """Store a prompt snapshot at the front of the list.

        Identical prompts are not merged; each save is its own entry.
        """
        item = SavedPrompt(
            id=new_id(),
            artist_name=artist_name,
            mood=mood,
            prompt=prompt,
            saved_at=now_iso(),
            folder_id=folder_id,
        )
        with self._lock:
            self._save_prompts([item] + self._prompts)
        logger.info("Saved %s prompt for %s", mood, artist_name)
        return item

    def update_prompt(self, prompt_id, prompt=None, folder_id=UNSET):
        """Edit a saved prompt.

        ``prompt=None`` keeps the text. Omitting ``folder_id`` keeps the
        folder; passing ``folder_id=None`` moves the prompt to uncategorized.
        Returns the updated prompt, or None for an unknown id.
        """
        with self._lock:
            item = next((p for p in self._prompts if p.id == prompt_id), None)
            if item is None:
                return None
            changes = {}
            if prompt is not None:
                changes["prompt"] = prompt
            if folder_id is not UNSET:
                changes["folder_id"] = folder_id
            updated = item.model_copy(update=changes)
            self._save_prompts([updated if p is item else p for p in self._prompts])
        return updated

    def delete_prompt(self, prompt_id):
        with self._lock:
            kept = [p for p in self._prompts if p.id != prompt_id]
            if len(kept) == len(self._prompts):
                return False
            self._save_prompts(kept)
        return True

    # ─── Lyrics ───

    def lyrics(self):
        with self._lock:
            return list(self._lyrics)

    def get_lyric(self, lyric_id):
        with self._lock:
            return next((l for l in self._lyrics if l.id == lyric_id), None)

    def save_lyric(self, title, artist_name, raw_lyrics, structured_lyrics, folder_id=None):
        item = SavedLyric(
            id=new_id(),
            title=title.strip() or UNTITLED_LYRIC,
            artist_name=artist_name or None,
            raw_lyrics=raw_lyrics,
            structured_lyrics=structured_lyrics,
            saved_at=now_iso(),
            folder_id=folder_id,
        )
        with self._lock:
            self._save_lyrics([item] + self._lyrics)
        logger.info("Saved lyric '%s'", item.title)
        return item

    def update_lyric_folder(self, lyric_id, folder_id):
        with self._lock:
            item = next((l for l in self._lyrics if l.id == lyric_id), None)
            if item is None:
                return None
            updated = item.model_copy(update={"folder_id": folder_id})
            self._save_lyrics([updated if l is item else l for l in self._lyrics])
        return updated

    def delete_lyric(self, lyric_id):
        with self._lock:
            kept = [l for l in self._lyrics if l.id != lyric_id]
            if len(kept) == len(self._lyrics):
                return False
            self._save_lyrics(kept)
        return True

    # ─── Folders ───

    def folders(self):
        with self._lock:
            return list(self._folders)

    def get_folder(self, folder_id):
        with self._lock:
            return next((f for f in self._folders if f.id == folder_id), None)

    def create_folder(self, name, color=None):
        """Create a folder and return it; its id is usable immediately.

        Callers reject blank names before getting here.
        """
        with self._lock:
            if color is None:
                color = FOLDER_COLORS[len(self._folders) % len(FOLDER_COLORS)]
            folder = Folder(id=new_id(), name=name.strip(), color=color, created_at=now_iso())
            self._save_folders(self._folders + [folder])
        logger.info("Created folder '%s'", folder.name)
        return folder

    def delete_folder(self, folder_id):
        """Remove a folder and uncategorize everything that referenced it."""
        with self._lock:
            kept = [f for f in self._folders if f.id != folder_id]
            if len(kept) == len(self._folders):
                return False
            self._save_folders(kept)

            moved_prompts = sum(1 for p in self._prompts if p.folder_id == folder_id)
            if moved_prompts:
                self._save_prompts([_uncategorize(p, folder_id) for p in self._prompts])

            moved_lyrics = sum(1 for l in self._lyrics if l.folder_id == folder_id)
            if moved_lyrics:
                self._save_lyrics([_uncategorize(l, folder_id) for l in self._lyrics])
        logger.info("Deleted folder %s (%d prompts, %d lyrics uncategorized)",
                    folder_id, moved_prompts, moved_lyrics)
        return True

    def _in_folder(self, item_folder_id, folder, folder_ids):
        if folder == ALL:
            return True
        if folder == UNCATEGORIZED:
            return item_folder_id is None or item_folder_id not in folder_ids
        return item_folder_id == folder

    # ─── Queries ───

    def filter_prompts(self, query="", folder=ALL):
        """Prompts matching *query* (case-insensitive substring) and *folder*."""
        with self._lock:
            folder_ids = {f.id for f in self._folders}
            return [
                p for p in self._prompts
                if self._in_folder(p.folder_id, folder, folder_ids)
                and _matches(query, p.artist_name, p.mood, p.prompt)
            ]

    def filter_lyrics(self, query="", folder=ALL):
        with self._lock:
            folder_ids = {f.id for f in self._folders}
            return [
                l for l in self._lyrics
                if self._in_folder(l.folder_id, folder, folder_ids)
                and _matches(query, l.title, l.artist_name, l.raw_lyrics, l.structured_lyrics)
            ]

    def folder_counts(self):
        """Count saved items per folder id, with uncategorized under UNCATEGORIZED."""
        with self._lock:
            counts = {f.id: 0 for f in self._folders}
            counts[UNCATEGORIZED] = 0
            for item in self._prompts + self._lyrics:
                key = item.folder_id if item.folder_id in counts else UNCATEGORIZED
                counts[key] += 1
            return counts

    # ─── Preferences ───

    def get_theme(self):
        theme = self._store.read(STORAGE_KEYS["theme"], DEFAULT_THEME)
        return theme if theme in THEMES else DEFAULT_THEME

    def set_theme(self, theme):
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self._store.write(STORAGE_KEYS["theme"], theme)
