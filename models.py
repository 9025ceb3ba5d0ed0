"""Data model for artist analyses, history, the saved library and drafts.

Persisted types are pydantic models: ``model_validate`` reads stored dicts
(including the camelCase keys written by earlier versions of the app) and
``model_dump(mode="json")`` produces what gets written back.
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Annotated, Any, Optional, Tuple

from pydantic import (
    AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, ValidationError,
    ValidationInfo, field_validator, model_validator,
)

from config import MAX_MOOD_VARIATIONS

logger = logging.getLogger(__name__)


def new_id():
    return str(uuid.uuid4())


def now_iso():
    return datetime.now().isoformat(timespec="seconds")


def _as_list(value):
    return list(value) if isinstance(value, (list, tuple)) else []


def _text(value):
    return "" if value is None else value


def _timestamp(value):
    """Accept ISO text or epoch milliseconds."""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000).isoformat(timespec="seconds")
    return value or now_iso()


Text = Annotated[str, BeforeValidator(_text)]
Timestamp = Annotated[str, BeforeValidator(_timestamp)]


def strip_name_from_tags(tags, name):
    """Drop every comma-separated tag naming *name* as a whole word (case-insensitive)."""
    parts = [t.strip() for t in (tags or "").split(",")]
    name = (name or "").strip()
    if name:
        pattern = re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)
        parts = [t for t in parts if not pattern.search(t)]
    return ", ".join(t for t in parts if t)


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class Bilingual(Record):
    """Paired long-form text: the user's language and an English reference."""

    model_config = ConfigDict(frozen=True)

    localized: Text = ""
    reference: Text = ""


class MoodVariation(Record):
    model_config = ConfigDict(frozen=True)

    mood: Text = Field(default="", validation_alias=AliasChoices("mood", "moodLabel"))
    prompt: str


class Track(Record):
    model_config = ConfigDict(frozen=True)

    title: str = Field(validation_alias=AliasChoices("title", "name"))
    url: Optional[str] = Field(default=None, validation_alias=AliasChoices("url", "locatorUrl", "uri"))

    @field_validator("title")
    @classmethod
    def _require_title(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("track title is blank")
        return value

    @classmethod
    def from_value(cls, value):
        """Build a track from either stored shape, or None if unusable.

        Older results list tracks as bare titles, newer ones as
        ``{title, url}`` objects.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            value = {"title": value}
        try:
            return cls.model_validate(value)
        except ValidationError:
            return None


class Source(Record):
    model_config = ConfigDict(frozen=True)

    title: str
    uri: str
    snippet: Optional[str] = None


class AnalysisResult(Record):
    """One model query's profile of an artist. Never mutated once built."""

    model_config = ConfigDict(frozen=True)

    name: str
    style: Bilingual = Bilingual()
    vocal_texture: Bilingual = Bilingual()
    vocal_dna_prompt: Text = Field(
        default="", validation_alias=AliasChoices("vocal_dna_prompt", "vocalDnaPrompt"))
    mood_variations: Tuple[MoodVariation, ...] = Field(
        default=(), validation_alias=AliasChoices("mood_variations", "moodVariations"))
    mood_tags: Tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("mood_tags", "moodTags"))
    representative_tracks: Tuple[Track, ...] = Field(
        default=(),
        validation_alias=AliasChoices("representative_tracks", "representativeTracks", "representativeSongs"),
    )
    sources: Tuple[Source, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _pair_legacy_descriptions(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, localized, reference in (("style", "styleKo", "styleEn"),
                                          ("vocal_texture", "vocalTextureKo", "vocalTextureEn")):
            if not isinstance(data.get(key), (dict, Bilingual)):
                data[key] = {"localized": data.get(localized), "reference": data.get(reference)}
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _require_name(cls, value):
        value = str(value or "").strip()
        if not value:
            raise ValueError("analysis result has no artist name")
        return value

    @field_validator("vocal_dna_prompt")
    @classmethod
    def _drop_named_tags(cls, value, info: ValidationInfo):
        return strip_name_from_tags(value, info.data.get("name", ""))

    @field_validator("mood_variations", mode="before")
    @classmethod
    def _cap_moods(cls, value, info: ValidationInfo):
        moods = [m for m in _as_list(value)
                 if isinstance(m, MoodVariation) or (isinstance(m, dict) and m.get("prompt"))]
        if len(moods) > MAX_MOOD_VARIATIONS:
            logger.info("Truncating %d mood variations for %s to %d",
                        len(moods), info.data.get("name"), MAX_MOOD_VARIATIONS)
            moods = moods[:MAX_MOOD_VARIATIONS]
        return moods

    @field_validator("mood_tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        return [str(t) for t in _as_list(value) if t]

    @field_validator("representative_tracks", mode="before")
    @classmethod
    def _migrate_tracks(cls, value):
        tracks = [Track.from_value(v) for v in _as_list(value)]
        return [t for t in tracks if t is not None]

    @field_validator("sources", mode="before")
    @classmethod
    def _dedupe_sources(cls, value):
        """Keep the first source per URI; sources without one are dropped."""
        seen = set()
        sources = []
        for item in _as_list(value):
            if isinstance(item, Source):
                item = item.model_dump()
            if not isinstance(item, dict):
                continue
            uri = str(item.get("uri") or item.get("url") or "").strip()
            if not uri or uri in seen:
                continue
            seen.add(uri)
            sources.append({"title": item.get("title") or uri, "uri": uri, "snippet": item.get("snippet")})
        return sources


class HistoryEntry(Record):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    captured_at: Timestamp = Field(
        default_factory=now_iso, validation_alias=AliasChoices("captured_at", "timestamp"))
    result: AnalysisResult

    @model_validator(mode="before")
    @classmethod
    def _nest_flat_record(cls, data: Any) -> Any:
        # Earlier versions stored the result fields at the top level.
        if not isinstance(data, dict) or "result" in data:
            return data
        nested = {"result": data}
        if data.get("id"):
            nested["id"] = data["id"]
        stamp = data.get("captured_at", data.get("timestamp"))
        if stamp is not None:
            nested["captured_at"] = stamp
        return nested

    @property
    def name(self):
        return self.result.name


class Folder(Record):
    id: str
    name: Text = ""
    color: Text = ""
    created_at: Timestamp = Field(
        default_factory=now_iso, validation_alias=AliasChoices("created_at", "createdAt"))


class SavedPrompt(Record):
    id: str
    artist_name: Text = Field(default="", validation_alias=AliasChoices("artist_name", "singerName"))
    mood: Text = Field(default="", validation_alias=AliasChoices("mood", "moodLabel"))
    prompt: Text = Field(default="", validation_alias=AliasChoices("prompt", "promptText"))
    saved_at: Timestamp = Field(
        default_factory=now_iso, validation_alias=AliasChoices("saved_at", "timestamp"))
    folder_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("folder_id", "folderId"))


class SavedLyric(Record):
    id: str
    title: Text = ""
    artist_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("artist_name", "singerName"))
    raw_lyrics: Text = Field(default="", validation_alias=AliasChoices("raw_lyrics", "rawLyrics"))
    structured_lyrics: Text = Field(
        default="", validation_alias=AliasChoices("structured_lyrics", "structuredLyrics"))
    saved_at: Timestamp = Field(
        default_factory=now_iso, validation_alias=AliasChoices("saved_at", "timestamp"))
    folder_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("folder_id", "folderId"))


class LyricDraft(BaseModel):
    title: str = ""
    artist_id: str = ""
    raw: str = ""
    structured: str = ""

    def updated(self, **fields):
        unknown = set(fields) - set(type(self).model_fields)
        if unknown:
            raise TypeError(f"Unknown draft fields: {', '.join(sorted(unknown))}")
        return self.model_copy(update=fields)


class ScoreDraft(BaseModel):
    file_name: str = ""
    notation: str = ""
    analysis: str = ""


def load_items(raw_items, model, label):
    """Validate stored dicts as *model*, skipping entries that fail."""
    items = []
    for raw in raw_items:
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping corrupt %s entry: %s", label, e)
    return items
