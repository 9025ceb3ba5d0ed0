import json
import threading

import pytest

from history import HistoryStore
from library import LibraryStore
from llm_backends import EngineError
from storage import LocalStore


class FakeBackend:
    """Scripted stand-in for an LLM backend.

    Answers come from ``handler(prompt, system)`` when set, otherwise from the
    ``responses`` queue. Queued exceptions are raised instead of returned.
    """

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []
        self.transcript = "hello from the clip"
        self._lock = threading.Lock()

    def _answer(self, prompt, system):
        if self.handler is not None:
            return self.handler(prompt, system)
        if not self.responses:
            raise EngineError("no scripted response left")
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def generate(self, prompt, system, json_mode=False):
        with self._lock:
            self.calls.append({"prompt": prompt, "system": system, "json_mode": json_mode})
        return self._answer(prompt, system)

    def generate_with_audio(self, prompt, system, audio_bytes, mime_type, json_mode=False):
        with self._lock:
            self.calls.append({"prompt": prompt, "system": system, "json_mode": json_mode,
                               "audio": audio_bytes, "mime_type": mime_type})
        return self._answer(prompt, system)

    def transcribe(self, audio_bytes, mime_type):
        with self._lock:
            self.calls.append({"audio": audio_bytes, "mime_type": mime_type})
        return self.transcript


def _payload(name="IU", moods=3, **overrides):
    data = {
        "name": name,
        "styleKo": f"{name}의 음악 스타일 분석",
        "styleEn": f"Musical style analysis of {name}",
        "vocalTextureKo": "맑고 가벼운 두성",
        "vocalTextureEn": "Clear, airy head voice with delicate vibrato",
        "vocalDnaPrompt": "airy female vocals, delicate vibrato, breathy falsetto",
        "representativeSongs": ["Good Day", {"title": "Palette", "url": "https://example.com/palette"}],
        "moodVariations": [
            {"mood": f"Mood {i}", "prompt": f"k-pop, mood {i}, airy vocals"} for i in range(moods)
        ],
        "moodTags": ["bright", "dreamy"],
        "sources": [],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_payload():
    return _payload


@pytest.fixture
def payload_json():
    def build(name="IU", moods=3, **overrides):
        return json.dumps(_payload(name, moods, **overrides), ensure_ascii=False)
    return build


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(str(tmp_path / "data"))


@pytest.fixture
def history(local_store):
    return HistoryStore(local_store)


@pytest.fixture
def library(local_store):
    return LibraryStore(local_store)


@pytest.fixture
def backend():
    return FakeBackend()
