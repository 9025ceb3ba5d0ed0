import json

import pytest
import requests

import llm_backends
from analysis_llm import analyze_artist, refine_prompt, tailor_prompt
from conftest import FakeBackend
from llm_backends import (
    EngineError, OllamaBackend, OpenAIBackend, clean_llm_response, create_backend, parse_json_response,
)
from lyrics_llm import is_content_preserved, strip_section_tags, structure_lyrics
from transcriptor import NO_TRANSCRIPTION, transcribe_audio, transcribe_score


class TestParseJson:
    def test_plain(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert parse_json_response('Sure! Here it is: {"a": {"b": 2}} Enjoy.') == {"a": {"b": 2}}

    @pytest.mark.parametrize("text", ["", "no json here", "{broken", "[1, 2]"])
    def test_unusable(self, text):
        with pytest.raises(EngineError):
            parse_json_response(text)

    def test_clean_response(self):
        assert clean_llm_response("```\nhello\n```") == "hello"
        assert clean_llm_response(None) == ""


class TestAnalyzeArtist:
    def test_parses_result(self, payload_json):
        result = analyze_artist(FakeBackend([payload_json("IU")]), "IU")
        assert result.name == "IU"
        assert len(result.mood_variations) == 3

    def test_missing_name_filled_from_query(self, payload_json):
        result = analyze_artist(FakeBackend([payload_json("")]), "Adele")
        assert result.name == "Adele"

    def test_no_mood_variations(self, payload_json):
        with pytest.raises(EngineError):
            analyze_artist(FakeBackend([payload_json("IU", moods=0)]), "IU")

    def test_model_error_field(self):
        with pytest.raises(EngineError):
            analyze_artist(FakeBackend([json.dumps({"error": "unknown"})]), "XYZ123")

    def test_malformed_answer(self):
        with pytest.raises(EngineError):
            analyze_artist(FakeBackend(["I don't know this singer."]), "XYZ123")


class TestRevisions:
    def test_refine(self):
        backend = FakeBackend([json.dumps({"refinedPrompt": "k-pop, crisp"})])
        assert refine_prompt(backend, "IU", "airy", "k-pop") == "k-pop, crisp"

    def test_refine_accepts_plain_prompt_key(self):
        backend = FakeBackend([json.dumps({"prompt": "k-pop, crisp"})])
        assert refine_prompt(backend, "IU", "airy", "k-pop") == "k-pop, crisp"

    def test_empty_answer(self):
        with pytest.raises(EngineError):
            refine_prompt(FakeBackend([json.dumps({"refinedPrompt": ""})]), "IU", "airy", "k-pop")

    def test_tailor(self):
        backend = FakeBackend([json.dumps({"tailoredPrompt": "k-pop, acoustic"})])
        assert tailor_prompt(backend, "IU", "airy", "k-pop", "Palette") == "k-pop, acoustic"
        assert "tailoredPrompt" in backend.calls[0]["system"]

    def test_tailor_requires_track(self):
        backend = FakeBackend()
        with pytest.raises(ValueError):
            tailor_prompt(backend, "IU", "airy", "k-pop", " ")
        assert backend.calls == []


class TestLyrics:
    RAW = "first line\nsecond line"

    def test_structure(self):
        backend = FakeBackend(["[Verse]\nfirst line\n[Chorus]\nsecond line"])
        out = structure_lyrics(backend, self.RAW)
        assert out.startswith("[Verse]")
        assert backend.calls[0]["json_mode"] is False

    def test_empty_answer(self):
        with pytest.raises(EngineError):
            structure_lyrics(FakeBackend(["  "]), self.RAW)

    def test_content_preservation(self):
        assert is_content_preserved(self.RAW, "[Intro]\n\n[Verse 1]\nfirst line\n[Chorus]\nsecond line")
        assert not is_content_preserved(self.RAW, "[Verse]\nfirst line\nsecond lime")

    def test_strip_section_tags(self):
        assert strip_section_tags("[Verse 1]\nhello   world\n[Outro]") == "hello world"


class TestTranscription:
    def test_transcribe_audio(self):
        assert transcribe_audio(FakeBackend(), b"abc", "audio/wav") == "hello from the clip"

    def test_silence_placeholder(self):
        backend = FakeBackend()
        backend.transcript = "   "
        assert transcribe_audio(backend, b"abc", "audio/wav") == NO_TRANSCRIPTION

    def test_empty_audio(self):
        with pytest.raises(ValueError):
            transcribe_audio(FakeBackend(), b"", "audio/wav")

    def test_score(self):
        backend = FakeBackend([json.dumps({"abc": "X:1\nK:C\nC|", "analysis": " C major "})])
        assert transcribe_score(backend, b"abc", "audio/mpeg") == {"notation": "X:1\nK:C\nC|", "analysis": "C major"}


class TestCreateBackend:
    def test_ollama(self):
        backend = create_backend("Ollama", base_url="http://host:1", model="m")
        assert isinstance(backend, OllamaBackend)
        assert backend.base_url == "http://host:1"

    def test_openai_requires_key(self):
        with pytest.raises(EngineError):
            create_backend("openai", api_key="")

    def test_openai(self):
        backend = create_backend("openai", api_key="sk-test", model="gpt-4o-mini")
        assert isinstance(backend, OpenAIBackend)
        assert backend.stt_model == "whisper-1"

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_backend("cohere")

    def test_openai_rejects_unknown_audio_type(self):
        backend = create_backend("openai", api_key="sk-test")
        with pytest.raises(EngineError):
            backend.generate_with_audio("p", "s", b"abc", "audio/flac")


class _Response:
    def __init__(self, data, status=200):
        self._data = data
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._data


class TestOllama:
    def _backend(self):
        return OllamaBackend("http://ollama", "llama3", timeout=5)

    def test_chat(self, monkeypatch):
        posted = []

        def fake_post(url, json=None, timeout=None):
            posted.append((url, json))
            return _Response({"message": {"content": "hi"}})

        monkeypatch.setattr(llm_backends.requests, "post", fake_post)
        assert self._backend().generate("p", "s", json_mode=True) == "hi"
        assert posted[0][0] == "http://ollama/api/chat"
        assert posted[0][1]["format"] == "json"

    def test_falls_back_to_generate(self, monkeypatch):
        def fake_post(url, json=None, timeout=None):
            if url.endswith("/api/chat"):
                return _Response({}, status=404)
            return _Response({"response": "from generate"})

        monkeypatch.setattr(llm_backends.requests, "post", fake_post)
        assert self._backend().generate("p", "s") == "from generate"

    def test_connection_error(self, monkeypatch):
        def fake_post(url, json=None, timeout=None):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(llm_backends.requests, "post", fake_post)
        with pytest.raises(EngineError, match="Cannot connect"):
            self._backend().generate("p", "s")

    def test_http_error_on_both_endpoints(self, monkeypatch):
        monkeypatch.setattr(llm_backends.requests, "post",
                            lambda url, json=None, timeout=None: _Response({}, status=500))
        with pytest.raises(EngineError):
            self._backend().generate("p", "s")

    def test_no_audio_support(self):
        with pytest.raises(EngineError):
            self._backend().transcribe(b"abc", "audio/wav")
