import json
import os
import threading

import pytest

from conftest import FakeBackend
from drafts import LyricWorkflow, ScoreWorkflow
from llm_backends import EngineError
from models import AnalysisResult
from workspace import Workspace

RAW = "stars above the city\nI still think of you"
STRUCTURED = "[Verse]\nstars above the city\n[Chorus]\nI still think of you"
ABC = "X:1\nT:Song\nK:C\nCDEF|GABc|"


@pytest.fixture
def lyrics(backend, history, library):
    return LyricWorkflow(backend, history, library)


@pytest.fixture
def score(backend):
    return ScoreWorkflow(backend)


def _score_json(notation=ABC, analysis="Simple ascending line in C major."):
    return json.dumps({"abc": notation, "analysis": analysis})


class TestLyricWorkflow:
    def test_state_transitions(self, lyrics, backend):
        assert lyrics.state == LyricWorkflow.EMPTY
        lyrics.update(raw=RAW)
        assert lyrics.state == LyricWorkflow.DRAFTING
        backend.responses.append(STRUCTURED)
        assert lyrics.structure() == STRUCTURED
        assert lyrics.state == LyricWorkflow.STRUCTURED
        lyrics.clear()
        assert lyrics.state == LyricWorkflow.EMPTY

    def test_blank_raw_makes_no_call(self, lyrics, backend):
        lyrics.update(raw="   ")
        assert lyrics.structure() is None
        assert backend.calls == []

    def test_selected_artist_shapes_prompt(self, lyrics, backend, history, make_payload):
        entry = history.record(AnalysisResult.model_validate(make_payload("IU")))
        lyrics.update(raw=RAW, artist_id=entry.id)
        backend.responses.append(STRUCTURED)
        lyrics.structure()
        prompt = backend.calls[0]["prompt"]
        assert "in the style of IU" in prompt
        assert "IU의 음악 스타일 분석" in prompt
        assert RAW in prompt

    def test_no_artist_uses_generic_form(self, lyrics, backend):
        lyrics.update(raw=RAW)
        backend.responses.append(STRUCTURED)
        lyrics.structure()
        assert "conventional pop song form" in backend.calls[0]["prompt"]

    def test_evicted_artist_falls_back_to_generic(self, lyrics, backend):
        lyrics.update(raw=RAW, artist_id="no-longer-in-history")
        backend.responses.append(STRUCTURED)
        lyrics.structure()
        assert "conventional pop song form" in backend.calls[0]["prompt"]

    def test_failure_keeps_previous_output(self, lyrics, backend):
        lyrics.update(raw=RAW)
        backend.responses.extend([STRUCTURED, EngineError("offline")])
        lyrics.structure()
        with pytest.raises(EngineError):
            lyrics.structure()
        assert lyrics.draft.structured == STRUCTURED
        assert lyrics.structuring is False

    def test_save_commits_to_library(self, lyrics, backend, history, library, make_payload):
        entry = history.record(AnalysisResult.model_validate(make_payload("IU")))
        lyrics.update(title="Night", raw=RAW, artist_id=entry.id)
        assert lyrics.save() is None
        backend.responses.append(STRUCTURED)
        lyrics.structure()
        item = lyrics.save()
        assert (item.title, item.artist_name, item.structured_lyrics) == ("Night", "IU", STRUCTURED)
        assert library.lyrics() == [item]
        assert lyrics.state == LyricWorkflow.STRUCTURED

    def test_answer_for_replaced_draft_is_discarded(self, history, library):
        release = threading.Event()
        entered = threading.Event()

        def handler(prompt, system):
            entered.set()
            release.wait(5)
            return "[Verse]\nold lyrics"

        lyrics = LyricWorkflow(FakeBackend(handler=handler), history, library)
        lyrics.update(raw="old lyrics")
        results = {}
        worker = threading.Thread(target=lambda: results.update(out=lyrics.structure()))
        worker.start()
        assert entered.wait(5)

        lyrics.clear()
        lyrics.update(raw="brand new song")
        release.set()
        worker.join(5)

        assert results["out"] is None
        assert lyrics.draft.raw == "brand new song"
        assert lyrics.draft.structured == ""
        assert lyrics.structuring is False

    def test_title_edit_keeps_running_pass(self, history, library):
        release = threading.Event()
        entered = threading.Event()

        def handler(prompt, system):
            entered.set()
            release.wait(5)
            return STRUCTURED

        lyrics = LyricWorkflow(FakeBackend(handler=handler), history, library)
        lyrics.update(raw=RAW)
        results = {}
        worker = threading.Thread(target=lambda: results.update(out=lyrics.structure()))
        worker.start()
        assert entered.wait(5)

        lyrics.update(title="Night")
        release.set()
        worker.join(5)

        assert results["out"] == STRUCTURED
        assert lyrics.draft.structured == STRUCTURED

    def test_save_without_artist(self, lyrics, backend):
        lyrics.update(raw=RAW)
        backend.responses.append(STRUCTURED)
        lyrics.structure()
        item = lyrics.save()
        assert item.artist_name is None
        assert item.title == "Untitled"


class TestScoreWorkflow:
    def test_transcribe(self, score, backend):
        backend.responses.append(_score_json())
        draft = score.transcribe(b"RIFF....", "audio/wav", "song.wav")
        assert draft.notation == ABC
        assert draft.analysis.startswith("Simple")
        call = backend.calls[0]
        assert call["audio"] == b"RIFF...."
        assert call["mime_type"] == "audio/wav"
        assert call["json_mode"] is True

    def test_failure_keeps_previous_draft(self, score, backend):
        backend.responses.extend([_score_json(), EngineError("bad audio")])
        score.transcribe(b"one", "audio/wav", "first.wav")
        with pytest.raises(EngineError):
            score.transcribe(b"two", "audio/wav", "second.wav")
        assert score.draft.file_name == "first.wav"
        assert score.transcribing is False

    def test_missing_notation_is_an_error(self, score, backend):
        backend.responses.append(json.dumps({"analysis": "no melody found"}))
        with pytest.raises(EngineError):
            score.transcribe(b"x", "audio/wav", "song.wav")
        assert score.draft is None

    def test_edit_notation_is_local(self, score, backend):
        backend.responses.append(_score_json())
        score.transcribe(b"x", "audio/wav", "song.wav")
        score.edit_notation("X:1\nK:G\nGABc|")
        assert score.draft.notation == "X:1\nK:G\nGABc|"
        assert len(backend.calls) == 1

    def test_edit_without_draft(self, score):
        assert score.edit_notation("X:1") is None

    def test_export_filename(self, score, backend):
        assert score.export_filename() == "score_transcription.abc"
        backend.responses.append(_score_json())
        score.transcribe(b"x", "audio/mpeg", "my.song.mp3")
        assert score.export_filename() == "my.song_transcription.abc"

    def test_export_writes_file(self, score, backend, tmp_path):
        assert score.export(str(tmp_path)) is None
        backend.responses.append(_score_json())
        score.transcribe(b"x", "audio/mpeg", "song.mp3")
        path = score.export(str(tmp_path / "out"))
        assert os.path.basename(path) == "song_transcription.abc"
        with open(path, encoding="utf-8") as f:
            assert f.read() == ABC
        assert os.listdir(tmp_path / "out") == ["song_transcription.abc"]


class TestWorkspace:
    def test_drafts_survive_navigation(self, backend, history, library):
        ws = Workspace(backend, history, library)
        ws.lyrics.update(raw=RAW)
        ws.navigate("saved")
        ws.navigate("score")
        ws.navigate("lyrics")
        assert ws.page == "lyrics"
        assert ws.lyrics.draft.raw == RAW

    def test_unknown_page(self, backend, history, library):
        ws = Workspace(backend, history, library)
        with pytest.raises(ValueError):
            ws.navigate("settings")
        assert ws.page == "home"

    def test_set_backend_reaches_every_workflow(self, backend, history, library):
        ws = Workspace(None, history, library)
        ws.set_backend(backend)
        assert ws.backend is backend
        assert ws.lyrics.backend is backend
        assert ws.score.backend is backend

    def test_create_folder_rejects_blank(self, backend, history, library):
        ws = Workspace(backend, history, library)
        assert ws.create_folder("  ") is None
        assert library.folders() == []
        assert ws.create_folder("Keepers").name == "Keepers"

    def test_sessions_share_stores_but_not_drafts(self, backend, history, library, make_payload):
        first = Workspace(backend, history, library)
        second = Workspace(backend, history, library)
        first.lyrics.update(raw=RAW)
        first.navigate("lyrics")
        backend.responses.append(json.dumps(make_payload("IU")))
        first.session.run_analysis("IU")

        assert second.page == "home"
        assert second.lyrics.draft.raw == ""
        assert second.session.result is None
        assert [e.name for e in second.history.entries()] == ["IU"]
        second.create_folder("Shared")
        assert [f.name for f in first.library.folders()] == ["Shared"]
