import logging
import mimetypes
import os
import html as html_mod
import gradio as gr
from config import (
    DEFAULT_OLLAMA_URL, DEFAULT_OLLAMA_MODEL,
    DEFAULT_OPENAI_MODEL, DEFAULT_OPENAI_URL, DEFAULT_OPENAI_KEY,
    DEFAULT_OPENAI_MODELS, DEFAULT_OPENAI_AUDIO_MODEL, DEFAULT_OPENAI_STT_MODEL,
    DEFAULT_LLM_BACKEND, DEFAULT_LLM_TEMPERATURE, DEFAULT_LLM_TIMEOUT,
    DATA_DIR, OUTPUT_DIR, LOG_LEVEL, MAX_MOOD_VARIATIONS,
    TRANSCRIPTION_ENABLED, SCORE_ENABLED,
)
from history import HistoryStore
from library import ALL, UNCATEGORIZED, UNSET, LibraryStore
from llm_backends import create_backend, list_ollama_models, unload_ollama_model
from session import AnalysisFailed
from storage import LocalStore
from transcriptor import transcribe_audio
from workspace import Workspace

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_local_store = LocalStore(DATA_DIR)
history_store = HistoryStore(_local_store)
library_store = LibraryStore(_local_store)


def _new_workspace():
    """Fresh per-browser-session workspace over the shared stores."""
    return Workspace(None, history_store, library_store)


# Move-to dropdown value meaning "leave the folder as it is".
_KEEP_FOLDER = "__keep__"


def on_list_ollama(ollama_url):
    models = list_ollama_models(base_url=ollama_url)
    if not models:
        return gr.update(choices=[], value=None)
    return gr.update(choices=models, value=models[0])


def _llm_kwargs(backend, ollama_url, ollama_model, openai_url, openai_model, openai_key, temperature, timeout):
    if backend == "Ollama":
        return {"base_url": ollama_url, "model": ollama_model, "temperature": temperature, "timeout": timeout}
    else:
        return {"api_key": openai_key, "base_url": openai_url, "model": openai_model,
                "temperature": temperature, "timeout": timeout,
                "audio_model": DEFAULT_OPENAI_AUDIO_MODEL, "stt_model": DEFAULT_OPENAI_STT_MODEL}


def _use_backend(ws, llm):
    """Point every workflow at a backend built from the settings panel."""
    ws.set_backend(create_backend(llm[0], **_llm_kwargs(*llm)))


def _status_html(message, style="info"):
    """Return styled HTML for status messages with optional progress bar."""
    message = html_mod.escape(str(message))
    colors = {
        "info": ("#1a3a5c", "#3b82f6"),
        "success": ("#14532d", "#22c55e"),
        "error": ("#7f1d1d", "#ef4444"),
        "progress": ("#1a3a5c", "#3b82f6"),
    }
    bg, border = colors.get(style, colors["info"])

    progress_bar = ""
    if style == "progress":
        progress_bar = """
        <div style="width:100%;height:4px;background:#1e293b;border-radius:2px;overflow:hidden;margin-top:8px;">
          <div style="width:30%;height:100%;background:linear-gradient(90deg,#3b82f6,#60a5fa);border-radius:2px;animation:progress-slide 1.5s ease-in-out infinite;"></div>
        </div>
        <style>
          @keyframes progress-slide {
            0% { margin-left: 0%; width: 30%; }
            50% { margin-left: 35%; width: 40%; }
            100% { margin-left: 70%; width: 30%; }
          }
        </style>"""

    return f"""<div style="padding:12px 16px;border-left:4px solid {border};background:{bg};border-radius:8px;font-size:1.05em;color:#e2e8f0;">
  {message}{progress_bar}
</div>"""


def _read_audio(path):
    with open(path, "rb") as f:
        data = f.read()
    mime = mimetypes.guess_type(path)[0] or "audio/wav"
    return data, mime


# ─── Rendering helpers ───

def _profile_markdown(result):
    if result is None:
        return "*Enter a singer's name to analyze their vocal DNA.*"
    parts = [f"## {result.name}"]
    if result.mood_tags:
        parts.append(" ".join(f"`#{t}`" for t in result.mood_tags))
    parts.append(f"### Musical style\n{result.style.localized}\n\n*{result.style.reference}*")
    parts.append(f"### Vocal texture & technique\n{result.vocal_texture.localized}\n\n"
                 f"*{result.vocal_texture.reference}*")
    if result.representative_tracks:
        tracks = [f"- [{t.title}]({t.url})" if t.url else f"- {t.title}"
                  for t in result.representative_tracks]
        parts.append("### Representative songs\n" + "\n".join(tracks))
    if result.sources:
        sources = [f"- [{s.title}]({s.uri})" for s in result.sources]
        parts.append("### Sources\n" + "\n".join(sources))
    return "\n\n".join(parts)


def _history_choices():
    return [(f"{e.name} · {e.captured_at[:16].replace('T', ' ')}", e.id) for e in history_store.entries()]


def _artist_choices():
    return [("No artist style", "")] + [(e.name, e.id) for e in history_store.entries()]


def _folder_choices():
    return [("Uncategorized", "")] + [(f.name, f.id) for f in library_store.folders()]


def _filter_choices():
    return [("All", ALL), ("Uncategorized", UNCATEGORIZED)] + [(f.name, f.id) for f in library_store.folders()]


def _folder_name(folder_id):
    folder = library_store.get_folder(folder_id) if folder_id else None
    return folder.name if folder else "Uncategorized"


def _resolve_folder(ws, choice, new_folder_name):
    """Folder id for a save: a freshly created folder wins over the dropdown."""
    folder = ws.create_folder(new_folder_name)
    if folder is not None:
        return folder.id
    return choice or None


def _render_session(ws):
    s = ws.session
    tracks = s.track_titles
    updates = [
        gr.update(value=_profile_markdown(s.result)),
        gr.update(value=s.vocal_dna, interactive=s.result is not None),
        gr.update(choices=tracks, value=None),
    ]
    for i in range(MAX_MOOD_VARIATIONS):
        if s.result is not None and i < len(s.mood_prompts):
            updates += [
                gr.update(visible=True),
                gr.update(value=s.mood_prompts[i], label=s.result.mood_variations[i].mood),
                gr.update(choices=tracks, value=None),
            ]
        else:
            updates += [gr.update(visible=False), gr.update(value=""), gr.update(choices=[], value=None)]
    updates += [
        gr.update(choices=_history_choices(), value=None),
        gr.update(choices=_artist_choices()),
    ]
    return updates


# ─── Analysis handlers ───

def on_analyze(ws, query, *llm):
    n = len(_session_outputs)
    if not (query or "").strip():
        yield [gr.skip()] * n + [gr.skip()]
        return

    yield [gr.skip()] * n + [_status_html(f"Analyzing {query.strip()}...", "progress")]
    try:
        _use_backend(ws, llm)
        result = ws.session.run_analysis(query)
    except AnalysisFailed as e:
        yield [gr.skip()] * n + [_status_html(str(e), "error")]
        return
    except Exception as e:
        logger.error("Analysis failed: %s", e)
        yield [gr.skip()] * n + [_status_html(f"Error: {e}", "error")]
        return
    if result is None:
        yield [gr.skip()] * n + [_status_html("An analysis is already running.", "info")]
        return
    yield _render_session(ws) + [_status_html(f"Analyzed {result.name}.", "success")]


def on_load_history(ws, entry_id):
    n = len(_session_outputs)
    result = ws.session.load_history_entry(entry_id) if entry_id else None
    if result is None:
        return [gr.skip()] * n + [gr.skip()]
    return _render_session(ws) + [_status_html(f"Loaded {result.name} from history.", "success")]


def on_delete_history(entry_id):
    if entry_id:
        history_store.remove(entry_id)
    return gr.update(choices=_history_choices(), value=None), gr.update(choices=_artist_choices())


def _revision_result(text, what):
    if text is None:
        return gr.skip(), _status_html(f"{what} is already being revised or is no longer active.", "info")
    return text, _status_html(f"{what} updated.", "success")


def _make_slot_handlers(i):
    def on_edit(ws, text):
        if i < len(ws.session.mood_prompts):
            ws.session.set_mood_prompt_text(i, text)

    def on_refine(ws, instruction, *llm):
        try:
            _use_backend(ws, llm)
            text = ws.session.refine_mood_prompt(i, instruction)
        except Exception as e:
            logger.error("Refinement of mood prompt %d failed: %s", i, e)
            return gr.skip(), _status_html(f"Refinement failed: {e}", "error")
        return _revision_result(text, "Prompt")

    def on_tailor(ws, track, *llm):
        if not track:
            return gr.skip(), gr.skip()
        try:
            _use_backend(ws, llm)
            text = ws.session.tailor_mood_prompt_to_track(i, track)
        except Exception as e:
            logger.error("Tailoring of mood prompt %d failed: %s", i, e)
            return gr.skip(), _status_html(f"Tailoring failed: {e}", "error")
        return _revision_result(text, "Prompt")

    def on_save(ws, folder_choice, new_folder_name):
        folder_id = _resolve_folder(ws, folder_choice, new_folder_name)
        saved = ws.session.save_mood_prompt(i, folder_id=folder_id)
        if saved is None:
            return gr.skip(), gr.skip(), gr.skip()
        return (_status_html(f"Saved '{saved.mood}' prompt to {_folder_name(saved.folder_id)}.", "success"),
                gr.update(choices=_folder_choices(), value=folder_id or ""), "")

    return on_edit, on_refine, on_tailor, on_save


def on_dna_edit(ws, text):
    ws.session.set_vocal_dna_text(text)


def on_dna_refine(ws, instruction, *llm):
    try:
        _use_backend(ws, llm)
        text = ws.session.refine_vocal_dna(instruction)
    except Exception as e:
        logger.error("Vocal DNA refinement failed: %s", e)
        return gr.skip(), _status_html(f"Refinement failed: {e}", "error")
    return _revision_result(text, "Vocal DNA")


def on_dna_tailor(ws, track, *llm):
    if not track:
        return gr.skip(), gr.skip()
    try:
        _use_backend(ws, llm)
        text = ws.session.tailor_vocal_dna_to_track(track)
    except Exception as e:
        logger.error("Vocal DNA tailoring failed: %s", e)
        return gr.skip(), _status_html(f"Tailoring failed: {e}", "error")
    return _revision_result(text, "Vocal DNA")


def on_dna_save(ws, folder_choice, new_folder_name):
    folder_id = _resolve_folder(ws, folder_choice, new_folder_name)
    saved = ws.session.save_vocal_dna(folder_id=folder_id)
    if saved is None:
        return gr.skip(), gr.skip(), gr.skip()
    return (_status_html(f"Saved Vocal DNA to {_folder_name(saved.folder_id)}.", "success"),
            gr.update(choices=_folder_choices(), value=folder_id or ""), "")


# ─── Library handlers ───

def _refresh_library(query, folder_filter):
    folder_filter = folder_filter or ALL
    prompts = library_store.filter_prompts(query, folder_filter)
    lyrics = library_store.filter_lyrics(query, folder_filter)
    prompt_rows = [[p.artist_name, p.mood, p.prompt, _folder_name(p.folder_id), p.saved_at.replace("T", " ")]
                   for p in prompts]
    lyric_rows = [[l.title, l.artist_name or "", _folder_name(l.folder_id), l.saved_at.replace("T", " ")]
                  for l in lyrics]
    move_choices = [("Keep current folder", _KEEP_FOLDER)] + _folder_choices()
    return [
        gr.update(value=prompt_rows),
        gr.update(choices=[(f"{p.artist_name} · {p.mood}", p.id) for p in prompts], value=None),
        gr.update(value=lyric_rows),
        gr.update(choices=[(l.title, l.id) for l in lyrics], value=None),
        gr.update(choices=_filter_choices(), value=folder_filter
                  if folder_filter in {c[1] for c in _filter_choices()} else ALL),
        gr.update(choices=move_choices, value=_KEEP_FOLDER),
        gr.update(choices=move_choices, value=_KEEP_FOLDER),
        gr.update(choices=[(f.name, f.id) for f in library_store.folders()], value=None),
        gr.update(choices=_folder_choices()),
        gr.update(choices=_folder_choices()),
    ]


def on_select_prompt(prompt_id):
    item = library_store.get_prompt(prompt_id) if prompt_id else None
    return item.prompt if item else ""


def on_update_prompt(prompt_id, text, move_choice):
    if not prompt_id:
        return _status_html("Select a prompt first.", "info")
    folder_id = UNSET if move_choice == _KEEP_FOLDER else (move_choice or None)
    item = library_store.update_prompt(prompt_id, prompt=text if text.strip() else None, folder_id=folder_id)
    if item is None:
        return _status_html("That prompt no longer exists.", "info")
    return _status_html("Prompt updated.", "success")


def on_delete_prompt(prompt_id):
    if prompt_id:
        library_store.delete_prompt(prompt_id)
    return _status_html("Prompt deleted.", "success")


def on_select_lyric(lyric_id):
    item = library_store.get_lyric(lyric_id) if lyric_id else None
    return item.structured_lyrics if item else ""


def on_move_lyric(lyric_id, move_choice):
    if not lyric_id or move_choice == _KEEP_FOLDER:
        return gr.skip()
    library_store.update_lyric_folder(lyric_id, move_choice or None)
    return _status_html("Lyric moved.", "success")


def on_delete_lyric(lyric_id):
    if lyric_id:
        library_store.delete_lyric(lyric_id)
    return _status_html("Lyric deleted.", "success")


def on_create_folder(ws, name):
    folder = ws.create_folder(name)
    if folder is None:
        return gr.skip(), gr.skip()
    return _status_html(f"Created folder '{folder.name}'.", "success"), ""


def on_delete_folder(folder_id):
    if not folder_id:
        return gr.skip()
    name = _folder_name(folder_id)
    library_store.delete_folder(folder_id)
    return _status_html(f"Deleted folder '{name}'. Its items are now uncategorized.", "success")


# ─── Lyric Architect handlers ───

def _lyric_fields(ws):
    d = ws.lyrics.draft
    return (d.title, gr.update(choices=_artist_choices(), value=d.artist_id), d.raw, d.structured)


def _lyric_field_handler(field):
    def on_input(ws, value):
        ws.lyrics.update(**{field: value or ""})
    return on_input


def on_structure(ws, *llm):
    if not ws.lyrics.draft.raw.strip():
        yield gr.skip(), gr.skip()
        return
    yield gr.skip(), _status_html("Structuring lyrics...", "progress")
    try:
        _use_backend(ws, llm)
        structured = ws.lyrics.structure()
    except Exception as e:
        logger.error("Lyric structuring failed: %s", e)
        yield gr.skip(), _status_html(f"Error: {e}", "error")
        return
    if structured is None:
        yield gr.skip(), _status_html("Lyrics are already being structured, or the draft changed meanwhile.", "info")
        return
    yield structured, _status_html("Lyrics structured.", "success")


def on_save_lyric(ws, folder_choice, new_folder_name):
    folder_id = _resolve_folder(ws, folder_choice, new_folder_name)
    saved = ws.lyrics.save(folder_id=folder_id)
    if saved is None:
        return gr.skip(), gr.skip(), gr.skip()
    return (_status_html(f"Saved '{saved.title}' to {_folder_name(saved.folder_id)}.", "success"),
            gr.update(choices=_folder_choices(), value=folder_id or ""), "")


def on_clear_lyrics(ws):
    ws.lyrics.clear()
    return _lyric_fields(ws) + (_status_html("Draft cleared.", "info"),)


# ─── Score Architect & transcription handlers ───

def _score_fields(ws):
    d = ws.score.draft
    if d is None:
        return "", "", ""
    return d.file_name, d.notation, d.analysis


def on_transcribe_score(ws, audio_path, *llm):
    if not audio_path:
        yield gr.skip(), gr.skip(), gr.skip(), gr.skip()
        return
    yield gr.skip(), gr.skip(), gr.skip(), _status_html("Transcribing melody...", "progress")
    try:
        _use_backend(ws, llm)
        data, mime = _read_audio(audio_path)
        draft = ws.score.transcribe(data, mime, os.path.basename(audio_path))
    except Exception as e:
        logger.error("Score transcription failed: %s", e)
        yield gr.skip(), gr.skip(), gr.skip(), _status_html(f"Error: {e}", "error")
        return
    if draft is None:
        yield gr.skip(), gr.skip(), gr.skip(), _status_html("A transcription is already running.", "info")
        return
    yield (*_score_fields(ws), _status_html("Transcription ready.", "success"))


def on_edit_notation(ws, text):
    ws.score.edit_notation(text)


def on_export_score(ws):
    path = ws.score.export()
    if path is None:
        return gr.update(value=None, visible=False)
    return gr.update(value=path, visible=True)


def on_transcribe_clip(ws, audio_path, *llm):
    if not audio_path:
        return gr.skip()
    try:
        _use_backend(ws, llm)
        data, mime = _read_audio(audio_path)
        return transcribe_audio(ws.backend, data, mime)
    except Exception as e:
        logger.error("Audio transcription failed: %s", e)
        return "Transcription failed. Please try again."


def on_theme_change(theme):
    library_store.set_theme(theme)


# ─── UI ───

CUSTOM_CSS = """
#search-group {
    border: 2px solid #3b82f6;
    border-radius: 12px;
    padding: 12px;
    background: linear-gradient(135deg, rgba(59,130,246,0.08), rgba(59,130,246,0.02));
}
"""

_THEME_JS = """(theme) => {
    document.body.classList.toggle('dark', theme === 'dark');
    return theme;
}"""

_session_outputs = []

with gr.Blocks(title="Vocal Architect", css=CUSTOM_CSS) as app:
    # One Workspace per browser session; history and library stay shared.
    workspace_state = gr.State(None)
    gr.Markdown("# Vocal Architect\nAnalyze a singer's vocal DNA and build style prompts for AI music generation.")

    with gr.Accordion("LLM Settings", open=False):
        llm_backend = gr.Radio(["Ollama", "OpenAI"], value=DEFAULT_LLM_BACKEND, label="Backend")
        with gr.Group(visible=DEFAULT_LLM_BACKEND == "Ollama") as ollama_group:
            ollama_url = gr.Textbox(label="Ollama URL", value=DEFAULT_OLLAMA_URL)
            with gr.Row():
                ollama_model = gr.Dropdown(
                    label="Ollama Model", value=DEFAULT_OLLAMA_MODEL,
                    choices=[DEFAULT_OLLAMA_MODEL], allow_custom_value=True,
                )
                refresh_ollama_btn = gr.Button("Refresh Models", size="sm")
            refresh_ollama_btn.click(on_list_ollama, [ollama_url], [ollama_model])
        with gr.Group(visible=DEFAULT_LLM_BACKEND == "OpenAI") as openai_group:
            openai_url = gr.Textbox(label="API Base URL", value=DEFAULT_OPENAI_URL)
            openai_model = gr.Dropdown(
                label="Model", value=DEFAULT_OPENAI_MODEL,
                choices=DEFAULT_OPENAI_MODELS, allow_custom_value=True,
            )
            openai_key = gr.Textbox(label="API Key", value=DEFAULT_OPENAI_KEY, type="password")

        def toggle_backend(choice):
            return (
                gr.update(visible=choice == "Ollama"),
                gr.update(visible=choice == "OpenAI"),
            )

        llm_backend.change(toggle_backend, [llm_backend], [ollama_group, openai_group])
        llm_temp = gr.Slider(0.0, 2.0, value=DEFAULT_LLM_TEMPERATURE, step=0.1, label="LLM Temperature")
        llm_timeout = gr.Slider(10, 600, value=DEFAULT_LLM_TIMEOUT, step=10, label="LLM Timeout (seconds)")
        unload_ollama_btn = gr.Button("Unload Ollama Model", size="sm")
        ollama_status = gr.Textbox(label="Status", interactive=False, visible=False)
        theme_radio = gr.Radio(["dark", "light"], value=library_store.get_theme(), label="Theme")

        def on_unload_ollama(backend, o_url, o_model):
            if backend != "Ollama":
                return gr.update(visible=True, value="Only applicable for Ollama backend.")
            return gr.update(visible=True, value=unload_ollama_model(base_url=o_url, model=o_model))

        unload_ollama_btn.click(on_unload_ollama, [llm_backend, ollama_url, ollama_model], [ollama_status])

    llm_inputs = [llm_backend, ollama_url, ollama_model, openai_url, openai_model, openai_key, llm_temp, llm_timeout]

    with gr.Tab("Artist") as artist_tab:
        with gr.Row():
            with gr.Column(scale=3):
                with gr.Group(elem_id="search-group"):
                    with gr.Row():
                        query_box = gr.Textbox(label="Singer", placeholder="e.g. IU, Adele, Freddie Mercury", scale=4)
                        analyze_btn = gr.Button("Analyze", variant="primary", scale=1)
                status_box = gr.HTML(value="")
                profile_md = gr.Markdown(_profile_markdown(None))

                with gr.Row():
                    save_folder_dd = gr.Dropdown(choices=_folder_choices(), value="", label="Save into folder")
                    save_new_folder = gr.Textbox(label="...or a new folder", placeholder="New folder name")

                gr.Markdown("### Mood prompts")
                slot_groups, slot_boxes, slot_tracks = [], [], []
                for _i in range(MAX_MOOD_VARIATIONS):
                    with gr.Column(visible=False) as _grp:
                        _box = gr.Textbox(label=f"Mood {_i + 1}", lines=2)
                        with gr.Row():
                            _instr = gr.Textbox(label="Refine instruction (optional)", scale=3)
                            _refine = gr.Button("Refine", size="sm", scale=1)
                        with gr.Row():
                            _track = gr.Dropdown(label="Sound like track", choices=[], allow_custom_value=True, scale=3)
                            _tailor = gr.Button("Tailor", size="sm", scale=1)
                        _save = gr.Button("Save prompt", size="sm", variant="secondary")
                    on_edit, on_refine, on_tailor, on_save = _make_slot_handlers(_i)
                    _box.input(on_edit, [workspace_state, _box], [])
                    _refine.click(on_refine, [workspace_state, _instr] + llm_inputs, [_box, status_box])
                    _tailor.click(on_tailor, [workspace_state, _track] + llm_inputs, [_box, status_box])
                    _save.click(on_save, [workspace_state, save_folder_dd, save_new_folder], [status_box, save_folder_dd, save_new_folder])
                    slot_groups.append(_grp)
                    slot_boxes.append(_box)
                    slot_tracks.append(_track)

                gr.Markdown("### Vocal DNA")
                dna_box = gr.Textbox(label="Vocal DNA (timbre only)", lines=2, interactive=False)
                with gr.Row():
                    dna_instr = gr.Textbox(label="Refine instruction (optional)", scale=3)
                    dna_refine = gr.Button("Refine", size="sm", scale=1)
                with gr.Row():
                    dna_track = gr.Dropdown(label="Sound like track", choices=[], allow_custom_value=True, scale=3)
                    dna_tailor = gr.Button("Tailor", size="sm", scale=1)
                dna_save = gr.Button("Save Vocal DNA", size="sm", variant="secondary")
                dna_box.input(on_dna_edit, [workspace_state, dna_box], [])
                dna_refine.click(on_dna_refine, [workspace_state, dna_instr] + llm_inputs, [dna_box, status_box])
                dna_tailor.click(on_dna_tailor, [workspace_state, dna_track] + llm_inputs, [dna_box, status_box])
                dna_save.click(on_dna_save, [workspace_state, save_folder_dd, save_new_folder], [status_box, save_folder_dd, save_new_folder])

            with gr.Column(scale=1):
                gr.Markdown("### Recent analyses")
                history_dd = gr.Dropdown(choices=_history_choices(), label="History")
                with gr.Row():
                    history_load_btn = gr.Button("Load", size="sm", variant="primary")
                    history_delete_btn = gr.Button("Delete", size="sm", variant="stop")

    with gr.Tab("Library") as library_tab:
        library_status = gr.HTML(value="")
        with gr.Row():
            search_box = gr.Textbox(label="Search", placeholder="Artist, mood, title or text...", scale=3)
            filter_dd = gr.Dropdown(choices=_filter_choices(), value=ALL, label="Folder", scale=1)
        with gr.Accordion("Folders", open=False):
            with gr.Row():
                folder_name_box = gr.Textbox(label="New folder", scale=3)
                folder_create_btn = gr.Button("Create", size="sm", scale=1)
            with gr.Row():
                folder_delete_dd = gr.Dropdown(choices=[], label="Folder to delete", scale=3)
                folder_delete_btn = gr.Button("Delete folder", size="sm", variant="stop", scale=1)

        gr.Markdown("### Saved prompts")
        prompts_df = gr.Dataframe(headers=["Artist", "Mood", "Prompt", "Folder", "Saved"], interactive=False, wrap=True)
        with gr.Row():
            prompt_pick = gr.Dropdown(choices=[], label="Prompt", scale=2)
            prompt_move = gr.Dropdown(choices=[], label="Move to", scale=1)
        prompt_edit = gr.Textbox(label="Prompt text", lines=3)
        with gr.Row():
            prompt_update_btn = gr.Button("Update", size="sm", variant="primary")
            prompt_delete_btn = gr.Button("Delete", size="sm", variant="stop")

        gr.Markdown("### Saved lyrics")
        lyrics_df = gr.Dataframe(headers=["Title", "Artist", "Folder", "Saved"], interactive=False, wrap=True)
        with gr.Row():
            lyric_pick = gr.Dropdown(choices=[], label="Lyric", scale=2)
            lyric_move = gr.Dropdown(choices=[], label="Move to", scale=1)
        lyric_view = gr.Textbox(label="Structured lyrics", lines=8, interactive=False)
        with gr.Row():
            lyric_move_btn = gr.Button("Move", size="sm")
            lyric_delete_btn = gr.Button("Delete", size="sm", variant="stop")

    with gr.Tab("Lyric Architect") as lyrics_tab:
        lyric_status = gr.HTML(value="")
        with gr.Row():
            lyric_title = gr.Textbox(label="Title", placeholder="Song title...")
            lyric_artist = gr.Dropdown(choices=_artist_choices(), value="", label="Apply artist style")
        with gr.Row():
            with gr.Column():
                lyric_raw = gr.Textbox(label="Raw lyrics", lines=18, placeholder="Paste your lyrics here...")
                structure_btn = gr.Button("Structure lyrics", variant="primary")
            with gr.Column():
                lyric_structured = gr.Textbox(label="Structured lyrics", lines=18)
                with gr.Row():
                    lyric_folder_dd = gr.Dropdown(choices=_folder_choices(), value="", label="Save into folder")
                    lyric_new_folder = gr.Textbox(label="...or a new folder")
                with gr.Row():
                    lyric_save_btn = gr.Button("Save to library", variant="secondary")
                    lyric_clear_btn = gr.Button("Clear draft", variant="stop")

        lyric_title.input(_lyric_field_handler("title"), [workspace_state, lyric_title], [])
        lyric_artist.input(_lyric_field_handler("artist_id"), [workspace_state, lyric_artist], [])
        lyric_raw.input(_lyric_field_handler("raw"), [workspace_state, lyric_raw], [])
        lyric_structured.input(_lyric_field_handler("structured"), [workspace_state, lyric_structured], [])
        structure_btn.click(on_structure, [workspace_state] + llm_inputs, [lyric_structured, lyric_status])
        lyric_save_btn.click(on_save_lyric, [workspace_state, lyric_folder_dd, lyric_new_folder],
                             [lyric_status, lyric_folder_dd, lyric_new_folder])
        lyric_clear_btn.click(
            on_clear_lyrics, [workspace_state], [lyric_title, lyric_artist, lyric_raw, lyric_structured, lyric_status],
            js="(...args) => { if (!confirm('Clear the whole draft?')) throw new Error('cancelled'); return args; }",
        )

    with gr.Tab("Score Architect", visible=SCORE_ENABLED) as score_tab:
        score_status = gr.HTML(value="")
        with gr.Row():
            with gr.Column(scale=1):
                score_audio = gr.Audio(label="Audio file", sources=["upload"], type="filepath")
                score_btn = gr.Button("Transcribe to notation", variant="primary")
                score_file = gr.Textbox(label="Source file", interactive=False)
                score_export_btn = gr.Button("Export .abc", size="sm")
                score_download = gr.File(label="Download", visible=False)
            with gr.Column(scale=2):
                score_notation = gr.Textbox(label="ABC notation (editable)", lines=16)
                score_analysis = gr.Textbox(label="Musical analysis", lines=6, interactive=False)
        score_notation.input(on_edit_notation, [workspace_state, score_notation], [])
        score_btn.click(on_transcribe_score, [workspace_state, score_audio] + llm_inputs,
                        [score_file, score_notation, score_analysis, score_status])
        score_export_btn.click(on_export_score, [workspace_state], [score_download])

    with gr.Tab("Transcriber", visible=TRANSCRIPTION_ENABLED):
        clip_audio = gr.Audio(label="Clip", sources=["microphone", "upload"], type="filepath")
        clip_btn = gr.Button("Transcribe", variant="primary")
        clip_text = gr.Textbox(label="Transcription", lines=6)
        clip_btn.click(on_transcribe_clip, [workspace_state, clip_audio] + llm_inputs, [clip_text])

    # Wiring that spans tabs
    _session_outputs.extend([profile_md, dna_box, dna_track])
    for _grp, _box, _track in zip(slot_groups, slot_boxes, slot_tracks):
        _session_outputs.extend([_grp, _box, _track])
    _session_outputs.extend([history_dd, lyric_artist])

    analyze_btn.click(on_analyze, [workspace_state, query_box] + llm_inputs, _session_outputs + [status_box])
    query_box.submit(on_analyze, [workspace_state, query_box] + llm_inputs, _session_outputs + [status_box])
    history_load_btn.click(on_load_history, [workspace_state, history_dd], _session_outputs + [status_box])
    history_delete_btn.click(on_delete_history, [history_dd], [history_dd, lyric_artist])

    _library_outputs = [prompts_df, prompt_pick, lyrics_df, lyric_pick, filter_dd,
                        prompt_move, lyric_move, folder_delete_dd, save_folder_dd, lyric_folder_dd]
    _library_inputs = [search_box, filter_dd]

    search_box.change(_refresh_library, _library_inputs, _library_outputs)
    filter_dd.input(_refresh_library, _library_inputs, _library_outputs)
    prompt_pick.input(on_select_prompt, [prompt_pick], [prompt_edit])
    lyric_pick.input(on_select_lyric, [lyric_pick], [lyric_view])
    prompt_update_btn.click(on_update_prompt, [prompt_pick, prompt_edit, prompt_move], [library_status]).then(
        _refresh_library, _library_inputs, _library_outputs)
    prompt_delete_btn.click(
        on_delete_prompt, [prompt_pick], [library_status],
        js="(...args) => { if (!confirm('Delete this prompt?')) throw new Error('cancelled'); return args; }",
    ).then(_refresh_library, _library_inputs, _library_outputs)
    lyric_move_btn.click(on_move_lyric, [lyric_pick, lyric_move], [library_status]).then(
        _refresh_library, _library_inputs, _library_outputs)
    lyric_delete_btn.click(
        on_delete_lyric, [lyric_pick], [library_status],
        js="(...args) => { if (!confirm('Delete these lyrics?')) throw new Error('cancelled'); return args; }",
    ).then(_refresh_library, _library_inputs, _library_outputs)
    folder_create_btn.click(on_create_folder, [workspace_state, folder_name_box], [library_status, folder_name_box]).then(
        _refresh_library, _library_inputs, _library_outputs)
    folder_delete_btn.click(
        on_delete_folder, [folder_delete_dd], [library_status],
        js="(...args) => { if (!confirm('Delete this folder? Its items will be kept as uncategorized.')) throw new Error('cancelled'); return args; }",
    ).then(_refresh_library, _library_inputs, _library_outputs)

    # Page switches only move the workspace; drafts are re-rendered from it.
    artist_tab.select(lambda ws: ws.navigate("home"), [workspace_state], [])
    library_tab.select(lambda ws: ws.navigate("saved"), [workspace_state], []).then(
        _refresh_library, _library_inputs, _library_outputs)
    lyrics_tab.select(lambda ws: ws.navigate("lyrics"), [workspace_state], []).then(
        _lyric_fields, [workspace_state], [lyric_title, lyric_artist, lyric_raw, lyric_structured])
    score_tab.select(lambda ws: ws.navigate("score"), [workspace_state], []).then(
        _score_fields, [workspace_state], [score_file, score_notation, score_analysis])

    theme_radio.change(on_theme_change, [theme_radio], [], js=_THEME_JS)
    app.load(_new_workspace, [], [workspace_state])
    app.load(None, [theme_radio], [], js=_THEME_JS)


if __name__ == "__main__":
    import sys
    share = "--share" in sys.argv
    from config import SERVER_HOST, SERVER_PORT
    app.launch(share=share, server_name=SERVER_HOST, server_port=SERVER_PORT, allowed_paths=[OUTPUT_DIR])
