import os
import logging

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_float(key, default):
    """Read a float from env, falling back to default on invalid values."""
    try:
        return float(os.environ.get(key, default))
    except (ValueError, TypeError):
        logger.warning("Invalid value for %s, using default %s", key, default)
        return float(default)


def _env_int(key, default):
    """Read an int from env, falling back to default on invalid values."""
    try:
        return int(os.environ.get(key, default))
    except (ValueError, TypeError):
        logger.warning("Invalid value for %s, using default %s", key, default)
        return int(default)


def _env_bool(key, default):
    return os.environ.get(key, default).lower() in ("1", "true", "yes")


BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get("DATA_DIR", os.path.join(BASE_DIR, "data"))
OUTPUT_DIR = os.environ.get("OUTPUT_DIR", os.path.join(BASE_DIR, "output"))

# Storage keys carry a version suffix so a schema change gets a fresh key
# instead of misreading old data.
STORAGE_KEYS = {
    "history": "vocal_architect_history_v1",
    "prompts": "vocal_architect_saved_prompts_v1",
    "lyrics": "vocal_architect_saved_lyrics_v1",
    "folders": "vocal_architect_folders_v1",
    "theme": "vocal_architect_theme_v1",
}

HISTORY_LIMIT = _env_int("HISTORY_LIMIT", "10")
MAX_MOOD_VARIATIONS = 6

VOCAL_DNA_LABEL = "Vocal DNA"
UNTITLED_LYRIC = "Untitled"

FOLDER_COLORS = ["#3b82f6", "#22c55e", "#f59e0b", "#ef4444", "#a855f7", "#14b8a6"]

DEFAULT_THEME = os.environ.get("THEME", "dark")

# Language of the "localized" half of bilingual descriptions.
LOCALIZED_LANGUAGE = os.environ.get("LOCALIZED_LANGUAGE", "Korean")

DEFAULT_OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434")
DEFAULT_OLLAMA_MODEL = os.environ.get("OLLAMA_MODEL", "glm-4.7-flash")

DEFAULT_OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
DEFAULT_OPENAI_URL = os.environ.get("OPENAI_URL", "https://api.openai.com/v1")
DEFAULT_OPENAI_KEY = os.environ.get("OPENAI_API_KEY", "")
DEFAULT_OPENAI_MODELS = [
    m.strip()
    for m in os.environ.get(
        "OPENAI_MODELS", "gpt-4o-mini,gpt-4o,gpt-4.1-mini,gpt-4.1,o4-mini,gpt-5-mini,gpt-5"
    ).split(",")
    if m.strip()
]
# Audio input (score transcription) and speech-to-text need dedicated models.
DEFAULT_OPENAI_AUDIO_MODEL = os.environ.get("OPENAI_AUDIO_MODEL", "gpt-4o-audio-preview")
DEFAULT_OPENAI_STT_MODEL = os.environ.get("OPENAI_STT_MODEL", "whisper-1")

DEFAULT_LLM_BACKEND = os.environ.get("LLM_BACKEND", "Ollama")
DEFAULT_LLM_TEMPERATURE = _env_float("LLM_TEMPERATURE", "0.7")
DEFAULT_LLM_TIMEOUT = _env_int("LLM_TIMEOUT", "120")

TRANSCRIPTION_ENABLED = _env_bool("TRANSCRIPTION", "true")
SCORE_ENABLED = _env_bool("SCORE_TRANSCRIPTION", "true")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

SERVER_HOST = os.environ.get("SERVER_HOST", "127.0.0.1")
SERVER_PORT = _env_int("SERVER_PORT", "7860")
