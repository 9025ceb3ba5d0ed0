"""LLM backend implementations for artist analysis, prompt refinement and transcription."""

import base64
import json
import logging
import re

import openai
import requests
from openai import OpenAI

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """A model call failed: unreachable backend, error response or unusable output."""


_AUDIO_FORMATS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
}


class OllamaBackend:
    """Ollama API backend."""

    name = "Ollama"

    def __init__(self, base_url, model, temperature=0.7, timeout=120):
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def _post(self, path, payload):
        try:
            resp = requests.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.ConnectionError:
            raise EngineError(
                f"Cannot connect to Ollama at {self.base_url}. "
                "Is Ollama running? Start it with 'ollama serve'."
            )
        except requests.Timeout:
            raise EngineError(f"Ollama request timed out after {self.timeout}s.")
        except ValueError:
            raise EngineError("Ollama returned a response that is not JSON.")

    def generate(self, prompt, system, json_mode=False):
        options = {"temperature": self.temperature}
        fmt = {"format": "json"} if json_mode else {}
        # Try /api/chat first
        try:
            data = self._post("/api/chat", {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "stream": False,
                "options": options,
                **fmt,
            })
            return data["message"]["content"]
        except (requests.HTTPError, KeyError, TypeError):
            logger.info("Ollama /api/chat failed, falling back to /api/generate")

        # Fallback to /api/generate
        try:
            data = self._post("/api/generate", {
                "model": self.model,
                "system": system,
                "prompt": prompt,
                "stream": False,
                "options": options,
                **fmt,
            })
        except requests.HTTPError as e:
            raise EngineError(f"Ollama returned an error: {e}")
        if not isinstance(data, dict) or "response" not in data:
            raise EngineError("Ollama returned an unexpected response.")
        return data["response"]

    def generate_with_audio(self, prompt, system, audio_bytes, mime_type, json_mode=False):
        raise EngineError("The Ollama backend cannot process audio. Switch to an OpenAI-compatible backend.")

    def transcribe(self, audio_bytes, mime_type):
        raise EngineError("The Ollama backend cannot transcribe audio. Switch to an OpenAI-compatible backend.")


class OpenAIBackend:
    """OpenAI-compatible API backend."""

    name = "OpenAI"

    def __init__(self, api_key, base_url, model, temperature=0.7, timeout=120,
                 audio_model=None, stt_model=None):
        if not api_key:
            raise EngineError("OpenAI API key is not configured. Set OPENAI_API_KEY in your .env file.")
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self.model = model
        self.temperature = temperature
        self.audio_model = audio_model or model
        self.stt_model = stt_model or "whisper-1"

    def _complete(self, model, messages, json_mode):
        kwargs = {"response_format": {"type": "json_object"}} if json_mode else {}
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.temperature,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise EngineError(f"OpenAI request failed: {e}")
        return response.choices[0].message.content

    def generate(self, prompt, system, json_mode=False):
        return self._complete(self.model, [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ], json_mode)

    def generate_with_audio(self, prompt, system, audio_bytes, mime_type, json_mode=False):
        fmt = _AUDIO_FORMATS.get((mime_type or "").lower())
        if fmt is None:
            raise EngineError(f"Unsupported audio type: {mime_type}. Use WAV or MP3.")
        return self._complete(self.audio_model, [
            {"role": "system", "content": system},
            {"role": "user", "content": [
                {"type": "input_audio", "input_audio": {
                    "data": base64.b64encode(audio_bytes).decode("ascii"),
                    "format": fmt,
                }},
                {"type": "text", "text": prompt},
            ]},
        ], json_mode)

    def transcribe(self, audio_bytes, mime_type):
        ext = _AUDIO_FORMATS.get((mime_type or "").lower(), "wav")
        try:
            result = self.client.audio.transcriptions.create(
                model=self.stt_model,
                file=(f"clip.{ext}", audio_bytes, mime_type or "audio/wav"),
            )
        except openai.OpenAIError as e:
            raise EngineError(f"OpenAI transcription failed: {e}")
        return result.text


def create_backend(backend, **kwargs):
    """Build a backend from the settings panel values."""
    temperature = kwargs.get("temperature", 0.7)
    timeout = kwargs.get("timeout", 120)
    if backend.lower() == "ollama":
        return OllamaBackend(
            base_url=kwargs.get("base_url", "http://localhost:11434"),
            model=kwargs.get("model", "llama3"),
            temperature=temperature,
            timeout=timeout,
        )
    elif backend.lower() == "openai":
        return OpenAIBackend(
            api_key=kwargs.get("api_key", ""),
            base_url=kwargs.get("base_url", "https://api.openai.com/v1"),
            model=kwargs.get("model", "gpt-4o-mini"),
            temperature=temperature,
            timeout=timeout,
            audio_model=kwargs.get("audio_model"),
            stt_model=kwargs.get("stt_model"),
        )
    else:
        raise ValueError(f"Unknown backend: {backend}")


def clean_llm_response(text):
    """Strip whitespace and remove markdown code block wrappers if present."""
    if not text:
        return ""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1]).strip()
    return text


def parse_json_response(text):
    """Parse the JSON object in a model response.

    Tolerates code fences and prose around the object; raises EngineError
    when no object can be decoded.
    """
    text = clean_llm_response(text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        m = re.search(r"\{.*\}", text, re.DOTALL)
        if not m:
            raise EngineError("The model response did not contain JSON.")
        try:
            data = json.loads(m.group(0))
        except json.JSONDecodeError as e:
            raise EngineError(f"The model returned malformed JSON: {e}")
    if not isinstance(data, dict):
        raise EngineError("The model returned JSON that is not an object.")
    return data


def unload_ollama_model(base_url="http://localhost:11434", model="llama3"):
    """Unload an Ollama model from VRAM."""
    try:
        resp = requests.post(
            f"{base_url}/api/generate",
            json={"model": model, "keep_alive": 0},
            timeout=30,
        )
        resp.raise_for_status()
        return f"Unloaded {model} from Ollama."
    except Exception as e:
        logger.warning("Failed to unload Ollama model %s: %s", model, e)
        return f"Error unloading {model}: {e}"


def list_ollama_models(base_url="http://localhost:11434"):
    """List available Ollama models."""
    try:
        resp = requests.get(f"{base_url}/api/tags", timeout=10)
        resp.raise_for_status()
        models = resp.json().get("models", [])
        return [m["name"] for m in models]
    except Exception:
        logger.warning("Failed to list Ollama models at %s", base_url)
        return []
