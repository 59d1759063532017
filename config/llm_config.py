# llm_config.py — LLM client factory (Gemini / Groq / Ollama)
# Handles provider selection, JSON-mode chat calls, credential lookup
"""
llm_config.py — LLM Configuration & Factory

Supports:
1. Gemini API (cloud) - used when GEMINI_API_KEY / GOOGLE_API_KEY / API_KEY is set
2. Groq API (cloud) - used when GROQ_API_KEY is set
3. Ollama (local) - fallback when no API key is configured

Every client exposes the same chat() call: an ordered list of
{"role", "content"} messages plus an optional system prompt, returning
the model's raw text. When a response schema is passed the provider is
asked for JSON output.

Transport is urllib; no provider SDK is required.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_GROQ_MODEL = "llama-3.1-8b-instant"
DEFAULT_OLLAMA_MODEL = "llama3.1"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GROQ_API_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_TEMPERATURE = 0.4
DEFAULT_MAX_TOKENS = 2048
REQUEST_TIMEOUT = 60  # seconds

GEMINI_KEY_NAMES = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")
GROQ_KEY_NAMES = ("GROQ_API_KEY",)

PROVIDERS = ("gemini", "groq", "ollama")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached."""
    pass


class LLMResponseError(LLMError):
    """Raised when the provider answers with an error or unusable body."""
    pass


class ModelNotFoundError(LLMError):
    """Raised when requested model is not available."""
    pass


# =============================================================================
# CREDENTIALS
# =============================================================================

def get_secret(*names: str) -> str:
    """
    Look up the first configured credential among ``names``.

    Streamlit secrets are checked first, then the environment.
    """
    try:
        import streamlit as st
        for name in names:
            if name in st.secrets:
                return str(st.secrets[name])
    except Exception:
        # No secrets.toml, or not running under Streamlit
        pass

    for name in names:
        value = os.environ.get(name, "")
        if value:
            return value
    return ""


def _post_json(
    url: str,
    payload: dict,
    headers: dict[str, str],
    timeout: int,
    provider: str,
) -> dict:
    """
    POST a JSON body and decode the JSON reply.

    Raises:
        ModelNotFoundError: On HTTP 404
        LLMResponseError: On any other HTTP error or a non-JSON body
        LLMConnectionError: If the server is not reachable
    """
    data = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        error_body = e.read().decode("utf-8", errors="replace") if e.fp else str(e)
        if e.code == 404:
            raise ModelNotFoundError(f"{provider} model not found: {error_body}") from e
        raise LLMResponseError(f"{provider} API error ({e.code}): {_error_message(error_body)}") from e
    except urllib.error.URLError as e:
        raise LLMConnectionError(f"Cannot reach {provider}: {e.reason}") from e
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Invalid response from {provider}: {e}") from e


def _error_message(body: str) -> str:
    """Pull ``error.message`` out of a JSON error body when present."""
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return body


# =============================================================================
# GEMINI CLIENT
# =============================================================================

@dataclass
class GeminiConfig:
    """Configuration for Gemini."""
    model: str = DEFAULT_GEMINI_MODEL
    api_key: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class GeminiLLM:
    """
    Gemini client using the REST ``generateContent`` endpoint.

    Assistant turns are sent with the ``model`` role, as the API requires.
    """

    provider = "gemini"

    def __init__(self, config: GeminiConfig | None = None):
        self.config = config or GeminiConfig()
        if not self.config.api_key:
            self.config.api_key = get_secret(*GEMINI_KEY_NAMES)

    @property
    def model(self) -> str:
        return self.config.model

    def is_available(self) -> bool:
        return bool(self.config.api_key)

    def build_payload(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
    ) -> dict:
        contents = [
            {
                "role": "user" if m["role"] == "user" else "model",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
        ]
        generation_config: dict[str, Any] = {
            "temperature": self.config.temperature if temperature is None else temperature,
            "maxOutputTokens": self.config.max_tokens,
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return payload

    def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Send a conversation and return the reply text.

        Raises:
            LLMError: If the key is missing or the request fails
        """
        if not self.config.api_key:
            raise LLMError("Gemini API key not configured")

        url = (
            f"{GEMINI_API_BASE_URL}/models/"
            f"{urllib.parse.quote(self.config.model)}:generateContent"
        )
        result = _post_json(
            url,
            self.build_payload(messages, system_prompt, response_schema, temperature),
            headers={"x-goog-api-key": self.config.api_key},
            timeout=self.config.timeout,
            provider="Gemini",
        )

        candidates = result.get("candidates") or []
        if not candidates:
            feedback = result.get("promptFeedback", {})
            reason = feedback.get("blockReason")
            if reason:
                raise LLMResponseError(f"Gemini blocked the request ({reason})")
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts).strip()


# =============================================================================
# GROQ CLIENT (OpenAI-compatible)
# =============================================================================

@dataclass
class GroqConfig:
    """Configuration for Groq LLM."""
    model: str = DEFAULT_GROQ_MODEL
    api_key: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class GroqLLM:
    """
    Groq API client for chat completion.

    Uses OpenAI-compatible API format. JSON output is requested with
    ``response_format``; the schema itself goes into the system prompt
    because Groq does not enforce it.
    """

    provider = "groq"

    def __init__(self, config: GroqConfig | None = None):
        """Initialize Groq client."""
        self.config = config or GroqConfig()
        if not self.config.api_key:
            self.config.api_key = get_secret(*GROQ_KEY_NAMES)

    @property
    def model(self) -> str:
        return self.config.model

    def is_available(self) -> bool:
        """Check if Groq API is available (has API key)."""
        return bool(self.config.api_key)

    def build_payload(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
    ) -> dict:
        chat_messages = []
        system_text = _with_schema_hint(system_prompt, response_schema)
        if system_text:
            chat_messages.append({"role": "system", "content": system_text})
        chat_messages.extend({"role": m["role"], "content": m["content"]} for m in messages)

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": chat_messages,
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens,
        }
        if response_schema is not None:
            payload["response_format"] = {"type": "json_object"}
        return payload

    def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Send a conversation and return the reply text.

        Raises:
            LLMError: If the key is missing or the request fails
        """
        if not self.config.api_key:
            raise LLMError("Groq API key not configured")

        result = _post_json(
            f"{GROQ_API_BASE_URL}/chat/completions",
            self.build_payload(messages, system_prompt, response_schema, temperature),
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            timeout=self.config.timeout,
            provider="Groq",
        )
        try:
            return (result["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(f"Unexpected Groq response shape: {e}") from e


# =============================================================================
# OLLAMA CLIENT (local)
# =============================================================================

@dataclass
class OllamaConfig:
    """Configuration for Ollama LLM."""
    model: str = DEFAULT_OLLAMA_MODEL
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class OllamaLLM:
    """
    Lightweight Ollama client using ``/api/chat``.

    Replies are streamed as newline-delimited JSON and joined here.
    """

    provider = "ollama"

    def __init__(self, config: OllamaConfig | None = None):
        self.config = config or OllamaConfig()

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def is_available(self) -> bool:
        """
        Check if Ollama server is running and reachable.

        Returns:
            True if server is available, False otherwise
        """
        try:
            request = urllib.request.Request(f"{self.base_url}/api/tags", method="GET")
            with urllib.request.urlopen(request, timeout=5) as response:
                return response.status == 200
        except (urllib.error.URLError, OSError):
            return False

    def build_payload(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
    ) -> dict:
        chat_messages = []
        system_text = _with_schema_hint(system_prompt, response_schema)
        if system_text:
            chat_messages.append({"role": "system", "content": system_text})
        chat_messages.extend({"role": m["role"], "content": m["content"]} for m in messages)

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": chat_messages,
            "stream": True,
            "options": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        if response_schema is not None:
            payload["format"] = "json"
        return payload

    def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Send a conversation and return the joined streamed reply.

        Raises:
            LLMConnectionError: If server is not reachable
            ModelNotFoundError: If the model has not been pulled
            LLMResponseError: If the stream is malformed
        """
        payload = self.build_payload(messages, system_prompt, response_schema, temperature)
        request = urllib.request.Request(
            f"{self.base_url}/api/chat",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout) as response:
                return _read_ollama_stream(response)
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise ModelNotFoundError(
                    f"Model '{self.config.model}' not found. "
                    f"Pull it with: `ollama pull {self.config.model}`"
                ) from e
            raise LLMResponseError(f"HTTP error {e.code}: {e.reason}") from e
        except urllib.error.URLError as e:
            raise LLMConnectionError(
                f"Cannot connect to Ollama at {self.base_url}. "
                f"Ensure Ollama is running: `ollama serve`"
            ) from e
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Invalid response from Ollama: {e}") from e


def _read_ollama_stream(lines) -> str:
    """Join the ``message.content`` chunks of an Ollama NDJSON stream."""
    chunks = []
    for line in lines:
        line_str = line.decode("utf-8").strip()
        if not line_str:
            continue
        chunk = json.loads(line_str)
        if chunk.get("error"):
            raise LLMResponseError(f"Ollama error: {chunk['error']}")
        chunks.append(chunk.get("message", {}).get("content", ""))
        if chunk.get("done", False):
            break
    return "".join(chunks).strip()


def _with_schema_hint(system_prompt: str | None, response_schema: dict | None) -> str:
    """Append the JSON schema to the system prompt for providers that cannot enforce it."""
    if response_schema is None:
        return system_prompt or ""
    hint = "Respond with a single JSON object matching this schema:\n" + json.dumps(response_schema)
    return f"{system_prompt}\n\n{hint}" if system_prompt else hint


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def get_llm(
    provider: str = "auto",
    model: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    base_url: str = DEFAULT_OLLAMA_BASE_URL,
) -> GeminiLLM | GroqLLM | OllamaLLM | None:
    """
    Factory function to create an LLM instance.

    Priority order for provider="auto":
    1. Gemini (if a Gemini key is available)
    2. Groq (if GROQ_API_KEY is available)
    3. Ollama (local, if running)
    4. None (analysis disabled)

    Args:
        provider: "auto" or one of PROVIDERS
        model: Model name (provider default if None)
        temperature: Sampling temperature (0.0-1.0)
        max_tokens: Maximum tokens to generate
        base_url: Ollama server URL

    Returns:
        Configured LLM instance or None

    Example:
        llm = get_llm()
        if llm:
            text = llm.chat([{"role": "user", "content": "Hi"}])
    """
    if provider not in ("auto", *PROVIDERS):
        raise ValueError(f"Unknown LLM provider: {provider}")

    if provider in ("auto", "gemini"):
        gemini = GeminiLLM(GeminiConfig(
            model=model or DEFAULT_GEMINI_MODEL,
            temperature=temperature,
            max_tokens=max_tokens,
        ))
        if gemini.is_available():
            return gemini

    if provider in ("auto", "groq"):
        groq = GroqLLM(GroqConfig(
            model=model or DEFAULT_GROQ_MODEL,
            temperature=temperature,
            max_tokens=max_tokens,
        ))
        if groq.is_available():
            return groq

    if provider in ("auto", "ollama"):
        ollama = OllamaLLM(OllamaConfig(
            model=model or DEFAULT_OLLAMA_MODEL,
            base_url=base_url,
            temperature=temperature,
            max_tokens=max_tokens,
        ))
        if ollama.is_available():
            return ollama

    logger.warning("No LLM provider available (requested: %s)", provider)
    return None


def get_llm_status() -> dict:
    """
    Check LLM availability status.

    Returns:
        Dict with status information
    """
    gemini_available = GeminiLLM().is_available()
    groq_available = GroqLLM().is_available()
    ollama_available = OllamaLLM().is_available()

    if gemini_available:
        active = "gemini"
    elif groq_available:
        active = "groq"
    elif ollama_available:
        active = "ollama"
    else:
        active = None

    return {
        "gemini_available": gemini_available,
        "groq_available": groq_available,
        "ollama_available": ollama_available,
        "active_provider": active,
        "gemini_model": DEFAULT_GEMINI_MODEL,
        "groq_model": DEFAULT_GROQ_MODEL,
        "ollama_model": DEFAULT_OLLAMA_MODEL,
    }
