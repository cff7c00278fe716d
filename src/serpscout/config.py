"""Configuration helpers for the SerpScout application."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_CHAT_BACKEND: Final[str] = "gemini"
_DEFAULT_GEMINI_MODEL: Final[str] = "gemini-2.5-flash"
_DEFAULT_OPENAI_CHAT_MODEL: Final[str] = "gpt-4o-mini"
_DEFAULT_OLLAMA_URL: Final[str] = "http://localhost:11434"
_DEFAULT_OLLAMA_MODEL: Final[str] = "llama3.1:8b"
_DEFAULT_OLLAMA_TIMEOUT: Final[float] = 60.0
_DEFAULT_GENERATION_TEMPERATURE: Final[float] = 0.7
_DEFAULT_GENERATION_TOP_P: Final[float] = 0.95
_DEFAULT_GENERATION_TOP_K: Final[int] = 64
_DEFAULT_DATA_DIR: Final[str] = "data"
_DEFAULT_STORAGE_FILENAME: Final[str] = "local_storage.json"
_DEFAULT_SAVED_KEYWORDS_KEY: Final[str] = "seoKeywords_saved"
_DEFAULT_KEYWORD_COUNT: Final[int] = 10

_BACKEND_KEY_ENV: Final[dict[str, str]] = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def _env_optional_bool(name: str) -> bool | None:
    """Read an optional boolean environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    msg = f"Environment variable {name} must be a boolean value (true/false)."
    raise ValueError(msg)


def _env_optional_int(name: str) -> int | None:
    """Read an optional integer environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _env_optional_float(name: str) -> float | None:
    """Read an optional float environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable with a fallback (preserving zero)."""

    value = _env_optional_float(name)
    return default if value is None else value


def _env_int(name: str, default: int) -> int:
    value = _env_optional_int(name)
    return default if value is None else value


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable with a fallback."""

    value = _env_optional_bool(name)
    if value is None:
        return default
    return value


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def read_api_key(backend: str) -> str | None:
    """Return the API key for ``backend`` from the process environment.

    Gemini keys fall back to the generic ``API_KEY`` variable used by hosted
    notebook environments.
    """

    name = _BACKEND_KEY_ENV.get(backend.lower())
    if name is None:
        return None
    value = _env_str(name)
    if value is None and backend.lower() == "gemini":
        value = _env_str("API_KEY")
    return value


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    chat_backend: str = _DEFAULT_CHAT_BACKEND
    gemini_api_key: str | None = None
    gemini_model: str = _DEFAULT_GEMINI_MODEL
    openai_api_key: str | None = None
    openai_chat_model: str = _DEFAULT_OPENAI_CHAT_MODEL
    ollama_base_url: str = _DEFAULT_OLLAMA_URL
    ollama_model: str = _DEFAULT_OLLAMA_MODEL
    ollama_request_timeout: float = _DEFAULT_OLLAMA_TIMEOUT
    generation_temperature: float = _DEFAULT_GENERATION_TEMPERATURE
    generation_top_p: float = _DEFAULT_GENERATION_TOP_P
    generation_top_k: int = _DEFAULT_GENERATION_TOP_K
    data_dir: str = _DEFAULT_DATA_DIR
    storage_file: str | None = None
    saved_keywords_key: str = _DEFAULT_SAVED_KEYWORDS_KEY
    default_keyword_count: int = _DEFAULT_KEYWORD_COUNT
    observability_metrics_enabled: bool = True
    observability_namespace: str = "serpscout"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings by reading environment variables."""

        return cls(
            chat_backend=os.getenv("CHAT_BACKEND", _DEFAULT_CHAT_BACKEND).strip().lower(),
            gemini_api_key=read_api_key("gemini"),
            gemini_model=os.getenv("GEMINI_MODEL", _DEFAULT_GEMINI_MODEL),
            openai_api_key=read_api_key("openai"),
            openai_chat_model=os.getenv("OPENAI_CHAT_MODEL", _DEFAULT_OPENAI_CHAT_MODEL),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", _DEFAULT_OLLAMA_URL),
            ollama_model=os.getenv("OLLAMA_MODEL", _DEFAULT_OLLAMA_MODEL),
            ollama_request_timeout=_env_float("OLLAMA_TIMEOUT", _DEFAULT_OLLAMA_TIMEOUT),
            generation_temperature=max(
                0.0, _env_float("GENERATION_TEMPERATURE", _DEFAULT_GENERATION_TEMPERATURE)
            ),
            generation_top_p=_env_float("GENERATION_TOP_P", _DEFAULT_GENERATION_TOP_P),
            generation_top_k=max(1, _env_int("GENERATION_TOP_K", _DEFAULT_GENERATION_TOP_K)),
            data_dir=os.getenv("DATA_DIR", _DEFAULT_DATA_DIR),
            storage_file=_env_str("STORAGE_FILE"),
            saved_keywords_key=os.getenv("SAVED_KEYWORDS_KEY", _DEFAULT_SAVED_KEYWORDS_KEY),
            default_keyword_count=_env_int("DEFAULT_KEYWORD_COUNT", _DEFAULT_KEYWORD_COUNT),
            observability_metrics_enabled=_env_bool("OBSERVABILITY_METRICS_ENABLED", True),
            observability_namespace=os.getenv("OBSERVABILITY_NAMESPACE", "serpscout"),
        )

    @property
    def is_gemini_backend(self) -> bool:
        """Return True when keywords are generated through the Gemini API."""

        return self.chat_backend.lower() == "gemini"

    @property
    def is_openai_backend(self) -> bool:
        """Return True when using the OpenAI Responses API."""

        return self.chat_backend.lower() == "openai"

    @property
    def is_ollama_backend(self) -> bool:
        """Return True when the backend is an Ollama-hosted model."""

        return self.chat_backend.lower() == "ollama"

    @property
    def requires_api_key(self) -> bool:
        return not self.is_ollama_backend

    @property
    def credential_env_var(self) -> str | None:
        """Name of the environment variable holding the active backend's key."""

        return _BACKEND_KEY_ENV.get(self.chat_backend.lower())

    @property
    def active_api_key(self) -> str | None:
        if self.is_gemini_backend:
            return self.gemini_api_key
        if self.is_openai_backend:
            return self.openai_api_key
        return None

    def set_active_api_key(self, value: str | None) -> None:
        if self.is_gemini_backend:
            self.gemini_api_key = value
        elif self.is_openai_backend:
            self.openai_api_key = value

    @property
    def active_model(self) -> str:
        if self.is_gemini_backend:
            return self.gemini_model
        if self.is_openai_backend:
            return self.openai_chat_model
        return self.ollama_model

    def storage_path(self) -> Path:
        """Return the file backing the local key-value store."""

        if self.storage_file:
            return Path(self.storage_file).expanduser().resolve()
        return Path(self.data_dir).resolve() / _DEFAULT_STORAGE_FILENAME

    def build_metrics_recorder(self) -> "MetricsRecorder":
        """Instantiate the configured metrics recorder."""

        from .observability import MetricsRecorder

        return MetricsRecorder(
            enabled=self.observability_metrics_enabled,
            namespace=self.observability_namespace,
        )
