"""Keyword generation through an external text-generation service."""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Protocol

import httpx
from google import genai
from google.genai import types as genai_types
from openai import OpenAI

from .config import Settings
from .credentials import CredentialProvider, EnvironmentCredentialProvider
from .models import (
    COMPETITION_LEVELS,
    DIFFICULTY_LEVELS,
    RECORD_FIELDS,
    SEARCH_VOLUME_RANGES,
    KeywordRecord,
    RecordValidationError,
    new_record_id,
    validate_generation_input,
)
from .observability import MetricsRecorder
from .serp_features import PROMPT_EXAMPLES

logger = logging.getLogger(__name__)

# The Gemini API reports a revoked or unselected key this way instead of with
# a dedicated status code.
UNAUTHORIZED_SIGNATURES = ("Requested entity was not found.",)
_UNAUTHORIZED_STATUS_CODES = {401, 403}
_WRAPPER_KEY = "keywords"


class GenerationError(RuntimeError):
    """Base class for failures surfaced by :class:`KeywordGenerator`."""

    kind = "transient"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail or message


class UnauthorizedError(GenerationError):
    """The service rejected the credential in use."""

    kind = "unauthorized"


class MalformedResponseError(GenerationError):
    """The response body was not JSON or did not match the keyword shape."""

    kind = "malformed"


class TransientError(GenerationError):
    """Any other service-reported failure (network, quota, internal)."""

    kind = "transient"


SYSTEM_INSTRUCTION = (
    "You are an expert SEO analyst and keyword research tool. Your task is to generate relevant "
    "long-tail keywords, their hypothetical SEO metrics, content ideas, and potential SERP features. "
    "Ensure the difficulty, search volume, competition level, and estimated CPC estimates are "
    "plausible for the given keyword."
)


def _quoted(values: tuple[str, ...]) -> str:
    return ", ".join(f"'{value}'" for value in values)


def build_prompt(seed: str, count: int) -> str:
    return (
        f'Generate {count} related long-tail keywords for the topic "{seed}". For each keyword, provide:\n'
        '1.  A "keyword" string.\n'
        f'2.  A "difficulty" rating (one of: {_quoted(DIFFICULTY_LEVELS)}).\n'
        f'3.  A "searchVolume" range (one of: {_quoted(SEARCH_VOLUME_RANGES)}).\n'
        f'4.  A "competitionLevel" rating (one of: {_quoted(COMPETITION_LEVELS)}).\n'
        "5.  An \"estimatedCpc\" range (e.g., '$0.50 - $1.50', '$1.00 - $3.00', 'N/A' if not applicable).\n"
        '6.  An array of 2-3 "contentIdeas" strings relevant to the keyword.\n'
        f'7.  An array of 1-2 "serpFeatures" strings (e.g., {_quoted(PROMPT_EXAMPLES)}).\n\n'
        "Format the output strictly as a JSON array of objects, adhering to the provided schema."
    )


def keyword_item_schema() -> dict[str, Any]:
    """JSON schema for a single generated keyword object."""

    return {
        "type": "object",
        "properties": {
            "keyword": {"type": "string", "description": "The generated keyword phrase."},
            "difficulty": {
                "type": "string",
                "enum": list(DIFFICULTY_LEVELS),
                "description": "Hypothetical SEO difficulty for ranking.",
            },
            "searchVolume": {
                "type": "string",
                "enum": list(SEARCH_VOLUME_RANGES),
                "description": "Hypothetical monthly search volume range.",
            },
            "competitionLevel": {
                "type": "string",
                "enum": list(COMPETITION_LEVELS),
                "description": "Hypothetical competition level for this keyword in paid search.",
            },
            "estimatedCpc": {
                "type": "string",
                "description": 'Hypothetical estimated Cost Per Click (CPC) range for paid ads, or "N/A".',
            },
            "contentIdeas": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Content topics or blog post ideas related to the keyword.",
            },
            "serpFeatures": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Common Google SERP features that might appear for this keyword.",
            },
        },
        "required": list(RECORD_FIELDS),
    }


def keyword_list_schema() -> dict[str, Any]:
    return {"type": "array", "items": keyword_item_schema()}


def wrapped_keyword_schema() -> dict[str, Any]:
    """Object-rooted variant for backends that cannot emit a bare array.

    Every object disallows additional properties so the schema is accepted in
    strict structured-output mode.
    """

    item = keyword_item_schema()
    item["additionalProperties"] = False
    return {
        "type": "object",
        "properties": {_WRAPPER_KEY: {"type": "array", "items": item}},
        "required": [_WRAPPER_KEY],
        "additionalProperties": False,
    }


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a JSON schema dict to Gemini's upper-case type names."""

    converted = copy.deepcopy(schema)

    def _walk(node: Any) -> None:
        if isinstance(node, dict):
            node.pop("additionalProperties", None)
            if isinstance(node.get("type"), str):
                node["type"] = node["type"].upper()
            for value in node.values():
                _walk(value)
        elif isinstance(node, list):
            for value in node:
                _walk(value)

    _walk(converted)
    return converted


@dataclass(slots=True)
class GenerationRequest:
    seed: str
    count: int
    system_instruction: str
    prompt: str
    temperature: float
    top_p: float
    top_k: int


class GenerationBackend(Protocol):
    name: str

    def complete(self, request: GenerationRequest, *, api_key: str | None) -> str: ...


class GeminiBackend:
    """Call the Gemini API through the ``google-genai`` SDK."""

    name = "gemini"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def build_config(self, request: GenerationRequest) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            system_instruction=request.system_instruction,
            response_mime_type="application/json",
            response_schema=to_gemini_schema(keyword_list_schema()),
            temperature=request.temperature,
            top_p=request.top_p,
            top_k=request.top_k,
        )

    def complete(self, request: GenerationRequest, *, api_key: str | None) -> str:
        if not api_key:
            raise UnauthorizedError("No Gemini API key is configured.")
        # A fresh client per call picks up a key selected since the last request.
        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=self._settings.gemini_model,
            contents=request.prompt,
            config=self.build_config(request),
        )
        return response.text or ""


class OpenAIBackend:
    """Call the OpenAI Responses API with a strict JSON schema."""

    name = "openai"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def complete(self, request: GenerationRequest, *, api_key: str | None) -> str:
        if not api_key:
            raise UnauthorizedError("No OpenAI API key is configured.")
        client = OpenAI(api_key=api_key)
        response = client.responses.create(
            model=self._settings.openai_chat_model,
            input=[
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.prompt},
            ],
            temperature=request.temperature,
            top_p=request.top_p,
            text={
                "format": {
                    "type": "json_schema",
                    "name": "keyword_batch",
                    "schema": wrapped_keyword_schema(),
                    "strict": True,
                }
            },
        )
        text = getattr(response, "output_text", None)
        return str(text) if text else ""


class OllamaBackend:
    """Call a local Ollama server's chat endpoint with a JSON schema format."""

    name = "ollama"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def complete(self, request: GenerationRequest, *, api_key: str | None) -> str:
        model = (self._settings.ollama_model or "").strip()
        if not model:
            raise TransientError("OLLAMA_MODEL must be set when using the Ollama backend")
        url = f"{self._settings.ollama_base_url.rstrip('/')}/api/chat"
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.prompt},
            ],
            "stream": False,
            "format": wrapped_keyword_schema(),
            "options": {
                "temperature": request.temperature,
                "top_p": request.top_p,
                "top_k": request.top_k,
            },
        }
        response = httpx.post(url, json=payload, timeout=self._settings.ollama_request_timeout)
        response.raise_for_status()
        data = response.json()
        message = data.get("message") or {}
        content = message.get("content") or data.get("response") or ""
        return str(content)


def build_backend(settings: Settings) -> GenerationBackend:
    if settings.is_gemini_backend:
        return GeminiBackend(settings)
    if settings.is_openai_backend:
        return OpenAIBackend(settings)
    if settings.is_ollama_backend:
        return OllamaBackend(settings)
    raise ValueError(f"Unsupported chat backend: {settings.chat_backend}")


def _status_code(exc: Exception) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_failure(exc: Exception) -> GenerationError:
    """Map a raw backend exception onto the generation error taxonomy."""

    if isinstance(exc, GenerationError):
        return exc
    message = str(exc) or type(exc).__name__
    if any(signature in message for signature in UNAUTHORIZED_SIGNATURES):
        return UnauthorizedError("API Key issue or model not found.", detail=message)
    if _status_code(exc) in _UNAUTHORIZED_STATUS_CODES:
        return UnauthorizedError("The API key was rejected by the service.", detail=message)
    return TransientError("The generation service request failed.", detail=message)


def parse_keyword_response(raw: str | None, *, limit: int | None = None) -> List[KeywordRecord]:
    """Parse a service reply into keyword records with fresh identifiers."""

    text = (raw or "").strip()
    if not text:
        raise MalformedResponseError("The generation service returned an empty response.")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            "The generation service returned invalid JSON.", detail=f"{exc.msg} at position {exc.pos}"
        ) from exc

    if isinstance(payload, dict) and isinstance(payload.get(_WRAPPER_KEY), list):
        payload = payload[_WRAPPER_KEY]
    if not isinstance(payload, list):
        raise MalformedResponseError(
            "The generation service response was not a JSON array.",
            detail=f"top-level type {type(payload).__name__}",
        )

    records: list[KeywordRecord] = []
    for index, item in enumerate(payload):
        try:
            records.append(KeywordRecord.from_payload(item, record_id=new_record_id()))
        except RecordValidationError as exc:
            raise MalformedResponseError(
                "The generation service response did not match the keyword schema.",
                detail=f"item {index}: {exc}",
            ) from exc

    if limit is not None and len(records) > limit:
        logger.warning("generation.response.truncated requested=%s received=%s", limit, len(records))
        records = records[:limit]
    return records


class KeywordGenerator:
    """Generate keyword suggestions for a seed topic."""

    def __init__(
        self,
        settings: Settings,
        *,
        credentials: CredentialProvider | None = None,
        backend: GenerationBackend | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials or EnvironmentCredentialProvider(settings)
        self._backend = backend or build_backend(settings)
        self._metrics = metrics

    @property
    def backend_name(self) -> str:
        return getattr(self._backend, "name", "unknown")

    def build_request(self, seed: str, count: int) -> GenerationRequest:
        seed, count = validate_generation_input(seed, count)
        return GenerationRequest(
            seed=seed,
            count=count,
            system_instruction=SYSTEM_INSTRUCTION,
            prompt=build_prompt(seed, count),
            temperature=self._settings.generation_temperature,
            top_p=self._settings.generation_top_p,
            top_k=self._settings.generation_top_k,
        )

    def generate(self, seed: str, count: int) -> List[KeywordRecord]:
        """Run one round-trip to the service; no retries are attempted."""

        request = self.build_request(seed, count)
        backend = self.backend_name
        metrics = self._metrics
        logger.info(
            "generation.request.start backend=%s model=%s seed=%s count=%s",
            backend,
            self._settings.active_model,
            request.seed,
            request.count,
        )
        if metrics:
            metrics.increment("generation.requests", backend=backend)
        start = time.perf_counter()
        try:
            raw = self._backend.complete(request, api_key=self._credentials.current_key())
            records = parse_keyword_response(raw, limit=request.count)
        except Exception as exc:
            error = classify_failure(exc)
            logger.error(
                "generation.request.failed backend=%s kind=%s detail=%s",
                backend,
                error.kind,
                error.detail,
            )
            if metrics:
                metrics.increment("generation.errors", backend=backend, kind=error.kind)
            if error is exc:
                raise
            raise error from exc
        finally:
            if metrics:
                metrics.record_timing("generation.duration", time.perf_counter() - start, backend=backend)

        logger.info(
            "generation.request.completed backend=%s requested=%s received=%s",
            backend,
            request.count,
            len(records),
        )
        return records


__all__ = [
    "GenerationBackend",
    "GenerationError",
    "GenerationRequest",
    "GeminiBackend",
    "KeywordGenerator",
    "MalformedResponseError",
    "OllamaBackend",
    "OpenAIBackend",
    "SYSTEM_INSTRUCTION",
    "TransientError",
    "UNAUTHORIZED_SIGNATURES",
    "UnauthorizedError",
    "build_backend",
    "build_prompt",
    "classify_failure",
    "keyword_item_schema",
    "keyword_list_schema",
    "parse_keyword_response",
    "to_gemini_schema",
    "wrapped_keyword_schema",
]
