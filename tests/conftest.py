from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, List

import pytest

from serpscout.config import Settings
from serpscout.credentials import StaticCredentialProvider
from serpscout.generation import GenerationRequest, KeywordGenerator
from serpscout.observability import MetricsRecorder
from serpscout.session import KeywordResearchSession
from serpscout.storage import MemoryKeyValueStore, PersistentStore, SavedKeywordRepository


def keyword_payload(keyword: str = "best trail shoes", **overrides: Any) -> dict[str, Any]:
    payload = {
        "keyword": keyword,
        "difficulty": "Medium",
        "searchVolume": "1K-10K",
        "competitionLevel": "High",
        "estimatedCpc": "$0.50 - $1.50",
        "contentIdeas": ["Buyer's guide", "Top 10 list"],
        "serpFeatures": ["Featured Snippet", "People Also Ask"],
    }
    payload.update(overrides)
    return payload


def keyword_batch(count: int, *, prefix: str = "keyword") -> str:
    return json.dumps([keyword_payload(f"{prefix} {index}") for index in range(count)])


class FakeBackend:
    """Generation backend returning canned replies and recording requests."""

    name = "fake"

    def __init__(self, reply: str | Callable[[GenerationRequest], str] | Exception = "[]") -> None:
        self.reply = reply
        self.requests: List[GenerationRequest] = []
        self.api_keys: List[str | None] = []

    def complete(self, request: GenerationRequest, *, api_key: str | None) -> str:
        self.requests.append(request)
        self.api_keys.append(api_key)
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(request)
        return self.reply


class FailingKeyValueStore:
    """Store whose reads and writes always fail."""

    def __init__(self) -> None:
        self.writes = 0

    def get(self, key: str) -> str | None:
        raise OSError("storage unavailable")

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        raise OSError("quota exceeded")


@pytest.fixture(autouse=True)
def _propagate_app_logs():
    app_logger = logging.getLogger("serpscout")
    previous = app_logger.propagate
    app_logger.propagate = True
    yield
    app_logger.propagate = previous


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        chat_backend="gemini",
        gemini_api_key="test-key",
        data_dir=str(tmp_path),
    )


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def repository(kv_store: MemoryKeyValueStore) -> SavedKeywordRepository:
    return SavedKeywordRepository(PersistentStore(kv_store), key="seoKeywords_saved")


def build_test_session(
    settings: Settings,
    backend: FakeBackend,
    repository: SavedKeywordRepository,
    *,
    credentials: Any = None,
    metrics: MetricsRecorder | None = None,
) -> KeywordResearchSession:
    credentials = credentials or StaticCredentialProvider("test-key")
    generator = KeywordGenerator(settings, credentials=credentials, backend=backend, metrics=metrics)
    session = KeywordResearchSession(generator, repository, credentials, metrics=metrics)
    session.bootstrap()
    return session


@pytest.fixture()
def session(settings, backend, repository) -> KeywordResearchSession:
    return build_test_session(settings, backend, repository)


def keywords_of(records: Iterable[Any]) -> list[str]:
    return [record.keyword for record in records]
