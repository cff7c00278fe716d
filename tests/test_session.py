from __future__ import annotations

import asyncio
import json

import pytest

from conftest import FakeBackend, FailingKeyValueStore, build_test_session, keyword_batch, keywords_of
from serpscout.credentials import CredentialError, StaticCredentialProvider
from serpscout.models import KeywordInputError
from serpscout.session import (
    CREDENTIAL_SELECTION_FAILED_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    UNAUTHORIZED_MESSAGE,
    KeywordResearchSession,
)
from serpscout.storage import PersistentStore, SavedKeywordRepository

KEY = "seoKeywords_saved"


class _ToggleCredentials:
    def __init__(self, *, available: bool, error: Exception | None = None) -> None:
        self.available = available
        self.error = error
        self.requests = 0

    def has_credential(self) -> bool:
        return self.available

    def current_key(self) -> str | None:
        return "key" if self.available else None

    def request_credential(self) -> None:
        self.requests += 1
        if self.error is not None:
            raise self.error
        self.available = True


def _generate(session: KeywordResearchSession, seed: str = "seo tools", count: int = 5) -> None:
    asyncio.run(session.request_generation(seed, count))


def test_generation_replaces_batch(session, backend) -> None:
    backend.reply = keyword_batch(5)

    _generate(session)

    assert len(session.generated) == 5
    assert len({record.id for record in session.generated}) == 5
    assert session.last_error is None
    assert session.busy is False

    backend.reply = keyword_batch(2, prefix="second")
    _generate(session, count=2)
    assert keywords_of(session.generated) == ["second 0", "second 1"]


def test_generation_busy_flag_is_set_during_call(session, backend) -> None:
    observed = []

    def reply(request):
        observed.append(session.busy)
        return keyword_batch(1)

    backend.reply = reply
    _generate(session, count=1)

    assert observed == [True]
    assert session.busy is False


def test_malformed_reply_sets_error_and_empties_batch(session, backend) -> None:
    backend.reply = keyword_batch(2)
    _generate(session, count=2)
    backend.reply = "not json"

    _generate(session)

    assert session.generated == []
    assert session.last_error.startswith("Failed to fetch keyword data:")
    assert session.credential_available is True
    assert session.busy is False


def test_unauthorized_reply_revokes_credential(session, backend) -> None:
    backend.reply = RuntimeError("Requested entity was not found.")

    _generate(session)

    assert session.last_error == UNAUTHORIZED_MESSAGE
    assert session.credential_available is False
    assert session.generated == []


def test_missing_credential_blocks_generation(settings, backend, repository) -> None:
    backend.reply = keyword_batch(1)
    session = build_test_session(
        settings, backend, repository, credentials=_ToggleCredentials(available=False)
    )

    _generate(session, count=1)

    assert session.last_error == MISSING_CREDENTIAL_MESSAGE
    assert backend.requests == []


def test_invalid_input_raises_before_any_call(session, backend) -> None:
    with pytest.raises(KeywordInputError, match="between 1 and 20"):
        _generate(session, count=25)
    assert backend.requests == []
    assert session.last_error is None


def test_save_is_idempotent_and_ordered(session, backend, kv_store) -> None:
    backend.reply = keyword_batch(2)
    _generate(session, count=2)
    first, second = session.generated

    assert session.save_record(first) is True
    assert session.save_record(first) is False
    assert session.save_record(second) is True

    assert keywords_of(session.saved) == ["keyword 0", "keyword 1"]
    stored = json.loads(kv_store.get(KEY))
    assert [entry["id"] for entry in stored] == [first.id, second.id]
    assert session.is_saved(first)


def test_save_generated_by_id(session, backend) -> None:
    backend.reply = keyword_batch(1)
    _generate(session, count=1)
    record_id = session.generated[0].id

    assert session.save_generated(record_id) == session.generated[0]
    assert session.save_generated(record_id) == session.saved[0]
    assert len(session.saved) == 1
    assert session.save_generated("missing") is None


def test_saved_survives_regeneration(session, backend) -> None:
    backend.reply = keyword_batch(1)
    _generate(session, count=1)
    session.save_record(session.generated[0])

    backend.reply = keyword_batch(1, prefix="fresh")
    _generate(session, count=1)

    assert keywords_of(session.saved) == ["keyword 0"]
    assert keywords_of(session.generated) == ["fresh 0"]


def test_clear_saved_resets_filter(session, backend, kv_store) -> None:
    backend.reply = keyword_batch(2)
    _generate(session, count=2)
    for record in list(session.generated):
        session.save_record(record)
    session.set_filter(difficulty="Medium")

    session.clear_saved()

    assert session.saved == []
    assert session.filter.is_empty
    assert session.visible_saved() == []
    assert json.loads(kv_store.get(KEY)) == []


def test_visible_saved_applies_filter_in_order(session, backend) -> None:
    def reply(request):
        return json.dumps(
            [
                {**json.loads(keyword_batch(1, prefix="low"))[0], "difficulty": "Low"},
                {**json.loads(keyword_batch(1, prefix="high"))[0], "difficulty": "High"},
                {**json.loads(keyword_batch(1, prefix="low again"))[0], "difficulty": "Low"},
            ]
        )

    backend.reply = reply
    _generate(session, count=3)
    for record in list(session.generated):
        session.save_record(record)

    session.set_filter(difficulty="Low")

    assert keywords_of(session.visible_saved()) == ["low 0", "low again 0"]
    session.set_filter(difficulty="All")
    assert session.visible_saved() == session.saved
    assert len(session.saved) == 3


def test_bootstrap_loads_persisted_records(settings, backend, repository) -> None:
    first = build_test_session(settings, backend, repository)
    backend.reply = keyword_batch(1)
    _generate(first, count=1)
    first.save_record(first.generated[0])

    second = build_test_session(settings, FakeBackend(), repository)

    assert keywords_of(second.saved) == ["keyword 0"]
    assert second.generated == []


def test_persistence_failure_keeps_memory_state(settings, backend) -> None:
    repository = SavedKeywordRepository(PersistentStore(FailingKeyValueStore()), key=KEY)
    session = build_test_session(settings, backend, repository)
    backend.reply = keyword_batch(1)
    _generate(session, count=1)

    assert session.save_record(session.generated[0]) is True
    assert len(session.saved) == 1


def test_select_credential_is_optimistic(settings, backend, repository) -> None:
    credentials = _ToggleCredentials(available=False)
    session = build_test_session(settings, backend, repository, credentials=credentials)
    session.last_error = UNAUTHORIZED_MESSAGE

    assert session.select_credential() is True

    assert session.credential_available is True
    assert session.last_error is None
    assert credentials.requests == 1


def test_select_credential_unavailable_environment(settings, backend, repository) -> None:
    credentials = _ToggleCredentials(available=False, error=CredentialError("not available here"))
    session = build_test_session(settings, backend, repository, credentials=credentials)

    assert session.select_credential() is False
    assert session.last_error == "not available here"
    assert session.credential_available is False


def test_select_credential_unexpected_failure(settings, backend, repository) -> None:
    credentials = _ToggleCredentials(available=False, error=RuntimeError("dialog crashed"))
    session = build_test_session(settings, backend, repository, credentials=credentials)

    assert session.select_credential() is False
    assert session.last_error == CREDENTIAL_SELECTION_FAILED_MESSAGE


def test_snapshot_payload_flags_saved_records(session, backend) -> None:
    backend.reply = keyword_batch(2)
    _generate(session, count=2)
    session.save_record(session.generated[1])

    payload = session.snapshot().to_payload()

    assert [item["saved"] for item in payload["generated"]] == [False, True]
    assert payload["saved"][0]["keyword"] == "keyword 1"
    assert payload["filter"] == {"difficulty": "All", "searchVolume": "All", "competitionLevel": "All"}
    assert payload["credentialAvailable"] is True
    assert payload["busy"] is False


class _BrokenCheck(StaticCredentialProvider):
    def has_credential(self) -> bool:
        raise RuntimeError("host bridge missing")


def test_bootstrap_falls_back_to_configured_key(settings, backend, repository) -> None:
    session = build_test_session(settings, backend, repository, credentials=_BrokenCheck("key"))

    assert session.credential_available is True


def test_bootstrap_without_any_credential_source(settings, backend, repository) -> None:
    class _NoKey(_BrokenCheck):
        def current_key(self) -> str | None:
            raise RuntimeError("environment unreadable")

    session = build_test_session(settings, backend, repository, credentials=_NoKey("key"))

    assert session.credential_available is False
