"""In-memory keyword research state and the operations that mutate it."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List

from .credentials import CredentialError, CredentialProvider
from .generation import GenerationError, KeywordGenerator, UnauthorizedError
from .models import FilterSelection, KeywordRecord, validate_generation_input
from .observability import MetricsRecorder
from .storage import SavedKeywordRepository

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = "API Key not selected. Please select your API key to proceed."
UNAUTHORIZED_MESSAGE = "API Key invalid or expired, or model not found. Please select your API key again."
CREDENTIAL_SELECTION_FAILED_MESSAGE = "Failed to open API key selection. Please try again."


def generation_error_message(error: GenerationError) -> str:
    if isinstance(error, UnauthorizedError):
        return UNAUTHORIZED_MESSAGE
    return f"Failed to fetch keyword data: {error} ({error.detail}). Please try again."


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    generated: tuple[KeywordRecord, ...]
    saved: tuple[KeywordRecord, ...]
    visible_saved: tuple[KeywordRecord, ...]
    filter: FilterSelection
    credential_available: bool
    busy: bool
    last_error: str | None

    def to_payload(self) -> dict[str, Any]:
        saved_ids = {record.id for record in self.saved}
        return {
            "generated": [
                {**record.to_payload(), "saved": record.id in saved_ids} for record in self.generated
            ],
            "saved": [record.to_payload() for record in self.saved],
            "visibleSaved": [record.to_payload() for record in self.visible_saved],
            "filter": self.filter.to_payload(),
            "credentialAvailable": self.credential_available,
            "busy": self.busy,
            "error": self.last_error,
        }


class KeywordResearchSession:
    """Own the generated batch, the saved collection and the active filters.

    All operations run on the event loop thread. ``request_generation`` is the
    only coroutine; callers must not start a second one while ``busy`` is set.
    The in-memory saved collection is authoritative: it is updated before it is
    persisted and is not rolled back when persistence fails.
    """

    def __init__(
        self,
        generator: KeywordGenerator,
        repository: SavedKeywordRepository,
        credentials: CredentialProvider,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._generator = generator
        self._repository = repository
        self._credentials = credentials
        self._metrics = metrics
        self.generated: List[KeywordRecord] = []
        self.saved: List[KeywordRecord] = []
        self.filter = FilterSelection()
        self.credential_available = False
        self.busy = False
        self.last_error: str | None = None

    def bootstrap(self) -> None:
        """Load saved keywords and determine initial credential availability."""

        self.saved = self._repository.load_all()
        try:
            self.credential_available = bool(self._credentials.has_credential())
        except Exception:
            logger.exception("session.credential_check.failed")
            self.credential_available = self._configured_key_present()
        logger.info(
            "session.bootstrap saved=%s credential_available=%s",
            len(self.saved),
            self.credential_available,
        )

    def _configured_key_present(self) -> bool:
        try:
            return bool(self._credentials.current_key())
        except Exception:
            logger.exception("session.credential_fallback.failed")
            return False

    async def request_generation(self, seed: str, count: int) -> None:
        seed, count = validate_generation_input(seed, count)
        if not self.credential_available:
            self.last_error = MISSING_CREDENTIAL_MESSAGE
            logger.info("session.generate.blocked reason=missing-credential")
            return

        self.busy = True
        self.generated = []
        self.last_error = None
        try:
            records = await asyncio.to_thread(self._generator.generate, seed, count)
        except GenerationError as exc:
            if isinstance(exc, UnauthorizedError):
                self.credential_available = False
            self.last_error = generation_error_message(exc)
            logger.warning("session.generate.failed kind=%s", exc.kind)
        else:
            self.generated = list(records)
            logger.info("session.generate.completed count=%s", len(self.generated))
        finally:
            self.busy = False

    def save_record(self, record: KeywordRecord) -> bool:
        """Append ``record`` unless its id is already saved; return True when added."""

        if self.is_saved(record):
            return False
        self.saved = [*self.saved, record]
        self._repository.save_all(self.saved)
        logger.info("session.saved.added id=%s keyword=%s total=%s", record.id, record.keyword, len(self.saved))
        if self._metrics:
            self._metrics.increment("saved.added")
        return True

    def save_generated(self, record_id: str) -> KeywordRecord | None:
        """Save the record with ``record_id`` from the current batch, if present."""

        for record in self.generated:
            if record.id == record_id:
                self.save_record(record)
                return record
        for record in self.saved:
            if record.id == record_id:
                return record
        return None

    def clear_saved(self) -> None:
        cleared = len(self.saved)
        self.saved = []
        self._repository.save_all(self.saved)
        self.filter = FilterSelection()
        logger.info("session.saved.cleared count=%s", cleared)
        if self._metrics:
            self._metrics.increment("saved.cleared", value=cleared)

    def set_filter(self, **partial: str | None) -> FilterSelection:
        self.filter = self.filter.merge(**partial)
        return self.filter

    def visible_saved(self) -> List[KeywordRecord]:
        return [record for record in self.saved if self.filter.matches(record)]

    def is_saved(self, record: KeywordRecord) -> bool:
        return any(saved.id == record.id for saved in self.saved)

    def select_credential(self) -> bool:
        """Ask the credential provider for a key; optimistic on success."""

        try:
            self._credentials.request_credential()
        except CredentialError as exc:
            logger.warning("session.credential.unavailable error=%s", exc)
            self.last_error = str(exc)
            return False
        except Exception:
            logger.exception("session.credential.selection_failed")
            self.last_error = CREDENTIAL_SELECTION_FAILED_MESSAGE
            return False
        # Not re-verified; a bad key surfaces as an unauthorized generation error.
        self.credential_available = True
        self.last_error = None
        return True

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            generated=tuple(self.generated),
            saved=tuple(self.saved),
            visible_saved=tuple(self.visible_saved()),
            filter=self.filter,
            credential_available=self.credential_available,
            busy=self.busy,
            last_error=self.last_error,
        )


__all__ = [
    "CREDENTIAL_SELECTION_FAILED_MESSAGE",
    "KeywordResearchSession",
    "MISSING_CREDENTIAL_MESSAGE",
    "SessionSnapshot",
    "UNAUTHORIZED_MESSAGE",
    "generation_error_message",
]
