"""View-model helpers for rendering keyword cards and filter controls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .models import (
    ALL_FILTER_VALUE,
    COMPETITION_LEVELS,
    DIFFICULTY_LEVELS,
    SEARCH_VOLUME_RANGES,
    KeywordRecord,
)
from .serp_features import SerpFeature, describe_serp_feature
from .session import SessionSnapshot

_NEUTRAL = "neutral"

_DIFFICULTY_TONES = {"Low": "green", "Medium": "yellow", "High": "orange", "Very High": "red"}
_COMPETITION_TONES = {"Low": "teal", "Medium": "amber", "High": "rose", "Very High": "purple"}

EMPTY_START_MESSAGE = "Start by entering a seed keyword above to begin your research!"
NO_FILTER_MATCH_MESSAGE = "No saved keywords match the current filter criteria."
NOTHING_SAVED_MESSAGE = "No keywords saved yet. Click 'Save Keyword' on any generated card to add it here!"


def difficulty_tone(value: str) -> str:
    return _DIFFICULTY_TONES.get(value, _NEUTRAL)


def competition_tone(value: str) -> str:
    return _COMPETITION_TONES.get(value, _NEUTRAL)


def volume_tone(value: str) -> str:
    if value in {"100K+", "10K-100K"}:
        return "indigo"
    if value == "1K-10K":
        return "blue"
    if value == "100-1K":
        return "sky"
    return _NEUTRAL


def filter_options() -> dict[str, list[str]]:
    return {
        "difficulty": [ALL_FILTER_VALUE, *DIFFICULTY_LEVELS],
        "searchVolume": [ALL_FILTER_VALUE, *SEARCH_VOLUME_RANGES],
        "competitionLevel": [ALL_FILTER_VALUE, *COMPETITION_LEVELS],
    }


@dataclass(frozen=True, slots=True)
class KeywordCard:
    record: KeywordRecord
    saved: bool
    difficulty_tone: str
    volume_tone: str
    competition_tone: str
    serp_features: tuple[SerpFeature, ...]

    @property
    def button_label(self) -> str:
        return "Saved" if self.saved else "Save Keyword"


def build_cards(records: Iterable[KeywordRecord], saved_ids: set[str]) -> List[KeywordCard]:
    return [
        KeywordCard(
            record=record,
            saved=record.id in saved_ids,
            difficulty_tone=difficulty_tone(record.difficulty),
            volume_tone=volume_tone(record.search_volume),
            competition_tone=competition_tone(record.competition_level),
            serp_features=tuple(describe_serp_feature(tag) for tag in record.serp_features),
        )
        for record in records
    ]


def build_page_context(snapshot: SessionSnapshot, *, form_error: str | None = None) -> dict[str, object]:
    """Assemble the template context for the main page."""

    saved_ids = {record.id for record in snapshot.saved}
    generated_cards = build_cards(snapshot.generated, saved_ids)
    saved_cards = build_cards(snapshot.visible_saved, saved_ids)

    empty_message: str | None = None
    if not snapshot.busy and not snapshot.last_error:
        if not snapshot.generated and not snapshot.saved:
            empty_message = EMPTY_START_MESSAGE
        elif snapshot.generated and not snapshot.saved:
            empty_message = NOTHING_SAVED_MESSAGE

    return {
        "generated_cards": generated_cards,
        "saved_cards": saved_cards,
        "has_saved": bool(snapshot.saved),
        "no_filter_match": bool(snapshot.saved) and not saved_cards,
        "no_filter_match_message": NO_FILTER_MATCH_MESSAGE,
        "empty_message": empty_message,
        "active_filter": snapshot.filter.to_payload(),
        "filter_options": filter_options(),
        "credential_available": snapshot.credential_available,
        "busy": snapshot.busy,
        "error": snapshot.last_error,
        "form_error": form_error,
    }


__all__ = [
    "KeywordCard",
    "build_cards",
    "build_page_context",
    "competition_tone",
    "difficulty_tone",
    "filter_options",
    "volume_tone",
]
