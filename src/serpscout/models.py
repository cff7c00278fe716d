"""Keyword records, filter selections and input validation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Final, Mapping
from uuid import uuid4

DIFFICULTY_LEVELS: Final[tuple[str, ...]] = ("Low", "Medium", "High", "Very High")
SEARCH_VOLUME_RANGES: Final[tuple[str, ...]] = (
    "0-10",
    "10-100",
    "100-1K",
    "1K-10K",
    "10K-100K",
    "100K+",
)
COMPETITION_LEVELS: Final[tuple[str, ...]] = ("Low", "Medium", "High", "Very High")

MIN_KEYWORD_COUNT: Final[int] = 1
MAX_KEYWORD_COUNT: Final[int] = 20

# Wire names for the seven generated fields, in prompt order.
RECORD_FIELDS: Final[tuple[str, ...]] = (
    "keyword",
    "difficulty",
    "searchVolume",
    "competitionLevel",
    "estimatedCpc",
    "contentIdeas",
    "serpFeatures",
)

_ENUM_FIELDS: Final[dict[str, tuple[str, ...]]] = {
    "difficulty": DIFFICULTY_LEVELS,
    "searchVolume": SEARCH_VOLUME_RANGES,
    "competitionLevel": COMPETITION_LEVELS,
}


class KeywordInputError(ValueError):
    """Raised when a generation request is rejected before any network call."""


class RecordValidationError(ValueError):
    """Raised when a keyword payload does not match the record shape."""


def new_record_id() -> str:
    return uuid4().hex


def validate_generation_input(seed: str | None, count: int | None) -> tuple[str, int]:
    """Return the cleaned ``(seed, count)`` pair or raise :class:`KeywordInputError`."""

    cleaned = (seed or "").strip()
    if not cleaned:
        raise KeywordInputError("Please enter a seed keyword.")
    range_message = f"Number of keywords must be between {MIN_KEYWORD_COUNT} and {MAX_KEYWORD_COUNT}."
    if count is None or isinstance(count, bool):
        raise KeywordInputError(range_message)
    if isinstance(count, float) and not count.is_integer():
        raise KeywordInputError(range_message)
    try:
        value = int(count)
    except (TypeError, ValueError, OverflowError) as exc:
        raise KeywordInputError(range_message) from exc
    if not MIN_KEYWORD_COUNT <= value <= MAX_KEYWORD_COUNT:
        raise KeywordInputError(range_message)
    return cleaned, value


def _require_string_list(name: str, value: object) -> list[str]:
    if not isinstance(value, list):
        raise RecordValidationError(f"{name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise RecordValidationError(f"{name} must be a list of strings")
        text = item.strip()
        if text:
            items.append(text)
    return items


@dataclass(frozen=True, slots=True)
class KeywordRecord:
    """One generated or saved keyword suggestion."""

    id: str
    keyword: str
    difficulty: str
    search_volume: str
    competition_level: str
    estimated_cpc: str
    content_ideas: tuple[str, ...] = field(default_factory=tuple)
    serp_features: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, record_id: str | None = None) -> "KeywordRecord":
        """Build a record from its camelCase JSON form.

        ``record_id`` overrides any ``id`` in the payload; when neither is
        present a fresh identifier is assigned. Unknown keys are ignored.
        """

        if not isinstance(payload, Mapping):
            raise RecordValidationError(f"Expected a JSON object, got {type(payload).__name__}")
        missing = [name for name in RECORD_FIELDS if name not in payload]
        if missing:
            raise RecordValidationError(f"Missing required fields: {', '.join(missing)}")

        keyword = payload["keyword"]
        if not isinstance(keyword, str) or not keyword.strip():
            raise RecordValidationError("keyword must be a non-empty string")

        for name, allowed in _ENUM_FIELDS.items():
            value = payload[name]
            if value not in allowed:
                raise RecordValidationError(
                    f"{name} must be one of {', '.join(allowed)} (got {value!r})"
                )

        cpc = payload["estimatedCpc"]
        if not isinstance(cpc, str):
            raise RecordValidationError("estimatedCpc must be a string")

        identifier = record_id or payload.get("id") or new_record_id()
        return cls(
            id=str(identifier),
            keyword=keyword.strip(),
            difficulty=payload["difficulty"],
            search_volume=payload["searchVolume"],
            competition_level=payload["competitionLevel"],
            estimated_cpc=cpc.strip(),
            content_ideas=tuple(_require_string_list("contentIdeas", payload["contentIdeas"])),
            serp_features=tuple(_require_string_list("serpFeatures", payload["serpFeatures"])),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "keyword": self.keyword,
            "difficulty": self.difficulty,
            "searchVolume": self.search_volume,
            "competitionLevel": self.competition_level,
            "estimatedCpc": self.estimated_cpc,
            "contentIdeas": list(self.content_ideas),
            "serpFeatures": list(self.serp_features),
        }


_FILTER_ALIASES: Final[dict[str, str]] = {
    "difficulty": "difficulty",
    "search_volume": "search_volume",
    "searchVolume": "search_volume",
    "competition_level": "competition_level",
    "competitionLevel": "competition_level",
}

_FILTER_CHOICES: Final[dict[str, tuple[str, ...]]] = {
    "difficulty": DIFFICULTY_LEVELS,
    "search_volume": SEARCH_VOLUME_RANGES,
    "competition_level": COMPETITION_LEVELS,
}

ALL_FILTER_VALUE: Final[str] = "All"


@dataclass(frozen=True, slots=True)
class FilterSelection:
    """Three independent exact-match predicates; ``None`` means no constraint."""

    difficulty: str | None = None
    search_volume: str | None = None
    competition_level: str | None = None

    def merge(self, **partial: str | None) -> "FilterSelection":
        """Return a copy with the given axes replaced.

        Accepts snake_case or camelCase axis names. ``None``, ``""`` and
        ``"All"`` clear an axis; any other value must be a declared choice.
        """

        updates: dict[str, str | None] = {}
        for key, raw in partial.items():
            axis = _FILTER_ALIASES.get(key)
            if axis is None:
                raise ValueError(f"Unknown filter axis: {key}")
            value = raw.strip() if isinstance(raw, str) else raw
            if value in (None, "", ALL_FILTER_VALUE):
                updates[axis] = None
                continue
            if value not in _FILTER_CHOICES[axis]:
                raise ValueError(f"Invalid {axis} filter value: {value!r}")
            updates[axis] = value
        return replace(self, **updates)

    @property
    def is_empty(self) -> bool:
        return self.difficulty is None and self.search_volume is None and self.competition_level is None

    def matches(self, record: KeywordRecord) -> bool:
        if self.difficulty is not None and record.difficulty != self.difficulty:
            return False
        if self.search_volume is not None and record.search_volume != self.search_volume:
            return False
        if self.competition_level is not None and record.competition_level != self.competition_level:
            return False
        return True

    def to_payload(self) -> dict[str, str]:
        return {
            "difficulty": self.difficulty or ALL_FILTER_VALUE,
            "searchVolume": self.search_volume or ALL_FILTER_VALUE,
            "competitionLevel": self.competition_level or ALL_FILTER_VALUE,
        }


__all__ = [
    "ALL_FILTER_VALUE",
    "COMPETITION_LEVELS",
    "DIFFICULTY_LEVELS",
    "FilterSelection",
    "KeywordInputError",
    "KeywordRecord",
    "MAX_KEYWORD_COUNT",
    "MIN_KEYWORD_COUNT",
    "RECORD_FIELDS",
    "RecordValidationError",
    "SEARCH_VOLUME_RANGES",
    "new_record_id",
    "validate_generation_input",
]
