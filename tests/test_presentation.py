from __future__ import annotations

from conftest import keyword_payload
from serpscout.models import FilterSelection, KeywordRecord
from serpscout.presentation import (
    EMPTY_START_MESSAGE,
    NOTHING_SAVED_MESSAGE,
    build_cards,
    build_page_context,
    competition_tone,
    difficulty_tone,
    filter_options,
    volume_tone,
)
from serpscout.serp_features import SERP_FEATURES, describe_serp_feature
from serpscout.session import SessionSnapshot


def _snapshot(**overrides) -> SessionSnapshot:
    values = dict(
        generated=(),
        saved=(),
        visible_saved=(),
        filter=FilterSelection(),
        credential_available=True,
        busy=False,
        last_error=None,
    )
    values.update(overrides)
    return SessionSnapshot(**values)


def test_known_serp_feature_has_icon_and_description() -> None:
    feature = describe_serp_feature("Featured Snippet")

    assert feature.known
    assert feature.icon == "💡"
    assert "concise answer" in feature.description


def test_unknown_serp_feature_falls_back() -> None:
    feature = describe_serp_feature("Hologram Pack")

    assert not feature.known
    assert feature.label == "Hologram Pack"
    assert feature.icon == "📄"


def test_serp_feature_vocabulary_is_keyed_by_label() -> None:
    assert all(label == feature.label for label, feature in SERP_FEATURES.items())
    assert "People Also Ask" in SERP_FEATURES


def test_badge_tones() -> None:
    assert difficulty_tone("Very High") == "red"
    assert competition_tone("Low") == "teal"
    assert volume_tone("100K+") == "indigo"
    assert volume_tone("10-100") == "neutral"
    assert difficulty_tone("unexpected") == "neutral"


def test_filter_options_start_with_all() -> None:
    options = filter_options()

    assert options["difficulty"][0] == "All"
    assert options["searchVolume"][1:] == ["0-10", "10-100", "100-1K", "1K-10K", "10K-100K", "100K+"]


def test_cards_mark_saved_records() -> None:
    saved = KeywordRecord.from_payload(keyword_payload("saved one"), record_id="1")
    fresh = KeywordRecord.from_payload(keyword_payload("fresh one"), record_id="2")

    cards = build_cards([saved, fresh], {"1"})

    assert [card.button_label for card in cards] == ["Saved", "Save Keyword"]
    assert cards[0].serp_features[0].label == "Featured Snippet"


def test_page_context_empty_start() -> None:
    context = build_page_context(_snapshot())

    assert context["empty_message"] == EMPTY_START_MESSAGE
    assert context["has_saved"] is False


def test_page_context_nothing_saved_after_generation() -> None:
    record = KeywordRecord.from_payload(keyword_payload(), record_id="1")

    context = build_page_context(_snapshot(generated=(record,)))

    assert context["empty_message"] == NOTHING_SAVED_MESSAGE


def test_page_context_no_filter_match() -> None:
    record = KeywordRecord.from_payload(keyword_payload(), record_id="1")
    selection = FilterSelection(difficulty="Low")

    context = build_page_context(_snapshot(saved=(record,), visible_saved=(), filter=selection))

    assert context["no_filter_match"] is True
    assert context["active_filter"]["difficulty"] == "Low"
    assert context["empty_message"] is None


def test_page_context_hides_empty_messages_on_error() -> None:
    context = build_page_context(_snapshot(last_error="boom"), form_error="Please enter a seed keyword.")

    assert context["empty_message"] is None
    assert context["error"] == "boom"
    assert context["form_error"] == "Please enter a seed keyword."
