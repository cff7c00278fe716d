"""Known SERP feature tags with display metadata."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class SerpFeature:
    label: str
    icon: str
    description: str
    known: bool = True


_FALLBACK_ICON: Final[str] = "📄"

SERP_FEATURES: Final[dict[str, SerpFeature]] = {
    feature.label: feature
    for feature in (
        SerpFeature(
            "Featured Snippet",
            "💡",
            "A concise answer extracted directly from a webpage, displayed at the top of search results.",
        ),
        SerpFeature(
            "People Also Ask",
            "❓",
            "A box showing common questions related to the search query, expandable to reveal answers.",
        ),
        SerpFeature(
            "Videos",
            "▶️",
            "Video results from platforms like YouTube, often with thumbnails and playback options.",
        ),
        SerpFeature("Images", "🖼️", "Image results displayed prominently, often in a carousel or grid format."),
        SerpFeature(
            "Shopping",
            "🛍️",
            "Product listings, often with prices, images, and reviews, for e-commerce queries.",
        ),
        SerpFeature(
            "Local Pack",
            "📍",
            "A map and a list of local businesses relevant to the search query, showing location and contact info.",
        ),
        SerpFeature(
            "Knowledge Panel",
            "🧠",
            "An information box that appears for entities like people, places, organizations, or things, "
            "summarizing key facts.",
        ),
        SerpFeature(
            "Top Stories",
            "📰",
            "A carousel of recent news articles related to the query, typically for current events.",
        ),
        SerpFeature("Reviews", "⭐", "Star ratings and snippets from reviews for products, services, or businesses."),
        SerpFeature(
            "Sitelinks",
            "🔗",
            "Additional links indented under a main search result, directing to specific pages within a website.",
        ),
        SerpFeature(
            "Recipes",
            "🧑‍🍳",
            "Structured results displaying recipes, often with ratings, cook times, and ingredients.",
        ),
        SerpFeature("Flights", "✈️", "Information about flight schedules, prices, and booking options."),
        SerpFeature("Hotels", "🏨", "Listings for hotels with prices, ratings, and booking links."),
        SerpFeature("Events", "🗓️", "Information about upcoming events, including dates, locations, and tickets."),
        SerpFeature("Job Listings", "💼", "A collection of job openings relevant to the search query."),
        SerpFeature("AdWords Top", "💰", "Paid advertisements displayed at the very top of the search results page."),
        SerpFeature("AdWords Bottom", "💸", "Paid advertisements displayed at the bottom of the search results page."),
    )
}

# Subset quoted to the model as examples.
PROMPT_EXAMPLES: Final[tuple[str, ...]] = (
    "Featured Snippet",
    "People Also Ask",
    "Videos",
    "Images",
    "Shopping",
    "Local Pack",
    "Knowledge Panel",
)


def describe_serp_feature(tag: str) -> SerpFeature:
    """Return display metadata for ``tag``; unknown tags get a generic entry."""

    feature = SERP_FEATURES.get(tag)
    if feature is not None:
        return feature
    return SerpFeature(label=tag, icon=_FALLBACK_ICON, description=tag, known=False)


__all__ = ["PROMPT_EXAMPLES", "SERP_FEATURES", "SerpFeature", "describe_serp_feature"]
