"""SerpScout keyword research package."""

from __future__ import annotations

from .config import Settings
from .models import FilterSelection, KeywordRecord

__all__ = [
    "Settings",
    "FilterSelection",
    "KeywordRecord",
    "KeywordGenerator",
    "KeywordResearchSession",
    "create_app",
]


def __getattr__(name: str):  # pragma: no cover - small helper
    if name == "KeywordGenerator":
        from .generation import KeywordGenerator

        return KeywordGenerator
    if name == "KeywordResearchSession":
        from .session import KeywordResearchSession

        return KeywordResearchSession
    if name == "create_app":
        from .app import create_app

        return create_app
    raise AttributeError(f"module 'serpscout' has no attribute {name}")
