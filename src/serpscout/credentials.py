"""Credential availability checks for the generation backend."""

from __future__ import annotations

import logging
from typing import Protocol

from dotenv import find_dotenv, load_dotenv

from .config import Settings, read_api_key

logger = logging.getLogger(__name__)


class CredentialError(RuntimeError):
    """Raised when a credential cannot be obtained in this environment."""


class CredentialProvider(Protocol):
    def has_credential(self) -> bool: ...

    def request_credential(self) -> None: ...

    def current_key(self) -> str | None: ...


class EnvironmentCredentialProvider:
    """Resolve the backend API key from settings and the process environment.

    ``request_credential`` re-reads ``.env`` and the environment so a key
    exported after start-up is picked up without a restart.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def has_credential(self) -> bool:
        if not self._settings.requires_api_key:
            return True
        return bool(self.current_key())

    def current_key(self) -> str | None:
        key = self._settings.active_api_key
        if key:
            return key
        return read_api_key(self._settings.chat_backend)

    def request_credential(self) -> None:
        if not self._settings.requires_api_key:
            return
        load_dotenv(find_dotenv(usecwd=True), override=True)
        key = read_api_key(self._settings.chat_backend)
        if not key:
            env_var = self._settings.credential_env_var or "API_KEY"
            raise CredentialError(
                "API Key selection is not available in this environment. "
                f"Please ensure {env_var} is set."
            )
        self._settings.set_active_api_key(key)
        logger.info("credentials.selected backend=%s", self._settings.chat_backend)


class StaticCredentialProvider:
    """Fixed credential, mainly for embedding and tests."""

    def __init__(self, key: str | None) -> None:
        self._key = key

    def has_credential(self) -> bool:
        return bool(self._key)

    def current_key(self) -> str | None:
        return self._key

    def request_credential(self) -> None:
        if not self._key:
            raise CredentialError("No API key has been configured.")


__all__ = [
    "CredentialError",
    "CredentialProvider",
    "EnvironmentCredentialProvider",
    "StaticCredentialProvider",
]
