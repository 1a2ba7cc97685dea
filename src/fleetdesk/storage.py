"""
Token storage backends.

Tokens live in an origin-scoped key-value store holding two strings,
``access_token`` and ``refresh_token``. The file backend is the primary
store; the memory backend keeps tokens for the life of the process.
Which one is used is a configuration decision, never a runtime fallback.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from .settings import Settings
from .types import TokenPair

logger = logging.getLogger(__name__)

TOKEN_KEYS = ("access_token", "refresh_token")

_DEFAULT_PORTS = {"http": 80, "https": 443}


class TokenStoreError(Exception):
    """Raised when the token store is misconfigured or cannot be written."""


def origin_of(url: str) -> str:
    """Return ``scheme://host:port`` for a URL, with the default port filled in."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise TokenStoreError(f"Cannot derive an origin from {url!r}")
    port = parts.port or _DEFAULT_PORTS.get(parts.scheme)
    origin = f"{parts.scheme}://{parts.hostname}"
    return f"{origin}:{port}" if port else origin


class TokenStore:
    """Interface shared by the storage backends."""

    def load(self) -> Optional[TokenPair]:
        raise NotImplementedError

    def save(self, pair: TokenPair) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        if key not in TOKEN_KEYS:
            raise KeyError(key)
        pair = self.load()
        if pair is None:
            return None
        return getattr(pair, key)


class MemoryTokenStore(TokenStore):
    """Process-local store. Used by tests and short-lived sessions."""

    def __init__(self, pair: Optional[TokenPair] = None):
        self._data: dict[str, str] = pair.to_dict() if pair else {}

    def load(self) -> Optional[TokenPair]:
        access = self._data.get("access_token")
        refresh = self._data.get("refresh_token")
        if not access or not refresh:
            return None
        return TokenPair(access_token=access, refresh_token=refresh)

    def save(self, pair: TokenPair) -> None:
        # Rebind instead of mutating so readers never see half a pair.
        self._data = pair.to_dict()

    def clear(self) -> None:
        self._data = {}


class FileTokenStore(TokenStore):
    """JSON file per API origin, replaced atomically on every save."""

    def __init__(self, directory: Path, origin: str):
        self.directory = Path(directory)
        self.origin = origin
        self.path = self.directory / f"{_slug(origin)}.json"

    def load(self) -> Optional[TokenPair]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot read token file {self.path}: {e}")
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring corrupt token file {self.path}")
            return None

        if not isinstance(data, dict):
            return None
        access = data.get("access_token")
        refresh = data.get("refresh_token")
        if not isinstance(access, str) or not isinstance(refresh, str):
            return None
        if not access or not refresh:
            return None
        return TokenPair(access_token=access, refresh_token=refresh)

    def save(self, pair: TokenPair) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".tokens-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump({"origin": self.origin, **pair.to_dict()}, fh)
                os.chmod(tmp, 0o600)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise TokenStoreError(f"Cannot write token file {self.path}: {e}") from e

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise TokenStoreError(f"Cannot remove token file {self.path}: {e}") from e


def build_token_store(settings: Settings) -> TokenStore:
    """Select the storage backend named by ``settings.token_store``."""
    if settings.token_store == "file":
        store: TokenStore = FileTokenStore(settings.resolved_token_dir, origin_of(settings.api_url))
    elif settings.token_store == "memory":
        store = MemoryTokenStore()
    else:
        raise TokenStoreError(f"Unknown token store backend: {settings.token_store!r}")
    logger.debug(f"Using {type(store).__name__} for {settings.api_url}")
    return store


def _slug(origin: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", origin).strip("_")
