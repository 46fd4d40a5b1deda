from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Optional

from pydantic import ValidationError

from .schemas import Credential
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class TokenStore(ABC):
    """
    Holder of the single live credential.

    Writes overwrite (last write wins). No validation or retry happens here.
    """

    @abstractmethod
    def get(self) -> Optional[Credential]:
        """Return the current credential, or None if there is none."""

    @abstractmethod
    def set(self, credential: Credential) -> None:
        """Replace the current credential."""

    @abstractmethod
    def clear(self) -> None:
        """Drop the current credential."""

    def has_credential(self) -> bool:
        return self.get() is not None


class InMemoryTokenStore(TokenStore):
    """
    Thread-safe in-memory store, lives as long as the process.
    """

    def __init__(self, credential: Optional[Credential] = None) -> None:
        self._lock = RLock()
        self._credential = credential

    def get(self) -> Optional[Credential]:
        with self._lock:
            return self._credential

    def set(self, credential: Credential) -> None:
        with self._lock:
            self._credential = credential

    def clear(self) -> None:
        with self._lock:
            self._credential = None


class FileTokenStore(InMemoryTokenStore):
    """
    Store that mirrors the credential into a JSON file so it survives restarts.

    The file is read once at construction. An unreadable or malformed file
    counts as "no credential".
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = Path(path)
        self._credential = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Optional[Credential]:
        if not self._path.exists():
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Credential.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable credential file %s: %s", self._path, e.__class__.__name__)
            return None

    def set(self, credential: Credential) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(credential.model_dump_json())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
            self._credential = credential

    def clear(self) -> None:
        with self._lock:
            self._credential = None
            try:
                self._path.unlink()
            except FileNotFoundError:
                pass


# PUBLIC_INTERFACE
def get_token_store(settings: Optional[Settings] = None) -> TokenStore:
    """
    Factory to return the configured token store based on settings.
    - memory: InMemoryTokenStore
    - file: FileTokenStore at settings.token_file_path
    """
    settings = settings or get_settings()
    if settings.token_backend == "file":
        return FileTokenStore(settings.token_file_path)
    return InMemoryTokenStore()
