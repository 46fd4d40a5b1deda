from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TOKEN_FILE = os.path.join("~", ".splitdesk", "credential.json")


@dataclass(frozen=True)
class Settings:
    """
    Client settings loaded from environment variables.

    Env vars:
    - SPLITDESK_API_URL: base URL of the resource API. Default 'http://localhost:8000'
    - SPLITDESK_REQUEST_TIMEOUT: per-request timeout in seconds; unset means no timeout
    - SPLITDESK_TOKEN_BACKEND: 'memory' (default) or 'file'
    - SPLITDESK_TOKEN_FILE: credential file used by the 'file' backend.
      Default '~/.splitdesk/credential.json'
    - SPLITDESK_LOG_LEVEL: logging level name (default: WARNING)
    """

    api_base_url: str
    request_timeout: Optional[float]
    token_backend: str
    token_file_path: str
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_timeout(value: str) -> Optional[float]:
    """
    Parse a timeout in seconds. Empty, non-numeric and non-positive values
    all mean "no timeout".
    """
    v = value.strip().lower()
    if v in {"", "none", "off", "0"}:
        return None
    try:
        seconds = float(v)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return client settings loaded from environment variables."""
    base_url = _get_env("SPLITDESK_API_URL", DEFAULT_API_URL).strip().rstrip("/")

    backend = _get_env("SPLITDESK_TOKEN_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "file"}:
        # Fallback to memory if unsupported
        backend = "memory"

    token_file = os.path.expanduser(_get_env("SPLITDESK_TOKEN_FILE", DEFAULT_TOKEN_FILE).strip())
    level = _get_env("SPLITDESK_LOG_LEVEL", "WARNING").strip().upper()

    return Settings(
        api_base_url=base_url,
        request_timeout=_parse_timeout(_get_env("SPLITDESK_REQUEST_TIMEOUT", "")),
        token_backend=backend,
        token_file_path=token_file,
        log_level=level,
    )
