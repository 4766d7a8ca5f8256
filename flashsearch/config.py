"""Configuration loading from environment variables and defaults."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    raw = _env(key, str(default))
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Invalid %s %r, falling back to %d", key, raw, default,
        )
        return default


def _env_bool(key: str, default: bool) -> bool:
    return _env(key, "true" if default else "false").lower() in ("true", "1", "yes")


# Index store connection
OPENSEARCH_URL = _env("OPENSEARCH_URL", "http://localhost:9200")
OPENSEARCH_API_KEY = _env("OPENSEARCH_API_KEY")
OPENSEARCH_USERNAME = _env("OPENSEARCH_USERNAME")
OPENSEARCH_PASSWORD = _env("OPENSEARCH_PASSWORD")
OPENSEARCH_VERIFY_CERTS = _env_bool("OPENSEARCH_VERIFY_CERTS", False)
OPENSEARCH_TIMEOUT = _env_int("OPENSEARCH_TIMEOUT", 10)

# Indices
TASKS_INDEX = _env("TASKS_INDEX", "tasks")
ORGANIZATIONS_INDEX = _env("ORGANIZATIONS_INDEX", "organizations")

# Webhook shared secret (empty disables the check)
WEBHOOK_SECRET = _env("WEBHOOK_SECRET")

# CORS
CORS_ORIGINS = [
    o.strip()
    for o in _env(
        "CORS_ORIGINS",
        "http://localhost:3000,https://flashtasks.app,https://www.flashtasks.app",
    ).split(",")
    if o.strip()
]

# Search
SEARCH_DEFAULT_LIMIT = _env_int("SEARCH_DEFAULT_LIMIT", 10)
SEARCH_MAX_LIMIT = _env_int("SEARCH_MAX_LIMIT", 50)
MIN_QUERY_LENGTH = 2

# Make writes visible to search immediately
REFRESH_AFTER_WRITE = _env_bool("REFRESH_AFTER_WRITE", True)

# Server
HOST = _env("HOST", "0.0.0.0")
PORT = _env_int("PORT", 3001)
