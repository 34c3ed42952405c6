"""Environment-backed provider configuration."""

from __future__ import annotations

import os
from typing import Callable, TypeVar

from durapack.errors import ProviderError

T = TypeVar("T")

HTTP_TIMEOUT_ENV = "DURAKIT_HTTP_TIMEOUT"
DEFAULT_HTTP_TIMEOUT_SECONDS = 120.0

ANTHROPIC_API_KEY_ENV = "ANTHROPIC_API_KEY"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
OPENROUTER_API_KEY_ENV = "OPENROUTER_API_KEY"
COHERE_API_KEY_ENV = "COHERE_API_KEY"
BRAVE_API_KEY_ENV = "BRAVE_API_KEY"
OLLAMA_BASE_URL_ENV = "OLLAMA_BASE_URL"
QDRANT_URL_ENV = "QDRANT_URL"
QDRANT_API_KEY_ENV = "QDRANT_API_KEY"
AWS_ACCESS_KEY_ID_ENV = "AWS_ACCESS_KEY_ID"
AWS_SECRET_ACCESS_KEY_ENV = "AWS_SECRET_ACCESS_KEY"
AWS_REGION_ENV = "AWS_REGION"

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"


def get_config_key(name: str) -> str:
    """Read a required configuration value.

    A missing or blank value fails with ``authentication_failed`` so that the
    caller never reaches the network.
    """
    value = os.environ.get(name, "").strip()
    if not value:
        raise ProviderError("authentication_failed", f"Missing config key: {name}")
    return value


def with_config_key(name: str, fn: Callable[[str], T]) -> T:
    return fn(get_config_key(name))


def get_optional_config(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or default


def http_timeout_seconds() -> float:
    raw = get_optional_config(HTTP_TIMEOUT_ENV)
    if raw is None:
        return DEFAULT_HTTP_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        raise ProviderError(
            "invalid_request", f"{HTTP_TIMEOUT_ENV} must be a number of seconds, got {raw!r}"
        ) from None
    if timeout <= 0:
        raise ProviderError("invalid_request", f"{HTTP_TIMEOUT_ENV} must be positive")
    return timeout


def require_config(names: tuple[str, ...] | list[str]) -> None:
    """Fail fast when any of ``names`` is unset."""
    for name in names:
        get_config_key(name)
