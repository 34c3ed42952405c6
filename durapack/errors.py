"""Uniform provider error taxonomy shared by every capability."""

from __future__ import annotations

from typing import Any, Literal

import requests

ErrorCode = Literal[
    "authentication_failed",
    "rate_limit_exceeded",
    "invalid_request",
    "model_not_found",
    "unsupported",
    "internal_error",
    "unknown",
]

ERROR_CODES: tuple[ErrorCode, ...] = (
    "authentication_failed",
    "rate_limit_exceeded",
    "invalid_request",
    "model_not_found",
    "unsupported",
    "internal_error",
    "unknown",
)


class ProviderError(Exception):
    """Error raised by a provider operation.

    Instances are persisted verbatim in the oplog and re-raised identically
    when the recorded call is replayed.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        provider_error_json: str | None = None,
    ) -> None:
        if code not in ERROR_CODES:
            raise ValueError(f"unknown provider error code: {code!r}")
        super().__init__(message)
        self.code: ErrorCode = code
        self.message = message
        self.provider_error_json = provider_error_json

    def __repr__(self) -> str:
        return f"ProviderError(code={self.code!r}, message={self.message!r})"

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderError):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((self.code, self.message, self.provider_error_json))

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "provider_error_json": self.provider_error_json,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ProviderError":
        code = payload.get("code", "unknown")
        if code not in ERROR_CODES:
            code = "unknown"
        return cls(
            code=code,
            message=str(payload.get("message", "")),
            provider_error_json=payload.get("provider_error_json"),
        )


def error_code_from_status(status: int) -> ErrorCode:
    if status == 429:
        return "rate_limit_exceeded"
    if status in (401, 402, 403):
        return "authentication_failed"
    if 400 <= status < 500:
        return "invalid_request"
    return "internal_error"


def unsupported(what: str) -> ProviderError:
    return ProviderError("unsupported", f"Unsupported: {what}")


def model_not_found(model: str) -> ProviderError:
    return ProviderError("model_not_found", f"Model not found: {model}")


def internal_error(message: str) -> ProviderError:
    return ProviderError("internal_error", message)


def from_status(status: int, details: str, body: str | None = None) -> ProviderError:
    """Map a failed HTTP status to the taxonomy, keeping the provider body."""
    return ProviderError(
        error_code_from_status(status),
        f"{details}: HTTP {status}",
        provider_error_json=body,
    )


def from_http_error(details: str, error: requests.RequestException) -> ProviderError:
    """Convert a ``requests`` failure into a ``ProviderError``.

    Responses that carry a status code keep their body as provider JSON; pure
    transport failures become internal errors.
    """
    response = getattr(error, "response", None)
    if response is not None:
        return from_status(response.status_code, details, body=response.text)
    return ProviderError("internal_error", f"{details}: {error}")


def raise_for_provider_status(response: Any, details: str) -> None:
    """Raise a ``ProviderError`` when an HTTP response signals failure."""
    status = int(response.status_code)
    if status < 400:
        return
    raise from_status(status, details, body=response.text)
