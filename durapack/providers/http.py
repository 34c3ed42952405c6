"""Thin ``requests`` transport shared by the HTTP providers."""

from __future__ import annotations

from typing import Any, Callable

import requests

from durapack.config import http_timeout_seconds
from durapack.errors import from_http_error, internal_error, raise_for_provider_status
from durapack.log import get_logger

_log = get_logger("providers.http")


class HttpClient:
    """JSON-over-HTTP helper.

    ``request_post``, ``request_get`` and ``request`` default to their
    ``requests`` counterparts and are injectable so tests never touch the
    network.
    Every failure surfaces as a ``ProviderError``.
    """

    def __init__(
        self,
        *,
        request_post: Callable[..., Any] | None = None,
        request_get: Callable[..., Any] | None = None,
        request: Callable[..., Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.request_post = request_post or requests.post
        self.request_get = request_get or requests.get
        self.request = request or requests.request
        self.timeout_seconds = timeout_seconds

    def _timeout(self) -> float:
        return self.timeout_seconds if self.timeout_seconds is not None else http_timeout_seconds()

    def post(
        self,
        url: str,
        *,
        headers: dict[str, str],
        payload: Any = None,
        details: str,
        stream: bool = False,
        **kwargs: Any,
    ) -> Any:
        _log.debug("http.request", method="POST", url=url, stream=stream)
        try:
            response = self.request_post(
                url,
                headers=headers,
                json=payload,
                timeout=self._timeout(),
                stream=stream,
                **kwargs,
            )
        except requests.RequestException as error:
            raise from_http_error(details, error) from error
        raise_for_provider_status(response, details)
        return response

    def post_json(
        self,
        url: str,
        *,
        headers: dict[str, str],
        payload: Any = None,
        details: str,
    ) -> Any:
        return parse_json_body(self.post(url, headers=headers, payload=payload, details=details), details)

    def get_json(
        self,
        url: str,
        *,
        headers: dict[str, str],
        params: dict[str, Any] | None = None,
        details: str,
    ) -> Any:
        _log.debug("http.request", method="GET", url=url)
        try:
            response = self.request_get(url, headers=headers, params=params, timeout=self._timeout())
        except requests.RequestException as error:
            raise from_http_error(details, error) from error
        raise_for_provider_status(response, details)
        return parse_json_body(response, details)

    def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        payload: Any = None,
        params: dict[str, Any] | None = None,
        details: str,
    ) -> Any:
        _log.debug("http.request", method=method, url=url)
        try:
            response = self.request(
                method, url, headers=headers, json=payload, params=params, timeout=self._timeout()
            )
        except requests.RequestException as error:
            raise from_http_error(details, error) from error
        raise_for_provider_status(response, details)
        return parse_json_body(response, details)


def parse_json_body(response: Any, details: str) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise internal_error(f"{details}: failed to parse response body: {error}") from error


def bearer_headers(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
