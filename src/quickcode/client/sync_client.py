"""Synchronous HTTP client with verbose tracing, retry, and error mapping.

This module provides :class:`SyncClient`, the blocking transport used by every
QuickCode API call. It wraps :class:`httpx.Client` and layers on:

- **Base URL normalisation** -- the configured ``api_url`` always ends with a
  slash so relative endpoint paths such as ``api/Dbml/get-modules`` resolve
  below it.
- **Verbose tracing** -- with ``--verbose`` every request line, request body,
  response status, and response body is written to stderr via
  :func:`~quickcode.output.debug`.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- non-2xx responses raise typed
  :class:`~quickcode.exceptions.QuickCodeError` subclasses carrying the
  server's own error message where one can be extracted.
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

import httpx

from quickcode.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from quickcode.models import RequestConfig
from quickcode.output import get_output

_MAX_ERROR_BODY = 500


def normalize_base_url(url: str) -> str:
    """Return *url* with exactly one trailing slash."""
    return url.rstrip("/") + "/"


def extract_error_message(content: str, status_code: int) -> str:
    """Pull a human-readable error message out of an error response body.

    Tries, in order: a JSON string document, a ``message`` property, an
    ``error`` property. Falls back to the raw body truncated to 500
    characters, or a generic ``API error (<status>).`` when the body is
    blank.
    """
    fallback = f"API error ({status_code})."
    if not content or not content.strip():
        return fallback

    try:
        doc = json.loads(content)
    except ValueError:
        doc = None
    else:
        if isinstance(doc, str):
            return doc or fallback
        if isinstance(doc, dict):
            for key in ("message", "error"):
                if key in doc:
                    value = doc[key]
                    return value if isinstance(value, str) and value else fallback

    if len(content) > _MAX_ERROR_BODY:
        return content[:_MAX_ERROR_BODY] + "..."
    return content


class SyncClient:
    """Synchronous HTTP client for QuickCode API calls.

    Wraps :class:`httpx.Client` with verbose request tracing, automatic retry
    with exponential backoff, and typed error mapping. Must be used as a
    context manager so that the underlying transport is properly opened and
    closed.

    Args:
        base_url: The QuickCode API root (``api_url`` from the config).
        request_config: Timeout, SSL verification, and retry settings.
        transport: Optional custom :mod:`httpx` transport. Tests pass an
            :class:`httpx.MockTransport` here.

    Example::

        with SyncClient(config.api_url, config.request) as client:
            modules = client.get_json("api/Dbml/get-modules")
    """

    def __init__(
        self,
        base_url: str,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = normalize_base_url(base_url)
        self._config = request_config or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def base_url(self) -> str:
        """The normalised API root, always ending with ``/``."""
        return self._base_url

    @property
    def request_config(self) -> RequestConfig:
        """Timeout, SSL, and retry settings in effect."""
        return self._config

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SyncClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Make an HTTP request with tracing, retry, and error mapping.

        Args:
            method: HTTP method (GET or POST for this API).
            path: Endpoint path relative to the API root.
            params: Query parameters.
            json_body: JSON-serialisable body.

        Returns:
            The successful :class:`httpx.Response`.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx after all retries, or any other 4xx.
            ConnectionError_: On network / timeout errors after all retries.
        """
        output = get_output()
        output.debug(f"REQUEST: {method.upper()} {self._base_url}{path}")
        if json_body is not None:
            output.debug(json.dumps(json_body, ensure_ascii=False))

        response = self._execute_with_retry(method, path, params, json_body)

        output.debug(f"RESPONSE {response.status_code} {response.reason_phrase}")
        if response.text:
            output.debug(response.text)

        self._map_response_error(response)
        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request. See :meth:`request`."""
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request. See :meth:`request`."""
        return self.request("POST", path, **kwargs)

    def get_json(self, path: str, **kwargs: Any) -> Any:
        """GET *path* and decode the body as JSON.

        Returns ``None`` for an empty body.

        Raises:
            ServerError: If the body is not valid JSON.
        """
        return _decode_json(self.get(path, **kwargs))

    def post_json(self, path: str, payload: Any) -> Any:
        """POST *payload* as JSON and decode the JSON response (``None`` if empty)."""
        return _decode_json(self.post(path, json_body=payload))

    def get_text(self, path: str, **kwargs: Any) -> str:
        """GET *path* and return the body as text."""
        return self.get(path, **kwargs).text

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the HTTP request with exponential-backoff retry.

        Retries on 5xx status codes and connection / timeout errors up to
        ``max_retries`` times. The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._config.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                kwargs: dict[str, Any] = {"method": method, "url": path}
                if params:
                    kwargs["params"] = params
                if json_body is not None:
                    kwargs["json"] = json_body

                response = self._client.request(**kwargs)

                if response.status_code >= 500 and attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Server error {response.status_code}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue

                raise ConnectionError_(
                    f"Connection to {self._base_url} failed after "
                    f"{max_retries + 1} attempts: {exc}"
                ) from exc

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        request = response.request
        output = get_output()
        output.debug(f"HTTP request failed: {request.method} {request.url}")

        message = extract_error_message(response.text, status)
        full_msg = f"HTTP {status} {response.reason_phrase}: {message}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)


def _decode_json(response: httpx.Response) -> Any:
    """Decode a response body as JSON, treating an empty body as ``None``."""
    if not response.content or not response.content.strip():
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ServerError(
            f"Unexpected non-JSON response from {response.request.url}: "
            f"{response.text[:_MAX_ERROR_BODY]}"
        ) from exc
