from __future__ import annotations

import json
import logging
import time
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

import httpx

from .errors import ConfigError, DecodeError, HttpStatusError, TransportError
from .metrics import API_CALLS, API_LAT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000


def parse_url(url: str) -> httpx.URL:
    """Parse an absolute http(s) URL, raising ``ValueError`` when unusable."""
    if any(ch.isspace() for ch in url):
        raise ValueError("must not contain whitespace")
    # urlsplit rejects unbalanced IPv6 brackets that httpx would percent-encode
    parts = urlsplit(url)
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ValueError(f"is not a valid URL: {exc}") from exc
    if parts.scheme not in ("http", "https") or not parsed.host:
        raise ValueError("must be http(s)://host/path")
    return parsed


class ApiClient:
    """Blocking JSON client for the remote records API.

    Status codes are inspected after the response arrives; only transport
    failures surface from the HTTP layer itself.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self._client = client or httpx.Client(follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def call(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        payload: Any = None,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        if not url:
            raise ValueError("url must be a non-empty string")
        try:
            target = parse_url(url)
        except ValueError as exc:
            raise ConfigError(f"Invalid API URL {url!r}: {exc}") from exc
        method = (method or "GET").upper()
        send_headers = dict(headers or {})
        content: Optional[str] = None
        if payload is not None:
            if isinstance(payload, str):
                content = payload
            else:
                content = json.dumps(payload)
                send_headers.setdefault("Content-Type", "application/json")
        timeout = (timeout_ms or self.timeout_ms) / 1000.0

        start = time.time()
        try:
            response = self._client.request(
                method,
                target,
                headers=send_headers,
                content=content,
                timeout=timeout,
            )
        except httpx.HTTPError as exc:
            elapsed_ms = (time.time() - start) * 1000
            API_CALLS.labels(method, "transport_error").inc()
            logger.error("%s %s failed after %.2fms: %s", method, url, elapsed_ms, exc)
            raise TransportError(f"{method} {url} failed: {exc}", cause=exc) from exc

        elapsed_ms = (time.time() - start) * 1000
        API_CALLS.labels(method, str(response.status_code)).inc()
        API_LAT.labels(method).observe(elapsed_ms / 1000.0)
        logger.info("%s %s %s %.2fms", method, url, response.status_code, elapsed_ms)

        if not 200 <= response.status_code < 300:
            raise HttpStatusError(response.status_code, response.text, url=url)
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"Invalid JSON from {url}: {exc}") from exc
