"""
Shared HTTP transport for directory clients, the validator and the logo engine.

Wraps one ``httpx.AsyncClient``. Every body read is streamed and aborted
once it crosses its byte ceiling, and every httpx failure is re-raised as
a classified ``FetchError``.
"""

import json
import logging
from typing import Any, Optional

import httpx

from channelharvest.config import DEFAULT_USER_AGENT
from channelharvest.errors import (
    ErrorType,
    FetchError,
    ParseError,
    ResponseTooLargeError,
    is_blocked_status,
    to_fetch_error,
)

logger = logging.getLogger(__name__)


class HttpTransport:
    """Streaming, size-capped HTTP access with a descriptive User-Agent."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
        max_redirects: int = 5,
        default_timeout: float = 20.0,
    ):
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=default_timeout,
        )

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _status_error(url: str, status_code: int) -> FetchError:
        error_type = ErrorType.HTTP_BLOCKED if is_blocked_status(status_code) else ErrorType.HTTP_STATUS
        return FetchError("Unexpected HTTP status", url=url, status_code=status_code, error_type=error_type)

    async def get_bytes(
        self,
        url: str,
        timeout: float,
        max_bytes: int,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> bytes:
        """
        GET a full body, failing if it exceeds ``max_bytes``.

        Raises:
            FetchError: On transport failure or a non-2xx status.
            ResponseTooLargeError: If the body crosses the ceiling.
        """
        try:
            async with self._client.stream(
                "GET", url, params=params, headers=self._headers(headers), timeout=timeout
            ) as response:
                if response.status_code >= 400:
                    raise self._status_error(url, response.status_code)

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise ResponseTooLargeError(url, max_bytes)

                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > max_bytes:
                        raise ResponseTooLargeError(url, max_bytes)
                return bytes(buffer)
        except FetchError:
            raise
        except httpx.HTTPError as e:
            raise to_fetch_error(e, url) from e

    async def get_text(self, url: str, timeout: float, max_bytes: int, **kwargs: Any) -> str:
        body = await self.get_bytes(url, timeout, max_bytes, **kwargs)
        return body.decode("utf-8", errors="replace")

    async def get_json(self, url: str, timeout: float, max_bytes: int, **kwargs: Any) -> Any:
        """GET and decode JSON; a malformed body raises ``ParseError``."""
        body = await self.get_bytes(url, timeout, max_bytes, **kwargs)
        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Invalid JSON from {url}: {e}", url) from e

    async def get_prefix(
        self,
        url: str,
        timeout: float,
        max_bytes: int,
        headers: Optional[dict[str, str]] = None,
    ) -> tuple[httpx.Response, bytes]:
        """
        GET only the first ``max_bytes`` of a body.

        Unlike ``get_bytes`` the status is not checked and hitting the
        budget is not an error; the read simply stops there.
        """
        try:
            async with self._client.stream(
                "GET", url, headers=self._headers(headers), timeout=timeout
            ) as response:
                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) >= max_bytes:
                        break
                return response, bytes(buffer[:max_bytes])
        except httpx.HTTPError as e:
            raise to_fetch_error(e, url) from e

    async def head(self, url: str, timeout: float) -> httpx.Response:
        """HEAD request; the status is returned, not raised."""
        try:
            return await self._client.head(url, headers=self._headers(), timeout=timeout)
        except httpx.HTTPError as e:
            raise to_fetch_error(e, url) from e
