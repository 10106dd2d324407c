"""
Exception hierarchy and transport error classification.

Every network failure inside a directory client is raised as a
``FetchError`` carrying an ``ErrorType`` so retry, rotation and the run
report can reason about it without inspecting exception text again.
"""

import errno
import logging
import socket
from enum import Enum
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# HTTP statuses that count as a definite refusal for a stream or a directory page
BLOCKED_STATUSES = frozenset({403, 410, 451})

_DNS_ERRNOS = {
    getattr(socket, "EAI_NONAME", -2),
    getattr(socket, "EAI_AGAIN", -3),
    getattr(socket, "EAI_NODATA", -5),
}

_DNS_MESSAGES = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
    "enotfound",
    "eai_again",
)


class ErrorType(str, Enum):
    """Classification of transport and parse failures."""

    DNS = "dns"  # Name not found or temporary resolver failure
    TIMEOUT = "timeout"  # Connect/read timeout
    CONNECTION = "connection"  # Refused, reset, TLS failures
    HTTP_BLOCKED = "http_blocked"  # 403, 410, 451, 5xx
    HTTP_STATUS = "http_status"  # Other non-2xx
    TOO_LARGE = "too_large"  # Byte ceiling exceeded
    PARSE = "parse"  # Malformed body
    UNKNOWN = "unknown"


class HarvestError(Exception):
    """Base class for all ChannelHarvest errors."""


class FetchError(HarvestError):
    """A network request failed."""

    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: Optional[int] = None,
        error_type: ErrorType = ErrorType.UNKNOWN,
    ):
        super().__init__(message)
        self.message = message
        self.url = url
        self.status_code = status_code
        self.error_type = error_type

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code}, {self.url})"
        return f"{self.message} ({self.url})" if self.url else self.message


class ResponseTooLargeError(FetchError):
    """Response body exceeded its byte ceiling; the read was aborted."""

    def __init__(self, url: str, limit: int):
        super().__init__(
            f"Response exceeded {limit} bytes",
            url=url,
            error_type=ErrorType.TOO_LARGE,
        )
        self.limit = limit


class ParseError(HarvestError):
    """A directory returned a body that could not be decoded."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source


class SourceUnavailableError(HarvestError):
    """Every attempt against a directory failed."""

    def __init__(self, source: str, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(f"{source} unavailable after {attempts} attempts: {last_error}")
        self.source = source
        self.attempts = attempts
        self.last_error = last_error


def is_blocked_status(status_code: int) -> bool:
    """Return True for statuses treated as a definite refusal."""
    return status_code in BLOCKED_STATUSES or status_code >= 500


def _iter_causes(error: BaseException):
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def is_dns_failure(error: BaseException) -> bool:
    """
    Check whether an error is a DNS resolution failure.

    Walks the ``__cause__``/``__context__`` chain because httpx wraps the
    resolver's ``socket.gaierror`` in ``httpx.ConnectError``.
    """
    if isinstance(error, FetchError) and error.error_type == ErrorType.DNS:
        return True
    for exc in _iter_causes(error):
        if isinstance(exc, socket.gaierror):
            if exc.errno in _DNS_ERRNOS or exc.errno is None:
                return True
        text = str(exc).lower()
        if any(marker in text for marker in _DNS_MESSAGES):
            return True
    return False


def classify_exception(error: BaseException) -> ErrorType:
    """Map an exception raised during a request to an ``ErrorType``."""
    if isinstance(error, FetchError):
        return error.error_type
    if isinstance(error, ParseError):
        return ErrorType.PARSE
    if is_dns_failure(error):
        return ErrorType.DNS
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return ErrorType.TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        if is_blocked_status(error.response.status_code):
            return ErrorType.HTTP_BLOCKED
        return ErrorType.HTTP_STATUS
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ErrorType.CONNECTION
    if isinstance(error, OSError) and error.errno in (errno.ECONNREFUSED, errno.ECONNRESET):
        return ErrorType.CONNECTION
    return ErrorType.UNKNOWN


def to_fetch_error(error: BaseException, url: str) -> FetchError:
    """Wrap any request exception in a classified ``FetchError``."""
    if isinstance(error, FetchError):
        return error
    status_code = None
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
    fetch_error = FetchError(
        str(error) or error.__class__.__name__,
        url=url,
        status_code=status_code,
        error_type=classify_exception(error),
    )
    fetch_error.__cause__ = error
    return fetch_error
