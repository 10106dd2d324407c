"""
HTTP helpers for tests served by ``httpx.MockTransport``.
"""

from typing import Any

import httpx


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=data)


def dns_error(request: httpx.Request) -> httpx.ConnectError:
    """The error httpx raises when the host name does not resolve."""
    return httpx.ConnectError("[Errno -2] Name or service not known", request=request)


def connection_refused(request: httpx.Request) -> httpx.ConnectError:
    return httpx.ConnectError("[Errno 111] Connection refused", request=request)


class RequestLog:
    """Wraps a handler and records every request it serves."""

    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def count(self, method: str = None) -> int:
        if method is None:
            return len(self.requests)
        return sum(1 for r in self.requests if r.method == method)
