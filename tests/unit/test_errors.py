"""
Unit tests for error classification and soft failure collection.
"""

import socket

import httpx
import pytest

from channelharvest.errors import (
    ErrorType,
    FetchError,
    ParseError,
    classify_exception,
    is_blocked_status,
    is_dns_failure,
    to_fetch_error,
)
from channelharvest.events import FailureCollector, Stage


def _connect_error_from(cause: BaseException) -> httpx.ConnectError:
    request = httpx.Request("GET", "http://nowhere.invalid/")
    try:
        try:
            raise cause
        except BaseException as inner:
            raise httpx.ConnectError(str(inner), request=request) from inner
    except httpx.ConnectError as e:
        return e


@pytest.mark.unit
class TestDnsDetection:
    """Tests for DNS failure detection."""

    def test_gaierror_in_cause_chain(self):
        error = _connect_error_from(socket.gaierror(socket.EAI_NONAME, "Name or service not known"))

        assert is_dns_failure(error)
        assert classify_exception(error) == ErrorType.DNS

    def test_temporary_resolver_failure(self):
        error = _connect_error_from(socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution"))

        assert is_dns_failure(error)

    def test_wrapped_fetch_error_keeps_dns_type(self):
        error = to_fetch_error(
            _connect_error_from(socket.gaierror(socket.EAI_NONAME, "nodename nor servname provided")),
            "http://nowhere.invalid/",
        )

        assert error.error_type == ErrorType.DNS
        assert is_dns_failure(error)

    def test_connection_refused_is_not_dns(self):
        error = _connect_error_from(ConnectionRefusedError(111, "Connection refused"))

        assert not is_dns_failure(error)
        assert classify_exception(error) == ErrorType.CONNECTION


@pytest.mark.unit
class TestClassification:
    """Tests for exception classification."""

    def test_timeout(self):
        assert classify_exception(httpx.ReadTimeout("timed out")) == ErrorType.TIMEOUT
        assert classify_exception(TimeoutError()) == ErrorType.TIMEOUT

    def test_status_errors(self):
        request = httpx.Request("GET", "http://x/")
        blocked = httpx.HTTPStatusError("", request=request, response=httpx.Response(403, request=request))
        missing = httpx.HTTPStatusError("", request=request, response=httpx.Response(404, request=request))

        assert classify_exception(blocked) == ErrorType.HTTP_BLOCKED
        assert classify_exception(missing) == ErrorType.HTTP_STATUS
        assert to_fetch_error(missing, "http://x/").status_code == 404

    def test_parse_error(self):
        assert classify_exception(ParseError("bad")) == ErrorType.PARSE

    def test_unknown(self):
        assert classify_exception(ValueError("?")) == ErrorType.UNKNOWN

    @pytest.mark.parametrize("status,blocked", [
        (403, True), (410, True), (451, True), (500, True), (503, True),
        (404, False), (405, False), (429, False),
    ])
    def test_blocked_statuses(self, status, blocked):
        assert is_blocked_status(status) is blocked

    def test_fetch_error_str(self):
        error = FetchError("Unexpected HTTP status", url="http://x/", status_code=404)

        assert "404" in str(error)
        assert "http://x/" in str(error)


@pytest.mark.unit
class TestFailureCollector:
    """Tests for FailureCollector."""

    def test_record_classifies_error(self):
        failures = FailureCollector()

        failure = failures.record(Stage.FETCH, "radio-browser", httpx.ConnectTimeout("slow"))

        assert failure.error_type == ErrorType.TIMEOUT
        assert failure.message == "slow"
        assert failure.timestamp is not None

    def test_counts(self):
        failures = FailureCollector()
        failures.record(Stage.VALIDATION, "a", message="x", error_type=ErrorType.PARSE)
        failures.record(Stage.VALIDATION, "b", message="y", error_type=ErrorType.DNS)
        failures.record(Stage.CLICK_REPORT, "c")

        assert len(failures) == 3
        assert failures.count(Stage.VALIDATION) == 2
        assert failures.by_stage() == {"validation": 2, "click_report": 1}
        assert failures.by_error_type(Stage.VALIDATION) == {"parse": 1, "dns": 1}
