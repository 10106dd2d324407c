"""
Stream reachability validation.

Probe order for one URL:

1. Known video platform pages are accepted without a request.
2. HEAD: any status outside the blocked set (403, 410, 451, 5xx) is
   accepted, with 4xx answers marked inconclusive. Blocked statuses and
   request errors fall through to step 3.
3. GET of the first ``sniff_bytes``: accepted when the content type or
   the leading bytes look like a playlist or media stream.

DNS resolution failures are accepted as inconclusive because directory
hosts are often unresolvable from the harvesting network but fine for
listeners, which trades precision for recall.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from channelharvest.config import HarvestConfig
from channelharvest.errors import ErrorType, FetchError, is_blocked_status, is_dns_failure
from channelharvest.events import FailureCollector, Stage
from channelharvest.models import ChannelRecord
from channelharvest.sources.transport import HttpTransport
from channelharvest.utils.platforms import detect_platform

logger = logging.getLogger(__name__)

CONTENT_TYPE_HINTS = (
    "mpegurl",
    "m3u",
    "audio/",
    "video/",
    "ogg",
    "dash+xml",
    "scpls",
)

BODY_MARKERS = (b"#EXTM3U", b"#EXTINF", b"[playlist]", b"<MPD", b"ID3", b"OggS")

PROBED_SCHEMES = ("http", "https")


class ProbeMethod(str, Enum):
    HEAD = "HEAD"
    GET_SNIFF = "GET-sniff"
    KNOWN_PLATFORM = "known-platform"
    NOT_PROBED = "not-probed"


class Confidence(str, Enum):
    DEFINITE = "definite"
    INCONCLUSIVE = "inconclusive"


@dataclass
class ProbeResult:
    """Outcome of probing one stream URL. Not persisted."""

    reachable: bool
    method: ProbeMethod
    confidence: Confidence
    status_code: Optional[int] = None
    error_type: Optional[ErrorType] = None
    detail: str = ""


def looks_like_stream(content_type: str, head: bytes) -> bool:
    content_type = (content_type or "").lower()
    if any(hint in content_type for hint in CONTENT_TYPE_HINTS):
        return True
    prefix = head.lstrip()[:64]
    return any(prefix.startswith(marker) for marker in BODY_MARKERS) or b"#EXTINF" in head


class StreamValidator:
    """Probes stream URLs and folds the outcome into ``ChannelRecord.is_active``."""

    def __init__(
        self,
        transport: HttpTransport,
        config: HarvestConfig,
        failures: Optional[FailureCollector] = None,
    ):
        self.transport = transport
        self.timeout = config.timeouts.probe
        self.sniff_bytes = config.validation.sniff_bytes
        self.failures = failures if failures is not None else FailureCollector()
        self.stats = {"reachable": 0, "unreachable": 0, "inconclusive": 0, "errors": 0}

    async def _head(self, url: str) -> tuple[Optional[ProbeResult], Optional[FetchError]]:
        try:
            response = await self.transport.head(url, self.timeout)
        except FetchError as e:
            return None, e
        status = response.status_code
        if is_blocked_status(status):
            return None, None
        confidence = Confidence.DEFINITE if status < 400 else Confidence.INCONCLUSIVE
        return ProbeResult(True, ProbeMethod.HEAD, confidence, status), None

    async def _sniff(self, url: str) -> ProbeResult:
        try:
            response, head = await self.transport.get_prefix(url, self.timeout, self.sniff_bytes)
        except FetchError as e:
            if is_dns_failure(e):
                return ProbeResult(
                    True, ProbeMethod.GET_SNIFF, Confidence.INCONCLUSIVE,
                    error_type=ErrorType.DNS, detail="DNS failure accepted",
                )
            return ProbeResult(
                False, ProbeMethod.GET_SNIFF, Confidence.INCONCLUSIVE,
                error_type=e.error_type, detail=str(e),
            )

        status = response.status_code
        if status >= 400:
            error_type = ErrorType.HTTP_BLOCKED if is_blocked_status(status) else ErrorType.HTTP_STATUS
            return ProbeResult(
                False, ProbeMethod.GET_SNIFF, Confidence.DEFINITE, status,
                error_type=error_type, detail=f"HTTP {status}",
            )
        if looks_like_stream(response.headers.get("content-type", ""), head):
            return ProbeResult(True, ProbeMethod.GET_SNIFF, Confidence.DEFINITE, status)
        return ProbeResult(
            False, ProbeMethod.GET_SNIFF, Confidence.INCONCLUSIVE, status,
            error_type=ErrorType.PARSE, detail="no playlist or media signature",
        )

    async def probe(self, url: str) -> ProbeResult:
        """Probe one stream URL."""
        if detect_platform(url):
            return ProbeResult(True, ProbeMethod.KNOWN_PLATFORM, Confidence.DEFINITE)

        scheme = urlparse(url).scheme.lower()
        if scheme not in PROBED_SCHEMES:
            # rtmp://, rtsp://, udp:// cannot be checked over HTTP
            return ProbeResult(
                True, ProbeMethod.NOT_PROBED, Confidence.INCONCLUSIVE,
                detail=f"{scheme or 'no'} scheme not probed",
            )

        result, head_error = await self._head(url)
        if result is not None:
            return result
        if head_error is not None and is_dns_failure(head_error):
            return ProbeResult(
                True, ProbeMethod.HEAD, Confidence.INCONCLUSIVE,
                error_type=ErrorType.DNS, detail="DNS failure accepted",
            )
        return await self._sniff(url)

    async def validate_record(self, record: ChannelRecord) -> ProbeResult:
        """
        Probe a record's stream and update ``is_active``.

        Only a definite negative (an HTTP error status) sets
        ``is_active=False``. Inconclusive negatives leave the field as it
        was and are recorded as soft failures.
        """
        try:
            result = await self.probe(record.stream_url)
        except Exception as e:
            self.stats["errors"] += 1
            self.failures.record(Stage.VALIDATION, record.stream_url, e)
            logger.debug(f"Validation error for {record.stream_url}: {e}")
            return ProbeResult(False, ProbeMethod.NOT_PROBED, Confidence.INCONCLUSIVE, detail=str(e))

        if result.reachable:
            record.is_active = True
            key = "reachable" if result.confidence == Confidence.DEFINITE else "inconclusive"
            self.stats[key] += 1
        elif result.confidence == Confidence.DEFINITE:
            record.is_active = False
            self.stats["unreachable"] += 1
        else:
            self.stats["inconclusive"] += 1
            self.failures.record(
                Stage.VALIDATION,
                record.stream_url,
                message=result.detail,
                error_type=result.error_type or ErrorType.UNKNOWN,
            )
        return result
