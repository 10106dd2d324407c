"""
Logo resolution engine.

Strategies are tried in order and the first acceptable candidate wins:

1. The record's own logo URL, if it looks like an image.
2. og:image / twitter:image from the channel's video-platform page.
3. The logo listed for the channel id by a cross-reference lookup.
4. A generated avatar URL built from the channel name.
5. An inline SVG with the channel's initials.

Candidates from 1-4 must pass the URL shape check and, when existence
checks are enabled, a short HEAD probe. Strategies 1-4 share one time
budget. The last strategy needs no network, so ``resolve`` always
returns a usable image reference.
"""

import asyncio
import base64
import hashlib
import html
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode, urlparse

from channelharvest.config import HarvestConfig
from channelharvest.errors import ErrorType, FetchError
from channelharvest.events import FailureCollector, Stage
from channelharvest.models import ChannelRecord
from channelharvest.sources.transport import HttpTransport
from channelharvest.utils.platforms import detect_platform, extract_youtube_handle, platform_page_url
from channelharvest.utils.text import initials

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico")
IMAGE_URL_HINTS = ("avatar", "image", "logo")

LogoLookup = Callable[[str], Awaitable[Optional[str]]]

_META_IMAGE_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for tag in ("og:image", "twitter:image")
    for pattern in (
        rf'<meta[^>]+(?:property|name)=["\']{tag}["\'][^>]*content=["\']([^"\']+)["\']',
        rf'<meta[^>]+content=["\']([^"\']+)["\'][^>]*(?:property|name)=["\']{tag}["\']',
    )
)


def is_valid_image_url(url: Optional[str]) -> bool:
    """URL shape check: http(s) with an image extension or image-like path, or a data:image URI."""
    if not url:
        return False
    url = url.strip()
    if url.startswith("data:image/"):
        return True
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    path = parsed.path.lower()
    if path.endswith(IMAGE_EXTENSIONS):
        return True
    lowered = url.lower()
    return any(hint in lowered for hint in IMAGE_URL_HINTS)


def extract_meta_image(page: str) -> Optional[str]:
    """og:image, falling back to twitter:image."""
    for pattern in _META_IMAGE_PATTERNS:
        match = pattern.search(page)
        if match:
            return html.unescape(match.group(1).strip())
    return None


def avatar_url(name: str, base_url: str = "https://ui-avatars.com/api/") -> str:
    query = urlencode({
        "name": (name or "TV").strip() or "TV",
        "background": "random",
        "rounded": "true",
        "bold": "true",
    })
    return f"{base_url}?{query}"


def synthetic_logo(name: str) -> str:
    """Inline SVG data URI with the name's initials on a colour derived from the name."""
    letters = html.escape(initials(name))
    color = hashlib.sha256((name or "").encode("utf-8")).hexdigest()[:6]
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="128" height="128" viewBox="0 0 128 128">'
        f'<rect width="128" height="128" rx="24" fill="#{color}"/>'
        '<text x="50%" y="50%" dy=".35em" text-anchor="middle" '
        'font-family="Arial, Helvetica, sans-serif" font-size="52" font-weight="bold" '
        f'fill="#ffffff">{letters}</text></svg>'
    )
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


@dataclass
class LogoCandidate:
    url: str
    strategy: str
    verify: bool = True


class LogoStrategy(ABC):
    """One step of the fallback chain."""

    name: str = "strategy"

    @abstractmethod
    async def candidate(self, record: ChannelRecord) -> Optional[LogoCandidate]:
        """Return a candidate logo, or None to pass to the next strategy."""


class ExistingLogoStrategy(LogoStrategy):
    name = "existing"

    async def candidate(self, record: ChannelRecord) -> Optional[LogoCandidate]:
        if is_valid_image_url(record.logo_url):
            return LogoCandidate(record.logo_url.strip(), self.name)
        return None


class PlatformPageStrategy(LogoStrategy):
    """Scrapes page metadata for channels hosted on a video platform."""

    name = "platform"

    def __init__(self, transport: HttpTransport, timeout: float, max_bytes: int):
        self.transport = transport
        self.timeout = timeout
        self.max_bytes = max_bytes

    @staticmethod
    def page_for(record: ChannelRecord) -> Optional[str]:
        for url in (record.stream_url, record.website_url):
            platform = detect_platform(url)
            if not platform:
                continue
            if platform == "youtube":
                handle = record.metadata.get("handle") or extract_youtube_handle(url)
            elif platform == "twitch":
                handle = urlparse(url).path.strip("/").split("/")[0]
            else:
                handle = None
            if handle:
                return platform_page_url(platform, handle)
        return None

    async def candidate(self, record: ChannelRecord) -> Optional[LogoCandidate]:
        page_url = self.page_for(record)
        if not page_url:
            return None
        response, body = await self.transport.get_prefix(page_url, self.timeout, self.max_bytes)
        if response.status_code >= 400:
            return None
        image = extract_meta_image(body.decode("utf-8", errors="replace"))
        return LogoCandidate(image, self.name) if image else None


class CrossReferenceStrategy(LogoStrategy):
    """Looks up the logo of the record's directory id in a secondary directory."""

    name = "cross_reference"

    def __init__(self, lookup: LogoLookup):
        self.lookup = lookup

    async def candidate(self, record: ChannelRecord) -> Optional[LogoCandidate]:
        channel_id = record.metadata.get("channel_id") or record.metadata.get("tvg_id")
        if not channel_id:
            return None
        logo = await self.lookup(str(channel_id))
        return LogoCandidate(logo, self.name) if logo else None


class AvatarStrategy(LogoStrategy):
    name = "avatar"

    def __init__(self, base_url: str):
        self.base_url = base_url

    async def candidate(self, record: ChannelRecord) -> Optional[LogoCandidate]:
        return LogoCandidate(avatar_url(record.name, self.base_url), self.name)


class LogoResolver:
    """Runs the fallback chain for a record; ``resolve`` never fails."""

    def __init__(
        self,
        transport: HttpTransport,
        config: HarvestConfig,
        failures: Optional[FailureCollector] = None,
        lookup: Optional[LogoLookup] = None,
        strategies: Optional[list[LogoStrategy]] = None,
    ):
        self.transport = transport
        self.verify_existence = config.logos.verify_existence
        self.existence_timeout = config.timeouts.existence
        self.total_budget = config.logos.total_budget
        self.failures = failures if failures is not None else FailureCollector()

        if strategies is None:
            strategies = [
                ExistingLogoStrategy(),
                PlatformPageStrategy(transport, config.timeouts.scrape, config.http.max_scrape_bytes),
            ]
            if lookup is not None:
                strategies.append(CrossReferenceStrategy(lookup))
            strategies.append(AvatarStrategy(config.logos.avatar_base_url))
        self.strategies = strategies
        self.stats: dict[str, int] = {}

    async def image_exists(self, url: str) -> bool:
        """Short HEAD probe; only a 2xx answer counts."""
        if url.startswith("data:image/"):
            return True
        try:
            response = await self.transport.head(url, self.existence_timeout)
        except FetchError:
            return False
        return 200 <= response.status_code < 300

    async def _accept(self, candidate: Optional[LogoCandidate]) -> bool:
        if candidate is None or not is_valid_image_url(candidate.url):
            return False
        if candidate.verify and self.verify_existence:
            return await self.image_exists(candidate.url)
        return True

    async def _run_chain(self, record: ChannelRecord) -> Optional[LogoCandidate]:
        for strategy in self.strategies:
            try:
                candidate = await strategy.candidate(record)
                if await self._accept(candidate):
                    return candidate
            except Exception as e:
                self.failures.record(Stage.ENRICHMENT, f"{strategy.name}:{record.stream_url}", e)
                logger.debug(f"Logo strategy {strategy.name} failed for {record.name}: {e}")
        return None

    async def resolve(self, record: ChannelRecord) -> LogoCandidate:
        """Best logo for a record, falling back to a synthetic image."""
        try:
            candidate = await asyncio.wait_for(self._run_chain(record), timeout=self.total_budget)
        except asyncio.TimeoutError:
            self.failures.record(
                Stage.ENRICHMENT,
                record.stream_url,
                message=f"logo chain exceeded {self.total_budget}s",
                error_type=ErrorType.TIMEOUT,
            )
            candidate = None

        if candidate is None:
            candidate = LogoCandidate(synthetic_logo(record.name), "synthetic", verify=False)
        self.stats[candidate.strategy] = self.stats.get(candidate.strategy, 0) + 1
        return candidate

    async def enrich_record(self, record: ChannelRecord) -> str:
        """Set ``record.logo_url`` and return the winning strategy name."""
        candidate = await self.resolve(record)
        record.logo_url = candidate.url
        return candidate.strategy
