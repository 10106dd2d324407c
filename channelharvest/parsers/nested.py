"""
Nested playlist expansion.

Some public feeds are playlists of playlists. ``NestedPlaylistExpander``
fetches entries whose URL looks like another playlist document and
splices the child entries in place, up to ``max_depth`` levels, never
visiting the same playlist twice.
"""

import logging
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from channelharvest.errors import ErrorType
from channelharvest.events import FailureCollector, Stage
from channelharvest.models import ChannelRecord, canonical_stream_url
from channelharvest.parsers.m3u import parse_m3u

logger = logging.getLogger(__name__)

FetchText = Callable[[str], Awaitable[str]]

PLAYLIST_EXTENSIONS = (".m3u",)
HLS_MARKER = "#EXT-X-"


def looks_like_playlist(url: str) -> bool:
    """
    Path heuristic for a URL that points at another playlist document.

    ``.m3u`` is always a playlist. ``.m3u8`` is usually an HLS media
    playlist, so it only counts when the path also names a playlist.
    """
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    if path.endswith(PLAYLIST_EXTENSIONS):
        return True
    return path.endswith(".m3u8") and "playlist" in path


class NestedPlaylistExpander:
    """Recursively flattens playlist-of-playlist entries."""

    def __init__(
        self,
        fetch_text: FetchText,
        max_depth: int = 2,
        failures: Optional[FailureCollector] = None,
    ):
        self.fetch_text = fetch_text
        self.max_depth = max_depth
        self.failures = failures if failures is not None else FailureCollector()
        self.expanded_count = 0
        self.pruned_count = 0

    async def expand(
        self,
        records: list[ChannelRecord],
        root_url: str = "",
    ) -> list[ChannelRecord]:
        visited = {canonical_stream_url(root_url)} if root_url else set()
        return await self._expand(records, depth=1, visited=visited)

    async def _expand(
        self,
        records: list[ChannelRecord],
        depth: int,
        visited: set[str],
    ) -> list[ChannelRecord]:
        result: list[ChannelRecord] = []
        for record in records:
            if depth > self.max_depth or not looks_like_playlist(record.stream_url):
                result.append(record)
                continue

            key = record.stream_key
            if key in visited:
                logger.debug(f"Skipping already visited playlist {record.stream_url}")
                self.pruned_count += 1
                self.failures.record(Stage.NESTED_PLAYLIST, record.stream_url, message="playlist already visited")
                continue
            visited.add(key)

            children = await self._fetch_children(record)
            if children is None:
                result.append(record)
                continue

            self.expanded_count += 1
            result.extend(await self._expand(children, depth + 1, visited))
        return result

    async def _fetch_children(self, record: ChannelRecord) -> Optional[list[ChannelRecord]]:
        """Child records, or None when the entry should be kept as is."""
        try:
            text = await self.fetch_text(record.stream_url)
        except Exception as e:
            self.failures.record(Stage.NESTED_PLAYLIST, record.stream_url, e)
            return None

        if HLS_MARKER in text:
            # An HLS media playlist is a stream, not a list of channels
            return None

        children = parse_m3u(
            text,
            base_url=record.stream_url,
            source=record.source,
            playlist_source=record.playlist_source,
            default_category=record.category,
            default_country=record.country,
        )
        if not children:
            self.failures.record(
                Stage.NESTED_PLAYLIST,
                record.stream_url,
                message="nested playlist contained no entries",
                error_type=ErrorType.PARSE,
            )
            return None
        return children
