"""Public M3U playlist feeds, fetched in priority order."""

import logging
from typing import Any

from channelharvest.errors import SourceUnavailableError
from channelharvest.events import Stage
from channelharvest.models import ChannelRecord, SourceName
from channelharvest.parsers.m3u import parse_m3u
from channelharvest.parsers.nested import NestedPlaylistExpander
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters
from channelharvest.sources.retry import ServerPool, fetch_with_retry

logger = logging.getLogger(__name__)


class PlaylistSource(DirectorySource):
    """TV channels from a list of public extended-M3U feeds."""

    source_name = SourceName.PLAYLIST

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.settings = self.config.sources.playlists
        self.feeds = sorted(self.settings.feeds, key=lambda feed: feed.priority)

    @property
    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(
            name=self.source_name,
            base_url=self.feeds[0].url if self.feeds else "",
            priority=self.settings.priority,
        )

    @property
    def enabled(self) -> bool:
        return self.settings.enabled and bool(self.feeds)

    async def _download(self, url: str) -> str:
        return await self.transport.get_text(
            url,
            timeout=self.config.timeouts.bulk,
            max_bytes=self.config.http.max_playlist_bytes,
        )

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        policy = self.retry_policy(self.settings.retries, self.settings.max_retries)
        expander = NestedPlaylistExpander(
            self._download,
            max_depth=self.settings.max_nested_depth,
            failures=self.failures,
        )

        seen: set[str] = set()
        records: list[ChannelRecord] = []
        succeeded = 0
        last_error = None

        for feed in self.feeds:
            try:
                text = await fetch_with_retry(
                    self._download,
                    ServerPool([feed.url]),
                    policy,
                    operation_name=feed.name,
                )
            except SourceUnavailableError as e:
                last_error = e.last_error
                self.failures.record(Stage.FETCH, feed.name, e.last_error or e)
                logger.warning(f"{feed.name}: {e}")
                continue

            succeeded += 1
            feed_records = parse_m3u(
                text,
                base_url=feed.url,
                source=self.source_name,
                playlist_source=feed.name,
                default_category=feed.category,
                default_country=feed.country,
            )
            if self.settings.expand_nested:
                feed_records = await expander.expand(feed_records, root_url=feed.url)

            added = 0
            for record in feed_records:
                if record.stream_key in seen:
                    continue
                seen.add(record.stream_key)
                records.append(record)
                added += 1
            logger.info(f"{feed.name}: {added} new channels (total {len(records)})")

            if self.limit and filters.is_worldwide and len(records) >= self.limit:
                break

        if succeeded == 0:
            raise SourceUnavailableError(self.name, len(self.feeds), last_error)
        return records
