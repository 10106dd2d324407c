"""Xiph/Icecast directory client."""

import logging
from typing import Any

from channelharvest.models import ChannelRecord, SourceName
from channelharvest.parsers.xiph import parse_xiph_directory
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters
from channelharvest.sources.retry import ServerPool, fetch_with_retry

logger = logging.getLogger(__name__)


class XiphSource(DirectorySource):
    source_name = SourceName.XIPH

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.settings = self.config.sources.xiph

    @property
    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(
            name=self.source_name,
            base_url=self.settings.url,
            priority=self.settings.priority,
        )

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        text = await fetch_with_retry(
            lambda url: self.transport.get_text(
                url,
                timeout=self.config.timeouts.bulk,
                max_bytes=self.config.http.max_json_bytes,
            ),
            ServerPool([self.settings.url]),
            self.retry_policy(self.settings.retries, self.settings.max_retries),
            operation_name="xiph directory",
        )
        return parse_xiph_directory(text)
