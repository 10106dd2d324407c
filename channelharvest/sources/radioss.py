"""radioss.app station list client."""

import logging
from typing import Any

from channelharvest.models import ChannelKind, ChannelRecord, SourceName
from channelharvest.parsers.json_stations import FieldMap, parse_json_stations
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters
from channelharvest.sources.retry import RetryPolicy, ServerPool, fetch_with_retry

logger = logging.getLogger(__name__)

RADIOSS_FIELDS = FieldMap(
    name=("name", "title"),
    url=("url", "stream", "listen_url"),
    logo=("logo", "favicon"),
    website=("website", "homepage"),
    category=("tags", "genre"),
    country=("country",),
    language=("language",),
    quality=("bitrate",),
    description=("description",),
    epg=(),
    identifier=("id", "uuid"),
    identifier_key="station_id",
)


class RadiossSource(DirectorySource):
    source_name = SourceName.RADIOSS

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.settings = self.config.sources.radioss

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

    def retry_policy(self, retries: int, max_retries: int) -> RetryPolicy:
        # Short backoff; the endpoint either answers quickly or is blocked
        return RetryPolicy(retries=retries, max_retries=max_retries, backoff_base=0.5)

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        payload = await fetch_with_retry(
            lambda url: self.transport.get_json(
                url,
                timeout=self.config.timeouts.bulk,
                max_bytes=self.config.http.max_json_bytes,
                headers={"Accept": "application/json"},
            ),
            ServerPool([self.settings.url]),
            self.retry_policy(self.settings.retries, self.settings.max_retries),
            operation_name="radioss stations",
        )
        return parse_json_stations(
            payload,
            source=self.source_name,
            kind=ChannelKind.RADIO,
            fields=RADIOSS_FIELDS,
            playlist_source="Radioss",
        )
