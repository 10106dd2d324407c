"""iptv-org API client.

Joins ``streams.json`` with ``channels.json`` and ``logos.json`` to build
TV channel records, and serves channel logos by id to the logo engine.
Datasets are cached in memory for ``cache_ttl_hours``.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from channelharvest.errors import ParseError, SourceUnavailableError
from channelharvest.events import Stage
from channelharvest.models import ChannelKind, ChannelRecord, SourceName
from channelharvest.parsers.json_stations import FieldMap, item_to_record, load_json_array
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters
from channelharvest.sources.retry import ServerPool, fetch_with_retry

logger = logging.getLogger(__name__)

IPTV_ORG_FIELDS = FieldMap(
    name=("name", "title"),
    url=("url",),
    logo=("logo",),
    website=("website",),
    category=("categories",),
    country=("country",),
    language=("languages",),
    quality=("quality", "resolution"),
    description=(),
    epg=(),
    identifier=("id",),
    identifier_key="channel_id",
)


class IptvOrgSource(DirectorySource):
    """TV channels from the iptv-org public API."""

    source_name = SourceName.IPTV_ORG

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.settings = self.config.sources.iptv_org
        self._cache: dict[str, list[Any]] = {}
        self._cache_expiry: dict[str, datetime] = {}
        self._cache_ttl = timedelta(hours=self.settings.cache_ttl_hours)
        self._channel_index: Optional[dict[str, dict[str, Any]]] = None
        self._logo_index: Optional[dict[str, str]] = None
        self._index_lock = asyncio.Lock()

    @property
    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(
            name=self.source_name,
            base_url=self.settings.api_base,
            priority=self.settings.priority,
        )

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def get_dataset(self, name: str) -> list[Any]:
        """
        Fetch ``{api_base}/{name}.json`` through the TTL cache.

        Raises:
            SourceUnavailableError: If every attempt failed.
            ParseError: If the body is not a JSON array.
        """
        if name in self._cache and not self._expired(name):
            return self._cache[name]

        pool = ServerPool([self.settings.api_base])
        policy = self.retry_policy(self.settings.retries, self.settings.max_retries)
        payload = await fetch_with_retry(
            lambda base: self.transport.get_json(
                f"{base}/{name}.json",
                timeout=self.config.timeouts.bulk,
                max_bytes=self.config.http.max_json_bytes,
            ),
            pool,
            policy,
            operation_name=f"iptv-org {name}.json",
        )
        data = load_json_array(payload, f"iptv-org {name}.json")

        self._cache[name] = data
        self._cache_expiry[name] = datetime.now() + self._cache_ttl
        if name == "channels":
            self._channel_index = None
        elif name == "logos":
            self._logo_index = None
        return data

    def _expired(self, name: str) -> bool:
        expiry = self._cache_expiry.get(name)
        return expiry is None or datetime.now() >= expiry

    async def _optional_dataset(self, name: str) -> list[Any]:
        """Secondary dataset; a failure is cached as empty for the TTL."""
        try:
            return await self.get_dataset(name)
        except (SourceUnavailableError, ParseError) as e:
            self.failures.record(Stage.FETCH, f"iptv-org {name}.json", e)
            logger.warning(f"Could not fetch iptv-org {name} data: {e}")
            self._cache[name] = []
            self._cache_expiry[name] = datetime.now() + self._cache_ttl
            return []

    async def _channels_by_id(self) -> dict[str, dict[str, Any]]:
        async with self._index_lock:
            if self._channel_index is None or self._expired("channels"):
                channels = await self._optional_dataset("channels")
                self._channel_index = {
                    ch["id"]: ch for ch in channels if isinstance(ch, dict) and ch.get("id")
                }
            return self._channel_index

    async def _logos_by_channel(self) -> dict[str, str]:
        async with self._index_lock:
            if self._logo_index is None or self._expired("logos"):
                logos = await self._optional_dataset("logos")
                index: dict[str, str] = {}
                for logo in logos:
                    if not isinstance(logo, dict):
                        continue
                    channel_id, url = logo.get("channel"), logo.get("url")
                    # Prefer the channel-wide logo over feed-specific ones
                    if channel_id and url and (channel_id not in index or not logo.get("feed")):
                        index[channel_id] = url
                self._logo_index = index
            return self._logo_index

    async def get_channel(self, channel_id: str) -> Optional[dict[str, Any]]:
        if not channel_id:
            return None
        return (await self._channels_by_id()).get(channel_id)

    async def get_logo(self, channel_id: str) -> Optional[str]:
        """Authoritative logo URL for an iptv-org channel id, if one is listed."""
        if not channel_id:
            return None
        logo = (await self._logos_by_channel()).get(channel_id)
        if logo:
            return logo
        channel = await self.get_channel(channel_id)
        if channel and channel.get("logo"):
            return channel["logo"]
        return None

    def _build_record(
        self,
        stream: dict[str, Any],
        channel: Optional[dict[str, Any]],
        logos: dict[str, str],
    ) -> Optional[ChannelRecord]:
        channel = channel or {}
        channel_id = stream.get("channel") or channel.get("id") or ""
        merged: dict[str, Any] = {
            "id": channel_id,
            "name": channel.get("name") or stream.get("title"),
            "url": stream.get("url"),
            "categories": channel.get("categories") or [],
            "country": channel.get("country"),
            "languages": channel.get("languages") or [],
            "logo": channel.get("logo") or logos.get(channel_id),
            "website": channel.get("website"),
            "quality": stream.get("quality") or stream.get("resolution"),
            "feed": stream.get("feed"),
            "referrer": stream.get("referrer") or stream.get("http_referrer"),
            "user_agent": stream.get("user_agent"),
            "network": channel.get("network"),
            "is_nsfw": channel.get("is_nsfw", False),
        }
        record = item_to_record(
            {k: v for k, v in merged.items() if v is not None},
            source=self.source_name,
            kind=ChannelKind.TV,
            fields=IPTV_ORG_FIELDS,
            playlist_source="IPTV-ORG",
        )
        if record is None:
            return None
        record.metadata.update({
            "channel_id": channel_id,
            "tvg_id": channel_id,
            "categories": list(merged["categories"]),
            "languages": list(merged["languages"]),
            "country_code": channel.get("country") or "",
        })
        return record

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        streams = await self.get_dataset("streams")
        channels = await self._channels_by_id()
        logos = await self._logos_by_channel()

        records = []
        for stream in streams:
            if not isinstance(stream, dict):
                continue
            channel = channels.get(stream.get("channel") or "")
            if channel and channel.get("closed"):
                continue
            record = self._build_record(stream, channel, logos)
            if record is not None:
                records.append(record)

        logger.info(f"Joined {len(records)} iptv-org streams with {len(channels)} channels")
        return records
