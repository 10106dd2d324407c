"""
radio-browser.info directory client.

Mirrors are discovered by resolving the round-robin API domain and
reverse-resolving each address to its mirror hostname. A hard-coded
mirror list is used when discovery fails. Stations are fetched in
offset pages from a randomly ordered, rotating mirror pool.
"""

import asyncio
import logging
import random
import socket
import time
from typing import Any, Optional

from channelharvest.errors import ParseError, SourceUnavailableError
from channelharvest.events import Stage
from channelharvest.models import ChannelKind, ChannelRecord, SourceName, canonical_stream_url
from channelharvest.parsers.json_stations import FieldMap, item_to_record, load_json_array
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters
from channelharvest.sources.retry import ServerPool, fetch_with_retry
from channelharvest.utils.text import PLACE_MAX, sanitize, split_values

logger = logging.getLogger(__name__)

RADIO_BROWSER_FIELDS = FieldMap(
    name=("name",),
    url=("url_resolved", "url"),
    logo=("favicon",),
    website=("homepage",),
    category=("tags",),
    country=("country",),
    language=("language",),
    quality=("bitrate",),
    description=(),
    epg=(),
    identifier=("stationuuid",),
    identifier_key="station_uuid",
)

CLICK_REPORT_CONCURRENCY = 10


class RadioBrowserSource(DirectorySource):
    """Internet radio stations from the radio-browser.info community directory."""

    source_name = SourceName.RADIO_BROWSER

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.settings = self.config.sources.radio_browser
        self._servers: list[str] = []
        self._servers_fetched_at = 0.0

    @property
    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(
            name=self.source_name,
            base_url=self.settings.api_domain,
            priority=self.settings.priority,
            discovery="dns",
        )

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def discover_servers(self) -> list[str]:
        """Resolve the API domain to its mirror base URLs."""
        loop = asyncio.get_running_loop()
        timeout = self.config.timeouts.discovery
        domain = self.settings.api_domain

        infos = await asyncio.wait_for(
            loop.getaddrinfo(domain, 443, proto=socket.IPPROTO_TCP), timeout=timeout
        )
        addresses = list(dict.fromkeys(info[4][0] for info in infos))

        servers = []
        for address in addresses:
            try:
                hostname, _, _ = await asyncio.wait_for(
                    loop.run_in_executor(None, socket.gethostbyaddr, address), timeout=timeout
                )
            except (OSError, asyncio.TimeoutError) as e:
                logger.debug(f"Reverse lookup failed for {address}: {e}")
                continue
            server = f"https://{hostname}"
            if server not in servers:
                servers.append(server)
        return servers

    async def get_servers(self) -> list[str]:
        """Mirror list, cached for ``servers_ttl_seconds`` and shuffled per call."""
        now = time.monotonic()
        if not self._servers or now - self._servers_fetched_at > self.settings.servers_ttl_seconds:
            try:
                servers = await self.discover_servers()
            except (OSError, asyncio.TimeoutError) as e:
                logger.warning(f"radio-browser server discovery failed: {e}; using fallback list")
                servers = []
            if not servers:
                servers = list(self.settings.fallback_servers)
            else:
                logger.info(f"Discovered {len(servers)} radio-browser mirrors")
            self._servers = servers
            self._servers_fetched_at = now

        servers = list(self._servers)
        random.shuffle(servers)
        return servers

    @staticmethod
    def build_query(filters: SourceFilters) -> tuple[str, dict[str, Any]]:
        """Endpoint path and query parameters for the given filters."""
        if filters.is_worldwide:
            return "json/stations", {}

        params: dict[str, Any] = {}
        if filters.country:
            country = filters.country.strip()
            if len(country) == 2:
                params["countrycode"] = country.upper()
            else:
                params["country"] = country
                params["countryExact"] = "true"
        if filters.language:
            params["language"] = filters.language.strip().lower()
            params["languageExact"] = "true"
        if filters.category:
            params["tag"] = filters.category.strip().lower()
            params["tagExact"] = "true"
        return "json/stations/search", params

    async def _get_page(self, server: str, path: str, params: dict[str, Any]) -> Any:
        return await self.transport.get_json(
            f"{server}/{path}",
            timeout=self.config.timeouts.bulk,
            max_bytes=self.config.http.max_json_bytes,
            params=params,
        )

    def _to_records(self, stations: Any) -> list[ChannelRecord]:
        records = []
        for station in load_json_array(stations, "Radio Browser"):
            if not isinstance(station, dict):
                continue
            record = item_to_record(
                station,
                source=self.source_name,
                kind=ChannelKind.RADIO,
                fields=RADIO_BROWSER_FIELDS,
                playlist_source="Radio Browser",
            )
            if record is None:
                continue
            meta = record.metadata
            if not record.name or record.name == "Unknown" or not meta.get("station_uuid"):
                continue
            country_code = sanitize(meta.pop("countrycode", ""), PLACE_MAX)
            record.description = country_code
            meta["country_code"] = country_code
            # Search matches any tag or language, so keep every one of them
            meta["categories"] = split_values(station.get("tags"), ",")
            meta["languages"] = split_values(station.get("language"), ",")
            for key, new_key in (("lastcheckok", "last_check_ok"), ("lastcheckstatus", "last_check_status")):
                if key in meta:
                    meta[new_key] = meta.pop(key)
            records.append(record)
        return records

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        servers = await self.get_servers()
        pool = ServerPool(servers)
        policy = self.retry_policy(self.settings.retries, self.settings.max_retries)
        path, params = self.build_query(filters)

        page_size = self.settings.batch_size
        if self.limit:
            page_size = min(page_size, self.limit)

        seen: set[str] = set()
        records: list[ChannelRecord] = []

        for batch in range(self.settings.max_batches):
            page_params = {**params, "hidebroken": "true", "limit": page_size, "offset": batch * page_size}
            try:
                stations = await fetch_with_retry(
                    lambda server: self._get_page(server, path, page_params),
                    pool,
                    policy,
                    operation_name=f"radio-browser batch {batch + 1}",
                )
            except SourceUnavailableError as e:
                if batch == 0:
                    raise SourceUnavailableError(self.name, e.attempts, e.last_error) from e
                self.failures.record(Stage.FETCH, f"{self.name} batch {batch + 1}", e.last_error or e)
                logger.warning(f"Stopping radio-browser pagination after batch {batch}: {e}")
                break
            except ParseError as e:
                if batch == 0:
                    raise
                self.failures.record(Stage.PARSE, f"{self.name} batch {batch + 1}", e)
                break

            page = self._to_records(stations)
            added = 0
            for record in page:
                key = canonical_stream_url(record.stream_url)
                if key in seen:
                    continue
                seen.add(key)
                records.append(record)
                added += 1

            raw_count = len(stations) if isinstance(stations, list) else 0
            logger.info(f"radio-browser batch {batch + 1}: {added} new stations (total {len(records)})")

            if raw_count < page_size:
                break
            if self.limit and len(records) >= self.limit:
                break

        if self.settings.report_clicks and records:
            await self.report_clicks(records, pool)

        return records

    async def report_click(self, record: ChannelRecord, pool: Optional[ServerPool] = None) -> bool:
        """Best-effort usage report for one station; failures are recorded, never raised."""
        uuid = record.metadata.get("station_uuid")
        if not uuid:
            return False
        server = pool.current if pool else (await self.get_servers())[0]
        try:
            await self.transport.get_json(
                f"{server}/json/url/{uuid}",
                timeout=self.config.timeouts.probe,
                max_bytes=self.config.http.max_scrape_bytes,
            )
            return True
        except Exception as e:
            self.failures.record(Stage.CLICK_REPORT, str(uuid), e)
            return False

    async def report_clicks(self, records: list[ChannelRecord], pool: Optional[ServerPool] = None) -> int:
        semaphore = asyncio.Semaphore(CLICK_REPORT_CONCURRENCY)

        async def _report(record: ChannelRecord) -> bool:
            async with semaphore:
                return await self.report_click(record, pool)

        results = await asyncio.gather(*(_report(r) for r in records))
        return sum(1 for ok in results if ok)
