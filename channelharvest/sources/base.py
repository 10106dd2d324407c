"""
Base Directory Source Interface

Abstract base class for all directory clients.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from channelharvest.config import FiltersConfig, HarvestConfig
from channelharvest.errors import ParseError, SourceUnavailableError
from channelharvest.events import FailureCollector, Stage
from channelharvest.models import ChannelRecord, SourceName
from channelharvest.sources.retry import RetryPolicy
from channelharvest.sources.transport import HttpTransport

logger = logging.getLogger(__name__)


class SourceStatus(str, Enum):
    """Outcome of one directory fetch."""

    OK = "ok"
    EMPTY = "empty"  # Reachable, returned nothing
    FILTERED_EMPTY = "filtered_empty"  # Returned records, none passed the filters
    UNREACHABLE = "unreachable"  # Every attempt failed
    PARSE_FAILED = "parse_failed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class SourceDescriptor:
    """Static description of a directory."""

    name: SourceName
    base_url: str
    priority: int = 999  # Lower runs first
    discovery: str = "fixed"  # "fixed" or "dns"
    category_hint: str = "Mixed"
    country_hint: str = "Worldwide"


def _lower_values(value: Any) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set)):
        return {str(v).strip().lower() for v in value if v}
    return {part.strip().lower() for part in str(value).split(",") if part.strip()}


@dataclass
class SourceFilters:
    """Exact, case-insensitive country/category/language filters."""

    country: Optional[str] = None
    category: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def from_config(cls, filters: FiltersConfig) -> "SourceFilters":
        return cls(country=filters.country, category=filters.category, language=filters.language)

    @property
    def is_worldwide(self) -> bool:
        return not (self.country or self.category or self.language)

    def accepts(self, record: ChannelRecord) -> bool:
        meta = record.metadata
        if self.country:
            candidates = {record.country.lower()} | _lower_values(meta.get("country_code"))
            if self.country.strip().lower() not in candidates:
                return False
        if self.category:
            candidates = {record.category.lower()} | _lower_values(meta.get("categories"))
            if self.category.strip().lower() not in candidates:
                return False
        if self.language:
            candidates = {record.language.lower()} | _lower_values(meta.get("languages"))
            if self.language.strip().lower() not in candidates:
                return False
        return True


@dataclass
class SourceResult:
    """Records and status of one directory fetch."""

    source: str
    status: SourceStatus
    records: list[ChannelRecord] = field(default_factory=list)
    fetched_count: int = 0
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "status": self.status.value,
            "fetched": self.fetched_count,
            "kept": len(self.records),
            "error": self.error,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class DirectorySource(ABC):
    """Abstract base class for directory clients."""

    source_name: SourceName = SourceName.STATIC

    def __init__(
        self,
        transport: HttpTransport,
        config: HarvestConfig,
        failures: Optional[FailureCollector] = None,
        limit: Optional[int] = None,
    ):
        self.transport = transport
        self.config = config
        self.failures = failures if failures is not None else FailureCollector()
        self.limit = limit

    @property
    @abstractmethod
    def descriptor(self) -> SourceDescriptor:
        """Static description of this directory."""

    @property
    def enabled(self) -> bool:
        return True

    @property
    def name(self) -> str:
        return self.source_name.value

    @property
    def priority(self) -> int:
        return self.descriptor.priority

    def retry_policy(self, retries: int, max_retries: int) -> RetryPolicy:
        return RetryPolicy(retries=retries, max_retries=max_retries)

    @abstractmethod
    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        """
        Fetch records from the directory.

        Raises:
            SourceUnavailableError: When every attempt failed.
            ParseError: When the directory returned a malformed body.
        """

    async def fetch_result(self, filters: Optional[SourceFilters] = None) -> SourceResult:
        """Fetch, filter and cap records; never raises."""
        filters = filters or SourceFilters()
        if not self.enabled:
            return SourceResult(self.name, SourceStatus.DISABLED)

        started = time.monotonic()
        logger.info(f"Fetching {self.name} (priority {self.priority})...")
        try:
            records = await self.fetch_records(filters)
        except SourceUnavailableError as e:
            self.failures.record(Stage.FETCH, self.name, e.last_error or e)
            logger.warning(f"{self.name} unreachable: {e}")
            return SourceResult(
                self.name, SourceStatus.UNREACHABLE, error=str(e),
                duration_seconds=time.monotonic() - started,
            )
        except ParseError as e:
            self.failures.record(Stage.PARSE, self.name, e)
            logger.warning(f"{self.name} returned a malformed body: {e}")
            return SourceResult(
                self.name, SourceStatus.PARSE_FAILED, error=str(e),
                duration_seconds=time.monotonic() - started,
            )
        except Exception as e:
            self.failures.record(Stage.FETCH, self.name, e)
            logger.exception(f"Unexpected error fetching {self.name}: {e}")
            return SourceResult(
                self.name, SourceStatus.UNREACHABLE, error=str(e),
                duration_seconds=time.monotonic() - started,
            )

        fetched = len(records)
        kept = [r for r in records if r.stream_url and filters.accepts(r)]
        if self.limit is not None:
            kept = kept[: self.limit]

        if fetched == 0:
            status = SourceStatus.EMPTY
        elif not kept:
            status = SourceStatus.FILTERED_EMPTY
        else:
            status = SourceStatus.OK

        elapsed = time.monotonic() - started
        logger.info(f"{self.name}: {len(kept)}/{fetched} records kept ({status.value}) in {elapsed:.1f}s")
        return SourceResult(self.name, status, kept, fetched, duration_seconds=elapsed)

    async def fetch(self, filters: Optional[SourceFilters] = None) -> list[ChannelRecord]:
        """Fetch records, degrading to an empty list on any failure."""
        return (await self.fetch_result(filters)).records
