"""
Harvest orchestration.

One run: fetch every enabled directory (sources concurrently, each
source paginating sequentially), union the results in priority order,
optionally validate streams and resolve logos in bounded batches,
deduplicate once, and hand fixed-size batches to the sink. Every stage
isolates per-item failures, so a run always ends with a report.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Optional, TypeVar

from channelharvest.config import HarvestConfig, get_config
from channelharvest.enrichment.logos import LogoResolver, is_valid_image_url
from channelharvest.events import FailureCollector, Stage
from channelharvest.models import ChannelRecord
from channelharvest.pipeline.dedup import Deduplicator
from channelharvest.pipeline.report import RunReport
from channelharvest.sources import IptvOrgSource, StaticSource, build_sources
from channelharvest.sources.base import DirectorySource, SourceFilters, SourceResult, SourceStatus
from channelharvest.sources.transport import HttpTransport
from channelharvest.storage.sink import ChannelSink
from channelharvest.validation.stream_probe import Confidence, StreamValidator

logger = logging.getLogger(__name__)

T = TypeVar("T")

SourceFactory = Callable[[HttpTransport, FailureCollector, Optional[int]], list[DirectorySource]]


class RunMode(str, Enum):
    FULL = "full"
    MINIMAL = "minimal"  # Cap each source at run.minimal_limit records
    SKIP = "skip"  # Do nothing


async def run_in_batches(
    items: list[T],
    worker: Callable[[T], Awaitable[Any]],
    batch_size: int,
) -> list[Any]:
    """Run ``worker`` over ``items`` ``batch_size`` at a time; exceptions are returned, not raised."""
    results: list[Any] = []
    batch_size = max(batch_size, 1)
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        results.extend(await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True))
    return results


class HarvestOrchestrator:
    """Composes sources, validator, logo resolver, deduplicator and sink into one run."""

    def __init__(
        self,
        config: Optional[HarvestConfig] = None,
        sink: Optional[ChannelSink] = None,
        transport: Optional[HttpTransport] = None,
        source_factory: Optional[SourceFactory] = None,
    ):
        self.config = config or get_config()
        self.sink = sink
        self._transport = transport
        self._source_factory = source_factory

    @property
    def mode(self) -> RunMode:
        try:
            return RunMode(str(self.config.run.mode).lower())
        except ValueError:
            logger.warning(f"Unknown run mode {self.config.run.mode!r}, using minimal")
            return RunMode.MINIMAL

    def _build_sources(
        self,
        transport: HttpTransport,
        failures: FailureCollector,
        limit: Optional[int],
    ) -> list[DirectorySource]:
        run = self.config.run
        if self._source_factory is not None:
            sources = list(self._source_factory(transport, failures, limit))
        elif run.skip_online_fetch:
            sources = []
        else:
            sources = build_sources(transport, self.config, failures, limit)

        if run.seed_file:
            sources.append(StaticSource(transport, self.config, failures, limit, path=run.seed_file))
        elif run.skip_online_fetch:
            logger.warning("Online fetch skipped and no seed file configured; nothing to harvest")
        return sources

    async def run(self) -> RunReport:
        """Execute one harvest run and return its report."""
        mode = self.mode
        report = RunReport(mode=mode.value)
        failures = FailureCollector()

        if mode == RunMode.SKIP:
            report.skipped = True
            report.finish([], failures)
            report.log_summary()
            return report

        logger.info(f"Starting harvest (mode={mode.value})")
        transport = self._transport or HttpTransport(
            user_agent=self.config.http.user_agent,
            max_redirects=self.config.validation.max_redirects,
            default_timeout=self.config.timeouts.bulk,
        )
        try:
            records = await self._execute(transport, mode, report, failures)
        finally:
            if self._transport is None:
                await transport.close()

        report.finish(records, failures)
        report.log_summary()
        return report

    async def _execute(
        self,
        transport: HttpTransport,
        mode: RunMode,
        report: RunReport,
        failures: FailureCollector,
    ) -> list[ChannelRecord]:
        run = self.config.run
        limit = run.minimal_limit if mode == RunMode.MINIMAL else None
        sources = self._build_sources(transport, failures, limit)

        records = await self.fetch_all(sources, report)

        if run.skip_validation:
            report.stage(Stage.VALIDATION.value).skipped = True
        else:
            await self.validate(records, transport, failures, report)

        if run.skip_enrichment:
            report.stage(Stage.ENRICHMENT.value).skipped = True
        else:
            lookup = next((s.get_logo for s in sources if isinstance(s, IptvOrgSource) and s.enabled), None)
            await self.enrich(records, transport, failures, report, lookup)

        deduplicator = Deduplicator().add_all(records)
        report.dedup = deduplicator.stats.to_dict()
        unique = deduplicator.records
        logger.info(f"Deduplicated {len(records)} records to {len(unique)}")

        if self.sink is not None:
            await self.persist(unique, failures, report)
        else:
            report.stage(Stage.PERSIST.value).skipped = True
        return unique

    async def fetch_all(self, sources: list[DirectorySource], report: RunReport) -> list[ChannelRecord]:
        """Fetch sources concurrently; union their records in priority order."""
        filters = SourceFilters.from_config(self.config.filters)
        semaphore = asyncio.Semaphore(max(self.config.run.max_concurrent_sources, 1))

        async def _fetch(source: DirectorySource) -> SourceResult:
            async with semaphore:
                return await source.fetch_result(filters)

        ordered = sorted(sources, key=lambda s: s.priority)
        results = await asyncio.gather(*(_fetch(s) for s in ordered), return_exceptions=True)

        stage = report.stage(Stage.FETCH.value)
        records: list[ChannelRecord] = []
        for source, result in zip(ordered, results):
            if isinstance(result, BaseException):
                logger.error(f"{source.name} fetch crashed: {result}")
                result = SourceResult(source.name, SourceStatus.UNREACHABLE, error=str(result))
            report.sources.append(result)
            if result.status in (SourceStatus.UNREACHABLE, SourceStatus.PARSE_FAILED):
                stage.failed += 1
            elif result.status != SourceStatus.DISABLED:
                stage.succeeded += 1
            records.extend(r for r in result.records if r.stream_url)

        logger.info(f"Fetched {len(records)} records from {stage.succeeded} sources")
        return records

    async def validate(
        self,
        records: list[ChannelRecord],
        transport: HttpTransport,
        failures: FailureCollector,
        report: RunReport,
    ) -> None:
        validator = StreamValidator(transport, self.config, failures)
        stage = report.stage(Stage.VALIDATION.value)
        logger.info(f"Validating {len(records)} streams...")

        results = await run_in_batches(records, validator.validate_record, self.config.validation.max_concurrent)
        for record, result in zip(records, results):
            if isinstance(result, BaseException):
                failures.record(Stage.VALIDATION, record.stream_url, result)
                stage.failed += 1
            elif result.reachable or result.confidence == Confidence.DEFINITE:
                stage.succeeded += 1
            else:
                stage.failed += 1
        logger.info(f"Validation: {validator.stats}")

    async def enrich(
        self,
        records: list[ChannelRecord],
        transport: HttpTransport,
        failures: FailureCollector,
        report: RunReport,
        lookup=None,
    ) -> None:
        resolver = LogoResolver(transport, self.config, failures, lookup=lookup)
        stage = report.stage(Stage.ENRICHMENT.value)
        missing = [r for r in records if not is_valid_image_url(r.logo_url)]
        stage.succeeded += len(records) - len(missing)
        logger.info(f"Resolving logos for {len(missing)} records...")

        results = await run_in_batches(missing, resolver.enrich_record, self.config.logos.max_concurrent)
        for record, result in zip(missing, results):
            if isinstance(result, BaseException):
                failures.record(Stage.ENRICHMENT, record.stream_url, result)
                stage.failed += 1
            else:
                stage.succeeded += 1
        report.logo_strategies = dict(resolver.stats)

    async def persist(
        self,
        records: list[ChannelRecord],
        failures: FailureCollector,
        report: RunReport,
    ) -> None:
        """Send fixed-size batches to the sink, retrying a failed batch record by record."""
        stage = report.stage(Stage.PERSIST.value)
        batch_size = max(self.config.run.batch_size, 1)

        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            try:
                result = await self.sink.upsert_many(batch)
                report.persisted_created += result.created
                report.persisted_updated += result.updated
                stage.succeeded += len(batch)
                continue
            except Exception as e:
                logger.warning(f"Batch {start // batch_size + 1} failed ({e}); retrying individually")

            for record in batch:
                try:
                    result = await self.sink.upsert_many([record])
                except Exception as e:
                    failures.record(Stage.PERSIST, record.stream_url, e)
                    report.persist_failed += 1
                    stage.failed += 1
                    continue
                report.persisted_created += result.created
                report.persisted_updated += result.updated
                stage.succeeded += 1

        logger.info(
            f"Persisted {report.persisted_created} new and {report.persisted_updated} "
            f"updated channels ({report.persist_failed} failed)"
        )


async def harvest(config: Optional[HarvestConfig] = None, sink: Optional[ChannelSink] = None) -> RunReport:
    """Convenience wrapper for a single run."""
    return await HarvestOrchestrator(config=config, sink=sink).run()
