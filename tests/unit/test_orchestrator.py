"""
Unit tests for harvest orchestration.
"""

import asyncio
import json
from typing import Optional

import httpx
import pytest

from channelharvest.events import Stage
from channelharvest.models import ChannelRecord, SourceName
from channelharvest.pipeline.orchestrator import HarvestOrchestrator, RunMode, run_in_batches
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters, SourceStatus
from channelharvest.storage.sink import MemorySink, UpsertResult

from tests.fixtures.factories import ChannelRecordFactory, ConfigFactory


class FakeSource(DirectorySource):
    """Directory returning canned records, or raising."""

    def __init__(self, *args, records=None, error: Optional[Exception] = None,
                 source_name: SourceName = SourceName.PLAYLIST, priority: int = 10, **kwargs):
        super().__init__(*args, **kwargs)
        self.records = records or []
        self.error = error
        self.source_name = source_name
        self._priority = priority
        self.calls = 0

    @property
    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(name=self.source_name, base_url="fake://", priority=self._priority)

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


class FailingSink(MemorySink):
    """Rejects any batch containing a poisoned stream URL."""

    def __init__(self, poison: str):
        super().__init__()
        self.poison = poison
        self.batches: list[int] = []

    async def upsert_many(self, records: list[ChannelRecord]) -> UpsertResult:
        self.batches.append(len(records))
        if any(r.stream_url == self.poison for r in records):
            raise RuntimeError("constraint violated")
        return await super().upsert_many(records)


def offline_config(**run):
    return ConfigFactory.create(run={"mode": "full", "skip_validation": True, "skip_enrichment": True, **run})


def factory_for(*settings):
    """Source factory building one FakeSource per keyword dict."""
    built: list[FakeSource] = []

    def factory(transport, failures, limit):
        built.clear()
        built.extend(FakeSource(transport, offline_config(), failures, limit, **kwargs) for kwargs in settings)
        return list(built)

    factory.built = built
    return factory


@pytest.fixture
def transport(make_transport):
    return make_transport(lambda request: httpx.Response(200))


@pytest.mark.unit
class TestRunInBatches:
    """Tests for run_in_batches."""

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self):
        running = 0
        peak = 0

        async def worker(item):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1
            if item == 3:
                raise ValueError("bad item")
            return item * 2

        results = await run_in_batches(list(range(7)), worker, batch_size=3)

        assert peak <= 3
        assert results[:3] == [0, 2, 4]
        assert isinstance(results[3], ValueError)
        assert len(results) == 7


@pytest.mark.unit
class TestHarvestOrchestrator:
    """Tests for HarvestOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_full_run_persists_deduplicated(self, transport):
        shared = "http://live.example/shared.m3u8"
        factory = factory_for(
            {"records": [ChannelRecordFactory.create(stream_url=shared)], "priority": 1},
            {
                "records": [
                    ChannelRecordFactory.create(stream_url=shared.upper(), logo_url="https://cdn.example/l.png"),
                    ChannelRecordFactory.create(),
                ],
                "source_name": SourceName.XIPH,
                "priority": 2,
            },
        )
        sink = MemorySink()
        orchestrator = HarvestOrchestrator(offline_config(), sink=sink, transport=transport, source_factory=factory)

        report = await orchestrator.run()

        assert len(sink) == 2
        assert report.persisted_created == 2
        assert report.dedup["duplicates"] == 1
        assert report.dedup["replaced"] == 1
        assert report.total_records == 2
        assert report.by_source == {"xiph": 2}
        assert report.stages["fetch"].succeeded == 2
        assert report.stages["validation"].skipped is True
        assert report.stages["enrichment"].skipped is True

    @pytest.mark.asyncio
    async def test_skip_mode_does_nothing(self, transport):
        factory = factory_for({"records": ChannelRecordFactory.create_batch(2)})
        sink = MemorySink()
        orchestrator = HarvestOrchestrator(
            offline_config(mode="skip"), sink=sink, transport=transport, source_factory=factory
        )

        report = await orchestrator.run()

        assert report.skipped is True
        assert factory.built == []
        assert len(sink) == 0
        assert report.to_dict()["skipped"] is True

    @pytest.mark.asyncio
    async def test_minimal_mode_caps_each_source(self, transport):
        factory = factory_for(
            {"records": ChannelRecordFactory.create_batch(10)},
            {"records": ChannelRecordFactory.create_batch(10), "source_name": SourceName.XIPH},
        )
        orchestrator = HarvestOrchestrator(
            offline_config(mode="minimal", minimal_limit=3), sink=MemorySink(), transport=transport,
            source_factory=factory,
        )

        report = await orchestrator.run()

        assert report.mode == "minimal"
        assert report.total_records == 6
        assert all(source.limit == 3 for source in factory.built)

    @pytest.mark.asyncio
    async def test_unknown_mode_runs_minimal(self, transport):
        orchestrator = HarvestOrchestrator(offline_config(mode="turbo"), transport=transport,
                                           source_factory=factory_for())

        assert orchestrator.mode == RunMode.MINIMAL

    @pytest.mark.asyncio
    async def test_crashed_source_isolated(self, transport):
        factory = factory_for(
            {"error": RuntimeError("directory exploded")},
            {"records": ChannelRecordFactory.create_batch(3), "source_name": SourceName.XIPH},
        )
        orchestrator = HarvestOrchestrator(offline_config(), sink=MemorySink(), transport=transport,
                                           source_factory=factory)

        report = await orchestrator.run()

        assert report.total_records == 3
        assert report.unreachable_sources == ["playlist"]
        assert report.stages["fetch"].failed == 1
        assert report.soft_failures == {Stage.FETCH.value: 1}

    @pytest.mark.asyncio
    async def test_no_sink_skips_persist(self, transport):
        orchestrator = HarvestOrchestrator(
            offline_config(), transport=transport,
            source_factory=factory_for({"records": ChannelRecordFactory.create_batch(2)}),
        )

        report = await orchestrator.run()

        assert report.stages["persist"].skipped is True
        assert report.total_records == 2

    @pytest.mark.asyncio
    async def test_failed_batch_retried_per_record(self, transport):
        records = ChannelRecordFactory.create_batch(5)
        poison = records[1].stream_url
        sink = FailingSink(poison)
        orchestrator = HarvestOrchestrator(
            offline_config(batch_size=3), sink=sink, transport=transport,
            source_factory=factory_for({"records": records}),
        )

        report = await orchestrator.run()

        # Batch of 3 fails, 3 single retries, then the second batch of 2
        assert sink.batches == [3, 1, 1, 1, 2]
        assert len(sink) == 4
        assert report.persist_failed == 1
        assert report.persisted_created == 4
        assert report.soft_failures == {Stage.PERSIST.value: 1}
        assert report.stages["persist"].to_dict() == {"succeeded": 4, "failed": 1, "skipped": False}

    @pytest.mark.asyncio
    async def test_seed_file_when_online_skipped(self, transport, tmp_path):
        seed = tmp_path / "seed.json"
        seed.write_text(json.dumps([
            ChannelRecordFactory.create_dict(name="Seed Jazz", url="http://radio.example/jazz.mp3"),
            ChannelRecordFactory.create_dict(name="Seed TV", url="http://tv.example/live.m3u8", kind="tv"),
        ]))
        sink = MemorySink()
        orchestrator = HarvestOrchestrator(
            offline_config(skip_online_fetch=True, seed_file=str(seed)), sink=sink, transport=transport,
        )

        report = await orchestrator.run()

        assert sorted(r.name for r in sink.records) == ["Seed Jazz", "Seed TV"]
        assert report.by_source == {"static": 2}
        assert report.by_kind == {"radio": 1, "tv": 1}

    @pytest.mark.asyncio
    async def test_online_skipped_without_seed_is_empty(self, transport):
        orchestrator = HarvestOrchestrator(offline_config(skip_online_fetch=True), sink=MemorySink(),
                                           transport=transport)

        report = await orchestrator.run()

        assert report.total_records == 0
        assert report.sources == []

    @pytest.mark.asyncio
    async def test_validation_and_enrichment_stages(self, make_transport):
        def handler(request):
            if request.url.host == "down.example":
                return httpx.Response(410)
            return httpx.Response(200, headers={"content-type": "audio/mpeg"})

        up = ChannelRecordFactory.create(name="Up FM", stream_url="http://up.example/live.mp3")
        down = ChannelRecordFactory.create(
            name="Down FM", stream_url="http://down.example/live.mp3", logo_url="https://cdn.example/down.png"
        )
        config = ConfigFactory.create(run={"mode": "full"})
        orchestrator = HarvestOrchestrator(
            config, sink=MemorySink(), transport=make_transport(handler),
            source_factory=factory_for({"records": [up, down]}),
        )

        report = await orchestrator.run()

        assert up.is_active is True
        assert down.is_active is False
        assert report.active_records == 1
        assert report.stages["validation"].succeeded == 2
        assert report.logo_strategies == {"avatar": 1}
        assert "name=Up+FM" in up.logo_url
        assert down.logo_url == "https://cdn.example/down.png"

    @pytest.mark.asyncio
    async def test_report_dict_is_json_serializable(self, transport):
        orchestrator = HarvestOrchestrator(
            offline_config(), sink=MemorySink(), transport=transport,
            source_factory=factory_for({"records": ChannelRecordFactory.create_batch(1)}, {}),
        )

        data = (await orchestrator.run()).to_dict()

        json.dumps(data)
        assert data["persisted"] == {"created": 1, "updated": 0, "failed": 0}
        assert [s["status"] for s in data["sources"]] == [SourceStatus.OK.value, SourceStatus.EMPTY.value]
        assert data["empty_sources"] == ["playlist"]
        assert data["unreachable_sources"] == []
