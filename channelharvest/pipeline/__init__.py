"""Harvest pipeline: orchestration, deduplication and reporting."""

from channelharvest.pipeline.dedup import Deduplicator, deduplicate
from channelharvest.pipeline.orchestrator import HarvestOrchestrator, RunMode, harvest
from channelharvest.pipeline.report import RunReport

__all__ = ["Deduplicator", "HarvestOrchestrator", "RunMode", "RunReport", "deduplicate", "harvest"]
