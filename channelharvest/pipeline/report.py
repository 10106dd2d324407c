"""End-of-run report."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from channelharvest.events import FailureCollector
from channelharvest.models import ChannelRecord
from channelharvest.sources.base import SourceResult, SourceStatus

logger = logging.getLogger(__name__)


@dataclass
class StageCounts:
    succeeded: int = 0
    failed: int = 0
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"succeeded": self.succeeded, "failed": self.failed, "skipped": self.skipped}


@dataclass
class RunReport:
    """Counts collected over one harvest run."""

    mode: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    skipped: bool = False
    sources: list[SourceResult] = field(default_factory=list)
    stages: dict[str, StageCounts] = field(default_factory=dict)
    dedup: dict[str, int] = field(default_factory=dict)
    logo_strategies: dict[str, int] = field(default_factory=dict)
    persisted_created: int = 0
    persisted_updated: int = 0
    persist_failed: int = 0
    soft_failures: dict[str, int] = field(default_factory=dict)
    by_source: dict[str, int] = field(default_factory=dict)
    by_kind: dict[str, int] = field(default_factory=dict)
    total_records: int = 0
    active_records: int = 0

    def stage(self, name: str) -> StageCounts:
        return self.stages.setdefault(name, StageCounts())

    @property
    def unreachable_sources(self) -> list[str]:
        return [r.source for r in self.sources if r.status == SourceStatus.UNREACHABLE]

    @property
    def empty_sources(self) -> list[str]:
        return [
            r.source for r in self.sources
            if r.status in (SourceStatus.EMPTY, SourceStatus.FILTERED_EMPTY)
        ]

    def finish(self, records: list[ChannelRecord], failures: FailureCollector) -> "RunReport":
        self.finished_at = datetime.now(timezone.utc)
        self.total_records = len(records)
        self.active_records = sum(1 for r in records if r.is_active)
        self.by_source = dict(Counter(r.source.value for r in records))
        self.by_kind = dict(Counter(r.kind.value for r in records))
        self.soft_failures = failures.by_stage()
        return self

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "skipped": self.skipped,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "sources": [r.to_dict() for r in self.sources],
            "unreachable_sources": self.unreachable_sources,
            "empty_sources": self.empty_sources,
            "stages": {name: counts.to_dict() for name, counts in self.stages.items()},
            "dedup": dict(self.dedup),
            "logo_strategies": dict(self.logo_strategies),
            "persisted": {
                "created": self.persisted_created,
                "updated": self.persisted_updated,
                "failed": self.persist_failed,
            },
            "soft_failures": dict(self.soft_failures),
            "by_source": dict(self.by_source),
            "by_kind": dict(self.by_kind),
            "total_records": self.total_records,
            "active_records": self.active_records,
        }

    def log_summary(self) -> None:
        if self.skipped:
            logger.info("Harvest skipped (mode=skip)")
            return
        logger.info("=" * 60)
        logger.info(f"Harvest complete in {self.duration_seconds:.1f}s (mode={self.mode})")
        for result in self.sources:
            line = f"  {result.source}: {result.status.value}, {len(result.records)}/{result.fetched_count} kept"
            if result.error:
                line += f" ({result.error})"
            logger.info(line)
        for name, counts in self.stages.items():
            if counts.skipped:
                logger.info(f"  stage {name}: skipped")
            else:
                logger.info(f"  stage {name}: {counts.succeeded} succeeded, {counts.failed} failed")
        if self.dedup:
            logger.info(
                f"  dedup: {self.dedup.get('duplicates', 0)} duplicates removed, "
                f"{self.dedup.get('replaced', 0)} replaced by a record with a logo"
            )
        logger.info(
            f"  persisted: {self.persisted_created} created, {self.persisted_updated} updated, "
            f"{self.persist_failed} failed"
        )
        if self.unreachable_sources:
            logger.warning(f"  unreachable sources: {', '.join(self.unreachable_sources)}")
        if self.soft_failures:
            logger.info(f"  soft failures: {self.soft_failures}")
        logger.info(f"  total: {self.total_records} channels ({self.active_records} active)")
        logger.info("=" * 60)
