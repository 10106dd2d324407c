"""
Soft failure events.

Best-effort operations (click reports, nested playlist expansion,
per-record validation and enrichment) never raise out of the pipeline.
Each one records a ``SoftFailure`` on the run's ``FailureCollector`` so
the end-of-run report can count them.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from channelharvest.errors import ErrorType, classify_exception

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stages that can produce soft failures."""

    FETCH = "fetch"
    PARSE = "parse"
    NESTED_PLAYLIST = "nested_playlist"
    CLICK_REPORT = "click_report"
    VALIDATION = "validation"
    ENRICHMENT = "enrichment"
    PERSIST = "persist"


@dataclass
class SoftFailure:
    """A non-fatal failure attributed to one stage and subject."""

    stage: Stage
    subject: str
    error_type: ErrorType = ErrorType.UNKNOWN
    message: str = ""
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


@dataclass
class FailureCollector:
    """Run-scoped, append-only list of soft failures."""

    failures: list[SoftFailure] = field(default_factory=list)

    def record(
        self,
        stage: Stage,
        subject: str,
        error: Optional[BaseException] = None,
        message: str = "",
        error_type: Optional[ErrorType] = None,
    ) -> SoftFailure:
        if error_type is None:
            error_type = classify_exception(error) if error is not None else ErrorType.UNKNOWN
        failure = SoftFailure(
            stage=stage,
            subject=subject,
            error_type=error_type,
            message=message or (str(error) if error is not None else ""),
        )
        self.failures.append(failure)
        logger.debug(f"Soft failure [{stage.value}] {subject}: {failure.message}")
        return failure

    def count(self, stage: Optional[Stage] = None) -> int:
        if stage is None:
            return len(self.failures)
        return sum(1 for f in self.failures if f.stage == stage)

    def by_stage(self) -> dict[str, int]:
        return dict(Counter(f.stage.value for f in self.failures))

    def by_error_type(self, stage: Optional[Stage] = None) -> dict[str, int]:
        return dict(
            Counter(
                f.error_type.value
                for f in self.failures
                if stage is None or f.stage == stage
            )
        )

    def __len__(self) -> int:
        return len(self.failures)
