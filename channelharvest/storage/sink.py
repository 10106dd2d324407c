"""Persistence sink interface and the in-memory sink used for dry runs."""

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from channelharvest.models import ChannelRecord

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Rows created and updated by one upsert call."""

    created: int = 0
    updated: int = 0

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(self.created + other.created, self.updated + other.updated)

    @property
    def total(self) -> int:
        return self.created + self.updated


@runtime_checkable
class ChannelSink(Protocol):
    """Receives batches of records and upserts them by canonical stream URL."""

    async def upsert_many(self, records: list[ChannelRecord]) -> UpsertResult:
        ...

    async def close(self) -> None:
        ...


class MemorySink:
    """Keeps the final channel set in a dict keyed by canonical stream URL."""

    def __init__(self):
        self._rows: dict[str, ChannelRecord] = {}

    async def upsert_many(self, records: list[ChannelRecord]) -> UpsertResult:
        result = UpsertResult()
        for record in records:
            if record.stream_key in self._rows:
                result.updated += 1
            else:
                result.created += 1
            self._rows[record.stream_key] = record
        return result

    async def close(self) -> None:
        return None

    @property
    def records(self) -> list[ChannelRecord]:
        return list(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)
