"""Cross-source deduplication by canonical stream URL."""

import logging
from dataclasses import asdict, dataclass
from typing import Iterable

from channelharvest.models import ChannelRecord

logger = logging.getLogger(__name__)


@dataclass
class DedupStats:
    seen: int = 0
    dropped_empty: int = 0
    duplicates: int = 0
    replaced: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class Deduplicator:
    """
    Keeps one record per canonical stream URL.

    Records are kept in first-seen order. On a collision the incoming
    record replaces the kept one, in its position, only when it has a
    logo and the kept one does not.

    Owned by one run. ``add`` never awaits, so concurrent asyncio
    workers can share an instance without a lock.
    """

    def __init__(self):
        self._records: list[ChannelRecord] = []
        self._index: dict[str, int] = {}
        self.stats = DedupStats()

    def add(self, record: ChannelRecord) -> bool:
        """Offer a record; returns True if it is now the kept record for its key."""
        self.stats.seen += 1
        key = record.stream_key
        if not key:
            self.stats.dropped_empty += 1
            return False

        position = self._index.get(key)
        if position is None:
            self._index[key] = len(self._records)
            self._records.append(record)
            return True

        self.stats.duplicates += 1
        if record.has_logo and not self._records[position].has_logo:
            self._records[position] = record
            self.stats.replaced += 1
            return True
        return False

    def add_all(self, records: Iterable[ChannelRecord]) -> "Deduplicator":
        for record in records:
            self.add(record)
        return self

    @property
    def records(self) -> list[ChannelRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)


def deduplicate(records: Iterable[ChannelRecord]) -> list[ChannelRecord]:
    """Deduplicate a record list in one pass."""
    return Deduplicator().add_all(records).records
