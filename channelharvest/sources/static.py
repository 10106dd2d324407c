"""Static seed file source: a local JSON station list."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from channelharvest.errors import ParseError, SourceUnavailableError
from channelharvest.models import ChannelKind, ChannelRecord, SourceName
from channelharvest.parsers.json_stations import item_to_record, load_json_array
from channelharvest.sources.base import DirectorySource, SourceDescriptor, SourceFilters

logger = logging.getLogger(__name__)


class StaticSource(DirectorySource):
    """
    Records from a seed file.

    The file holds a JSON array of station objects (or ``{"radio": [...],
    "tv": [...]}``). Items may carry ``kind`` to mark radio entries.
    """

    source_name = SourceName.STATIC

    def __init__(self, *args: Any, path: Optional[str] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.path = Path(path) if path else None

    @property
    def descriptor(self) -> SourceDescriptor:
        return SourceDescriptor(
            name=self.source_name,
            base_url=str(self.path or ""),
            priority=1000,
        )

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def _load_items(self) -> list[tuple[dict[str, Any], ChannelKind]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise SourceUnavailableError(str(self.path), 1, e) from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid seed file {self.path}: {e}", str(self.path)) from e

        items: list[tuple[dict[str, Any], ChannelKind]] = []
        if isinstance(data, dict) and ("radio" in data or "tv" in data):
            for kind in (ChannelKind.RADIO, ChannelKind.TV):
                for item in data.get(kind.value) or []:
                    if isinstance(item, dict):
                        items.append((item, kind))
            return items

        for item in load_json_array(data, str(self.path)):
            if not isinstance(item, dict):
                continue
            kind_value = str(item.get("kind") or item.get("type") or "tv").lower()
            kind = ChannelKind.RADIO if kind_value == "radio" else ChannelKind.TV
            items.append((item, kind))
        return items

    async def fetch_records(self, filters: SourceFilters) -> list[ChannelRecord]:
        records = []
        for item, kind in self._load_items():
            record = item_to_record(item, self.source_name, kind, playlist_source="Seed file")
            if record is not None:
                records.append(record)
        logger.info(f"Loaded {len(records)} records from seed file {self.path}")
        return records
