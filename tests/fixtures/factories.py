"""
Test Data Factories

Factory classes for generating test records and configs.
"""

import random
import string
from typing import Any, Dict, List, Optional

from channelharvest.config import HarvestConfig
from channelharvest.models import ChannelKind, ChannelRecord, SourceName


class BaseFactory:
    """Base factory class."""

    _counter = 0

    @classmethod
    def _next_id(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def _random_string(cls, length: int = 8) -> str:
        return ''.join(random.choices(string.ascii_letters, k=length))


class ChannelRecordFactory(BaseFactory):
    """Factory for creating ChannelRecord test instances."""

    @classmethod
    def create(
        cls,
        name: Optional[str] = None,
        stream_url: Optional[str] = None,
        **kwargs
    ) -> ChannelRecord:
        """Create a ChannelRecord instance."""
        number = cls._next_id()
        return ChannelRecord(
            name=name or f"Test Channel {number}",
            stream_url=stream_url or f"http://stream.example/{number}/{cls._random_string()}.m3u8",
            source=kwargs.get("source", SourceName.PLAYLIST),
            kind=kwargs.get("kind", ChannelKind.TV),
            category=kwargs.get("category", "News"),
            country=kwargs.get("country", "Unknown"),
            language=kwargs.get("language", "Unknown"),
            logo_url=kwargs.get("logo_url", ""),
            quality=kwargs.get("quality"),
            website_url=kwargs.get("website_url", ""),
            metadata=kwargs.get("metadata", {}),
        )

    @classmethod
    def create_batch(cls, count: int, **kwargs) -> List[ChannelRecord]:
        """Create multiple ChannelRecord instances."""
        return [cls.create(**kwargs) for _ in range(count)]

    @classmethod
    def create_dict(cls, name: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """Create station data as a seed-file style dictionary."""
        number = cls._next_id()
        return {
            "name": name or f"Test Station {number}",
            "url": kwargs.get("url", f"http://radio.example/{number}.mp3"),
            "logo": kwargs.get("logo", ""),
            "genre": kwargs.get("genre", "Jazz"),
            "country": kwargs.get("country", "Germany"),
            "bitrate": kwargs.get("bitrate", 128),
            "kind": kwargs.get("kind", "radio"),
        }


class ConfigFactory:
    """Factory for HarvestConfig instances tuned for fast, offline tests."""

    @classmethod
    def create(cls, **sections: Dict[str, Any]) -> HarvestConfig:
        """
        Create a config with every source disabled and short timeouts.

        Keyword arguments are merged into the matching config section,
        e.g. ``run={"mode": "minimal"}``.
        """
        data: Dict[str, Any] = {
            "timeouts": {"probe": 1, "existence": 1, "scrape": 1, "bulk": 2, "discovery": 1},
            "sources": {
                "radio_browser": {"enabled": False, "fallback_servers": ["https://rb1.test", "https://rb2.test"]},
                "iptv_org": {"enabled": False, "api_base": "https://iptv.test/api"},
                "playlists": {"enabled": False, "feeds": []},
                "xiph": {"enabled": False, "url": "https://xiph.test/yp.xml"},
                "radioss": {"enabled": False, "url": "https://radioss.test/json/stations"},
            },
            "logos": {"verify_existence": False, "total_budget": 2},
            "logging": {"file": ""},
        }
        for section, values in sections.items():
            if section == "sources":
                for name, source_values in values.items():
                    data["sources"].setdefault(name, {}).update(source_values)
            else:
                data.setdefault(section, {}).update(values)
        return HarvestConfig(**data)
