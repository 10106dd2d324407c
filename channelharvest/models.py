"""
Channel record model shared by every pipeline stage.

A ``ChannelRecord`` is created by a parser, mutated in place by the
stream validator (``is_active``) and the logo engine (``logo_url``), and
read by the deduplicator and the persistence sink.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from channelharvest.utils.text import NAME_MAX, URL_MAX, sanitize

DEFAULT_BITRATE = 128
MIN_BITRATE = 32
MAX_BITRATE = 320


class SourceName(str, Enum):
    """Identifiers of the directory clients that produce records."""

    RADIO_BROWSER = "radio-browser"
    IPTV_ORG = "iptv-org"
    PLAYLIST = "playlist"
    XIPH = "xiph"
    RADIOSS = "radioss"
    STATIC = "static"


class ChannelKind(str, Enum):
    RADIO = "radio"
    TV = "tv"


def canonical_stream_url(url: Optional[str]) -> str:
    """Dedup key for a stream URL: trimmed and lowercased."""
    if not url:
        return ""
    return url.strip().lower()


def normalize_bitrate(value: Any) -> int:
    """Parse a bitrate in kbps, falling back to 128 and clamping to [32, 320]."""
    try:
        bitrate = int(float(str(value).strip()))
    except (TypeError, ValueError):
        return DEFAULT_BITRATE
    if bitrate <= 0:
        return DEFAULT_BITRATE
    return max(MIN_BITRATE, min(MAX_BITRATE, bitrate))


@dataclass
class ChannelRecord:
    """One station or channel listing."""

    name: str
    stream_url: str
    source: SourceName
    kind: ChannelKind = ChannelKind.TV
    description: str = ""
    category: str = "Mixed"
    country: str = "Unknown"
    language: str = "Unknown"
    logo_url: str = ""
    quality: Union[str, int, None] = None
    is_active: bool = True
    playlist_source: str = ""
    website_url: str = ""
    epg_url: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.name = sanitize(self.name, NAME_MAX, default="Unknown")
        self.stream_url = sanitize(self.stream_url, URL_MAX)
        if not isinstance(self.source, SourceName):
            self.source = SourceName(self.source)
        if not isinstance(self.kind, ChannelKind):
            self.kind = ChannelKind(self.kind)

    @property
    def stream_key(self) -> str:
        return canonical_stream_url(self.stream_url)

    @property
    def has_logo(self) -> bool:
        return bool(self.logo_url and self.logo_url.strip())

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary with enum values flattened."""
        data = asdict(self)
        data["source"] = self.source.value
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChannelRecord":
        """Build a record from ``to_dict`` output, ignoring unknown keys."""
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})
