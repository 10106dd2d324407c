"""Directory source clients

This module provides clients for:
- radio-browser.info (DNS-discovered mirror pool, paginated)
- iptv-org API (streams joined with channels and logos)
- Public M3U playlist feeds
- Xiph/Icecast directory
- radioss.app station list
- Local seed files
"""

from channelharvest.config import HarvestConfig
from channelharvest.events import FailureCollector
from channelharvest.sources.base import (
    DirectorySource,
    SourceDescriptor,
    SourceFilters,
    SourceResult,
    SourceStatus,
)
from channelharvest.sources.iptv_org import IptvOrgSource
from channelharvest.sources.playlists import PlaylistSource
from channelharvest.sources.radio_browser import RadioBrowserSource
from channelharvest.sources.radioss import RadiossSource
from channelharvest.sources.static import StaticSource
from channelharvest.sources.transport import HttpTransport
from channelharvest.sources.xiph import XiphSource

SOURCE_CLASSES = (
    RadioBrowserSource,
    IptvOrgSource,
    PlaylistSource,
    XiphSource,
    RadiossSource,
)


def build_sources(
    transport: HttpTransport,
    config: HarvestConfig,
    failures: FailureCollector,
    limit: int | None = None,
) -> list[DirectorySource]:
    """Instantiate every online directory client, ordered by priority."""
    sources = [cls(transport, config, failures, limit) for cls in SOURCE_CLASSES]
    return sorted(sources, key=lambda source: source.priority)


__all__ = [
    "DirectorySource",
    "HttpTransport",
    "IptvOrgSource",
    "PlaylistSource",
    "RadioBrowserSource",
    "RadiossSource",
    "SourceDescriptor",
    "SourceFilters",
    "SourceResult",
    "SourceStatus",
    "StaticSource",
    "XiphSource",
    "build_sources",
]
