"""
Mock API Responses

Pre-defined directory responses for testing without network access.
"""

from .iptv_org_responses import (
    IPTV_ORG_CHANNELS,
    IPTV_ORG_LOGOS,
    IPTV_ORG_STREAMS,
)
from .playlist_responses import (
    HLS_MEDIA_PLAYLIST,
    INDEX_PLAYLIST,
    NESTED_CHILD,
    NESTED_PARENT,
    SELF_REFERENCING,
    SIMPLE_PLAYLIST,
    XIPH_DIRECTORY,
)
from .radio_browser_responses import RADIO_BROWSER_STATIONS

__all__ = [
    "HLS_MEDIA_PLAYLIST",
    "INDEX_PLAYLIST",
    "IPTV_ORG_CHANNELS",
    "IPTV_ORG_LOGOS",
    "IPTV_ORG_STREAMS",
    "NESTED_CHILD",
    "NESTED_PARENT",
    "RADIO_BROWSER_STATIONS",
    "SELF_REFERENCING",
    "SIMPLE_PLAYLIST",
    "XIPH_DIRECTORY",
]
