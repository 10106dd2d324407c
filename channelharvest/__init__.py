"""
ChannelHarvest - radio and TV channel harvester

Collects stations and channels from public directories:
- radio-browser.info, iptv-org, Xiph and radioss directories
- Public M3U playlist feeds (with nested playlist expansion)
- Local seed files

Records are validated, given a logo, deduplicated by stream URL and
upserted into a database.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from channelharvest.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
