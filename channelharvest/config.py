"""
Configuration management for ChannelHarvest.

Handles loading, validation, and access to harvester configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

# Global configuration instance
_config: Optional["HarvestConfig"] = None

DEFAULT_USER_AGENT = "ChannelHarvest/1.0 (+https://github.com/channelharvest/channelharvest)"


class HttpConfig(BaseModel):
    """Shared HTTP client settings."""
    user_agent: str = DEFAULT_USER_AGENT
    max_playlist_bytes: int = 50 * 1024 * 1024
    max_json_bytes: int = 100 * 1024 * 1024
    max_scrape_bytes: int = 1024 * 1024


class TimeoutsConfig(BaseModel):
    """Per-operation network timeouts in seconds."""
    probe: float = 5.0
    existence: float = 2.0
    scrape: float = 3.0
    bulk: float = 20.0
    discovery: float = 30.0


class RadioBrowserConfig(BaseModel):
    """radio-browser.info directory configuration."""
    enabled: bool = True
    priority: int = 1
    api_domain: str = "all.api.radio-browser.info"
    fallback_servers: list[str] = Field(default_factory=lambda: [
        "https://de1.api.radio-browser.info",
        "https://de2.api.radio-browser.info",
        "https://fi1.api.radio-browser.info",
        "https://nl1.api.radio-browser.info",
        "https://at1.api.radio-browser.info",
    ])
    retries: int = 3
    max_retries: int = 5
    batch_size: int = 10000
    max_batches: int = 80  # 800k stations
    servers_ttl_seconds: int = 3600
    report_clicks: bool = False


class IptvOrgConfig(BaseModel):
    """iptv-org API configuration."""
    enabled: bool = True
    priority: int = 2
    api_base: str = "https://iptv-org.github.io/api"
    retries: int = 3
    max_retries: int = 3
    cache_ttl_hours: int = 24


class PlaylistFeedConfig(BaseModel):
    """A single public M3U playlist feed."""
    name: str
    url: str
    category: str = "Mixed"
    country: str = "Worldwide"
    priority: int = 999


def _default_playlist_feeds() -> list[PlaylistFeedConfig]:
    return [
        PlaylistFeedConfig(
            name="IPTV ORG (Primary)",
            url="https://iptv-org.github.io/iptv/index.m3u",
            priority=1,
        ),
        PlaylistFeedConfig(
            name="IPTV ORG (Fallback - GitHub)",
            url="https://raw.githubusercontent.com/iptv-org/iptv/master/index.m3u",
            priority=2,
        ),
        PlaylistFeedConfig(
            name="Free-TV",
            url="https://raw.githubusercontent.com/Free-TV/IPTV/master/playlist.m3u8",
            priority=3,
        ),
    ]


class PlaylistsConfig(BaseModel):
    """Public M3U playlist source configuration."""
    enabled: bool = True
    priority: int = 3
    feeds: list[PlaylistFeedConfig] = Field(default_factory=_default_playlist_feeds)
    retries: int = 2
    max_retries: int = 2
    expand_nested: bool = True
    max_nested_depth: int = 2


class XiphConfig(BaseModel):
    """Xiph/Icecast directory configuration."""
    enabled: bool = True
    priority: int = 4
    url: str = "https://dir.xiph.org/yp.xml"
    retries: int = 2
    max_retries: int = 2


class RadiossConfig(BaseModel):
    """radioss.app station list configuration."""
    enabled: bool = False  # Cloudflare frequently blocks server-side fetches
    priority: int = 5
    url: str = "https://stations.radioss.app/json/stations"
    retries: int = 2
    max_retries: int = 2


class SourcesConfig(BaseModel):
    """Directory sources configuration."""
    radio_browser: RadioBrowserConfig = Field(default_factory=RadioBrowserConfig)
    iptv_org: IptvOrgConfig = Field(default_factory=IptvOrgConfig)
    playlists: PlaylistsConfig = Field(default_factory=PlaylistsConfig)
    xiph: XiphConfig = Field(default_factory=XiphConfig)
    radioss: RadiossConfig = Field(default_factory=RadiossConfig)


class FiltersConfig(BaseModel):
    """Directory filters. Unset filters select everything."""
    country: Optional[str] = None
    category: Optional[str] = None
    language: Optional[str] = None


class ValidationConfig(BaseModel):
    """Stream reachability validation settings."""
    max_concurrent: int = 10
    sniff_bytes: int = 2048
    max_redirects: int = 5


class LogosConfig(BaseModel):
    """Logo resolution settings."""
    verify_existence: bool = True
    avatar_base_url: str = "https://ui-avatars.com/api/"
    total_budget: float = 15.0  # seconds for the network part of the chain
    max_concurrent: int = 10


class RunConfig(BaseModel):
    """Run-level toggles consumed by the orchestrator."""
    mode: str = "full"  # full, minimal, skip
    skip_online_fetch: bool = False
    skip_validation: bool = False
    skip_enrichment: bool = False
    minimal_limit: int = 50
    batch_size: int = 100
    max_concurrent_sources: int = 3
    seed_file: Optional[str] = None


class StorageConfig(BaseModel):
    """Persistence sink configuration."""
    url: str = "sqlite:///./channelharvest.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/channelharvest.log"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class HarvestConfig(BaseModel):
    """Main ChannelHarvest configuration."""
    http: HttpConfig = Field(default_factory=HttpConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    logos: LogosConfig = Field(default_factory=LogosConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> HarvestConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to channelharvest.yaml
            in the working directory or project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        possible_paths = [
            Path("channelharvest.yaml"),
            Path(__file__).parent.parent / "channelharvest.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = HarvestConfig(**config_data)
    return _config


def get_config() -> HarvestConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> HarvestConfig:
    """Reload configuration from disk."""
    global _config
    _config = None
    return load_config()


# Map of environment variables to config paths
ENV_MAP: dict[str, tuple[str, ...]] = {
    "CHANNELHARVEST_MODE": ("run", "mode"),
    "CHANNELHARVEST_MINIMAL_LIMIT": ("run", "minimal_limit"),
    "CHANNELHARVEST_BATCH_SIZE": ("run", "batch_size"),
    "CHANNELHARVEST_SKIP_ONLINE_FETCH": ("run", "skip_online_fetch"),
    "CHANNELHARVEST_SKIP_VALIDATION": ("run", "skip_validation"),
    "CHANNELHARVEST_SKIP_ENRICHMENT": ("run", "skip_enrichment"),
    "CHANNELHARVEST_SEED_FILE": ("run", "seed_file"),
    "CHANNELHARVEST_DATABASE_URL": ("storage", "url"),
    "CHANNELHARVEST_LOG_LEVEL": ("logging", "level"),
    "CHANNELHARVEST_USER_AGENT": ("http", "user_agent"),
    "CHANNELHARVEST_COUNTRY": ("filters", "country"),
    "CHANNELHARVEST_CATEGORY": ("filters", "category"),
    "CHANNELHARVEST_LANGUAGE": ("filters", "language"),
}

# Variables whose values must stay strings even when they look numeric
_STRING_ENV_VARS = {
    "CHANNELHARVEST_MODE",
    "CHANNELHARVEST_SEED_FILE",
    "CHANNELHARVEST_DATABASE_URL",
    "CHANNELHARVEST_LOG_LEVEL",
    "CHANNELHARVEST_USER_AGENT",
    "CHANNELHARVEST_COUNTRY",
    "CHANNELHARVEST_CATEGORY",
    "CHANNELHARVEST_LANGUAGE",
}


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    for env_var, path in ENV_MAP.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        if env_var in _STRING_ENV_VARS:
            _set_nested(overrides, path, value)
        else:
            _set_nested(overrides, path, _parse_env_value(value))

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Integer first so that "1"/"0" limits are not read as booleans
    try:
        return int(value)
    except ValueError:
        pass

    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class _ConfigProxy:
    """
    Proxy object that provides lazy access to configuration.

    Allows modules to import `config` directly:
        from channelharvest.config import config
        config.run.mode
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(get_config(), name)

    def __repr__(self) -> str:
        return f"<ConfigProxy for {get_config()}>"


config = _ConfigProxy()
