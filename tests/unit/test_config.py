"""
Unit tests for configuration module.
"""

import pytest

from channelharvest.config import (
    HarvestConfig,
    HttpConfig,
    LoggingConfig,
    RadioBrowserConfig,
    RunConfig,
    TimeoutsConfig,
    _parse_env_value,
    config as proxy,
    get_config,
    load_config,
    reload_config,
)


@pytest.mark.unit
class TestSectionDefaults:
    """Tests for section default values."""

    def test_http_defaults(self):
        config = HttpConfig()

        assert "ChannelHarvest" in config.user_agent
        assert config.max_playlist_bytes == 50 * 1024 * 1024
        assert config.max_json_bytes == 100 * 1024 * 1024
        assert config.max_scrape_bytes == 1024 * 1024

    def test_timeout_defaults(self):
        config = TimeoutsConfig()

        assert config.probe == 5
        assert config.existence == 2
        assert config.scrape == 3
        assert config.bulk == 20

    def test_radio_browser_defaults(self):
        config = RadioBrowserConfig()

        assert config.api_domain == "all.api.radio-browser.info"
        assert config.batch_size == 10000
        assert config.retries == 3
        assert config.max_retries == 5
        assert len(config.fallback_servers) >= 2

    def test_run_defaults(self):
        config = RunConfig()

        assert config.mode == "full"
        assert config.minimal_limit == 50
        assert config.batch_size == 100
        assert config.skip_validation is False

    def test_logging_defaults(self):
        config = LoggingConfig()

        assert config.level == "INFO"
        assert "%(asctime)s" in config.format

    def test_radioss_disabled_by_default(self):
        config = HarvestConfig()

        assert config.sources.radioss.enabled is False
        assert config.sources.radio_browser.enabled is True

    def test_default_feeds_sorted_by_priority(self):
        feeds = HarvestConfig().sources.playlists.feeds

        assert feeds
        assert [f.priority for f in feeds] == sorted(f.priority for f in feeds)


@pytest.mark.unit
class TestLoadConfig:
    """Tests for config loading functions."""

    def test_load_from_yaml(self, temp_config_file):
        config = load_config(str(temp_config_file))

        assert config.run.mode == "minimal"
        assert config.run.minimal_limit == 5
        assert config.filters.country == "DE"
        assert config.sources.radioss.enabled is True
        assert config.logging.level == "DEBUG"
        # Untouched sections keep defaults
        assert config.sources.iptv_org.enabled is True

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.yaml"))

        assert isinstance(config, HarvestConfig)
        assert config.run.mode == "full"

    def test_env_overrides(self, mock_env_vars, tmp_path):
        config = load_config(str(tmp_path / "missing.yaml"))

        assert config.run.mode == "minimal"
        assert config.run.minimal_limit == 7
        assert config.run.skip_validation is True
        assert config.storage.url == "sqlite:///:memory:"

    def test_env_overrides_yaml(self, temp_config_file, monkeypatch):
        monkeypatch.setenv("CHANNELHARVEST_COUNTRY", "FR")

        config = load_config(str(temp_config_file))

        assert config.filters.country == "FR"

    def test_numeric_looking_strings_stay_strings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHANNELHARVEST_CATEGORY", "1980s")
        monkeypatch.setenv("CHANNELHARVEST_USER_AGENT", "123")

        config = load_config(str(tmp_path / "missing.yaml"))

        assert config.filters.category == "1980s"
        assert config.http.user_agent == "123"

    def test_get_config_caching(self):
        config1 = get_config()
        config2 = get_config()

        assert config1 is config2

    def test_reload_config_creates_new_instance(self):
        config1 = get_config()
        config2 = reload_config()

        assert config1 is not config2

    def test_lazy_proxy_reads_current_config(self, temp_config_file):
        load_config(str(temp_config_file))

        assert proxy.run.mode == "minimal"
        assert proxy.filters.country == "DE"


@pytest.mark.unit
class TestParseEnvValue:
    """Tests for environment value coercion."""

    @pytest.mark.parametrize("raw,expected", [
        ("1", 1),
        ("0", 0),
        ("true", True),
        ("OFF", False),
        ("2.5", 2.5),
        ("minimal", "minimal"),
    ])
    def test_parse(self, raw, expected):
        assert _parse_env_value(raw) == expected
