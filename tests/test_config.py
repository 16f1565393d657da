"""
Tests for settings file loading and environment overrides.
"""

import json

import pytest

from codefill.config import AppConfig, ConfigManager, _parse_bool

ENV_VARS = (
    "CODEFILL_SETTINGS",
    "GMAIL_ACCESS_TOKEN",
    "MAIL_PROXY",
    "SCAN_INTERVAL_SECONDS",
    "POLL_INTERVAL_SECONDS",
    "POLL_TIMEOUT_SECONDS",
    "CODEFILL_ENABLED",
    "FILL_MODE",
    "BROWSER_HEADLESS",
    "BROWSER_PROXY",
    "START_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings_file(tmp_path):
    def _write(data):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
        return str(path)
    return _write


class TestParseBool:

    @pytest.mark.parametrize("raw", ["1", "true", "Yes", " on "])
    def test_truthy(self, raw):
        assert _parse_bool(raw, False) is True

    @pytest.mark.parametrize("raw", ["0", "false", "NO", "off"])
    def test_falsy(self, raw):
        assert _parse_bool(raw, True) is False

    def test_unknown_keeps_default(self):
        assert _parse_bool("maybe", True) is True
        assert _parse_bool(None, False) is False


class TestConfigManager:

    def test_defaults(self):
        config = ConfigManager().config
        assert config == AppConfig()
        assert config.scan.enabled
        assert config.scan.fill_mode == "native"

    def test_settings_file(self, settings_file):
        path = settings_file({
            "mail": {"gmail_access_token": "abc", "max_results": 10},
            "scan": {"poll_timeout_seconds": 120},
        })
        config = ConfigManager(path).config
        assert config.mail.gmail_access_token == "abc"
        assert config.mail.max_results == 10
        assert config.scan.poll_timeout_seconds == 120

    def test_settings_path_from_env(self, settings_file, monkeypatch):
        monkeypatch.setenv("CODEFILL_SETTINGS", settings_file({"browser": {"headless": True}}))
        assert ConfigManager().config.browser.headless

    def test_invalid_settings_fall_back_to_defaults(self, settings_file):
        path = settings_file({"scan": {"poll_interval_seconds": 0}})
        assert ConfigManager(path).config == AppConfig()

    def test_unknown_fill_mode_in_file_falls_back_to_defaults(self, settings_file):
        path = settings_file({"scan": {"fill_mode": "paste"}})
        assert ConfigManager(path).config == AppConfig()

    def test_unreadable_settings(self, settings_file):
        assert ConfigManager(settings_file("{not json")).config == AppConfig()

    def test_missing_settings(self, tmp_path):
        assert ConfigManager(str(tmp_path / "nope.json")).config == AppConfig()

    def test_env_beats_file(self, settings_file, monkeypatch):
        path = settings_file({"mail": {"gmail_access_token": "from-file"}})
        monkeypatch.setenv("GMAIL_ACCESS_TOKEN", " from-env ")
        assert ConfigManager(path).config.mail.gmail_access_token == "from-env"

    def test_int_overrides_clamped(self, monkeypatch):
        monkeypatch.setenv("SCAN_INTERVAL_SECONDS", "0")
        monkeypatch.setenv("POLL_TIMEOUT_SECONDS", "9999")
        scan = ConfigManager().config.scan
        assert scan.scan_interval_seconds == 1
        assert scan.poll_timeout_seconds == 600

    def test_invalid_int_ignored(self, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "soon")
        assert ConfigManager().config.scan.poll_interval_seconds == 3

    def test_bool_and_mode_overrides(self, monkeypatch):
        monkeypatch.setenv("CODEFILL_ENABLED", "off")
        monkeypatch.setenv("FILL_MODE", "Typing")
        monkeypatch.setenv("BROWSER_HEADLESS", "yes")
        config = ConfigManager().config
        assert not config.scan.enabled
        assert config.scan.fill_mode == "typing"
        assert config.browser.headless

    def test_invalid_fill_mode_ignored(self, monkeypatch):
        monkeypatch.setenv("FILL_MODE", "paste")
        assert ConfigManager().config.scan.fill_mode == "native"

    def test_reload_picks_up_env(self, monkeypatch):
        manager = ConfigManager()
        monkeypatch.setenv("START_URL", "https://example.com/login")
        manager.reload()
        assert manager.config.browser.start_url == "https://example.com/login"
