"""
Configuration for the code autofill service.

Defaults, then an optional JSON settings file (CODEFILL_SETTINGS), then
environment variables, which always take precedence.
"""

import json
import logging
import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

logger = logging.getLogger(__name__)


def _parse_bool(value, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "y", "on"):
            return True
        if lowered in ("0", "false", "no", "n", "off"):
            return False
    return default


# ==================== Config models ====================

class MailConfig(BaseModel):
    """Mail source settings"""
    gmail_access_token: str = Field(default="", description="Gmail OAuth access token")
    gmail_api_base: str = Field(default="https://gmail.googleapis.com/gmail/v1/users/me", description="Gmail API base URL")
    search_window_minutes: int = Field(default=5, ge=1, le=60, description="How far back to look for emails")
    max_results: int = Field(default=5, ge=1, le=50, description="Emails inspected per fetch")
    proxy: str = Field(default="", description="HTTP proxy for mail requests")


class ScanConfig(BaseModel):
    """Page scanning and polling settings"""
    enabled: bool = Field(default=True, description="Master switch for autofill")
    scan_interval_seconds: int = Field(default=2, ge=1, le=60, description="Delay between page rescans")
    poll_interval_seconds: int = Field(default=3, ge=1, le=60, description="Delay between mail polls")
    poll_timeout_seconds: int = Field(default=60, ge=1, le=600, description="Give up polling after this long")
    fill_mode: Literal["native", "typing"] = Field(default="native", description="native | typing")


class BrowserConfig(BaseModel):
    """Browser launch settings"""
    headless: bool = Field(default=False, description="Headless Chromium")
    proxy: str = Field(default="", description="Browser proxy server")
    user_agent: str = Field(default="", description="Override user agent")
    start_url: str = Field(default="", description="Page opened on start")
    timeout: int = Field(default=60, ge=1, le=600, description="Page load timeout (seconds)")


class AppConfig(BaseModel):
    mail: MailConfig = Field(default_factory=MailConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)


# ==================== Config Manager ====================

class ConfigManager:
    """Loads AppConfig from file + environment."""

    def __init__(self, settings_path: Optional[str] = None):
        self._settings_path = settings_path
        self._config: Optional[AppConfig] = None
        self.load()

    def load(self):
        data = self._load_from_file()

        try:
            self._config = AppConfig(**data)
        except Exception as e:
            logger.warning(f"[CONFIG] settings file invalid, using defaults: {e}")
            self._config = AppConfig()

        self._apply_env_overrides()

    def _settings_file(self) -> str:
        return self._settings_path or os.getenv("CODEFILL_SETTINGS", "")

    def _load_from_file(self) -> dict:
        path = self._settings_file()
        if not path:
            return {}
        if not os.path.isfile(path):
            logger.warning("[CONFIG] settings file not found: %s", path)
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[CONFIG] failed to read {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _env_int(self, name: str, low: int, high: int) -> Optional[int]:
        raw = os.getenv(name)
        if raw is None:
            return None
        try:
            val = max(low, min(high, int(raw)))
        except ValueError:
            logger.warning("[CONFIG] invalid %s=%r, ignored", name, raw)
            return None
        logger.info("[CONFIG] env override: %s=%d", name, val)
        return val

    def _apply_env_overrides(self) -> None:
        """Override config fields with environment variables when set."""
        env_token = os.getenv("GMAIL_ACCESS_TOKEN")
        if env_token is not None:
            self._config.mail.gmail_access_token = env_token.strip()
            logger.info("[CONFIG] env override: GMAIL_ACCESS_TOKEN=%s", "***" if env_token.strip() else "(empty)")

        env_mail_proxy = os.getenv("MAIL_PROXY")
        if env_mail_proxy is not None:
            self._config.mail.proxy = env_mail_proxy.strip()
            logger.info("[CONFIG] env override: MAIL_PROXY=%s", "***" if env_mail_proxy.strip() else "(empty)")

        val = self._env_int("SCAN_INTERVAL_SECONDS", 1, 60)
        if val is not None:
            self._config.scan.scan_interval_seconds = val

        val = self._env_int("POLL_INTERVAL_SECONDS", 1, 60)
        if val is not None:
            self._config.scan.poll_interval_seconds = val

        val = self._env_int("POLL_TIMEOUT_SECONDS", 1, 600)
        if val is not None:
            self._config.scan.poll_timeout_seconds = val

        env_enabled = os.getenv("CODEFILL_ENABLED")
        if env_enabled is not None:
            val = _parse_bool(env_enabled, self._config.scan.enabled)
            self._config.scan.enabled = val
            logger.info("[CONFIG] env override: CODEFILL_ENABLED=%s", val)

        env_fill_mode = os.getenv("FILL_MODE")
        if env_fill_mode is not None:
            mode = env_fill_mode.strip().lower()
            if mode in ("native", "typing"):
                self._config.scan.fill_mode = mode
                logger.info("[CONFIG] env override: FILL_MODE=%s", mode)
            else:
                logger.warning("[CONFIG] invalid FILL_MODE=%r, ignored", env_fill_mode)

        env_headless = os.getenv("BROWSER_HEADLESS")
        if env_headless is not None:
            val = _parse_bool(env_headless, self._config.browser.headless)
            self._config.browser.headless = val
            logger.info("[CONFIG] env override: BROWSER_HEADLESS=%s", val)

        env_proxy = os.getenv("BROWSER_PROXY")
        if env_proxy is not None:
            self._config.browser.proxy = env_proxy.strip()
            logger.info("[CONFIG] env override: BROWSER_PROXY=%s", "***" if env_proxy.strip() else "(empty)")

        env_start_url = os.getenv("START_URL")
        if env_start_url is not None:
            self._config.browser.start_url = env_start_url.strip()
            logger.info("[CONFIG] env override: START_URL=%s", env_start_url.strip())

    def reload(self):
        self.load()

    @property
    def config(self) -> AppConfig:
        return self._config


# ==================== Global singleton ====================

config_manager = ConfigManager()


class _ConfigProxy:
    """Always returns the latest loaded config."""
    @property
    def mail(self):
        return config_manager.config.mail

    @property
    def scan(self):
        return config_manager.config.scan

    @property
    def browser(self):
        return config_manager.config.browser


config = _ConfigProxy()
