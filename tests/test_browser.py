"""
Tests for Chromium option assembly (no browser launched).
"""

import pytest

from codefill import browser


class FakeOptions:
    def __init__(self):
        self.arguments = []
        self.browser_path = None
        self.user_agent = None
        self.auto_ported = False

    def set_browser_path(self, path):
        self.browser_path = path

    def set_argument(self, arg):
        self.arguments.append(arg)

    def set_user_agent(self, user_agent):
        self.user_agent = user_agent

    def auto_port(self):
        self.auto_ported = True


@pytest.fixture
def fake_options(monkeypatch):
    monkeypatch.setattr(browser, "ChromiumOptions", FakeOptions)
    monkeypatch.setattr(browser, "find_chromium_path", lambda: "/usr/bin/chromium")


class TestBuildOptions:

    def test_defaults(self, fake_options):
        options = browser.build_options()
        assert options.browser_path == "/usr/bin/chromium"
        assert "--no-sandbox" in options.arguments
        assert "--headless=new" not in options.arguments
        assert not any(arg.startswith("--proxy-server") for arg in options.arguments)
        assert "Chrome/" in options.user_agent
        assert options.auto_ported

    def test_headless_and_proxy(self, fake_options):
        options = browser.build_options(headless=True, proxy="http://127.0.0.1:8080", user_agent="TestAgent/1.0")
        assert "--headless=new" in options.arguments
        assert "--disable-gpu" in options.arguments
        assert "--proxy-server=http://127.0.0.1:8080" in options.arguments
        assert options.user_agent == "TestAgent/1.0"

    def test_no_chromium_found(self, monkeypatch):
        monkeypatch.setattr(browser, "ChromiumOptions", FakeOptions)
        monkeypatch.setattr(browser, "find_chromium_path", lambda: None)
        assert browser.build_options().browser_path is None


class TestFindChromiumPath:

    def test_first_executable_wins(self, monkeypatch):
        monkeypatch.setattr(browser, "CHROMIUM_PATHS", ["/missing/chromium", "/opt/chrome"])
        monkeypatch.setattr(browser.os.path, "isfile", lambda p: p == "/opt/chrome")
        monkeypatch.setattr(browser.os, "access", lambda p, mode: True)
        assert browser.find_chromium_path() == "/opt/chrome"
