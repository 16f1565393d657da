"""
Chromium page factory
"""
import os
import random
from typing import Optional

from DrissionPage import ChromiumOptions, ChromiumPage

# common Chromium locations on Linux
CHROMIUM_PATHS = [
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
]


def find_chromium_path() -> Optional[str]:
    for path in CHROMIUM_PATHS:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    return None


def random_user_agent() -> str:
    v = random.choice(["120.0.0.0", "121.0.0.0", "122.0.0.0"])
    return f"Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{v} Safari/537.36"


def build_options(
    headless: bool = False,
    proxy: str = "",
    user_agent: str = "",
) -> ChromiumOptions:
    options = ChromiumOptions()

    chromium_path = find_chromium_path()
    if chromium_path:
        options.set_browser_path(chromium_path)

    options.set_argument("--no-sandbox")
    options.set_argument("--disable-dev-shm-usage")
    options.set_argument("--disable-setuid-sandbox")
    options.set_argument("--window-size=1280,800")
    options.set_user_agent(user_agent or random_user_agent())

    if proxy:
        options.set_argument(f"--proxy-server={proxy}")

    if headless:
        options.set_argument("--headless=new")
        options.set_argument("--disable-gpu")
        options.set_argument("--no-first-run")

    options.auto_port()
    return options


def create_page(
    headless: bool = False,
    proxy: str = "",
    user_agent: str = "",
    timeout: int = 60,
) -> ChromiumPage:
    page = ChromiumPage(build_options(headless=headless, proxy=proxy, user_agent=user_agent))
    page.set.timeouts(timeout)
    return page
