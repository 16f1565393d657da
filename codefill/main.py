"""
codefill entry point.

- Loads environment variables and configuration
- Opens Chromium on the configured start page
- Runs the scan loop until SIGTERM/SIGINT
"""

import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

# ---- logging setup ----

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("codefill")


def _mail_log(level: str, message: str) -> None:
    getattr(logging.getLogger("codefill.mail"), level, logger.info)(f"[MAIL] {message}")


async def main() -> None:
    logger.info("=" * 50)
    logger.info("codefill starting")
    logger.info("=" * 50)

    from codefill.config import config
    if not config.mail.gmail_access_token:
        logger.error("[INIT] GMAIL_ACCESS_TOKEN not configured, cannot start")
        sys.exit(1)
    logger.info(
        "[INIT] config loaded: enabled=%s, scan=%ds, poll=%ds/%ds, headless=%s, fill_mode=%s",
        config.scan.enabled,
        config.scan.scan_interval_seconds,
        config.scan.poll_interval_seconds,
        config.scan.poll_timeout_seconds,
        config.browser.headless,
        config.scan.fill_mode,
    )

    from codefill.gmail_client import GmailClient
    mail_source = GmailClient(
        access_token=config.mail.gmail_access_token,
        base_url=config.mail.gmail_api_base,
        proxy=config.mail.proxy,
        search_window_minutes=config.mail.search_window_minutes,
        max_results=config.mail.max_results,
        log_callback=_mail_log,
    )

    from codefill.browser import create_page
    page = create_page(
        headless=config.browser.headless,
        proxy=config.browser.proxy,
        user_agent=config.browser.user_agent,
        timeout=config.browser.timeout,
    )
    start_url = sys.argv[1] if len(sys.argv) > 1 else config.browser.start_url
    if start_url:
        logger.info("[INIT] opening %s", start_url)
        page.get(start_url, timeout=config.browser.timeout)

    from codefill.orchestrator import PageOrchestrator
    orchestrator = PageOrchestrator(page, mail_source)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _shutdown_handler():
        logger.info("[SHUTDOWN] signal received, stopping...")
        stop_event.set()

    if os.name == "posix":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _shutdown_handler)

    try:
        await orchestrator.run(stop_event)
    except (KeyboardInterrupt, SystemExit):
        _shutdown_handler()
    finally:
        try:
            page.quit()
        except Exception:
            pass

    logger.info("[SHUTDOWN] codefill stopped")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
