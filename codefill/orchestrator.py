"""
Page orchestrator: scan loop, session state and code delivery.

- Rescans the page periodically and classifies code fields
- Asks the mail source for a code once a field shows up, then polls
- Drops results that belong to a page the user has already left
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from codefill.autofill_driver import AutofillDriver, StaleFieldError
from codefill.config import ScanConfig, config
from codefill.field_classifier import CandidateField, classify
from codefill.gmail_client import TokenExpiredError
from codefill.page_snapshot import capture_snapshot

logger = logging.getLogger("codefill.orchestrator")


# ==================== Request / response contract ====================

class RequestKind(str, Enum):
    GET_STATUS = "get_status"
    FETCH_CODE = "fetch_code"
    CODE_FIELD_DETECTED = "code_field_detected"


@dataclass
class CodeRequest:
    kind: RequestKind
    generation: Optional[int] = None


@dataclass
class CodeResult:
    success: bool
    code: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None
    polling: bool = False


@dataclass
class StatusResult:
    success: bool
    enabled: bool
    authenticated: bool
    email: Optional[str] = None
    url: str = ""
    field_kind: Optional[str] = None
    polling: bool = False


# ==================== Session state ====================

@dataclass
class SessionState:
    """Per-page detection state; reset whenever the URL changes."""
    url: str = ""
    generation: int = 0
    detected_field: Optional[CandidateField] = None
    notified: bool = False
    polling: bool = False

    def reset(self, url: str) -> None:
        self.url = url
        self.generation += 1
        self.detected_field = None
        self.notified = False
        self.polling = False


# ==================== Orchestrator ====================

class PageOrchestrator:
    def __init__(
        self,
        page,
        mail_source,
        driver: Optional[AutofillDriver] = None,
        scan_config: Optional[ScanConfig] = None,
    ) -> None:
        self.page = page
        self.mail_source = mail_source
        self.scan_config = scan_config or config.scan
        self.driver = driver or AutofillDriver(page, mode=self.scan_config.fill_mode)
        self.state = SessionState()
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._poll_task: Optional[asyncio.Task] = None
        self._email: Optional[str] = None
        self._handlers: Dict[RequestKind, Callable[[CodeRequest], Awaitable]] = {
            RequestKind.GET_STATUS: self._handle_get_status,
            RequestKind.FETCH_CODE: self._handle_fetch_code,
            RequestKind.CODE_FIELD_DETECTED: self._handle_code_field_detected,
        }

    # ---- dispatch ----

    async def dispatch(self, request: CodeRequest):
        handler = self._handlers.get(request.kind)
        if handler is None:
            return CodeResult(success=False, error=f"unknown request: {request.kind}")
        try:
            return await handler(request)
        except Exception as exc:
            logger.error("[DISPATCH] %s failed: %s", request.kind, exc)
            return CodeResult(success=False, error=str(exc))

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    # ---- handlers ----

    async def _account_email(self) -> Optional[str]:
        if self._email is None:
            try:
                profile = await self._run_blocking(self.mail_source.get_profile)
            except Exception as exc:
                logger.warning("[MAIL] profile lookup failed: %s", exc)
                return None
            self._email = profile.get("emailAddress") or None
        return self._email

    async def _handle_get_status(self, request: CodeRequest) -> StatusResult:
        field = self.state.detected_field
        authenticated = bool(getattr(self.mail_source, "access_token", ""))
        return StatusResult(
            success=True,
            enabled=self.scan_config.enabled,
            authenticated=authenticated,
            email=await self._account_email() if authenticated else None,
            url=self.state.url,
            field_kind=field.kind.value if field else None,
            polling=self.state.polling,
        )

    async def _handle_fetch_code(self, request: CodeRequest) -> CodeResult:
        message = await self._run_blocking(self.mail_source.fetch_verification_code)
        if not message:
            return CodeResult(success=True)
        return CodeResult(success=True, code=message.code, source=message.subject or "Email")

    async def _handle_code_field_detected(self, request: CodeRequest) -> CodeResult:
        if not self.scan_config.enabled:
            return CodeResult(success=False, error="autofill disabled")

        generation = self.state.generation if request.generation is None else request.generation
        try:
            result = await self._handle_fetch_code(request)
        except TokenExpiredError:
            raise
        except Exception as exc:
            logger.warning("[MAIL] immediate fetch failed: %s", exc)
            result = CodeResult(success=False, error=str(exc))
        if result.code:
            await self._deliver(generation, result)
            return result

        self._start_polling(generation)
        return CodeResult(success=True, polling=True)

    # ---- delivery & polling ----

    async def _deliver(self, generation: int, result: CodeResult) -> bool:
        field = self.state.detected_field
        if generation != self.state.generation or field is None:
            logger.info("[FILL] page changed, discarding code from %s", result.source)
            return False
        try:
            await self._run_blocking(self.driver.fill, field, result.code)
        except StaleFieldError as exc:
            logger.warning("[FILL] %s, rescanning", exc)
            self.state.detected_field = None
            self.state.notified = False
            return False
        logger.info("[FILL] code filled from \"%s\"", result.source)
        return True

    def _start_polling(self, generation: int) -> None:
        if self.state.polling:
            return
        self.state.polling = True
        self._poll_task = asyncio.create_task(self._poll_for_code(generation))

    async def _poll_for_code(self, generation: int) -> None:
        interval = self.scan_config.poll_interval_seconds
        timeout = self.scan_config.poll_timeout_seconds
        elapsed = 0
        logger.info("[MAIL] waiting for verification email (timeout %ds, interval %ds)", timeout, interval)
        try:
            while elapsed < timeout:
                await asyncio.sleep(interval)
                elapsed += interval
                if generation != self.state.generation:
                    logger.info("[MAIL] page changed, polling stopped")
                    return
                try:
                    result = await self._handle_fetch_code(CodeRequest(RequestKind.FETCH_CODE, generation))
                except TokenExpiredError as exc:
                    logger.error("[MAIL] %s, polling stopped", exc)
                    return
                except Exception as exc:
                    logger.warning("[MAIL] fetch failed: %s", exc)
                    continue
                if result.code:
                    await self._deliver(generation, result)
                    return
            logger.warning("[MAIL] no verification code found in recent emails")
        finally:
            if generation == self.state.generation:
                self.state.polling = False

    # ---- scanning ----

    async def scan_once(self) -> Optional[CandidateField]:
        try:
            snapshot = await self._run_blocking(capture_snapshot, self.page)
        except Exception as exc:
            logger.warning("[SCAN] snapshot failed: %s", exc)
            return None

        if snapshot.url != self.state.url:
            if self.state.url:
                logger.info("[SCAN] navigated to %s, session reset", snapshot.url)
            self.state.reset(snapshot.url)

        if self.state.notified:
            return self.state.detected_field

        field = classify(snapshot)
        if field is None:
            return None

        self.state.detected_field = field
        self.state.notified = True
        logger.info("[SCAN] %s code field detected (%d input(s))", field.kind.value, len(field))

        result = await self.dispatch(CodeRequest(RequestKind.CODE_FIELD_DETECTED, self.state.generation))
        if result.code:
            logger.info("[SCAN] code %s delivered", result.code)
        elif result.polling:
            logger.info("[SCAN] waiting for verification email...")
        elif not result.success:
            logger.warning("[SCAN] code lookup failed: %s", result.error)
        return field

    async def run(self, stop_event: asyncio.Event) -> None:
        """Scan until stop_event is set."""
        logger.info("[SCAN] loop started (interval %ds)", self.scan_config.scan_interval_seconds)
        try:
            while not stop_event.is_set():
                await self.scan_once()
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.scan_config.scan_interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.close()
            logger.info("[SCAN] loop stopped")

    async def close(self) -> None:
        task = self._poll_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
        self._executor.shutdown(wait=False)
