from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional
from urllib.parse import quote

import requests

from codefill.code_extractor import find_code_in_messages
from codefill.mail_utils import extract_body_text, extract_subject

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"

# Gmail search terms that verification emails tend to contain
VERIFICATION_QUERIES = [
    "verification code",
    "verify your",
    "confirmation code",
    "security code",
    "one-time",
    "OTP",
    "login code",
    "sign in code",
    "authentication code",
    "2FA",
    "two-factor",
]


class GmailApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenExpiredError(GmailApiError):
    """The access token was rejected (HTTP 401)."""


@dataclass
class MailMessage:
    message_id: str
    subject: str
    body: str
    received_at: Optional[datetime] = None
    code: Optional[str] = None


class GmailClient:
    """Read-only Gmail client that yields recent (subject, body) pairs."""

    def __init__(
        self,
        access_token: str,
        base_url: str = GMAIL_API_BASE,
        proxy: str = "",
        token_refresher: Optional[Callable[[], str]] = None,
        search_window_minutes: int = 5,
        max_results: int = 5,
        log_callback=None,
    ) -> None:
        self.access_token = (access_token or "").strip()
        self.base_url = base_url.rstrip("/")
        self.proxies = {"http": proxy, "https": proxy} if proxy else None
        self.token_refresher = token_refresher
        self.search_window_minutes = search_window_minutes
        self.max_results = max_results
        self.log_callback = log_callback

    def _request(self, endpoint: str) -> dict:
        url = f"{self.base_url}/{endpoint}"
        res = requests.get(
            url,
            headers={"Authorization": f"Bearer {self.access_token}"},
            proxies=self.proxies,
            timeout=15,
        )
        if res.status_code == 401:
            raise TokenExpiredError("access token expired", status_code=401)
        if res.status_code != 200:
            raise GmailApiError(f"Gmail API error: HTTP {res.status_code}", status_code=res.status_code)
        return res.json() if res.content else {}

    def search_verification_emails(self, minutes_ago: Optional[int] = None, max_results: Optional[int] = None) -> List[dict]:
        """Ids of recent emails that look like verification mail, newest first."""
        minutes_ago = minutes_ago or self.search_window_minutes
        max_results = max_results or self.max_results
        after_epoch = int((datetime.now() - timedelta(minutes=minutes_ago)).timestamp())
        query = f"after:{after_epoch} {{{' '.join(VERIFICATION_QUERIES)}}}"
        data = self._request(f"messages?q={quote(query)}&maxResults={max_results}")
        return data.get("messages") or []

    def get_message(self, message_id: str) -> dict:
        return self._request(f"messages/{message_id}?format=full")

    def get_profile(self) -> dict:
        return self._request("profile")

    def iter_messages(self) -> Iterator[MailMessage]:
        """Decoded candidate messages, newest first, each fetched only when reached."""
        refs = self.search_verification_emails()
        if not refs:
            self._log("info", "📭 no recent verification emails")
            return

        self._log("info", f"📨 {len(refs)} candidate emails")
        for ref in refs:
            msg_id = ref.get("id")
            if not msg_id:
                continue
            full = self.get_message(msg_id)
            received_at = None
            internal_date = full.get("internalDate")
            if internal_date:
                try:
                    received_at = datetime.fromtimestamp(int(internal_date) / 1000.0)
                except (TypeError, ValueError):
                    received_at = None
            yield MailMessage(
                message_id=msg_id,
                subject=extract_subject(full),
                body=extract_body_text(full.get("payload") or {}),
                received_at=received_at,
            )

    def fetch_messages(self) -> List[MailMessage]:
        return list(self.iter_messages())

    def fetch_verification_code(self) -> Optional[MailMessage]:
        """Newest message carrying a code, with ``code`` set on it, or None.

        Older messages are not downloaded once a code has been found.
        """
        try:
            found = find_code_in_messages(self.iter_messages())
        except TokenExpiredError:
            if not self.token_refresher:
                raise
            self._log("info", "🔑 access token expired, refreshing once")
            self.access_token = self.token_refresher()
            found = find_code_in_messages(self.iter_messages())

        if not found:
            return None
        code, message = found
        message.code = code
        self._log("info", f"✅ code found in: {message.subject or 'Email'}")
        return message

    def _log(self, level: str, message: str) -> None:
        if self.log_callback:
            try:
                self.log_callback(level, message)
            except Exception:
                pass
