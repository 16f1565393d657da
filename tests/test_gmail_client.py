"""
Tests for the Gmail mail source (HTTP mocked).
"""

import base64

import pytest

from codefill import gmail_client
from codefill.gmail_client import GmailApiError, GmailClient, TokenExpiredError


def _b64(text):
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _message(msg_id, subject, body, internal_date="1700000000000"):
    return {
        "id": msg_id,
        "internalDate": internal_date,
        "payload": {
            "mimeType": "text/plain",
            "headers": [{"name": "Subject", "value": subject}],
            "body": {"data": _b64(body)},
        },
    }


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data
        self.content = b"{}" if data is not None else b""

    def json(self):
        return self._data


class FakeGmail:
    """Routes requests.get calls by URL."""

    def __init__(self, messages, valid_tokens=("good",), missing=()):
        self.messages = {m["id"]: m for m in messages}
        self.order = [m["id"] for m in messages] + list(missing)
        self.valid_tokens = set(valid_tokens)
        self.calls = []

    def get(self, url, headers=None, proxies=None, timeout=None):
        self.calls.append(url)
        token = (headers or {}).get("Authorization", "").replace("Bearer ", "")
        if token not in self.valid_tokens:
            return FakeResponse(401, {})
        if "/messages?" in url:
            return FakeResponse(200, {"messages": [{"id": i} for i in self.order]})
        if "/messages/" in url:
            msg_id = url.split("/messages/")[1].split("?")[0]
            if msg_id not in self.messages:
                return FakeResponse(404, {})
            return FakeResponse(200, self.messages[msg_id])
        if url.endswith("/profile"):
            return FakeResponse(200, {"emailAddress": "me@example.com"})
        return FakeResponse(500, {})


@pytest.fixture
def fake_gmail(monkeypatch):
    def _install(messages, **kwargs):
        fake = FakeGmail(messages, **kwargs)
        monkeypatch.setattr(gmail_client.requests, "get", fake.get)
        return fake
    return _install


class TestGmailClient:

    def test_fetch_messages_decodes_in_order(self, fake_gmail):
        fake_gmail([
            _message("m2", "Newest", "hello"),
            _message("m1", "Older", "world"),
        ])
        messages = GmailClient("good").fetch_messages()
        assert [m.message_id for m in messages] == ["m2", "m1"]
        assert messages[0].subject == "Newest"
        assert messages[0].body == "hello"
        assert messages[0].received_at is not None

    def test_search_query(self, fake_gmail):
        fake = fake_gmail([])
        assert GmailClient("good", max_results=3).search_verification_emails() == []
        assert "maxResults=3" in fake.calls[0]
        assert "after%3A" in fake.calls[0]

    def test_fetch_code_stops_at_newest_hit(self, fake_gmail):
        fake_gmail([
            _message("m3", "Weekly digest", "Nothing to see"),
            _message("m2", "Sign in", "Your verification code is 445566"),
            _message("m1", "Sign in", "Your verification code is 112233"),
        ])
        message = GmailClient("good").fetch_verification_code()
        assert message.code == "445566"
        assert message.message_id == "m2"

    def test_no_code(self, fake_gmail):
        fake_gmail([_message("m1", "Hi", "Lunch at noon?")])
        assert GmailClient("good").fetch_verification_code() is None

    def test_expired_token_raises_without_refresher(self, fake_gmail):
        fake_gmail([_message("m1", "Sign in", "code: 9911")])
        with pytest.raises(TokenExpiredError):
            GmailClient("stale").fetch_verification_code()

    def test_expired_token_refreshed_once(self, fake_gmail):
        fake_gmail([_message("m1", "Sign in", "code: 9911")])
        client = GmailClient("stale", token_refresher=lambda: "good")
        assert client.fetch_verification_code().code == "9911"
        assert client.access_token == "good"

    def test_api_error(self, fake_gmail):
        fake_gmail([])
        client = GmailClient("good")
        with pytest.raises(GmailApiError) as exc_info:
            client.get_message("missing")
        assert exc_info.value.status_code == 404

    def test_profile(self, fake_gmail):
        fake_gmail([])
        assert GmailClient("good").get_profile()["emailAddress"] == "me@example.com"

    def test_older_messages_not_fetched_after_hit(self, fake_gmail):
        fake = fake_gmail(
            [_message("m2", "Sign in", "Your code is 482913")],
            missing=("m1",),
        )
        message = GmailClient("good").fetch_verification_code()
        assert message.code == "482913"
        assert not any(url.split("?")[0].endswith("/messages/m1") for url in fake.calls)

    def test_broken_older_message_still_raises_without_hit(self, fake_gmail):
        fake_gmail([_message("m2", "Weekly digest", "Nothing to see")], missing=("m1",))
        with pytest.raises(GmailApiError) as exc_info:
            GmailClient("good").fetch_verification_code()
        assert exc_info.value.status_code == 404
