import base64
import re
from html import unescape


def strip_html(text: str) -> str:
    """Drop tags, style and script blocks; decode entities; collapse whitespace."""
    text = re.sub(r"<style[^>]*>.*?</style>", " ", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<script[^>]*>.*?</script>", " ", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = unescape(text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def decode_base64url(data: str) -> str:
    """Gmail bodies are URL-safe base64, usually without padding."""
    padded = data + "=" * (-len(data) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    return raw.decode("utf-8", errors="ignore")


def extract_body_text(payload: dict) -> str:
    """Plain text of a Gmail message payload.

    text/plain parts win over text/html; html is stripped. Nested multipart
    payloads are searched depth-first.
    """
    if not payload:
        return ""

    body = payload.get("body") or {}
    if body.get("data"):
        decoded = decode_base64url(body["data"])
        if payload.get("mimeType") == "text/html":
            return strip_html(decoded)
        return decoded

    parts = payload.get("parts") or []
    for mime_type in ("text/plain", "text/html"):
        part = next((p for p in parts if p.get("mimeType") == mime_type), None)
        if part:
            return extract_body_text(part)

    for part in parts:
        text = extract_body_text(part)
        if text:
            return text
    return ""


def extract_subject(message: dict) -> str:
    headers = (message.get("payload") or {}).get("headers") or []
    for header in headers:
        if (header.get("name") or "").lower() == "subject":
            return header.get("value") or ""
    return ""
