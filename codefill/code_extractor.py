"""
Verification code extraction from email text.

Tiers are tried in order of confidence and the first tier that yields a
value wins; a later tier never overrides an earlier one:

- Tier A: the email calls the code out explicitly ("your code is 123456")
- Tier B: a standalone 4-8 digit number that survives the noise filter
- Tier C: a mixed letters+digits token, only when the email talks about codes
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from codefill.noise_filter import has_code_keyword, is_likely_code

logger = logging.getLogger("codefill.extractor")

TIER_EXPLICIT = "explicit"
TIER_NUMERIC = "numeric"
TIER_ALPHANUMERIC = "alphanumeric"

EXPLICIT_PATTERNS = [
    # "verification code is 123456", "code: 123456", "OTP — 123456", "pin = 1234"
    re.compile(
        r"(?:verification|security|confirm(?:ation)?|login|sign[- ]?in|one[- ]?time"
        r"|auth(?:entication)?|2fa|two[- ]?factor)?\s*(?:code|pin|otp)\s*(?:is|:|—|–|-|=)"
        r"\s*[:\s]*([A-Z0-9]{4,8})\b",
        re.IGNORECASE,
    ),
    # "enter the code 123456", "use A1B2C3"
    re.compile(
        r"\b(?:enter|use|input|type|submit)\s+(?:the\s+)?(?:code\s+)?([A-Z0-9]{4,8})\b",
        re.IGNORECASE,
    ),
    # "123456 is your verification code"
    re.compile(r"\b([0-9]{4,8})\b\s*(?:is your|is the)", re.IGNORECASE),
]

STANDALONE_NUMBER_PATTERN = re.compile(r"(?<![A-Za-z0-9])([0-9]{4,8})(?![A-Za-z0-9])")
ALPHANUMERIC_PATTERN = re.compile(r"\b([A-Z0-9]{6,8})\b")
CSS_LENGTH_PATTERN = re.compile(r"^\d+(?:px|pt|em|rem|vh|vw|%)$", re.IGNORECASE)

# 6 first, then 4, then 8; anything else falls back to scan order
NUMERIC_LENGTH_PREFERENCE = (6, 4, 8)

# words that the explicit templates can capture by accident ("enter the code below")
WORD_BLACKLIST = {
    "THIS", "THAT", "BELOW", "ABOVE", "HERE", "THERE", "WITH", "FROM", "YOUR",
    "CODE", "LINK", "EMAIL", "VERIFY", "ACCOUNT", "EXPIRED", "EXPIRES", "VALID",
    "SENT", "ONLY", "WHEN", "WILL", "WITHIN", "NUMBER", "BUTTON", "PLEASE",
    "AGAIN", "SIGN", "LOGIN", "TOKEN", "AFTER", "BEFORE", "INTO", "ONCE",
    "SHOWN", "CONTINUE", "PASSWORD", "FOLLOWING", "REQUIRED", "PROVIDED",
}


class InvalidContextError(ValueError):
    """Raised when extract() receives something other than decoded text."""


@dataclass(frozen=True)
class ExtractionContext:
    subject: str
    body: str

    def __post_init__(self) -> None:
        if not isinstance(self.subject, str):
            raise InvalidContextError(f"subject must be str, got {type(self.subject).__name__}")
        if not isinstance(self.body, str):
            raise InvalidContextError(f"body must be str, got {type(self.body).__name__}")

    @property
    def combined_text(self) -> str:
        return f"{self.subject} {self.body}"


@dataclass(frozen=True)
class CodeCandidate:
    value: str
    tier: str
    offset: int


def _is_word_or_unit(value: str) -> bool:
    return value.upper() in WORD_BLACKLIST or bool(CSS_LENGTH_PATTERN.match(value))


def _explicit_candidate(text: str) -> Optional[CodeCandidate]:
    for index, pattern in enumerate(EXPLICIT_PATTERNS):
        for match in pattern.finditer(text):
            value = match.group(1)
            if _is_word_or_unit(value):
                continue
            logger.debug("[EXTRACT] explicit template %d matched %r", index, value)
            return CodeCandidate(value=value, tier=TIER_EXPLICIT, offset=match.start(1))
    return None


def _numeric_candidates(text: str) -> List[CodeCandidate]:
    survivors = []
    for match in STANDALONE_NUMBER_PATTERN.finditer(text):
        value = match.group(1)
        offset = match.start(1)
        if not is_likely_code(value, text, offset):
            logger.debug("[EXTRACT] numeric candidate %r at %d rejected as noise", value, offset)
            continue
        survivors.append(CodeCandidate(value=value, tier=TIER_NUMERIC, offset=offset))
    return survivors


def _pick_numeric(candidates: List[CodeCandidate]) -> Optional[CodeCandidate]:
    if not candidates:
        return None
    for length in NUMERIC_LENGTH_PREFERENCE:
        for candidate in candidates:
            if len(candidate.value) == length:
                return candidate
    return candidates[0]


def _alphanumeric_candidate(text: str) -> Optional[CodeCandidate]:
    if not has_code_keyword(text):
        return None
    for match in ALPHANUMERIC_PATTERN.finditer(text):
        value = match.group(1)
        if any(ch.isalpha() for ch in value) and any(ch.isdigit() for ch in value):
            return CodeCandidate(value=value, tier=TIER_ALPHANUMERIC, offset=match.start(1))
    return None


def extract(context: ExtractionContext) -> Optional[str]:
    """Return the most likely verification code in the email, or None."""
    if context is None:
        raise InvalidContextError("context is required")

    text = context.combined_text

    candidate = _explicit_candidate(text)
    if candidate is None:
        candidate = _pick_numeric(_numeric_candidates(text))
    if candidate is None:
        candidate = _alphanumeric_candidate(text)

    if candidate is None:
        logger.debug("[EXTRACT] no code found")
        return None

    logger.debug("[EXTRACT] %s tier selected %r at offset %d", candidate.tier, candidate.value, candidate.offset)
    return candidate.value


def extract_verification_code(body: str, subject: str = "") -> Optional[str]:
    return extract(ExtractionContext(subject=subject, body=body))


def find_code_in_messages(messages: Iterable) -> Optional[Tuple[str, object]]:
    """Scan messages in the given order (newest first) and stop at the first code.

    Each message needs ``subject`` and ``body`` attributes. Returns a
    ``(code, message)`` pair, or None when no message carries a code.
    """
    for message in messages:
        code = extract(ExtractionContext(subject=message.subject or "", body=message.body or ""))
        if code:
            return code, message
    return None
