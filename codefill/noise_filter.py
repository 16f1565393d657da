"""
Noise rules shared by the code extractor.

Numbers in verification emails are ambiguous: years, prices and order totals
look a lot like codes. These helpers reject the common impostors.
"""
import re

# a year-like number still counts as a code when one of these appears
CODE_KEYWORD_PATTERN = re.compile(r"code|verify|confirm|otp|pin", re.IGNORECASE)

CURRENCY_BEFORE_PATTERN = re.compile(r"[$€£¥₹]|USD|EUR|GBP|JPY|CNY|RMB")
DECIMAL_AFTER_PATTERN = re.compile(r"\.\d{2}")

YEAR_MIN = 1900
YEAR_MAX = 2099
CURRENCY_WINDOW = 5


def has_code_keyword(text: str) -> bool:
    return bool(CODE_KEYWORD_PATTERN.search(text or ""))


def looks_like_year(value: str) -> bool:
    """4-digit values between 1900 and 2099."""
    if len(value) != 4 or not value.isdigit():
        return False
    return YEAR_MIN <= int(value) <= YEAR_MAX


def looks_like_amount(text: str, offset: int, length: int) -> bool:
    """Check the characters around text[offset:offset+length] for money markers."""
    before = text[max(0, offset - CURRENCY_WINDOW):offset]
    end = offset + length
    after = text[end:end + CURRENCY_WINDOW]
    return bool(CURRENCY_BEFORE_PATTERN.search(before) or DECIMAL_AFTER_PATTERN.search(after))


def is_likely_code(value: str, text: str, offset: int) -> bool:
    """Apply the year and currency rules to a numeric candidate found at offset."""
    if looks_like_year(value) and not has_code_keyword(text):
        return False
    if looks_like_amount(text, offset, len(value)):
        return False
    return True
