"""
Field validators and normalizers
--------------------------------
Every validator is a pure predicate: it returns True/False and never raises,
whatever it is given. Normalizers map an accepted value to its stored form and
are idempotent: normalize(normalize(x)) == normalize(x).

The state machine alone decides what a False means (re-prompt or lockout).
"""
from __future__ import annotations

import re
from typing import Any

NAME_MIN_LEN = 2
NAME_MAX_LEN = 50

# Substrings that mark a name as a probe or a keyboard mash (case-insensitive)
NAME_DENY_TOKENS = (
    "test",
    "admin",
    "bot",
    "spam",
    "fake",
    "qwerty",
    "asdf",
    "zxcv",
    "йцукен",
    "фыва",
)

# One character four or more times in a row
_REPEAT_RUN_4 = re.compile(r"(.)\1{3,}")

# Canonical phone: "+38" country code, then the national number "0" + 9 digits
PHONE_COUNTRY_CODE = "38"
PHONE_NATIONAL_DIGITS = 9
PHONE_CANONICAL_PREFIX = "+" + PHONE_COUNTRY_CODE + "0"
_PHONE_STRIP = re.compile(r"[\s\-()]")
_PHONE_INTERNATIONAL = re.compile(r"^\+?380\d{9}$")
_PHONE_NATIONAL = re.compile(r"^0\d{9}$")

EMAIL_MAX_LEN = 254
EMAIL_DOMAIN_MAX_LEN = 253
_EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$")

DISPOSABLE_EMAIL_DOMAINS = frozenset(
    {
        "10minutemail.com",
        "guerrillamail.com",
        "mailinator.com",
        "tempmail.org",
        "throwaway.email",
        "temp-mail.org",
        "yopmail.com",
    }
)
EMAIL_LOCAL_DENY_TOKENS = ("test", "spam", "fake", "noreply", "no-reply")
EMAIL_ADDRESS_DENY_TOKENS = ("admin@admin",)

TEXT_DEFAULT_MAX_LEN = 1000

_TEXT_REPEAT_RUN = re.compile(r"(.)\1{10,}")
_URL = re.compile(r"https?://\S+", re.IGNORECASE)
_URL_LIMIT = 3
_CURRENCY = re.compile(
    r"\$\s?\d+|\d+\s?\$|€\s?\d+|\d+\s?€|\d+\s?(?:руб|грн|uah|usd|eur)",
    re.IGNORECASE,
)
_SCRIPT_MARKUP = re.compile(r"<\s*script|javascript:|onclick|onerror\s*=", re.IGNORECASE)
_PROMO = re.compile(
    r"скидка|акция|срочно|выгода|знижка|акція|терміново|вигода|discount|promo\s?code|buy now",
    re.IGNORECASE,
)
_MARKUP_BRACKETS = re.compile(r"[<>]")


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# Name
# ---------------------------------------------------------------------------
def validate_name(value: Any) -> bool:
    name = _as_text(value).strip()
    if not (NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN):
        return False

    # Unicode letters plus space and hyphen only
    if any(ch.isdigit() for ch in name):
        return False
    if not all(ch.isalpha() or ch in " -" for ch in name):
        return False
    if not any(ch.isalpha() for ch in name):
        return False

    lowered = name.lower()
    if any(tok in lowered for tok in NAME_DENY_TOKENS):
        return False
    if _REPEAT_RUN_4.search(lowered):
        return False

    # A single unstructured word written in one case ("john", "JOHN")
    if not any(ch in " -" for ch in name) and (name.islower() or name.isupper()):
        return False

    return True


def normalize_name(value: str) -> str:
    return " ".join(_as_text(value).split())


# ---------------------------------------------------------------------------
# Phone
# ---------------------------------------------------------------------------
def _strip_phone(value: Any) -> str:
    return _PHONE_STRIP.sub("", _as_text(value).strip())


def validate_phone(value: Any) -> bool:
    phone = _strip_phone(value)
    return bool(_PHONE_INTERNATIONAL.match(phone) or _PHONE_NATIONAL.match(phone))


def normalize_phone(value: str) -> str:
    """
    "0501234567" / "+38 (050) 123-45-67" / "380501234567" -> "+380501234567".
    Values that do not validate are returned unchanged.
    """
    if not validate_phone(value):
        return value
    phone = _strip_phone(value)
    national = phone[-PHONE_NATIONAL_DIGITS:]
    return PHONE_CANONICAL_PREFIX + national


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------
def validate_email(value: Any) -> bool:
    email = _as_text(value).strip().lower()
    if not email or len(email) > EMAIL_MAX_LEN:
        return False
    if not _EMAIL_PATTERN.match(email):
        return False

    local, _, domain = email.partition("@")
    if not domain or len(domain) > EMAIL_DOMAIN_MAX_LEN:
        return False
    if domain in DISPOSABLE_EMAIL_DOMAINS:
        return False
    if any(tok in local for tok in EMAIL_LOCAL_DENY_TOKENS):
        return False
    if any(tok in email for tok in EMAIL_ADDRESS_DENY_TOKENS):
        return False
    return True


def normalize_email(value: str) -> str:
    return _as_text(value).strip().lower()


# ---------------------------------------------------------------------------
# Free text
# ---------------------------------------------------------------------------
def looks_like_spam(text: str) -> bool:
    if _TEXT_REPEAT_RUN.search(text):
        return True
    if len(_URL.findall(text)) >= _URL_LIMIT:
        return True
    if _CURRENCY.search(text):
        return True
    if _SCRIPT_MARKUP.search(text):
        return True
    if _PROMO.search(text):
        return True
    return False


def validate_text(value: Any, max_length: int = TEXT_DEFAULT_MAX_LEN, min_length: int = 0) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    if len(text) > max_length:
        return False
    if len(text) < min_length:
        return False
    return not looks_like_spam(text)


def sanitize_text(value: str, max_length: int = TEXT_DEFAULT_MAX_LEN) -> str:
    """Trim, drop angle brackets and cap the length."""
    text = _MARKUP_BRACKETS.sub("", _as_text(value)).strip()
    return text[:max_length].strip()
