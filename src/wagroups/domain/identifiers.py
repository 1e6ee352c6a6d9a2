"""Identifier normalization: raw user input -> canonical directory/participant key.

Canonical forms are either a platform chat identity (``client:<id>``, passed
through untouched) or a WhatsApp address (``whatsapp:+<E164>``).
"""

import re
from dataclasses import dataclass
from enum import Enum

import phonenumbers

CLIENT_PREFIX = "client:"
WHATSAPP_PREFIX = "whatsapp:"

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_WHATSAPP_PREFIX_PATTERN = re.compile(r"^whatsapp:", re.IGNORECASE)
_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_NOT_DIGIT = re.compile(r"\D")
_BARE_DIGITS = re.compile(r"^\d{8,15}$")


class RejectionReason(str, Enum):
    MISSING = "missing"
    MALFORMED = "malformed-after-normalization"
    UNSUPPORTED_PREFIX = "unsupported-prefix"


@dataclass(frozen=True)
class Normalized:
    value: str

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_chat_identity(self) -> bool:
        return self.value.startswith(CLIENT_PREFIX)


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    raw: str = ""

    @property
    def ok(self) -> bool:
        return False


NormalizationResult = Normalized | Rejected


def _digits_with_leading_plus(value: str) -> str:
    """Drop everything but digits, keeping a single '+' only when it leads."""
    digits = _NOT_DIGIT.sub("", value)
    return "+" + digits if value.startswith("+") else digits


def to_e164(raw: str) -> str | None:
    """Return the +E164 form of a phone-like string, or None if it cannot be one.

    Accepts punctuation, spaces, a ``whatsapp:`` prefix and the ``00``
    international dialing prefix. Bare runs of 8 to 15 digits are assumed to
    already include the country code.
    """
    value = _WHATSAPP_PREFIX_PATTERN.sub("", (raw or "").strip()).strip()
    value = _digits_with_leading_plus(value)
    if value.startswith("00"):
        value = "+" + value[2:]
    if not value.startswith("+") and _BARE_DIGITS.match(value):
        value = "+" + value
    if not E164_PATTERN.match(value):
        return None
    return value


def normalize(raw: str | None) -> NormalizationResult:
    """Map a raw identifier to its canonical form, or the reason it was rejected.

    Pure and idempotent: normalizing a canonical value returns it unchanged.
    """
    value = str(raw).strip() if raw is not None else ""
    if not value:
        return Rejected(RejectionReason.MISSING, raw=value)
    if value.startswith(CLIENT_PREFIX):
        return Normalized(value)

    rest = _WHATSAPP_PREFIX_PATTERN.sub("", value).strip()
    if _SCHEME_PATTERN.match(rest):
        return Rejected(RejectionReason.UNSUPPORTED_PREFIX, raw=value)

    e164 = to_e164(rest)
    if e164 is None:
        return Rejected(RejectionReason.MALFORMED, raw=value)
    return Normalized(WHATSAPP_PREFIX + e164)


def bare_identifier(value: str | None) -> str:
    """Strip one known prefix (whatsapp: or client:) for membership comparison."""
    value = (value or "").strip()
    for prefix in (WHATSAPP_PREFIX, CLIENT_PREFIX):
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def format_for_display(canonical: str) -> str:
    """Human-readable form of a canonical key (international phone format).

    Chat identities are returned unchanged. Numbers the phone metadata does
    not know are shown as their bare E.164 string.
    """
    if not canonical.startswith(WHATSAPP_PREFIX):
        return canonical
    e164 = canonical[len(WHATSAPP_PREFIX):]
    try:
        parsed = phonenumbers.parse(e164, None)
    except phonenumbers.NumberParseException:
        return e164
    if not phonenumbers.is_possible_number(parsed):
        return e164
    return phonenumbers.format_number(
        parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL
    )


def format_author_body(author: str, body: str) -> str:
    """Prefix a group message body with its author's address on its own line."""
    formatted_author = _WHATSAPP_PREFIX_PATTERN.sub("", author, count=1)
    return f"`{formatted_author}`\n{body}"
