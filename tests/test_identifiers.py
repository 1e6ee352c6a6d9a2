"""Tests for identifier normalization (client: identities and whatsapp:+E164)."""

import pytest

from wagroups.domain import Normalized, Rejected, RejectionReason, bare_identifier, normalize
from wagroups.domain.identifiers import format_author_body, format_for_display, to_e164


def _value(raw):
    result = normalize(raw)
    assert isinstance(result, Normalized), result
    return result.value


def _reason(raw):
    result = normalize(raw)
    assert isinstance(result, Rejected), result
    return result.reason


@pytest.mark.parametrize(
    "raw",
    [
        "0044 7911 123456",
        "+447911123456",
        "whatsapp:+447911123456",
        "WhatsApp:+44 7911 123456",
        "+44 (7911) 123-456",
        "447911123456",
        "  +447911123456  ",
    ],
)
def test_phone_spellings_share_one_canonical_form(raw):
    assert _value(raw) == "whatsapp:+447911123456"


def test_normalize_is_idempotent():
    for raw in ("0044 7911 123456", "+1 202 555 1234", "12345678", "client:abc123"):
        once = _value(raw)
        assert _value(once) == once


def test_client_identity_passes_through_unchanged():
    assert _value("client:abc123") == "client:abc123"
    # never E.164-validated
    assert _value("client:not a phone!") == "client:not a phone!"


def test_client_prefix_is_case_sensitive():
    assert _reason("Client:abc123") == RejectionReason.UNSUPPORTED_PREFIX


def test_missing():
    assert _reason("") == RejectionReason.MISSING
    assert _reason("   ") == RejectionReason.MISSING
    assert _reason(None) == RejectionReason.MISSING


def test_unsupported_prefix():
    assert _reason("sms:+15551234567") == RejectionReason.UNSUPPORTED_PREFIX
    assert _reason("messenger:12345") == RejectionReason.UNSUPPORTED_PREFIX


def test_too_short_is_malformed():
    assert _reason("123") == RejectionReason.MALFORMED
    assert _reason("+1bad") == RejectionReason.MALFORMED
    assert _reason("1234567") == RejectionReason.MALFORMED


def test_bare_digit_boundaries():
    assert _value("12345678") == "whatsapp:+12345678"
    assert _value("123456789012345") == "whatsapp:+123456789012345"
    assert _reason("1234567890123456") == RejectionReason.MALFORMED


def test_leading_zero_country_code_rejected():
    assert _reason("01234567") == RejectionReason.MALFORMED
    assert _reason("+0123456789") == RejectionReason.MALFORMED


def test_only_leading_plus_is_kept():
    assert _value("1+5551234567") == "whatsapp:+15551234567"


def test_to_e164():
    assert to_e164("00 1 202 555 1234") == "+12025551234"
    assert to_e164("abc") is None


def test_bare_identifier_strips_known_prefixes_only():
    assert bare_identifier("whatsapp:+15551234567") == "+15551234567"
    assert bare_identifier("client:alice") == "alice"
    assert bare_identifier("sms:+1555") == "sms:+1555"
    assert bare_identifier("WHATSAPP:+1555") == "WHATSAPP:+1555"


def test_format_for_display():
    assert format_for_display("whatsapp:+12025551234") == "+1 202-555-1234"
    assert format_for_display("client:alice") == "client:alice"


def test_format_author_body():
    assert format_author_body("whatsapp:+15551234567", "hola") == "`+15551234567`\nhola"
    assert format_author_body("client:alice", "hi") == "`client:alice`\nhi"
