"""
Tests for webhook signature and payload helpers.
"""
import base64
import hashlib
import hmac

import pytest

from aurelius.integrations.webhooks import (
    compute_signature,
    extract_event_type,
    normalize_headers,
    parse_body,
    sanitize_headers,
    verify_signature,
)

SECRET = "whsec"
BODY = b'{"type": "order.created"}'


class TestComputeSignature:
    def test_hex_sha256(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()
        assert compute_signature(SECRET, BODY) == expected

    def test_base64_sha256(self):
        digest = hmac.new(SECRET.encode(), BODY, hashlib.sha256).digest()
        assert compute_signature(SECRET, BODY, encoding="base64") == base64.b64encode(digest).decode()

    def test_sha1(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha1).hexdigest()
        assert compute_signature(SECRET, BODY, algorithm="sha1") == expected

    def test_str_body_matches_bytes(self):
        assert compute_signature(SECRET, BODY.decode()) == compute_signature(SECRET, BODY)

    def test_unknown_encoding(self):
        with pytest.raises(ValueError):
            compute_signature(SECRET, BODY, encoding="base32")


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_valid(self):
        assert verify_signature(SECRET, BODY, compute_signature(SECRET, BODY)) is True

    def test_tampered_body(self):
        signature = compute_signature(SECRET, BODY)
        assert verify_signature(SECRET, b'{"type": "order.deleted"}', signature) is False

    def test_missing_secret_or_signature(self):
        assert verify_signature(None, BODY, "abc") is False
        assert verify_signature(SECRET, BODY, None) is False
        assert verify_signature(SECRET, BODY, "") is False

    def test_prefix_is_optional(self):
        raw = compute_signature(SECRET, BODY, encoding="base64")
        assert verify_signature(SECRET, BODY, f"sha256={raw}", encoding="base64", prefix="sha256=")
        assert verify_signature(SECRET, BODY, raw, encoding="base64", prefix="sha256=")

    def test_hex_is_case_insensitive(self):
        signature = compute_signature(SECRET, BODY).upper()
        assert verify_signature(SECRET, BODY, signature) is True

    def test_non_ascii_signature_rejected(self):
        assert verify_signature(SECRET, BODY, "é" * 64) is False


class TestHeaders:
    def test_normalize_lowercases(self):
        assert normalize_headers({"X-WC-Webhook-Topic": "order.created"}) == {
            "x-wc-webhook-topic": "order.created"
        }

    def test_sanitize_redacts_secrets(self):
        cleaned = sanitize_headers(
            {"Authorization": "Bearer t", "X-Hook-Secret": "abc", "Content-Type": "application/json"}
        )
        assert cleaned["authorization"] == "[REDACTED]"
        assert cleaned["x-hook-secret"] == "[REDACTED]"
        assert cleaned["content-type"] == "application/json"


class TestExtractEventType:
    """Tests for extract_event_type."""

    def test_first_matching_field(self):
        assert extract_event_type({"action": "chat_started", "type": "x"}, ("action", "type")) == "chat_started"

    def test_dotted_path(self):
        assert extract_event_type({"event": {"type": "Issue"}}, ("event.type",)) == "Issue"

    def test_skips_empty_and_non_string(self):
        assert extract_event_type({"type": "", "event": 3, "topic": "order.updated"}) == "order.updated"

    def test_non_dict_payload(self):
        assert extract_event_type([{"type": "x"}]) is None
        assert extract_event_type(None) is None


class TestParseBody:
    def test_json_object(self):
        assert parse_body(BODY) == {"type": "order.created"}

    def test_json_array(self):
        assert parse_body(b'[{"eventType": "TaskCreated"}]') == [{"eventType": "TaskCreated"}]

    def test_empty_or_invalid(self):
        assert parse_body(b"") == {}
        assert parse_body(b"   ") == {}
        assert parse_body(b"webhook_id=1") == {}
