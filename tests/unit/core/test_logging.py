"""Unit tests for the log masking processor."""

import pytest

from config.settings import mask_sensitive_data

pytestmark = pytest.mark.unit


class TestMaskSensitiveData:
    @pytest.mark.parametrize(
        "key", ["password", "hash_secret", "secret_key", "access_key", "signature", "vnp_SecureHash"]
    )
    def test_sensitive_keys_masked(self, key):
        event = mask_sensitive_data(None, None, {"event": "x", key: "abc123"})
        assert event[key] == "***MASKED***"

    def test_secrets_inside_strings_masked(self):
        event = mask_sensitive_data(
            None,
            None,
            {"event": "x", "query": "vnp_TxnRef=ORD-1-01&vnp_SecureHash=deadbeef"},
        )
        assert event["query"] == "vnp_TxnRef=ORD-1-01&vnp_SecureHash=***MASKED***"

    def test_plain_values_untouched(self):
        event = {"event": "payment.initiated", "transaction_ref": "ORD-1-01", "attempt": 2}
        assert mask_sensitive_data(None, None, dict(event)) == event
