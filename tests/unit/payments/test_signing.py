"""Unit tests for canonical query strings and HMAC signatures."""

from __future__ import annotations

import hashlib
import hmac

import pytest

from modules.payments.exceptions import SignatureInvalid
from modules.payments.signing import canonical_query, sign, signed, verify

pytestmark = pytest.mark.unit

SECRET = "s3cr3t-key"

SAMPLES = [
    {},
    {"a": "1"},
    {"vnp_Amount": "150000000", "vnp_TxnRef": "ORD-20261019-ABC123-01"},
    {"vnp_OrderInfo": "Thanh toán đơn hàng #1", "vnp_Locale": "vn", "z": ""},
    {"b": "x&y=z", "a": "100% sure", "c": "a+b"},
]


class TestCanonicalQuery:
    def test_keys_sorted_lexicographically(self):
        assert canonical_query({"b": "2", "a": "1", "C": "3"}) == "C=3&a=1&b=2"

    def test_values_form_encoded_with_plus_for_space(self):
        assert canonical_query({"info": "don hang 1"}) == "info=don+hang+1"

    def test_reserved_characters_escaped(self):
        assert canonical_query({"k": "a&b=c/d"}) == "k=a%26b%3Dc%2Fd"

    def test_tilde_and_asterisk_escaped_like_php_urlencode(self):
        assert canonical_query({"k": "a~b*c-d_e.f"}) == "k=a%7Eb%2Ac-d_e.f"

    def test_non_ascii_utf8_percent_encoded(self):
        assert canonical_query({"k": "đ"}) == "k=%C4%91"

    def test_raw_mode_keeps_values_verbatim(self):
        assert canonical_query({"b": "x y", "a": 1}, encode=False) == "a=1&b=x y"

    def test_none_rendered_as_empty(self):
        assert canonical_query({"a": None}) == "a="

    def test_empty_mapping_gives_empty_string(self):
        assert canonical_query({}) == ""


class TestSign:
    def test_hmac_sha512_hex_over_canonical_string(self):
        params = {"vnp_TxnRef": "R1", "vnp_Amount": "1000"}
        expected = hmac.new(
            SECRET.encode(), b"vnp_Amount=1000&vnp_TxnRef=R1", hashlib.sha512
        ).hexdigest()
        assert sign(params, SECRET) == expected

    def test_signature_is_lowercase_hex_of_sha512_length(self):
        digest = sign({"a": "1"}, SECRET)
        assert len(digest) == 128
        assert digest == digest.lower()

    def test_sha256_raw_mode(self):
        expected = hmac.new(SECRET.encode(), b"a=1&b=x y", hashlib.sha256).hexdigest()
        assert sign({"b": "x y", "a": "1"}, SECRET, digestmod=hashlib.sha256, encode=False) == expected

    def test_insertion_order_does_not_matter(self):
        assert sign({"a": "1", "b": "2"}, SECRET) == sign({"b": "2", "a": "1"}, SECRET)


class TestVerify:
    @pytest.mark.parametrize("params", SAMPLES)
    def test_signed_params_verify(self, params):
        message = signed(params, SECRET, signature_field="sig")
        assert verify(message, SECRET, signature_field="sig") is True

    @pytest.mark.parametrize("params", [p for p in SAMPLES if p])
    def test_changing_any_value_is_rejected(self, params):
        message = signed(params, SECRET, signature_field="sig")
        for key in params:
            tampered = dict(message)
            tampered[key] = f"{tampered[key]}x"
            with pytest.raises(SignatureInvalid):
                verify(tampered, SECRET, signature_field="sig")

    def test_added_field_is_rejected(self):
        message = signed({"a": "1"}, SECRET, signature_field="sig")
        message["b"] = "2"
        with pytest.raises(SignatureInvalid):
            verify(message, SECRET, signature_field="sig")

    def test_wrong_secret_is_rejected(self):
        message = signed({"a": "1"}, SECRET, signature_field="sig")
        with pytest.raises(SignatureInvalid):
            verify(message, "other-secret", signature_field="sig")

    def test_missing_signature_is_rejected(self):
        with pytest.raises(SignatureInvalid, match="Missing"):
            verify({"a": "1"}, SECRET, signature_field="sig")

    def test_uppercase_signature_accepted(self):
        message = signed({"a": "1"}, SECRET, signature_field="sig")
        message["sig"] = message["sig"].upper()
        assert verify(message, SECRET, signature_field="sig") is True

    def test_excluded_fields_ignored(self):
        message = signed({"a": "1"}, SECRET, signature_field="sig")
        message["sig_type"] = "HmacSHA512"
        assert verify(message, SECRET, signature_field="sig", exclude=("sig_type",))

    def test_comparison_uses_compare_digest(self, monkeypatch):
        calls = []
        original = hmac.compare_digest

        def spy(a, b):
            calls.append((a, b))
            return original(a, b)

        monkeypatch.setattr("modules.payments.signing.hmac.compare_digest", spy)
        message = signed({"a": "1"}, SECRET, signature_field="sig")
        verify(message, SECRET, signature_field="sig")
        assert len(calls) == 1
