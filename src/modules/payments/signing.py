"""Canonical query strings and HMAC signatures for provider messages.

VNPay signs the key-sorted query string, form-encoded by PHP ``urlencode``
rules (space as ``+``, ``~`` and ``*`` escaped), with
HMAC-SHA512; MoMo signs the key-sorted raw ``k=v&...`` string with
HMAC-SHA256. Everything here is pure: no I/O, no settings.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Callable, Collection, Dict, Mapping
from urllib.parse import quote_plus

from modules.payments.exceptions import SignatureInvalid

Digest = Callable[..., Any]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _form_encode(text: str) -> str:
    """PHP ``urlencode``: only alphanumerics and ``-_.`` stay literal."""
    return quote_plus(text).replace("~", "%7E")


def canonical_query(params: Mapping[str, Any], *, encode: bool = True) -> str:
    """``k1=v1&k2=v2`` with keys in lexicographic order.

    >>> canonical_query({"b": "x y", "a": 1})
    'a=1&b=x+y'
    """
    pairs = sorted((str(key), _text(value)) for key, value in params.items())
    if encode:
        return "&".join(f"{_form_encode(k)}={_form_encode(v)}" for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in pairs)


def sign(
    params: Mapping[str, Any],
    secret: str,
    *,
    digestmod: Digest = hashlib.sha512,
    encode: bool = True,
) -> str:
    """Lowercase hex HMAC of the canonical string."""
    message = canonical_query(params, encode=encode)
    return hmac.new(secret.encode(), message.encode(), digestmod).hexdigest()


def signed(
    params: Mapping[str, Any],
    secret: str,
    *,
    signature_field: str,
    digestmod: Digest = hashlib.sha512,
    encode: bool = True,
) -> Dict[str, Any]:
    """Copy of *params* with the signature added under *signature_field*."""
    result = dict(params)
    result[signature_field] = sign(params, secret, digestmod=digestmod, encode=encode)
    return result


def verify(
    params: Mapping[str, Any],
    secret: str,
    *,
    signature_field: str,
    exclude: Collection[str] = (),
    digestmod: Digest = hashlib.sha512,
    encode: bool = True,
) -> bool:
    """Check the signature carried in *params*.

    The canonical string is rebuilt from every received field except the
    signature and *exclude*. Returns ``True``; raises ``SignatureInvalid``
    on a missing or mismatched signature.
    """
    received = _text(params.get(signature_field)).strip().lower()
    if not received:
        raise SignatureInvalid(f"Missing {signature_field}.")

    payload = {
        key: value
        for key, value in params.items()
        if key != signature_field and key not in exclude
    }
    expected = sign(payload, secret, digestmod=digestmod, encode=encode)
    if not hmac.compare_digest(expected.encode(), received.encode()):
        raise SignatureInvalid("Signature mismatch.")
    return True
