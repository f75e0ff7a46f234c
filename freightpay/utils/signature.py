"""PayFast signature protocol.

The gateway signs and verifies the same canonical string: the field list minus the
``signature`` field and any empty values, sorted by key, each key and value
URL-encoded (``quote_plus``), joined as ``key=value`` with ``&``, with
``&passphrase=<encoded>`` appended when a passphrase is configured. The MD5 of that
string, as lowercase hex, is the signature.
"""
from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable
from urllib.parse import quote_plus

SIGNATURE_FIELD = "signature"

Field = tuple[str, str]


def canonical_param_string(fields: Iterable[Field], passphrase: str | None = None) -> str:
    """Build the canonical parameter string for ``fields``."""

    present = [
        (key, value)
        for key, value in fields
        if key != SIGNATURE_FIELD and value is not None and value != ""
    ]
    present.sort(key=lambda item: item[0])
    # PayFast signs urlencode() output: spaces become "+", not "%20".
    encoded = "&".join(f"{quote_plus(key)}={quote_plus(value)}" for key, value in present)
    if passphrase:
        encoded += f"&passphrase={quote_plus(passphrase)}"
    return encoded


def generate_signature(fields: Iterable[Field], passphrase: str | None = None) -> str:
    """Return the lowercase hex MD5 signature for ``fields``."""

    payload = canonical_param_string(fields, passphrase).encode("utf-8")
    return hashlib.md5(payload).hexdigest()


def verify_signature(fields: Iterable[Field], supplied: str | None, passphrase: str | None = None) -> bool:
    """Return whether ``supplied`` matches the signature of ``fields`` (case-insensitive)."""

    if not supplied:
        return False
    expected = generate_signature(fields, passphrase)
    return hmac.compare_digest(expected.encode("ascii"), supplied.strip().lower().encode("utf-8"))


__all__ = [
    "SIGNATURE_FIELD",
    "canonical_param_string",
    "generate_signature",
    "verify_signature",
]
