"""
HMAC-SHA256 verification of inbound event and webhook payloads.

The digest is always computed over the raw request bytes as received;
re-serializing parsed JSON can change the byte content and must never be
used as signature input.
"""

import hashlib
import hmac
import string
from enum import Enum
from typing import Optional, Union

from loguru import logger

from app.utils.exceptions import SignatureError


_HEX_DIGITS = frozenset(string.hexdigits)


class SignatureScheme(Enum):
    """How the digest is encoded in the signature header."""
    PREFIXED = "sha256="  # x-unizo-signature: sha256=<hex>
    BARE = ""  # x-hub-signature-256: <hex>


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_digest(payload: bytes, secret: Union[str, bytes]) -> str:
    return hmac.new(_to_bytes(secret), payload, hashlib.sha256).hexdigest()


def sign(payload: bytes, secret: Union[str, bytes], scheme: SignatureScheme = SignatureScheme.PREFIXED) -> str:
    """Header value a sender using ``scheme`` would attach to ``payload``."""
    return scheme.value + compute_digest(payload, secret)


def verify(
    payload: bytes,
    provided_signature: Optional[str],
    secret: Union[str, bytes],
    scheme: SignatureScheme = SignatureScheme.PREFIXED,
) -> None:
    """
    Verify ``provided_signature`` against the HMAC of ``payload``.

    Raises:
        SignatureError: missing header, malformed encoding, or mismatch
    """
    if not secret:
        # blank secrets never verify
        raise SignatureError("Signature secret is not configured")
    if not provided_signature:
        raise SignatureError("No signature provided")

    signature = provided_signature.strip()
    if scheme.value and not signature.startswith(scheme.value):
        raise SignatureError("Malformed signature")
    hex_part = signature[len(scheme.value):]
    if not hex_part or not _HEX_DIGITS.issuperset(hex_part):
        raise SignatureError("Malformed signature")

    expected = sign(payload, secret, scheme).encode("ascii")
    received = (scheme.value + hex_part.lower()).encode("ascii")

    if len(received) != len(expected) or not hmac.compare_digest(expected, received):
        raise SignatureError("Invalid signature")


class SignatureVerifier:
    """Verifier bound to one trust source's secret and header scheme."""

    def __init__(self, secret: Optional[str], scheme: SignatureScheme, source: str):
        self._secret = secret or ""
        self.scheme = scheme
        self.source = source

    def verify(self, payload: bytes, provided_signature: Optional[str]) -> None:
        try:
            verify(payload, provided_signature, self._secret, self.scheme)
        except SignatureError as e:
            logger.warning(f"Rejected {self.source} payload: {e.message}")
            raise

    def sign(self, payload: bytes) -> str:
        return sign(payload, self._secret, self.scheme)

    @classmethod
    def for_events(cls, secret: Optional[str]) -> "SignatureVerifier":
        return cls(secret, SignatureScheme.PREFIXED, "event")

    @classmethod
    def for_webhooks(cls, secret: Optional[str]) -> "SignatureVerifier":
        return cls(secret, SignatureScheme.BARE, "webhook")

    def __repr__(self) -> str:
        return f"SignatureVerifier(source={self.source!r}, scheme={self.scheme.name})"
