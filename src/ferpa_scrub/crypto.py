"""Envelope crypto — AES-256-GCM, one random nonce per sealed value.

Keys, ciphertexts and nonces travel as unpadded URL-safe base64 so they can
sit in JSON.  Every failure on the way back in (bad encoding, wrong length,
wrong key, tampered bytes) is a DecryptFailure; nothing partial escapes.
"""

from __future__ import annotations
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptFailure
from .types import Envelope

KEY_BYTES = 32      # AES-256
NONCE_BYTES = 12    # 96-bit GCM nonce


def b64u_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64u_decode(text: str) -> bytes:
    """Strict decode; anything outside the URL-safe alphabet is rejected."""
    try:
        padded = text + "=" * (-len(text) % 4)
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise DecryptFailure("invalid base64url encoding") from e


def new_request_key() -> tuple[bytes, str]:
    """Fresh 256-bit key from the OS CSPRNG, plus its exported form."""
    key = AESGCM.generate_key(bit_length=KEY_BYTES * 8)
    return key, b64u_encode(key)


def import_key(exported: str | bytes) -> bytes:
    """Turn an exported key back into raw bytes."""
    raw = exported if isinstance(exported, bytes) else b64u_decode(exported)
    if len(raw) != KEY_BYTES:
        raise DecryptFailure("key must be 32 bytes")
    return raw


def seal(value: str, key: bytes) -> Envelope:
    """Encrypt one value under a fresh random nonce."""
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = AESGCM(key).encrypt(nonce, value.encode("utf-8"), None)
    return Envelope(ciphertext=b64u_encode(ciphertext), nonce=b64u_encode(nonce))


def open_envelope(envelope: Envelope, key: bytes) -> str:
    """Authenticated decrypt.  Raises DecryptFailure, never returns garbage."""
    nonce = b64u_decode(envelope.nonce)
    if len(nonce) != NONCE_BYTES:
        raise DecryptFailure("nonce must be 12 bytes")
    ciphertext = b64u_decode(envelope.ciphertext)
    try:
        plain = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptFailure("authentication failed") from e
    try:
        return plain.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptFailure("plaintext is not UTF-8") from e
