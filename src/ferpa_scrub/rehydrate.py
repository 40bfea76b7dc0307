"""Rehydrator — put original values back in place of tokens.

Distinct tokens are decrypted once each, concurrently; substitution only
starts after every decryption has finished.  Tokens with no entry in the
map stay as they are.  One bad envelope fails the whole call.
"""

from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping

from .crypto import import_key, open_envelope
from .errors import DecryptFailure
from .types import Envelope
from .vault import TOKEN_RE, find_tokens

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


def decrypt_tokens(
    tokens: list[str],
    key: bytes,
    token_map: Mapping[str, Any],
    *,
    max_workers: int | None = None,
) -> dict[str, str]:
    """Decrypt the given tokens.  Tokens absent from the map are skipped."""
    pending = [(t, Envelope.from_dict(token_map[t])) for t in tokens if t in token_map]
    if not pending:
        return {}

    def _open(item: tuple[str, Envelope]) -> tuple[str, str]:
        token, envelope = item
        try:
            return token, open_envelope(envelope, key)
        except DecryptFailure:
            logger.warning("Decrypt failed for %s", token)
            raise

    workers = min(len(pending), max_workers or DEFAULT_MAX_WORKERS)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        # map() re-raises the first failure; the with-block joins the rest
        return dict(pool.map(_open, pending))


def reidentify(
    text: str,
    key: str | bytes,
    token_map: Mapping[str, Any],
    *,
    max_workers: int | None = None,
) -> str:
    """Replace every mapped token in text with its decrypted original.

    ``key`` is the exported base64url key (or raw bytes).  ``token_map``
    values may be Envelope objects or wire dicts.
    """
    if not text:
        return ""
    if not isinstance(token_map, Mapping):
        raise DecryptFailure("token map is not an object")

    raw_key = import_key(key)
    originals = decrypt_tokens(
        find_tokens(text), raw_key, token_map, max_workers=max_workers,
    )
    if not originals:
        return text

    logger.debug("reidentify: %d distinct tokens restored", len(originals))
    # Single pass: restored values are never rescanned for tokens.
    return TOKEN_RE.sub(lambda m: originals.get(m.group(), m.group()), text)
