"""Vault — request-scoped token issuer and envelope store.

One Vault per de-identify call:
  - holds a fresh AES-256 key that is exported to the caller, never kept
  - numbers tokens per category, 1-based, in the order they are issued
  - seals each original value independently under its own nonce

Dropping the vault (and the exported key) makes every entry unrecoverable.
"""

from __future__ import annotations
import re
from collections import defaultdict

from .crypto import new_request_key, seal
from .types import Envelope, Stats


# Token format: [[FERPA:TYPE:N]] is wire-visible and must not change
TOKEN_FMT = "[[FERPA:{category}:{idx}]]"
TOKEN_RE = re.compile(r"\[\[FERPA:([A-Z_]+):(\d+)\]\]")


def format_token(category: str, idx: int) -> str:
    return TOKEN_FMT.format(category=category, idx=idx)


def find_tokens(text: str) -> list[str]:
    """Distinct tokens in text, in order of first appearance."""
    return list(dict.fromkeys(m.group() for m in TOKEN_RE.finditer(text)))


class Vault:
    """Per-request key, counters and token → envelope map."""

    __slots__ = ("_key", "_exported_key", "_counters", "_token_map")

    def __init__(self) -> None:
        self._key, self._exported_key = new_request_key()
        self._counters: dict[str, int] = defaultdict(int)
        self._token_map: dict[str, Envelope] = {}   # [[FERPA:EMAIL:1]] → Envelope

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def next_token(self, category: str) -> str:
        """Reserve the next token number for a category."""
        self._counters[category] += 1
        return format_token(category, self._counters[category])

    def seal(self, token: str, original: str) -> Envelope:
        """Encrypt the original value behind a token."""
        envelope = seal(original, self._key)
        self._token_map[token] = envelope
        return envelope

    def issue(self, category: str, original: str) -> str:
        """Reserve a token and seal its value in one step."""
        token = self.next_token(category)
        self.seal(token, original)
        return token

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def exported_key(self) -> str:
        return self._exported_key

    @property
    def size(self) -> int:
        return len(self._token_map)

    def token_map(self) -> dict[str, Envelope]:
        """Copy of the token → envelope map."""
        return dict(self._token_map)

    def stats(self) -> Stats:
        per_category = {c: n for c, n in self._counters.items() if n}
        return Stats(total=sum(per_category.values()), per_category=per_category)
