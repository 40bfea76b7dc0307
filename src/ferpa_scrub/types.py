"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import DecryptFailure


@dataclass(frozen=True, slots=True)
class Match:
    """A single tokenized span."""
    category: str          # e.g. "EMAIL", "STUDENT_ID"
    token: str             # "[[FERPA:EMAIL:1]]"
    text: str              # the sensitive substring that was replaced
    start: int             # offset in the working text when it was scanned


@dataclass(frozen=True, slots=True)
class Envelope:
    """One sealed value: AES-GCM ciphertext plus its nonce (both base64url)."""
    ciphertext: str
    nonce: str

    def to_dict(self) -> dict[str, str]:
        return {"ciphertext": self.ciphertext, "nonce": self.nonce}

    @classmethod
    def from_dict(cls, data: Any) -> "Envelope":
        """Accept a wire dict; ``{c, iv}`` is the older field naming."""
        if isinstance(data, Envelope):
            return data
        if not isinstance(data, Mapping):
            raise DecryptFailure("envelope is not an object")
        ciphertext = data.get("ciphertext", data.get("c"))
        nonce = data.get("nonce", data.get("iv"))
        if not isinstance(ciphertext, str) or not isinstance(nonce, str):
            raise DecryptFailure("envelope is missing ciphertext or nonce")
        return cls(ciphertext=ciphertext, nonce=nonce)


@dataclass(slots=True)
class Stats:
    """Per-category counts for UI feedback.  Not needed for reversal."""
    total: int = 0
    per_category: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "perCategory": dict(self.per_category)}


@dataclass(slots=True)
class DeidentifyResult:
    """Result of de-identifying one text."""
    scrubbed_text: str
    exported_key: str                                   # base64url, 32 bytes
    matches: list[Match] = field(default_factory=list)
    token_map: dict[str, Envelope] = field(default_factory=dict)
    stats: Stats = field(default_factory=Stats)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape returned to the transport layer."""
        return {
            "scrubbedText": self.scrubbed_text,
            "exportedKey": self.exported_key,
            "tokenMap": {t: e.to_dict() for t, e in self.token_map.items()},
            "stats": self.stats.to_dict(),
        }
