"""Error taxonomy.

Every failure that crosses the engine boundary is a ScrubError carrying a
stable machine-readable ``kind``.  Callers render it as:

    {"error": {"kind": "DecryptFailure", "message": "..."}}
"""

from __future__ import annotations


class ScrubError(Exception):
    """Base class for all engine errors."""

    kind = "ScrubError"

    def to_dict(self) -> dict:
        return {"error": {"kind": self.kind, "message": str(self)}}


class MalformedInput(ScrubError):
    """Request body could not be parsed or has the wrong shape."""

    kind = "MalformedInput"


class DecryptFailure(ScrubError):
    """Wrong key, tampered ciphertext, or a missing/garbled envelope."""

    kind = "DecryptFailure"


class UnsupportedCategory(ScrubError):
    """Raised only in strict mode; otherwise unknown categories are ignored."""

    kind = "UnsupportedCategory"


class GenerationFailure(ScrubError):
    """No provider in the chain produced a response."""

    kind = "GenerationFailure"
