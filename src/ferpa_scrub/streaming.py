"""Streaming rehydrator — buffers chunks and rehydrates tokens as they complete.

For streamed responses where tokens arrive as fragments:
    [[FER  →  [[FERPA:EM  →  [[FERPA:EMAIL:1]  →  [[FERPA:EMAIL:1]]

The rehydrator holds back anything that could still become a token and
flushes decrypted text as soon as a token completes or clearly is not one.

Usage:
    rehydrator = StreamingRehydrator(exported_key, token_map)
    for chunk in stream:
        ready_text = rehydrator.feed(chunk)
        if ready_text:
            yield ready_text
    # Flush any remaining buffer
    yield rehydrator.flush()
"""

from __future__ import annotations
import re
from typing import Any, Mapping

from .crypto import import_key, open_envelope
from .types import Envelope
from .vault import TOKEN_RE


_PREFIX = "[[FERPA:"
_TAIL = re.compile(r"[A-Z_]*(?::\d*\]?)?")


def _is_partial_token(buf: str) -> bool:
    """True if buf could still grow into a complete token."""
    if not _PREFIX.startswith(buf[:len(_PREFIX)]):
        return False
    return len(buf) <= len(_PREFIX) or _TAIL.fullmatch(buf, len(_PREFIX)) is not None


class StreamingRehydrator:
    """Buffers streaming chunks and rehydrates complete tokens."""

    __slots__ = ("_key", "_token_map", "_cache", "_buffer", "_max_token_len")

    def __init__(
        self,
        key: str | bytes,
        token_map: Mapping[str, Any],
        *,
        max_token_len: int = 64,
    ) -> None:
        self._key = import_key(key)
        self._token_map = token_map
        self._cache: dict[str, str] = {}
        self._buffer = ""
        self._max_token_len = max_token_len  # safety limit

    def feed(self, chunk: str) -> str:
        """Feed a chunk, return any text ready to emit."""
        self._buffer += chunk
        return self._drain()

    def flush(self) -> str:
        """Flush remaining buffer (call at end of stream)."""
        out = self._drain()
        # Whatever is left is an unfinished token prefix
        out += self._buffer
        self._buffer = ""
        return out

    def _resolve(self, token: str) -> str:
        if token in self._cache:
            return self._cache[token]
        if token not in self._token_map:
            return token
        value = open_envelope(Envelope.from_dict(self._token_map[token]), self._key)
        self._cache[token] = value
        return value

    def _drain(self) -> str:
        """Extract and rehydrate complete portions of the buffer."""
        out_parts: list[str] = []

        while self._buffer:
            idx = self._buffer.find("[")

            if idx == -1:
                out_parts.append(self._buffer)
                self._buffer = ""
                break

            if idx > 0:
                out_parts.append(self._buffer[:idx])
                self._buffer = self._buffer[idx:]

            # Buffer now starts with [
            m = TOKEN_RE.match(self._buffer)
            if m:
                out_parts.append(self._resolve(m.group()))
                self._buffer = self._buffer[m.end():]
                continue

            if _is_partial_token(self._buffer) and len(self._buffer) <= self._max_token_len:
                # Still accumulating a potential token; wait for more data
                break

            # Not a token: emit the bracket and keep scanning
            out_parts.append("[")
            self._buffer = self._buffer[1:]

        return "".join(out_parts)
