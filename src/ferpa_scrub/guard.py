"""Prompt guard — neutralize links and instruction-override phrasing.

Runs on scrubbed text and free-form instructions before they go to the
generation service, and on the service's reply before it reaches the
caller.  Placeholder tokens pass through untouched; a blocked line that
carries tokens is reduced to those tokens.
"""

from __future__ import annotations
import re

from .vault import TOKEN_RE

LINK_MARKER = "[link removed]"

# Stops short of a token glued to the end of a URL.
_URL_RE = re.compile(r"https?://(?:(?!\[\[FERPA:)\S)+", re.IGNORECASE)

_BLOCKED_RE = re.compile(
    r"ignore (?:all|previous|earlier) instructions"
    r"|disregard|override|bypass|jailbreak"
    r"|system:|developer message|assistant:|user:",
    re.IGNORECASE,
)

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")

SYSTEM_POLICY = (
    "SYSTEM POLICY:\n"
    "- Never request or reveal real-world identifiers (names, emails, phone numbers, "
    "addresses, SSNs, student IDs, dates).\n"
    "- Do not ask the user to provide any sensitive data.\n"
    "- Preserve any tokens of the form [[FERPA:TYPE:N]] verbatim if present in the input; "
    "do not alter their formatting.\n"
    "- Do not include live URLs; if necessary, state [link removed].\n"
    "- Follow the required output schema strictly."
)

OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "content": {"type": "string"},
    },
    "required": ["content"],
    "additionalProperties": False,
}


def strip_urls(text: str | None) -> str:
    """Replace http(s) links with a neutral marker."""
    if not text:
        return ""
    return _URL_RE.sub(LINK_MARKER, text)


def is_blocked(line: str) -> bool:
    """True if the line (tokens aside) contains override phrasing."""
    return _BLOCKED_RE.search(TOKEN_RE.sub(" ", line)) is not None


def _filter_line(line: str) -> str:
    if not is_blocked(line):
        return line
    tokens = [m.group() for m in TOKEN_RE.finditer(line)]
    if not tokens:
        return ""
    ending = "\n" if line.endswith("\n") else ""
    return " ".join(tokens) + ending


def sanitize(text: str | None) -> str:
    """Strip URLs, then drop lines with instruction-override phrasing.

    Line endings of kept lines are preserved.  Never raises.
    """
    if not text:
        return ""
    cleaned = strip_urls(text)
    return "".join(_filter_line(line) for line in _LINE_RE.findall(cleaned))
