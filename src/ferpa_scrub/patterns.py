"""Pattern catalog — the fixed, ordered set of detection rules.

Each category holds one or more matchers evaluated in declaration order.
Categories themselves run in CATEGORY_ORDER, most specific first, so a
STUDENT_EMAIL address is tokenized before the generic EMAIL rule sees it.

All quantifiers are bounded, input length is not limited upstream.  The one
exception is an email local part: it is anchored to the start of its run by
a lookbehind, so it is consumed whole (never split) in linear time.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .errors import UnsupportedCategory

logger = logging.getLogger(__name__)

# Email local part; the lookbehind stops a match from starting mid-run
_LOCAL_PART = r"(?<![a-zA-Z0-9._%+\-])[a-zA-Z0-9._%+\-]+"


@dataclass(frozen=True, slots=True)
class Matcher:
    """A compiled pattern plus the group holding the sensitive span.

    ``capture=None`` means the whole match is sensitive.  Otherwise only
    that group is replaced and the rest of the match stays in the text.
    """
    category: str
    pattern: re.Pattern
    capture: int | None = None

    def spans(self, text: str) -> Iterator[tuple[int, int]]:
        """Yield (start, end) of each sensitive span, left to right."""
        for m in self.pattern.finditer(text):
            if self.capture is None:
                yield m.span()
                continue
            # Group did not participate (or matched nothing): not a match.
            if not m.group(self.capture):
                continue
            yield m.span(self.capture)


_MONTH = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?"
    r"|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)

# Name word: Capitalised, optionally O'/Mc prefixed, optionally hyphenated.
_NAME_WORD = r"(?:O'|Mc)?[A-Z][a-z]{1,40}(?:-[A-Z][a-z]{1,40})?"
_INITIAL = r"(?:\s{1,4}[A-Z]\.)?"

# Category → ordered matchers
_CATALOG: dict[str, tuple[Matcher, ...]] = {
    # k12 district and .edu addresses
    "STUDENT_EMAIL": (
        Matcher("STUDENT_EMAIL", re.compile(
            _LOCAL_PART + r"@"
            r"(?:(?:student\.)?[A-Za-z0-9.\-]{0,253}k12\.[A-Za-z.]{1,253}"
            r"|[A-Za-z0-9.\-]{1,253}\.edu)\b",
            re.IGNORECASE,
        )),
    ),

    "EMAIL": (
        Matcher("EMAIL", re.compile(
            _LOCAL_PART + r"@[a-zA-Z0-9.\-]{1,253}\.[a-zA-Z]{2,63}"
        )),
    ),

    # US 10-digit: (555) 123-4567, 555.123.4567, 5551234567
    "PHONE": (
        Matcher("PHONE", re.compile(
            r"\b\(?\d{3}\)?[\-.\s]?\d{3}[\-.\s]?\d{4}\b"
        )),
    ),

    "SSN": (
        Matcher("SSN", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    ),

    # Coarse: house number followed by two to four words.  Over-redacts
    # ordinary prose ("12 new books arrived") and is kept that way so token
    # counts stay stable.
    "ADDRESS": (
        Matcher("ADDRESS", re.compile(
            r"\b\d{1,5}\s{1,8}[A-Za-z0-9'.\-]{1,64}(?:\s{1,8}[A-Za-z0-9'.\-]{1,64}){1,3}\b"
        )),
    ),

    "NAME": (
        # First [M.] Last
        Matcher("NAME", re.compile(
            r"\b([A-Z][a-z]{1,40}" + _INITIAL + r"\s{1,4}" + _NAME_WORD + r")\b"
        ), capture=1),
        # Last, First [M.]
        Matcher("NAME", re.compile(
            r"\b(" + _NAME_WORD + r",\s{1,4}[A-Z][a-z]{1,40}" + _INITIAL + r")\b"
        ), capture=1),
    ),

    # Only the digits are sensitive; the label stays.
    "STUDENT_ID": (
        Matcher("STUDENT_ID", re.compile(
            r"(?:(?:Student\s{0,4}ID|SID|ID)\s{0,4}[:#]?\s{0,4})(\b\d{6,10}\b)",
            re.IGNORECASE,
        ), capture=1),
    ),

    "DATE": (
        Matcher("DATE", re.compile(r"\b\d{4}-\d{2}-\d{2}\b")),                 # 2024-10-31
        Matcher("DATE", re.compile(r"\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b")),   # 10/31/2024
        Matcher("DATE", re.compile(
            r"\b" + _MONTH + r"\s{1,4}\d{1,2},\s{1,4}\d{4}\b", re.IGNORECASE,  # Oct 31, 2024
        )),
        Matcher("DATE", re.compile(
            r"\b\d{1,2}\s{1,4}" + _MONTH + r"\s{1,4}\d{4}\b", re.IGNORECASE,   # 31 Oct 2024
        )),
    ),
}

# Evaluation priority.  Specific before generic; new categories go where
# they cannot steal spans from existing ones.
CATEGORY_ORDER: tuple[str, ...] = (
    "STUDENT_EMAIL",
    "EMAIL",
    "PHONE",
    "SSN",
    "ADDRESS",
    "NAME",
    "STUDENT_ID",
    "DATE",
)

CATALOG_VERSION = "1"


def categories() -> tuple[str, ...]:
    """All known category names in priority order."""
    return CATEGORY_ORDER


def resolve_categories(
    requested: Iterable[str] | None = None,
    *,
    strict: bool = False,
) -> list[str]:
    """Map a caller's category filter onto catalog priority order.

    Empty or None selects everything.  Names are case-insensitive.  Unknown
    names are dropped with a warning, or raise UnsupportedCategory when
    ``strict`` is set.
    """
    if not requested:
        return list(CATEGORY_ORDER)

    wanted: set[str] = set()
    for name in requested:
        key = str(name).strip().upper()
        if key in _CATALOG:
            wanted.add(key)
        elif strict:
            raise UnsupportedCategory(f"unknown category: {name!r}")
        else:
            logger.warning("Ignoring unknown category %r", name)

    return [c for c in CATEGORY_ORDER if c in wanted]


def matchers_for(category: str) -> tuple[Matcher, ...]:
    """Matchers for one category, in declaration order."""
    return _CATALOG[category]


def resolve(
    requested: Iterable[str] | None = None,
    *,
    strict: bool = False,
) -> list[Matcher]:
    """Flat ordered list of matchers for a category filter."""
    return [
        m
        for category in resolve_categories(requested, strict=strict)
        for m in _CATALOG[category]
    ]
