"""Redactor — the main API.  Scan, tokenize, seal.

Usage:
    from ferpa_scrub import Redactor, reidentify

    redactor = Redactor()        # reusable, thread-safe after init

    result = redactor.deidentify("Email me at john@acme.com")
    print(result.scrubbed_text)  # "Email me at [[FERPA:EMAIL:1]]"

    # later, with the key and map the caller kept
    reidentify(result.scrubbed_text, result.exported_key, result.token_map)
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable

from .patterns import Matcher, resolve
from .types import DeidentifyResult, Match
from .vault import TOKEN_RE, Vault

logger = logging.getLogger(__name__)


@dataclass
class RedactorConfig:
    """Configuration for the Redactor."""
    categories: list[str] | None = None   # default filter; None = all
    strict_categories: bool = False       # unknown names raise instead of being ignored


class Redactor:
    """Rule-based de-identifier.

    Categories run in catalog priority order.  Each matcher sees the text
    as already rewritten by every matcher before it, so a span turned into
    a STUDENT_EMAIL token can never be picked up again by EMAIL.
    """

    def __init__(self, config: RedactorConfig | None = None) -> None:
        self.config = config or RedactorConfig()

    def deidentify(
        self,
        text: str,
        categories: Iterable[str] | None = None,
    ) -> DeidentifyResult:
        """Replace sensitive spans with tokens and seal the originals.

        ``categories`` overrides the configured filter for this call.
        Returns the scrubbed text, the exported key, the token map and stats.
        """
        selected = categories if categories is not None else self.config.categories
        matchers = resolve(selected, strict=self.config.strict_categories)

        vault = Vault()
        working = text or ""
        matches: list[Match] = []

        for matcher in matchers:
            working = _apply_matcher(matcher, working, vault, matches)

        stats = vault.stats()
        logger.debug(
            "deidentify: %d tokens %s", stats.total, stats.per_category,
        )
        return DeidentifyResult(
            scrubbed_text=working,
            exported_key=vault.exported_key,
            matches=matches,
            token_map=vault.token_map(),
            stats=stats,
        )


def _apply_matcher(
    matcher: Matcher,
    text: str,
    vault: Vault,
    matches: list[Match],
) -> str:
    """One left-to-right pass of a matcher over a snapshot of the text.

    Edits are collected against the snapshot and applied once, so offsets
    never shift under the scan.  Spans overlapping an existing token are
    skipped.
    """
    existing = [m.span() for m in TOKEN_RE.finditer(text)]
    edits: list[tuple[int, int, str]] = []

    for start, end in matcher.spans(text):
        if any(start < e and end > s for s, e in existing):
            continue
        original = text[start:end]
        token = vault.issue(matcher.category, original)
        edits.append((start, end, token))
        matches.append(Match(
            category=matcher.category,
            token=token,
            text=original,
            start=start,
        ))

    if not edits:
        return text

    parts: list[str] = []
    pos = 0
    for start, end, token in edits:
        parts.append(text[pos:start])
        parts.append(token)
        pos = end
    parts.append(text[pos:])
    return "".join(parts)
