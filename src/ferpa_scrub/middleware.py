"""Middleware — the engine plus the guarded hop to the generation service.

Usage:

    mw = ScrubMiddleware.create()

    # De-identify; the caller keeps the key and map
    result = mw.deidentify("Email jane@school.edu about Friday")

    # Only scrubbed text goes out, sanitized both ways
    reply = mw.generate("summarize", result.scrubbed_text)

    # Restore originals in the reply
    real = mw.reidentify(reply.content, result.exported_key, result.token_map)
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .errors import MalformedInput
from .guard import OUTPUT_SCHEMA, SYSTEM_POLICY, sanitize
from .providers import GenerationRequest, GenerationResult, ProviderChain
from .redactor import Redactor, RedactorConfig
from .rehydrate import reidentify
from .types import DeidentifyResult

logger = logging.getLogger(__name__)

ACTIONS = frozenset({"summarize", "simplify", "extract", "narrative"})


@dataclass
class ScrubMiddleware:
    """Sits between the caller and the generation service."""

    redactor: Redactor
    providers: ProviderChain = field(default_factory=ProviderChain)
    max_workers: int | None = None

    @classmethod
    def create(
        cls,
        *,
        config: RedactorConfig | None = None,
        providers: ProviderChain | None = None,
    ) -> "ScrubMiddleware":
        """Factory — a middleware with default catalog and the given providers."""
        return cls(redactor=Redactor(config), providers=providers or ProviderChain())

    def deidentify(
        self,
        text: str,
        categories: Iterable[str] | None = None,
    ) -> DeidentifyResult:
        return self.redactor.deidentify(text, categories)

    def reidentify(self, text: str, key: str | bytes, token_map: Mapping[str, Any]) -> str:
        return reidentify(text, key, token_map, max_workers=self.max_workers)

    def build_request(
        self,
        action: str,
        text: str,
        instructions: str | None = None,
    ) -> GenerationRequest:
        """Sanitize inputs and attach the system policy and output schema."""
        if action not in ACTIONS:
            raise MalformedInput(f"invalid action: {action!r}")
        return GenerationRequest(
            action=action,
            sanitized_text=sanitize(text),
            sanitized_instructions=sanitize(instructions),
            system_policy=SYSTEM_POLICY,
            output_schema=OUTPUT_SCHEMA,
        )

    def generate(
        self,
        action: str,
        text: str,
        instructions: str | None = None,
    ) -> GenerationResult:
        """Send scrubbed text downstream; sanitize the reply on the way back."""
        request = self.build_request(action, text, instructions)
        result = self.providers.call(request)
        logger.info("generate: action=%s provider=%s", action, result.provider)
        return GenerationResult(
            content=sanitize(result.content),
            provider=result.provider,
            model=result.model,
        )
