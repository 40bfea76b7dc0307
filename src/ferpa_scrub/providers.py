"""Generation providers — tried in order until one answers.

The preferred path is an external gateway that holds provider credentials
itself.  The direct Gemini call is a development fallback used only when an
API key is configured.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import requests
from requests import RequestException

from .errors import GenerationFailure

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


@dataclass(frozen=True)
class GenerationRequest:
    """What the core hands to a provider.  Text is already sanitized."""
    action: str
    sanitized_text: str
    sanitized_instructions: str
    system_policy: str
    output_schema: dict[str, Any] = field(default_factory=dict)

    def task_line(self) -> str:
        return self.sanitized_instructions.strip() or f"Perform action: {self.action}."


def _json_object(resp) -> dict[str, Any]:
    """Decoded reply body; anything but a JSON object is a provider failure."""
    data = resp.json()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class GenerationResult:
    content: str
    provider: str
    model: str | None = None


class Provider(Protocol):
    name: str

    def call(self, request: GenerationRequest) -> GenerationResult: ...


class GatewayProvider:
    """POST to ``<gateway>/ai``; the gateway owns the provider secrets."""

    name = "gateway"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = base_url.rstrip("/") + "/ai"
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, request: GenerationRequest) -> GenerationResult:
        resp = self.session.post(
            self.url,
            json={
                "action": request.action,
                "text": request.sanitized_text,
                "directions": request.sanitized_instructions,
                "system": request.system_policy,
                "schema": request.output_schema,
                "format": "json",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = _json_object(resp)
        raw = data.get("content") or data.get("text") or data.get("geminiText") or ""
        return GenerationResult(content=str(raw), provider=self.name)


class GeminiProvider:
    """Direct generateContent call.  Development fallback only."""

    name = "direct"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-2.5-flash",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, request: GenerationRequest) -> GenerationResult:
        prompt = "\n".join([
            "TASK:",
            request.task_line(),
            "",
            "CONTENT:",
            request.sanitized_text,
        ])
        resp = self.session.post(
            GEMINI_ENDPOINT.format(model=quote(self.model, safe="")),
            params={"key": self.api_key},
            json={
                "systemInstruction": {"role": "system", "parts": [{"text": request.system_policy}]},
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {"response_mime_type": "application/json"},
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = _json_object(resp)
        candidates = data.get("candidates") or [{}]
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise ValueError("unexpected candidates in reply")
        content = candidates[0].get("content") or {}
        parts = (content.get("parts") or []) if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise ValueError("unexpected content in reply")
        text = "\n".join(
            str(p["text"]) for p in parts if isinstance(p, dict) and p.get("text")
        )
        return GenerationResult(content=text, provider=self.name, model=self.model)


class ProviderChain:
    """Try each provider in order; the first success wins."""

    def __init__(self, providers: list[Provider] | None = None) -> None:
        self.providers = list(providers or [])

    def __bool__(self) -> bool:
        return bool(self.providers)

    def call(self, request: GenerationRequest) -> GenerationResult:
        if not self.providers:
            raise GenerationFailure(
                "no generation provider configured; set AI_GATEWAY_URL "
                "(preferred) or GEMINI_API_KEY"
            )
        for provider in self.providers:
            try:
                return provider.call(request)
            except (RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Provider %s failed: %s", provider.name, e)
        raise GenerationFailure("all generation providers failed")
