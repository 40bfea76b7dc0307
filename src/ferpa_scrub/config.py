"""YAML/dict/env config loader for ferpa-scrub.

Configuration is read here and nowhere else; everything downstream gets a
ScrubConfig injected.

Example YAML:

    ferpa_scrub:
      categories:            # empty = all
        - STUDENT_EMAIL
        - EMAIL
        - STUDENT_ID
      strict_categories: false
      max_workers: 8
      gateway_url: https://gateway.internal
      gemini_api_key: ""     # dev fallback only
      gemini_model: gemini-2.5-flash
      request_timeout: 30
      host: 127.0.0.1
      port: 18792
      log_level: INFO
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from .middleware import ScrubMiddleware
from .providers import GatewayProvider, GeminiProvider, ProviderChain
from .redactor import Redactor, RedactorConfig


@dataclass
class ScrubConfig:
    categories: list[str] = field(default_factory=list)
    strict_categories: bool = False
    max_workers: int = 8
    gateway_url: str | None = None
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    request_timeout: float = 30.0
    host: str = "127.0.0.1"
    port: int = 18792
    log_level: str = "INFO"


def load_config(data: Mapping[str, Any] | None) -> ScrubConfig:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "ferpa_scrub" key or flat
    if "ferpa_scrub" in data:
        data = data["ferpa_scrub"] or {}

    defaults = ScrubConfig()
    return ScrubConfig(
        categories=list(data.get("categories") or []),
        strict_categories=bool(data.get("strict_categories", defaults.strict_categories)),
        max_workers=int(data.get("max_workers", defaults.max_workers)),
        gateway_url=data.get("gateway_url") or None,
        gemini_api_key=data.get("gemini_api_key") or None,
        gemini_model=data.get("gemini_model") or defaults.gemini_model,
        request_timeout=float(data.get("request_timeout", defaults.request_timeout)),
        host=data.get("host", defaults.host),
        port=int(data.get("port", defaults.port)),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )


def load_from_yaml(path: str | Path) -> ScrubConfig:
    """Load config from a YAML file."""
    import yaml
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f))


def config_from_env(
    base: ScrubConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> ScrubConfig:
    """Overlay environment variables on a config."""
    env = os.environ if environ is None else environ
    cfg = base or ScrubConfig()
    overrides: dict[str, Any] = {}
    if env.get("AI_GATEWAY_URL"):
        overrides["gateway_url"] = env["AI_GATEWAY_URL"]
    if env.get("GEMINI_API_KEY"):
        overrides["gemini_api_key"] = env["GEMINI_API_KEY"]
    if env.get("GEMINI_MODEL"):
        overrides["gemini_model"] = env["GEMINI_MODEL"]
    if env.get("FERPA_SCRUB_PORT"):
        overrides["port"] = int(env["FERPA_SCRUB_PORT"])
    if env.get("FERPA_SCRUB_LOG_LEVEL"):
        overrides["log_level"] = env["FERPA_SCRUB_LOG_LEVEL"].upper()
    return replace(cfg, **overrides)


def build_providers(cfg: ScrubConfig) -> ProviderChain:
    """Gateway first, direct call second; either may be absent."""
    providers = []
    if cfg.gateway_url:
        providers.append(GatewayProvider(cfg.gateway_url, timeout=cfg.request_timeout))
    if cfg.gemini_api_key:
        providers.append(GeminiProvider(
            cfg.gemini_api_key, model=cfg.gemini_model, timeout=cfg.request_timeout,
        ))
    return ProviderChain(providers)


def create_middleware(config: ScrubConfig | Mapping[str, Any] | None = None) -> ScrubMiddleware:
    """Create a fully configured middleware from a config."""
    cfg = config if isinstance(config, ScrubConfig) else load_config(config)
    redactor = Redactor(RedactorConfig(
        categories=cfg.categories or None,
        strict_categories=cfg.strict_categories,
    ))
    return ScrubMiddleware(
        redactor=redactor,
        providers=build_providers(cfg),
        max_workers=cfg.max_workers,
    )
