"""ferpa-scrub — reversible de-identification for text sent to LLM services."""

from .redactor import Redactor, RedactorConfig
from .rehydrate import reidentify
from .vault import Vault, TOKEN_RE, format_token
from .guard import sanitize, strip_urls
from .middleware import ScrubMiddleware
from .streaming import StreamingRehydrator
from .providers import GatewayProvider, GeminiProvider, ProviderChain
from .config import ScrubConfig, create_middleware, load_config, load_from_yaml, config_from_env
from .errors import ScrubError, MalformedInput, DecryptFailure, UnsupportedCategory, GenerationFailure
from .types import DeidentifyResult, Envelope, Match, Stats

__all__ = [
    "Redactor", "RedactorConfig",
    "reidentify",
    "Vault", "TOKEN_RE", "format_token",
    "sanitize", "strip_urls",
    "ScrubMiddleware",
    "StreamingRehydrator",
    "GatewayProvider", "GeminiProvider", "ProviderChain",
    "ScrubConfig", "create_middleware", "load_config", "load_from_yaml", "config_from_env",
    "ScrubError", "MalformedInput", "DecryptFailure", "UnsupportedCategory", "GenerationFailure",
    "DeidentifyResult", "Envelope", "Match", "Stats",
]
__version__ = "0.1.0"
