"""HTTP sidecar server for ferpa-scrub.

Runs as a lightweight stdlib HTTP server on localhost.

Endpoints:
    POST /deidentify   — {text, categories?} → {scrubbedText, exportedKey, tokenMap, stats}
    POST /reidentify   — {text, exportedKey, tokenMap} → {originalText}
    POST /sanitize     — {text} → {text}
    POST /generate     — {action, text, instructions?} → {content, meta}
    GET  /health       — Health check

Errors are {"error": {"kind": ..., "message": ...}} with a 4xx/5xx status.
"""

from __future__ import annotations
import json
import logging
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any

from .config import ScrubConfig, config_from_env, create_middleware
from .errors import DecryptFailure, GenerationFailure, MalformedInput, ScrubError
from .guard import sanitize
from .middleware import ScrubMiddleware
from .patterns import CATALOG_VERSION, categories

logger = logging.getLogger(__name__)

_STATUS = {
    MalformedInput: 400,
    DecryptFailure: 400,
    GenerationFailure: 502,
}

POST_ROUTES = frozenset({"/deidentify", "/reidentify", "/sanitize", "/generate"})

# Shared state
_middleware: ScrubMiddleware | None = None


def _get_middleware() -> ScrubMiddleware:
    global _middleware
    if _middleware is None:
        _middleware = create_middleware(config_from_env())
    return _middleware


def _require_str(body: dict[str, Any], key: str, *, optional: bool = False) -> str:
    value = body.get(key)
    if value is None and optional:
        return ""
    if not isinstance(value, str):
        raise MalformedInput(f"'{key}' must be a string")
    return value


def handle(path: str, body: Any, mw: ScrubMiddleware) -> dict[str, Any]:
    """Dispatch one POST body to the middleware.  Raises ScrubError."""
    if not isinstance(body, dict):
        raise MalformedInput("request body must be a JSON object")

    if path == "/deidentify":
        text = _require_str(body, "text", optional=True)
        cats = body.get("categories")
        if cats is not None and not (
            isinstance(cats, list) and all(isinstance(c, str) for c in cats)
        ):
            raise MalformedInput("'categories' must be a list of strings")
        return mw.deidentify(text, cats).to_dict()

    if path == "/reidentify":
        text = _require_str(body, "text", optional=True)
        key = _require_str(body, "exportedKey")
        token_map = body.get("tokenMap")
        if not isinstance(token_map, dict):
            raise MalformedInput("'tokenMap' must be an object")
        return {"originalText": mw.reidentify(text, key, token_map)}

    if path == "/sanitize":
        return {"text": sanitize(_require_str(body, "text", optional=True))}

    if path == "/generate":
        result = mw.generate(
            _require_str(body, "action"),
            _require_str(body, "text", optional=True),
            _require_str(body, "instructions", optional=True),
        )
        return {"content": result.content, "meta": {"provider": result.provider, "model": result.model}}

    raise MalformedInput(f"unknown path: {path}")


class ScrubHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the ferpa-scrub sidecar."""

    def _read_json(self) -> Any:
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError as e:
            raise MalformedInput("invalid Content-Length header") from e
        if length < 0:
            raise MalformedInput("invalid Content-Length header")
        try:
            body = self.rfile.read(length).decode("utf-8")
            return json.loads(body) if body else {}
        except UnicodeDecodeError as e:
            raise MalformedInput("request body is not valid UTF-8") from e
        except ValueError as e:
            raise MalformedInput("request body is not valid JSON") from e

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        if self.path == "/health":
            self._respond(200, {
                "status": "ok",
                "catalog_version": CATALOG_VERSION,
                "categories": list(categories()),
            })
        else:
            self._respond(404, {"error": {"kind": "NotFound", "message": self.path}})

    def do_POST(self) -> None:
        if self.path not in POST_ROUTES:
            self._respond(404, {"error": {"kind": "NotFound", "message": self.path}})
            return
        try:
            self._respond(200, handle(self.path, self._read_json(), _get_middleware()))
        except ScrubError as e:
            self._respond(_STATUS.get(type(e), 400), e.to_dict())
        except Exception:
            logger.exception("Unhandled error on %s", self.path)
            self._respond(500, {"error": {"kind": "InternalError", "message": "internal server error"}})


def serve(config: ScrubConfig | None = None) -> None:
    """Start the ferpa-scrub HTTP sidecar."""
    global _middleware
    cfg = config or config_from_env()
    _middleware = create_middleware(cfg)

    server = HTTPServer((cfg.host, cfg.port), ScrubHandler)
    logger.info("ferpa-scrub sidecar listening on http://%s:%d", cfg.host, cfg.port)
    logger.info("  providers: %s", [p.name for p in _middleware.providers.providers] or "none")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        server.shutdown()


if __name__ == "__main__":
    from .cli import main
    main(["serve"])
