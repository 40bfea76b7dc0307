"""CLI interface for ferpa-scrub.

Usage:
    # De-identify (stdin: plain text, stdout: JSON with scrubbedText, exportedKey, tokenMap, stats)
    echo 'Email jane@school.k12.ca.us' | python -m ferpa_scrub.cli deidentify --categories STUDENT_EMAIL,EMAIL

    # Re-identify (stdin: JSON {text, exportedKey, tokenMap}, stdout: JSON {originalText})
    python -m ferpa_scrub.cli reidentify < request.json

    # Prompt guard (stdin: text, stdout: sanitized text)
    python -m ferpa_scrub.cli sanitize < notes.txt

    # HTTP sidecar
    python -m ferpa_scrub.cli serve --port 18792

Keys are never written anywhere except stdout.
"""

from __future__ import annotations
import argparse
import json
import logging
import sys

from .config import ScrubConfig, config_from_env, create_middleware, load_from_yaml
from .errors import MalformedInput, ScrubError
from .guard import sanitize


def _load_config(args: argparse.Namespace) -> ScrubConfig:
    cfg = load_from_yaml(args.config) if args.config else None
    cfg = config_from_env(cfg)
    if args.categories:
        cfg.categories = [c for c in args.categories.split(",") if c.strip()]
    if args.strict:
        cfg.strict_categories = True
    if args.log_level:
        cfg.log_level = args.log_level.upper()
    return cfg


def _emit(data: object) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_deidentify(args: argparse.Namespace, cfg: ScrubConfig) -> None:
    """De-identify plain text on stdin."""
    mw = create_middleware(cfg)
    result = mw.deidentify(sys.stdin.read())
    _emit(result.to_dict())


def cmd_reidentify(args: argparse.Namespace, cfg: ScrubConfig) -> None:
    """Re-identify a JSON request on stdin."""
    try:
        body = json.loads(sys.stdin.read())
    except ValueError as e:
        raise MalformedInput("stdin is not valid JSON") from e
    if not isinstance(body, dict) or not isinstance(body.get("tokenMap"), dict):
        raise MalformedInput("expected {text, exportedKey, tokenMap}")
    if not isinstance(body.get("exportedKey"), str):
        raise MalformedInput("'exportedKey' must be a string")

    mw = create_middleware(cfg)
    text = mw.reidentify(body.get("text") or "", body["exportedKey"], body["tokenMap"])
    _emit({"originalText": text})


def cmd_sanitize(args: argparse.Namespace, cfg: ScrubConfig) -> None:
    """Run the prompt guard over stdin."""
    sys.stdout.write(sanitize(sys.stdin.read()))


def cmd_serve(args: argparse.Namespace, cfg: ScrubConfig) -> None:
    """Start the HTTP sidecar."""
    from .server import serve
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    serve(cfg)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="ferpa_scrub",
        description="Reversible de-identification for text sent to generation services",
    )
    parser.add_argument("--config", default="", help="YAML config path")
    parser.add_argument("--categories", default="", help="Comma-separated categories (default: all)")
    parser.add_argument("--strict", action="store_true", help="Fail on unknown categories")
    parser.add_argument("--log-level", default="", help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("deidentify", help="De-identify plain text (stdin)")
    sub.add_parser("reidentify", help="Re-identify tokens (JSON stdin)")
    sub.add_parser("sanitize", help="Prompt-guard text (stdin)")
    serve_p = sub.add_parser("serve", help="Run the HTTP sidecar")
    serve_p.add_argument("--host", default="")
    serve_p.add_argument("--port", type=int, default=0)

    args = parser.parse_args(argv)
    cfg = _load_config(args)
    logging.basicConfig(
        level=cfg.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmds = {
        "deidentify": cmd_deidentify,
        "reidentify": cmd_reidentify,
        "sanitize": cmd_sanitize,
        "serve": cmd_serve,
    }
    try:
        cmds[args.command](args, cfg)
    except ScrubError as e:
        _emit(e.to_dict())
        sys.exit(1)


if __name__ == "__main__":
    main()
