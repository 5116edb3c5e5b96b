"""Command-line interface for the order notification service."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Sequence

from orderhub.config import ServiceSettings, load_settings

logger = logging.getLogger("orderhub.main")

_COMMANDS = ("serve", "show-config")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Order Hub service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP and WebSocket service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default from settings)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: 3000)")
    serve_parser.add_argument("--config", default=None, help="Path to a YAML settings file")

    show_parser = subparsers.add_parser("show-config", help="Print the resolved settings")
    show_parser.add_argument("--config", default=None, help="Path to a YAML settings file")

    args_list = list(sys.argv[1:] if argv is None else argv)
    wants_help = bool({"-h", "--help"} & set(args_list))
    if not args_list or (args_list[0] not in _COMMANDS and not wants_help):
        args_list.insert(0, "serve")
    return parser.parse_args(args_list)


def _resolve_settings(args: argparse.Namespace) -> ServiceSettings:
    config_path = Path(args.config).expanduser() if getattr(args, "config", None) else None
    settings = load_settings(config_path)
    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return replace(settings, **overrides) if overrides else settings


def _serve(settings: ServiceSettings) -> None:
    from orderhub.api import create_app
    import uvicorn

    logger.info("Starting Order Hub on http://%s:%s", settings.host, settings.port)
    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


def _show_config(settings: ServiceSettings) -> None:
    for key, value in asdict(settings).items():
        print(f"{key}: {value}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    try:
        settings = _resolve_settings(args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "serve":
        _serve(settings)
    elif args.command == "show-config":
        _show_config(settings)


if __name__ == "__main__":
    main()
