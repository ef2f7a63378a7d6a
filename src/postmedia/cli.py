# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PostMedia CLI: serve, resolve, purge.

Usage:
    postmedia serve [--host HOST] [--port PORT] [--base-url URL] [--cache-dir DIR]
    postmedia resolve URL [--no-browser]
    postmedia purge --max-age-hours N
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from . import logging_config
from .config import Settings


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env().with_overrides(
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        base_url=getattr(args, "base_url", None),
        cache_dir=Path(args.cache_dir) if getattr(args, "cache_dir", None) else None,
        fetch_timeout=getattr(args, "fetch_timeout", None),
        navigation_timeout_ms=getattr(args, "navigation_timeout_ms", None),
        chromium_executable=getattr(args, "chromium", None),
    )
    if args.verbose:
        settings = settings.with_overrides(log_level="DEBUG")
    if getattr(args, "debug_fetch", False):
        settings = settings.with_overrides(debug_fetch_enabled=True)
    return settings


def cmd_serve(args: argparse.Namespace, settings: Settings) -> None:
    """Start the HTTP server."""
    from .server import run

    run(settings)


async def _resolve(url: str, settings: Settings, *, use_browser: bool) -> dict:
    from .server import build_services

    services = build_services(settings)
    if not use_browser:
        services.resolver.pipeline.browser_fallback = None
    try:
        result = await services.resolver.resolve(url)
    finally:
        await services.aclose()
    body = result.record.to_dict()
    body["strategy"] = result.strategy_id
    return body


def cmd_resolve(args: argparse.Namespace, settings: Settings) -> None:
    """Resolve one post URL and print the media record as JSON."""
    body = asyncio.run(_resolve(args.url, settings, use_browser=not args.no_browser))
    print(json.dumps(body, ensure_ascii=False, indent=2))


def cmd_purge(args: argparse.Namespace, settings: Settings) -> None:
    """Delete merged files older than --max-age-hours."""
    from .muxer import MediaMuxer

    muxer = MediaMuxer(settings.cache_dir)
    try:
        removed = muxer.purge(args.max_age_hours * 3600)
    finally:
        asyncio.run(muxer.aclose())
    print(f"Removed {removed} file(s) from {settings.cache_dir}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve social-media post URLs into playable media",
        prog="postmedia",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--cache-dir", type=str, metavar="DIR", help="Merged-file directory (default: ./temp)")
    parser.add_argument("--chromium", type=str, metavar="PATH", help="Chromium executable for the browser fallback")
    parser.add_argument("--fetch-timeout", type=float, metavar="SECONDS", help="Page fetch timeout (default: 10)")
    parser.add_argument(
        "--navigation-timeout-ms",
        type=int,
        metavar="MS",
        help="Browser navigation timeout (default: 30000)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_serve = subparsers.add_parser(
        "serve",
        help="Start the HTTP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s                                      Listen on 127.0.0.1:3000
  %(prog)s --host 0.0.0.0 --port 8080           Listen on all interfaces
  %(prog)s --base-url https://media.example.com Public origin for merged-file links""",
    )
    p_serve.add_argument("--host", type=str)
    p_serve.add_argument("--port", type=int)
    p_serve.add_argument("--base-url", type=str, metavar="URL", help="Public origin used in merged-file links")
    p_serve.add_argument(
        "--debug-fetch",
        action="store_true",
        help="Enable GET /debug/fetch (ignored in production)",
    )

    p_resolve = subparsers.add_parser("resolve", help="Resolve one post URL and print JSON")
    p_resolve.add_argument("url", type=str, metavar="URL")
    p_resolve.add_argument("--no-browser", action="store_true", help="Skip the headless-browser fallback")

    p_purge = subparsers.add_parser("purge", help="Delete old merged files")
    p_purge.add_argument("--max-age-hours", type=float, required=True)

    return parser


COMMANDS = {"serve": cmd_serve, "resolve": cmd_resolve, "purge": cmd_purge}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = _settings_from_args(args)
    logging_config.configure(json_output=settings.json_logs, level=settings.log_level)

    try:
        COMMANDS[args.command](args, settings)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        from .problem_details import from_exception

        problem = from_exception(e, instance=args.command)
        print(problem.to_cli_text(), file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
