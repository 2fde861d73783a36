#!/usr/bin/env python3
"""
Command-line entry point: ``tap-slides dev FILE``.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_LOG_FILE, DEFAULT_PORT, build_dev_config, load_env, setup_logging
from .errors import ConfigError
from .runtime import Program
from .session import DevSession
from .themes import list_available_themes

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tap-slides", description="Markdown presentations with a live dev dashboard.")
    sub = p.add_subparsers(dest="command", required=True)

    dev = sub.add_parser("dev", help="Start the interactive dev session for a presentation")
    dev.add_argument("markdown", type=Path, help="Markdown presentation file")
    dev.add_argument("--port", "-p", type=int, default=DEFAULT_PORT, help="Port of the local preview server")
    dev.add_argument("--presenter-password", default="", help="Key required to open the presenter view")
    dev.add_argument("--theme", help=f"Theme override ({', '.join(list_available_themes())})")
    dev.add_argument("--debug", action="store_true", help="Enable debug logging")
    dev.add_argument("--log-file", type=Path, default=None, help=f"Log destination (default: {DEFAULT_LOG_FILE})")
    return p


def run_dev(args: argparse.Namespace) -> int:
    """Run the dev session until the user quits. Returns the exit code."""
    md_path: Path = args.markdown
    if not md_path.is_file():
        logger.error(f"Markdown file '{md_path}' not found")
        print(f"Error: Markdown file '{md_path}' not found.", file=sys.stderr)
        return 1

    load_env(md_path.parent)

    try:
        config = build_dev_config(
            md_path,
            port=args.port,
            presenter_password=args.presenter_password,
            theme=args.theme,
        )
    except ConfigError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    session = DevSession(config)
    logger.info(f"Dev session started for {md_path} (theme: {config.current_theme})")
    try:
        Program(session).run()
    finally:
        session.close()
    logger.info("Dev session stopped")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_path = setup_logging(debug=args.debug, log_file=args.log_file)
    logger.debug(f"Logging to {log_path}")

    if args.command == "dev":
        return run_dev(args)

    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
