#!/usr/bin/env python3
"""Serve the Postboard API with uvicorn."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from backend.app.config import ConfigError, load_config
from backend.app.main import create_app


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the server entry point.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the YAML configuration file (default: config.yaml at the repo root)",
    )
    return parser.parse_args()


def main() -> int:
    """Load configuration, configure logging and run the server.

    Returns:
        int: Exit status code where ``0`` indicates a clean shutdown.
    """
    args = parse_args()
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print("Configuration error:", exc, file=sys.stderr)
        return 1

    logging.basicConfig(level=config.logging.level, format=config.logging.format)
    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
