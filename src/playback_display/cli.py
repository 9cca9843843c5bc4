from __future__ import annotations

import argparse
from pathlib import Path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="playback-display: now-playing display client"
    )
    parser.add_argument("--config", type=Path, help="Path to config.toml", default=None)
    parser.add_argument("--log-level", default="INFO", help="Python log level (INFO, DEBUG, ...)")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the display daemon")
    subparsers.add_parser("status", help="Print the running daemon's rendered state")
    subparsers.add_parser("refresh", help="Ask the running daemon for a full resync")
    subparsers.add_parser("waybar", help="Emit Waybar JSON from daemon state")
    subparsers.add_parser("doctor", help="Check configuration and server reachability")

    return parser.parse_args(argv)
