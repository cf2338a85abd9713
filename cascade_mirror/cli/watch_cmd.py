"""
Watch subcommand: follow a running bridge's update channel.

Prints every frame as a JSON line on stdout and latency changes on stderr.
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from ..remote_client import RemoteClient


def _print_frame(frame) -> None:
    print(json.dumps(frame), file=sys.stdout, flush=True)


def _print_latency(latency: Optional[float]) -> None:
    if latency is None:
        print("latency: --", file=sys.stderr, flush=True)
    else:
        print(f"latency: {latency:.0f}ms", file=sys.stderr, flush=True)


def watch_handler(args: argparse.Namespace) -> int:
    """
    Handle 'watch' command.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    try:
        client = RemoteClient(
            args.url,
            on_message=_print_frame,
            on_latency=_print_latency if args.latency else None,
            ping_interval=args.ping_interval,
            max_attempts=args.max_attempts,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    asyncio.run(client.run())
    return 0


def register_subcommand(
    subparsers: argparse._SubParsersAction, parent: argparse.ArgumentParser
) -> None:
    """Register 'watch' subcommand."""
    watch_parser = subparsers.add_parser(
        "watch",
        parents=[parent],
        help="Follow a running bridge",
        description="Connect to a bridge's /ws channel, reconnecting with backoff",
    )
    watch_parser.add_argument("url", help="Bridge WebSocket URL, e.g. ws://host:3000/ws")
    watch_parser.add_argument(
        "--ping-interval",
        type=float,
        default=5.0,
        help="Seconds between latency pings (default: 5)",
    )
    watch_parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Give up after this many consecutive failed connections",
    )
    watch_parser.add_argument(
        "--no-latency",
        dest="latency",
        action="store_false",
        help="Do not print latency updates",
    )
    watch_parser.set_defaults(func=watch_handler)
