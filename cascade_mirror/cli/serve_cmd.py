"""
Serve subcommand: run the bridge until interrupted.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List

from ..app import MirrorApp
from ..config import parse_ports
from ..exceptions import MirrorError

logger = logging.getLogger(__name__)


def port_list(value: str) -> List[int]:
    """argparse type for --cdp-ports."""
    ports = parse_ports(value)
    if not ports:
        raise argparse.ArgumentTypeError(f"no valid ports in {value!r}")
    return ports


async def serve_async(app: MirrorApp) -> None:
    """Start the app, wait for SIGINT/SIGTERM or stop(), then shut down."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(app.stop()))
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass

    try:
        await app.start()
        await app.run_forever()
    finally:
        await app.stop()


def serve_handler(args: argparse.Namespace) -> int:
    """
    Handle 'serve' command.

    Args:
        args: Parsed command-line arguments (args.config holds the Configuration)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    config = args.config
    try:
        config.validate()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2

    app = MirrorApp(config)
    try:
        asyncio.run(serve_async(app))
        return 0
    except MirrorError as e:
        if config.log_level.upper() == "DEBUG":
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def register_subcommand(
    subparsers: argparse._SubParsersAction, parent: argparse.ArgumentParser
) -> None:
    """
    Register 'serve' subcommand.

    Args:
        subparsers: Subparsers from main parser
        parent: Parent parser with global options
    """
    serve_parser = subparsers.add_parser(
        "serve",
        parents=[parent],
        help="Run the bridge",
        description="Discover the host, mirror its chat panel and serve remote viewers",
        epilog="""
Examples:
  cascade-mirror serve
  cascade-mirror serve --cdp-ports 9000,9001 --port 8080 --poll-interval 1.5
  cascade-mirror serve --bind-host 100.101.102.103 --static-dir ./public
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    serve_parser.add_argument(
        "--cdp-ports",
        type=port_list,
        help="Comma-separated debug ports to scan (default: 9000,9001,9002,9003)",
    )
    serve_parser.add_argument(
        "--cdp-host",
        help="Host the debug ports live on (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        help="Viewer HTTP port (default: 3000)",
    )
    serve_parser.add_argument(
        "--bind-host",
        help="Interface to bind the viewer server to (default: 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--poll-interval",
        type=float,
        help="Base snapshot polling interval in seconds (default: 3.0)",
    )
    serve_parser.add_argument(
        "--static-dir",
        help="Directory with viewer files to serve at /",
    )

    serve_parser.set_defaults(func=serve_handler)
