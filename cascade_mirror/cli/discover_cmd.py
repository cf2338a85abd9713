"""
Discover subcommand: report the debug endpoint the bridge would use.
"""

import argparse
import asyncio
import json
import sys

from ..discovery import EndpointResolver
from ..exceptions import EndpointNotFoundError
from .serve_cmd import port_list


def discover_handler(args: argparse.Namespace) -> int:
    """
    Handle 'discover' command.

    Returns:
        0 when an endpoint was found, 1 otherwise
    """
    config = args.config
    resolver = EndpointResolver(config.cdp_ports, host=config.cdp_host)
    try:
        endpoint = asyncio.run(resolver.find_endpoint())
    except EndpointNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(
            "Recovery hint: start the host with --remote-debugging-port=<port>",
            file=sys.stderr,
        )
        return 1

    output = {"port": endpoint.port, "address": endpoint.address, "ws_url": endpoint.ws_url}
    if args.format == "json":
        print(json.dumps(output, indent=2))
    else:
        print(f"{endpoint.address}\t{endpoint.ws_url}")
    return 0


def register_subcommand(
    subparsers: argparse._SubParsersAction, parent: argparse.ArgumentParser
) -> None:
    """Register 'discover' subcommand."""
    discover_parser = subparsers.add_parser(
        "discover",
        parents=[parent],
        help="Show the debug endpoint that would be used",
        description="Scan candidate ports for the host's workbench target",
    )
    discover_parser.add_argument(
        "--cdp-ports",
        type=port_list,
        help="Comma-separated debug ports to scan",
    )
    discover_parser.add_argument(
        "--cdp-host",
        help="Host the debug ports live on (default: 127.0.0.1)",
    )
    discover_parser.add_argument(
        "--format",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    discover_parser.set_defaults(func=discover_handler)
