"""
Main CLI entry point for cascade-mirror.

Usage:
    python -m cascade_mirror.cli.main <subcommand> [options]

Subcommands:
    serve    - Run the bridge (discover, connect, poll, serve viewers)
    discover - Show which debug endpoint the bridge would connect to
    watch    - Follow a running bridge's update channel
"""

import argparse
import sys
from typing import List, Optional

from cascade_mirror.config import DEFAULT_CONFIG_FILE, Configuration
from cascade_mirror.logging_setup import setup_logging


def create_parent_parser() -> argparse.ArgumentParser:
    """
    Create parent parser with global options shared across all subcommands.

    Global options:
        --config: Config file path (default: ~/.cascademirrorrc)
        --log-format: Log format (text|json)
        --log-level: Log level (debug|info|warning|error)
        --quiet/--verbose: Mutual exclusion group for output control

    Returns:
        ArgumentParser with global options
    """
    parent = argparse.ArgumentParser(add_help=False)

    parent.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"JSON config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parent.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Log output format (default: text)",
    )
    parent.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (default: info)",
    )

    verbosity_group = parent.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Only log errors",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose debug output",
    )

    return parent


def create_main_parser(parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """
    Create main parser with all subcommands.

    Args:
        parent: Parent parser with global options

    Returns:
        Main ArgumentParser with subcommands configured
    """
    parser = argparse.ArgumentParser(
        prog="cascade-mirror",
        description="Mirror the host chat panel to remote viewers over CDP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the bridge on the default ports
  cascade-mirror serve

  # Scan specific debug ports and serve viewers on port 8080
  cascade-mirror serve --cdp-ports 9000,9222 --port 8080

  # Check which debug endpoint would be used
  cascade-mirror discover

  # Follow a running bridge
  cascade-mirror watch ws://localhost:3000/ws

For more information on subcommands, run: cascade-mirror <subcommand> --help
        """,
    )

    subparsers = parser.add_subparsers(
        dest="subcommand",
        title="subcommands",
        required=True,
    )

    from . import discover_cmd, serve_cmd, watch_cmd

    serve_cmd.register_subcommand(subparsers, parent)
    discover_cmd.register_subcommand(subparsers, parent)
    watch_cmd.register_subcommand(subparsers, parent)

    return parser


def build_config(args: argparse.Namespace) -> Configuration:
    """Load configuration with precedence: CLI > env > file > defaults."""
    config = Configuration()
    config.load_from_file(getattr(args, "config", DEFAULT_CONFIG_FILE))
    config.load_from_env()

    cli_overrides = {
        "cdp_ports": getattr(args, "cdp_ports", None),
        "cdp_host": getattr(args, "cdp_host", None),
        "poll_interval": getattr(args, "poll_interval", None),
        "port": getattr(args, "port", None),
        "bind_host": getattr(args, "bind_host", None),
        "static_dir": getattr(args, "static_dir", None),
        "log_level": getattr(args, "log_level", None),
        "log_format": getattr(args, "log_format", None),
    }
    config.merge(**{k: v for k, v in cli_overrides.items() if v is not None})

    if getattr(args, "quiet", False):
        config.log_level = "ERROR"
    elif getattr(args, "verbose", False):
        config.log_level = "DEBUG"

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parent = create_parent_parser()
    parser = create_main_parser(parent)
    args = parser.parse_args(argv)

    config = build_config(args)
    setup_logging(
        format_type=config.log_format,
        level=config.log_level.upper() if isinstance(config.log_level, str) else "INFO",
        quiet=getattr(args, "quiet", False),
        verbose=getattr(args, "verbose", False),
    )

    args.config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        if config.log_level.upper() == "DEBUG":
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
