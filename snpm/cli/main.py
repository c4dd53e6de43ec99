# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for snpm.

A single root command with subcommands. The global options (--config,
--log-level, --dry-run) are inherited by every subcommand through argparse's
parent parser mechanism.

Usage:
    snpm serve --config configs/registry.yaml
    snpm publish ./my-package
    snpm info
"""

import argparse
import sys

from snpm.cli.commands import handle_info, handle_publish, handle_serve
from snpm.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False so help text doesn't collide between the parent and the
    subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Resolve settings and report what would happen, without doing it.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register every subcommand and point args.func at its handler."""
    serve = subparsers.add_parser("serve", parents=[parent], help="Start the registry server.")
    serve.add_argument("--host", type=str, default=None, help="Interface to bind.")
    serve.add_argument("--port", type=int, default=None, help="Port to listen on.")
    serve.set_defaults(func=handle_serve)

    publish = subparsers.add_parser(
        "publish", parents=[parent], help="Publish a local project through the registry."
    )
    publish.add_argument("project_dir", type=str, help="Directory holding package.json.")
    publish.add_argument("--host", type=str, default=None, help="Registry host.")
    publish.add_argument("--port", type=int, default=None, help="Registry port.")
    publish.add_argument(
        "--checksum",
        type=str,
        default=None,
        help="Expected build SHA1 (defaults to the one declared in package.json).",
    )
    publish.set_defaults(func=handle_publish)

    info = subparsers.add_parser("info", parents=[parent], help="Display environment and config info.")
    info.set_defaults(func=handle_info)


def main() -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, show help and exit with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="snpm",
        description="snpm: build-verifying package registry.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
