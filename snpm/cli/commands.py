# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the snpm CLI.

Each function here corresponds to one subcommand and returns an exit code.
No print() calls; everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from snpm.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from snpm.config.exceptions import ConfigError
from snpm.config.loader import load_config, resolve_client_config, resolve_registry_config
from snpm.config.schema import SnpmConfig
from snpm.logging.logger import get_logger
from snpm.runtime.bootstrap import bootstrap


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[SnpmConfig], logging.Logger]:
    """
    The shared setup every command needs: load config, run bootstrap.

    Returns (exit_code, config, logger). If exit_code is not SUCCESS the
    caller returns it immediately.
    """
    logger = get_logger(f"snpm.cli.{command_name}", log_level=args.log_level)

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None:
        bootstrap(config.global_config)
    else:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )

    return SUCCESS, config, logger


def handle_serve(args: argparse.Namespace) -> int:
    """Start the registry server."""
    exit_code, config, logger = _load_and_bootstrap(args, "serve")
    if exit_code != SUCCESS:
        return exit_code

    try:
        registry_cfg = resolve_registry_config(config, host=args.host, port=args.port)
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "serve", "error": str(err)})
        return CONFIG_ERROR

    host, port = registry_cfg.host, registry_cfg.port

    try:
        logger.info(
            "Starting registry server",
            extra={
                "host": host,
                "port": port,
                "dry_run": args.dry_run,
                "build_tool": registry_cfg.build_tool.executable,
            },
        )

        if args.dry_run:
            logger.info("Dry run, would start server", extra={"host": host, "port": port})
            return SUCCESS

        from snpm.serving.server.core import create_app, run_server

        run_server(create_app(registry_cfg), host=host, port=port)
        return SUCCESS

    except Exception as err:
        logger.error("Serve failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_publish(args: argparse.Namespace) -> int:
    """Read a local project's manifest and publish it through the registry."""
    exit_code, config, logger = _load_and_bootstrap(args, "publish")
    if exit_code != SUCCESS:
        return exit_code

    from snpm.client.core import RegistryConnectionError, publish_project, read_project
    from snpm.publish.errors import ManifestError
    from snpm.utils.hashing import is_sha1_hex

    try:
        client_cfg = resolve_client_config(config, host=args.host, port=args.port)
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "publish", "error": str(err)})
        return CONFIG_ERROR

    if args.checksum is not None and not is_sha1_hex(args.checksum):
        logger.error("snpm > --checksum must be 40 hex digits", extra={"checksum": args.checksum})
        return VALIDATION_ERROR

    host, port = client_cfg.host, client_cfg.port
    project_dir = Path(args.project_dir)

    logger.info("snpm > Reading project package.json...", extra={"project_dir": str(project_dir)})
    try:
        project = read_project(project_dir, client_cfg.manifest_file)
    except ManifestError as err:
        logger.error(
            f"snpm > Cannot read {client_cfg.manifest_file} from {project_dir}",
            extra={"error": err.message},
        )
        return USER_ERROR

    if args.dry_run:
        logger.info(
            "Dry run, would publish",
            extra={"url": project.url, "version": project.version, "host": host, "port": port},
        )
        return SUCCESS

    logger.info("snpm > Publishing package...", extra={"url": project.url, "version": project.version})
    try:
        result = publish_project(
            project,
            host=host,
            port=port,
            checksum=args.checksum,
            on_message=lambda message: logger.info(f"registry > {message}"),
        )
    except RegistryConnectionError as err:
        logger.error("Registry unreachable", extra={"error": str(err)})
        return RUNTIME_ERROR

    if not result.ok:
        logger.error(f"registry > {result.error or 'session closed before publish finished'}")
        return RUNTIME_ERROR

    return SUCCESS


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""
    exit_code, config, logger = _load_and_bootstrap(args, "info")
    if exit_code != SUCCESS:
        return exit_code

    from snpm import __version__
    from snpm.runtime.environment import find_executable, get_system_info

    system_info = get_system_info()
    try:
        registry_cfg = resolve_registry_config(config)
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "info", "error": str(err)})
        return CONFIG_ERROR

    logger.info(
        "System information",
        extra={
            "snpm_version": __version__,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "hostname": system_info.hostname,
            "config": args.config,
            "registry_port": registry_cfg.port,
            "build_tool": registry_cfg.build_tool.executable,
            "build_tool_path": find_executable(registry_cfg.build_tool.executable),
        },
    )
    return SUCCESS
