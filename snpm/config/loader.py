# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader: reads YAML from disk and produces a validated, frozen SnpmConfig.

The loading sequence is linear:
  1. Read raw text from the file
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen config object

Any failure stops immediately with a clear error. A broken config must stop
the registry before it accepts a single publish.

The registry and client sections are then resolved against the environment
and command-line flags. Flags win over environment, environment over file:

  REGISTRY_PORT   port the registry listens on and the client dials
  REGISTRY_URL    host the client dials
"""

import os
from pathlib import Path
from typing import Any, Mapping, Optional, TypeVar

import yaml
from pydantic import ValidationError

from snpm.config.exceptions import ConfigLoadError, ConfigValidationError
from snpm.config.schema import ClientConfig, RegistryConfig, SnpmConfig, default_registry_config

ENV_REGISTRY_PORT = "REGISTRY_PORT"
ENV_REGISTRY_URL = "REGISTRY_URL"

ModelT = TypeVar("ModelT", RegistryConfig, ClientConfig)


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> SnpmConfig:
    """
    Load, validate, and freeze a config file into a SnpmConfig object.

    Args:
        config_path: Path to a YAML config file.

    Returns:
        A fully validated, frozen SnpmConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types, unknown keys).
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = SnpmConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config


def _env_port(environ: Mapping[str, str]) -> Optional[int]:
    raw = environ.get(ENV_REGISTRY_PORT)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as err:
        raise ConfigValidationError(
            f"{ENV_REGISTRY_PORT} must be an integer, got {raw!r}"
        ) from err


def _apply_overrides(model: ModelT, overrides: dict[str, Any]) -> ModelT:
    """Re-validate `model` with `overrides` merged in, so overrides obey the schema too."""
    if not overrides:
        return model
    try:
        return type(model).model_validate({**model.model_dump(), **overrides})
    except ValidationError as err:
        raise ConfigValidationError(f"Invalid override {overrides}:\n{err}") from err


def resolve_registry_config(
    config: Optional[SnpmConfig],
    host: Optional[str] = None,
    port: Optional[int] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RegistryConfig:
    """
    Registry settings after applying REGISTRY_PORT and command-line flags.

    Falls back to defaults when the file has no `registry:` section.

    Raises:
        ConfigValidationError: An override is malformed or out of range.
    """
    environ = os.environ if environ is None else environ
    base = config.registry if config and config.registry else default_registry_config()

    overrides: dict[str, Any] = {}
    env_port = _env_port(environ)
    if env_port is not None:
        overrides["port"] = env_port
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port

    return _apply_overrides(base, overrides)


def resolve_client_config(
    config: Optional[SnpmConfig],
    host: Optional[str] = None,
    port: Optional[int] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ClientConfig:
    """
    Client settings after applying REGISTRY_URL, REGISTRY_PORT and flags.

    Raises:
        ConfigValidationError: An override is malformed or out of range.
    """
    environ = os.environ if environ is None else environ
    base = config.client if config and config.client else ClientConfig()

    overrides: dict[str, Any] = {}
    env_host = environ.get(ENV_REGISTRY_URL)
    if env_host:
        overrides["host"] = env_host
    env_port = _env_port(environ)
    if env_port is not None:
        overrides["port"] = env_port
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port

    return _apply_overrides(base, overrides)
