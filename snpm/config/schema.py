# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for snpm.

Every config section gets its own frozen pydantic model. Once built, a config
object cannot be mutated; the registry reads it from many request threads.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONFIG_VERSION = "1.0.0"


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings that apply to every command.

    This is the first section loaded and it controls observability
    (log_level, log_file) and project identity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="snpm", description="Human-readable project identifier"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return upper


class BuildToolConfig(BaseModel):
    """
    How the registry drives the package's own dependency manager.

    The defaults talk to npm. Commands are always run with the extracted
    project as their working directory, never by changing the server's cwd.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    executable: str = Field(default="npm", description="Dependency manager executable")
    install_args: list[str] = Field(
        default_factory=lambda: ["install"],
        description="Arguments that install the declared dependencies",
    )
    run_args: list[str] = Field(
        default_factory=lambda: ["run"],
        description="Arguments that prefix a script name to run it",
    )
    build_script: str = Field(default="build", description="Script that produces the artifact")
    manifest_file: str = Field(
        default="package.json",
        description="Project manifest read after extraction",
    )
    silent: bool = Field(
        default=True,
        description="Run the tool non-interactively with progress and logs suppressed",
    )
    timeout_seconds: int = Field(
        default=900,
        ge=1,
        description="Max seconds a single install or build command may run",
    )


class RegistryConfig(BaseModel):
    """Settings for the registry server and the publish pipeline it drives."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    host: str = Field(default="127.0.0.1", description="Interface the server binds to")
    port: int = Field(default=3000, ge=0, le=65535, description="Listening port")
    github_host: str = Field(
        default="github.com",
        description="Host that every repository URL must reference",
    )
    archive_base_url: str = Field(
        default="https://github.com",
        description="Base URL tag archives are downloaded from",
    )
    temp_root: Optional[str] = Field(
        default=None,
        description="Where per-run scratch directories are created (system temp if unset)",
    )
    keep_workspace: bool = Field(
        default=False,
        description="Leave scratch directories on disk after a run, for debugging",
    )
    fetch_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Network timeout for the archive download",
    )
    publish_timeout_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Deadline for an entire publish run",
    )
    max_request_size_bytes: int = Field(
        default=1_048_576,
        ge=1,
        description="Largest accepted POST /publish body",
    )
    build_tool: BuildToolConfig = Field(default_factory=BuildToolConfig)


class ClientConfig(BaseModel):
    """Where the publishing client finds the registry."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    host: str = Field(default="localhost", description="Registry host to dial")
    port: int = Field(default=3000, ge=1, le=65535, description="Registry port to dial")
    manifest_file: str = Field(
        default="package.json",
        description="Manifest read from the project directory",
    )


class SnpmConfig(BaseModel):
    """
    Top-level config container.

    A file might contain just `global:`, or `global:` plus `registry:` for a
    server host, or `global:` plus `client:` on a developer machine. Missing
    sections stay None and commands fall back to defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    registry: Optional[RegistryConfig] = Field(default=None)
    client: Optional[ClientConfig] = Field(default=None)


def default_registry_config() -> RegistryConfig:
    """Registry settings used when no `registry:` section is configured."""
    return RegistryConfig(config_version=DEFAULT_CONFIG_VERSION)
