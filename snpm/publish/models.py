# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Data models for the publish pipeline.

Frozen dataclasses, like the rest of the runtime data structures in snpm.
Pydantic is reserved for config validation.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class Stage(str, Enum):
    """Pipeline stages, in the order they run."""

    PARSE = "parse"
    FETCH = "fetch"
    EXTRACT = "extract"
    INSTALL = "install"
    BUILD = "build"
    VERIFY = "verify"


# Progress line emitted when a stage starts. Parsing is instantaneous and
# reports nothing.
STAGE_PROGRESS: dict[Stage, Optional[str]] = {
    Stage.PARSE: None,
    Stage.FETCH: "Fetching repo archive...",
    Stage.EXTRACT: "Decompressing repo archive...",
    Stage.INSTALL: "Installing repo deps...",
    Stage.BUILD: "Building repo...",
    Stage.VERIFY: "Checking checksum...",
}

SUCCESS_MESSAGE = "Finished!"


@dataclass(frozen=True)
class PublishRequest:
    """What the caller asks for: a repository, a version, optionally a checksum."""

    repository_url: str
    version: str
    expected_checksum: Optional[str] = None


@dataclass(frozen=True)
class RepositoryReference:
    """The owner/repo pair a repository URL points at."""

    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class ArchiveHandle:
    """
    A downloaded tag archive and the scratch directory holding it.

    The scratch directory is unique to one run. The pipeline removes it when
    the run ends, whatever the outcome.
    """

    temp_dir: Path
    archive_file: Path


@dataclass(frozen=True)
class PackageManifest:
    """The parts of the project manifest the registry cares about."""

    bin_path: str
    checksums: dict[str, str] = field(default_factory=dict)
    name: Optional[str] = None
    version: Optional[str] = None

    @property
    def sha1(self) -> Optional[str]:
        return self.checksums.get("sha1")


@dataclass(frozen=True)
class Success:
    """Terminal outcome: every stage passed."""

    reference: Optional[RepositoryReference] = None
    digest: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Terminal outcome: `stage` failed with a caller-facing `message`."""

    stage: Stage
    message: str
    client_error: bool = False

    @property
    def ok(self) -> bool:
        return False


PipelineOutcome = Union[Success, Failure]
