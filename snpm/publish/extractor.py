# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Archive extraction.

Unpacks a downloaded tag archive next to itself and locates the project
directory GitHub puts inside it, `<repo>-<version>/`. That directory becomes
the working directory for every later stage.

Archives are untrusted. Extraction uses tarfile's "data" filter, which
refuses absolute paths, `..` components, device files and links that point
outside the destination.
"""

import logging
import tarfile
from pathlib import Path

from snpm.logging.logger import get_logger
from snpm.publish.errors import ExtractError
from snpm.publish.models import ArchiveHandle, RepositoryReference

logger: logging.Logger = get_logger(__name__)


def project_dirname(reference: RepositoryReference, version: str) -> str:
    """Top-level directory name inside a GitHub tag archive."""
    return f"{reference.repo}-{version}"


def extract_archive(archive_file: Path, dest_dir: Path) -> None:
    """
    Decompress a .tar.gz archive into `dest_dir`.

    Raises:
        ExtractError: Corrupt or unsupported archive, unsafe member, or I/O failure.
    """
    try:
        with tarfile.open(archive_file, mode="r:gz") as tar:
            tar.extractall(path=dest_dir, filter="data")
    except (tarfile.TarError, OSError, EOFError) as err:
        logger.error(
            "Archive extraction failed",
            extra={"archive": str(archive_file), "error": str(err)},
        )
        raise ExtractError() from err


def extract_project(
    handle: ArchiveHandle,
    reference: RepositoryReference,
    version: str,
) -> Path:
    """
    Extract the archive held by `handle` and return the project directory.

    Raises:
        ExtractError: Extraction failed or the expected directory is missing.
    """
    extract_archive(handle.archive_file, handle.temp_dir)

    build_dir = handle.temp_dir / project_dirname(reference, version)
    if not build_dir.is_dir():
        logger.error(
            "Extracted archive has no project directory",
            extra={"expected": str(build_dir)},
        )
        raise ExtractError()

    logger.debug("Archive extracted", extra={"build_dir": str(build_dir)})
    return build_dir
