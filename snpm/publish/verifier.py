# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build artifact checksum verification.

Hashes the artifact the build produced and compares it with the expected
SHA1. A mismatch is the publisher's problem (they declared the wrong digest
or their build isn't reproducible), so it's a client error. Failing to read
the artifact at all is ours.
"""

import logging
from pathlib import Path

from snpm.logging.logger import get_logger
from snpm.publish.errors import ArtifactReadError, ChecksumMismatchError
from snpm.utils.hashing import compute_sha1, digests_match
from snpm.utils.paths import validate_path_within

logger: logging.Logger = get_logger(__name__)


def resolve_artifact(build_dir: Path, bin_path: str) -> Path:
    """
    Locate the artifact declared by the manifest inside the project.

    Raises:
        ArtifactReadError: The declared path escapes the project directory.
    """
    try:
        return validate_path_within(build_dir / bin_path, build_dir)
    except ValueError as err:
        logger.error("Artifact path escapes project", extra={"bin": bin_path, "error": str(err)})
        raise ArtifactReadError() from err


def verify_artifact(artifact_path: Path, expected_sha1: str) -> str:
    """
    Check the artifact's SHA1 against `expected_sha1` (hex, any case).

    Returns:
        The computed lowercase hex digest.

    Raises:
        ArtifactReadError: The artifact can't be read.
        ChecksumMismatchError: The digests differ.
    """
    try:
        actual = compute_sha1(artifact_path)
    except OSError as err:
        logger.error(
            "Cannot read build artifact",
            extra={"artifact": str(artifact_path), "error": str(err)},
        )
        raise ArtifactReadError() from err

    if not digests_match(actual, expected_sha1):
        logger.warning(
            "Checksum mismatch",
            extra={"artifact": str(artifact_path), "expected": expected_sha1, "actual": actual},
        )
        raise ChecksumMismatchError()

    logger.debug("Checksum verified", extra={"artifact": str(artifact_path), "sha1": actual})
    return actual
