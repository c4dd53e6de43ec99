# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Project manifest reader.

Reads the extracted project's package.json and pulls out what the registry
needs: the artifact path (`bin`) and the declared checksums. Also used by the
publishing client to find `repository.url` and `version` locally.
"""

import json
import logging
from pathlib import Path
from typing import Any

from snpm.logging.logger import get_logger
from snpm.publish.errors import ManifestError
from snpm.publish.models import PackageManifest
from snpm.utils.filesystem import safe_read

logger: logging.Logger = get_logger(__name__)

DEFAULT_MANIFEST_FILE = "package.json"


def load_manifest_data(manifest_path: Path) -> dict[str, Any]:
    """
    Read and JSON-parse a manifest file.

    Raises:
        ManifestError: Missing file, unreadable file, invalid JSON, or a
            top level that isn't an object.
    """
    try:
        raw = safe_read(manifest_path)
    except OSError as err:
        logger.error("Cannot read manifest", extra={"path": str(manifest_path), "error": str(err)})
        raise ManifestError() from err

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as err:
        logger.error("Manifest is not valid JSON", extra={"path": str(manifest_path), "error": str(err)})
        raise ManifestError() from err

    if not isinstance(data, dict):
        raise ManifestError()

    return data


def _resolve_bin(bin_field: Any) -> str:
    # npm allows `bin` as a string or as a {command: path} map.
    if isinstance(bin_field, str) and bin_field:
        return bin_field
    if isinstance(bin_field, dict) and len(bin_field) == 1:
        value = next(iter(bin_field.values()))
        if isinstance(value, str) and value:
            return value
    raise ManifestError()


def read_manifest(build_dir: Path, manifest_file: str = DEFAULT_MANIFEST_FILE) -> PackageManifest:
    """
    Parse the project manifest in `build_dir`.

    Args:
        build_dir: The extracted project directory.
        manifest_file: Manifest filename inside it.

    Returns:
        PackageManifest with bin path and checksums.

    Raises:
        ManifestError: See load_manifest_data; also raised when `bin` is
            missing or ambiguous, or `checksums` isn't an object.
    """
    data = load_manifest_data(build_dir / manifest_file)

    bin_path = _resolve_bin(data.get("bin"))

    checksums = data.get("checksums", {})
    if not isinstance(checksums, dict):
        raise ManifestError()

    return PackageManifest(
        bin_path=bin_path,
        checksums={str(k): str(v) for k, v in checksums.items()},
        name=data.get("name"),
        version=data.get("version"),
    )


def repository_url_from(data: dict[str, Any]) -> str:
    """
    The repository URL declared in manifest data.

    Accepts both `"repository": "<url>"` and `"repository": {"url": "<url>"}`.

    Raises:
        ManifestError: No usable repository URL.
    """
    repository = data.get("repository")
    if isinstance(repository, dict):
        repository = repository.get("url")
    if not isinstance(repository, str) or not repository:
        raise ManifestError("Manifest has no repository url")
    return repository
