# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for snpm.

Archives come from the network and manifests from untrusted projects, so any
path derived from them must be checked against the directory it belongs to.
"""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist. Returns the path for chaining.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def validate_path_within(target: Path, root: Path) -> Path:
    """
    Make sure a path doesn't escape the given root directory.

    Both paths are resolved before comparing, so `../../etc/passwd` style
    tricks and symlinks pointing outside are caught.

    Returns:
        The resolved absolute path if it's safe.

    Raises:
        ValueError: If the path escapes the root.
    """
    resolved_target = target.resolve()
    resolved_root = root.resolve()

    if not resolved_target.is_relative_to(resolved_root):
        raise ValueError(
            f"Path '{target}' resolves to '{resolved_target}' which is outside "
            f"'{resolved_root}'. This is not allowed."
        )

    return resolved_target
