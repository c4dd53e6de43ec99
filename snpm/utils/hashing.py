# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Hashing utilities for snpm.

Packages declare the SHA1 of their build artifact in their manifest, so SHA1
is the default here. Files are hashed in chunks; build artifacts can be large.
"""

import hashlib
import re
from pathlib import Path

HASH_ALGORITHM = "sha1"
HASH_BUFFER_SIZE = 65536  # 64 KiB

_SHA1_HEX = re.compile(r"^[0-9a-fA-F]{40}$")


def compute_digest(file_path: Path, algorithm: str = HASH_ALGORITHM) -> str:
    """
    Compute the hex digest of a file.

    Args:
        file_path: Path to the file to hash.
        algorithm: Any name hashlib.new() accepts.

    Returns:
        Lowercase hex string of the digest.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    hasher = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_sha1(file_path: Path) -> str:
    """SHA1 hex digest of a file."""
    return compute_digest(file_path, "sha1")


def is_sha1_hex(value: str) -> bool:
    """True if `value` looks like a SHA1 hex digest (40 hex digits, any case)."""
    return bool(_SHA1_HEX.match(value.strip()))


def digests_match(actual: str, expected: str) -> bool:
    """Compare two hex digests, ignoring case and surrounding whitespace."""
    return actual.strip().lower() == expected.strip().lower()
