# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment validation for snpm.

Checks that the machine meets the minimum requirements before the registry
starts accepting publishes.
"""

import platform
import shutil
import sys
from typing import NamedTuple, Optional

# tarfile extraction filters first shipped in 3.11.4.
MINIMUM_PYTHON: tuple[int, int, int] = (3, 11, 4)


class SystemInfo(NamedTuple):
    """Snapshot of the current system environment."""

    python_version: str
    platform: str
    architecture: str
    hostname: str


def get_python_version() -> tuple[int, int, int]:
    """Return the current Python version as a (major, minor, micro) tuple."""
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Verify we're running Python 3.11.4+.

    Raises:
        RuntimeError: If Python version is below 3.11.4.
    """
    current = get_python_version()
    if current < MINIMUM_PYTHON:
        required = ".".join(str(part) for part in MINIMUM_PYTHON)
        running = ".".join(str(part) for part in current)
        raise RuntimeError(
            f"snpm requires Python >= {required}, but you're running {running}. Please upgrade."
        )


def get_system_info() -> SystemInfo:
    """Collect basic system information for logging and diagnostics."""
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        architecture=platform.machine(),
        hostname=platform.node(),
    )


def find_executable(name: str) -> Optional[str]:
    """Absolute path of an executable on PATH, or None."""
    return shutil.which(name)
