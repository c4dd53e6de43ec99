# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Request validation and status schemas for the registry API.

Plain dataclasses and functions, no pydantic: these are runtime wire
structures, not configuration. Validation happens before the pipeline is
created, so a bad request never causes a network call.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from snpm.publish.errors import InputValidationError
from snpm.publish.models import PublishRequest
from snpm.utils.hashing import is_sha1_hex


def validate_publish_payload(
    payload: Any,
    require_checksum: bool,
    github_host: str = "github.com",
) -> PublishRequest:
    """
    Turn a decoded publish payload into a PublishRequest.

    Expected shape: {"url": str, "version": str, "checksum": str}. The
    checksum is mandatory only when `require_checksum` is set (the HTTP
    transport); otherwise the manifest's declared sha1 is used later.

    Raises:
        InputValidationError: With the caller-facing message for the first
            problem found: url, then version, then checksum.
    """
    if not isinstance(payload, dict):
        raise InputValidationError("Invalid request body")

    url = payload.get("url")
    if not isinstance(url, str) or not url or github_host not in url:
        raise InputValidationError("Invalid Github URL")

    version = payload.get("version")
    if not isinstance(version, str) or not version.strip():
        raise InputValidationError("Invalid version")

    checksum = payload.get("checksum")
    if checksum is None or checksum == "":
        if require_checksum:
            raise InputValidationError("Invalid checksum")
        checksum = None
    elif not isinstance(checksum, str) or not is_sha1_hex(checksum):
        raise InputValidationError("Invalid checksum")

    return PublishRequest(
        repository_url=url.strip(),
        version=version.strip(),
        expected_checksum=checksum.strip().lower() if checksum else None,
    )


@dataclass
class RegistryStatus:
    """Counters behind GET /status. Updated from request threads."""

    started_at: float = field(default_factory=time.monotonic)
    publishes_started: int = 0
    publishes_succeeded: int = 0
    publishes_failed: int = 0
    active: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def run_started(self) -> None:
        with self._lock:
            self.publishes_started += 1
            self.active += 1

    def run_finished(self, ok: bool) -> None:
        with self._lock:
            self.active -= 1
            if ok:
                self.publishes_succeeded += 1
            else:
                self.publishes_failed += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "uptime_seconds": round(time.monotonic() - self.started_at, 2),
                "publishes_started": self.publishes_started,
                "publishes_succeeded": self.publishes_succeeded,
                "publishes_failed": self.publishes_failed,
                "active": self.active,
            }
