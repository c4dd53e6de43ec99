# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Cancellation and deadlines for a publish run.

A token is created per run and handed to every collaborator that can block:
the archive download and the dependency manager. Collaborators ask it how
long they may still wait and call `check()` at safe points. A transport
cancels the token when its caller goes away.
"""

import threading
import time
from typing import Optional

from snpm.publish.errors import PipelineCancelledError


class CancellationToken:
    """
    Thread-safe cancel flag with an optional monotonic deadline.

    Usage:
        token = CancellationToken(timeout_seconds=1800)
        token.check()                       # raises if cancelled or expired
        proc.wait(timeout=token.remaining(30))
    """

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout_seconds is not None:
            self._deadline = time.monotonic() + timeout_seconds

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self, cap: Optional[float] = None) -> Optional[float]:
        """
        Seconds left before the deadline, optionally capped.

        Returns None when there is neither a deadline nor a cap. Never negative.
        """
        left: Optional[float] = None
        if self._deadline is not None:
            left = max(0.0, self._deadline - time.monotonic())
        if cap is not None:
            left = cap if left is None else min(left, cap)
        return left

    def check(self) -> None:
        """Raise PipelineCancelledError if the run must stop."""
        if self.cancelled:
            raise PipelineCancelledError("Publish cancelled")
        if self.expired:
            raise PipelineCancelledError("Publish timed out")
