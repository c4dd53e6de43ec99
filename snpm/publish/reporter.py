# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Stage reporting.

The pipeline knows nothing about HTTP or WebSockets. It writes progress
lines and one terminal outcome to a StageReporter, and each transport
supplies its own implementation.
"""

import logging
from typing import Optional, Protocol

from snpm.logging.logger import get_logger
from snpm.publish.models import PipelineOutcome, Stage

logger: logging.Logger = get_logger(__name__)


class StageReporter(Protocol):
    """Sink for pipeline progress and the terminal result."""

    def report_progress(self, stage: Stage, message: str) -> None:
        """Called once when `stage` starts, with a human-readable line."""
        ...

    def report_result(self, outcome: PipelineOutcome) -> None:
        """Called exactly once when the run ends."""
        ...


class CollectingReporter:
    """
    Keeps progress and the outcome in memory.

    The request/response transport uses this: progress is only logged, and
    the outcome becomes the HTTP response.
    """

    def __init__(self) -> None:
        self.progress: list[tuple[Stage, str]] = []
        self.outcome: Optional[PipelineOutcome] = None

    def report_progress(self, stage: Stage, message: str) -> None:
        self.progress.append((stage, message))
        logger.info(message, extra={"stage": stage.value})

    def report_result(self, outcome: PipelineOutcome) -> None:
        if self.outcome is not None:
            raise RuntimeError("Result already reported")
        self.outcome = outcome
