# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared registry state.

Stashed on `app.state.registry` so both transports reach the pipeline
factory and the status counters without module-level globals.
"""

import logging
from dataclasses import dataclass, field

from snpm.config.schema import RegistryConfig
from snpm.logging.logger import get_logger
from snpm.publish.models import PipelineOutcome
from snpm.publish.pipeline import PipelineFactory, PublishPipeline
from snpm.serving.api.schema import RegistryStatus

logger: logging.Logger = get_logger(__name__)


@dataclass
class RegistryState:
    config: RegistryConfig
    factory: PipelineFactory
    status: RegistryStatus = field(default_factory=RegistryStatus)

    def run(self, pipeline: PublishPipeline) -> PipelineOutcome:
        """Run a pipeline to completion, keeping the status counters honest."""
        self.status.run_started()
        outcome = None
        try:
            outcome = pipeline.run()
            return outcome
        finally:
            self.status.run_finished(ok=outcome is not None and outcome.ok)
