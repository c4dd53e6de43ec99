# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the in-memory stage reporter."""

import pytest

from snpm.publish.models import Failure, Stage, Success
from snpm.publish.reporter import CollectingReporter


class TestCollectingReporter:
    def test_collects_progress_in_order(self) -> None:
        reporter = CollectingReporter()
        reporter.report_progress(Stage.FETCH, "Fetching repo archive...")
        reporter.report_progress(Stage.EXTRACT, "Decompressing repo archive...")
        assert [stage for stage, _ in reporter.progress] == [Stage.FETCH, Stage.EXTRACT]

    def test_result_only_once(self) -> None:
        reporter = CollectingReporter()
        reporter.report_result(Success())
        with pytest.raises(RuntimeError):
            reporter.report_result(Failure(stage=Stage.BUILD, message="Cannot build project"))
        assert reporter.outcome is not None and reporter.outcome.ok
