# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the publish pipeline.

The real extractor, manifest reader and verifier run on real tarballs;
only the network fetch and the npm subprocesses are faked.
"""

import os
import threading
from pathlib import Path

import pytest

from snpm.publish.cancellation import CancellationToken
from snpm.publish.errors import BuildError, DependencyInstallError, FetchError
from snpm.publish.models import Failure, PublishRequest, Stage, Success, SUCCESS_MESSAGE
from snpm.publish.pipeline import PipelineSettings, PublishPipeline

WIDGET_URL = "https://github.com/acme/widget"

ALL_PROGRESS = [
    "Fetching repo archive...",
    "Decompressing repo archive...",
    "Installing repo deps...",
    "Building repo...",
    "Checking checksum...",
]


def _pipeline(fetcher, build_tool, reporter, checksum=None, url=WIDGET_URL, **kwargs) -> PublishPipeline:  # type: ignore[no-untyped-def]
    request = PublishRequest(repository_url=url, version="1.2.0", expected_checksum=checksum)
    return PublishPipeline(request, reporter, fetcher, build_tool, **kwargs)


class TestSuccessfulRun:
    def test_returns_success_with_digest(self, make_fetcher, make_build_tool, reporter, artifact_sha1) -> None:
        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, checksum=artifact_sha1).run()
        assert isinstance(outcome, Success)
        assert outcome.ok
        assert outcome.digest == artifact_sha1
        assert outcome.reference.slug == "acme/widget"

    def test_progress_is_reported_in_stage_order(self, make_fetcher, make_build_tool, reporter, artifact_sha1) -> None:
        _pipeline(make_fetcher(), make_build_tool(), reporter, checksum=artifact_sha1).run()
        assert reporter.progress == ALL_PROGRESS

    def test_result_is_reported_exactly_once(self, make_fetcher, make_build_tool, reporter, artifact_sha1) -> None:
        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, checksum=artifact_sha1).run()
        assert reporter.results == [outcome]

    def test_build_runs_in_extracted_project_dir(self, make_fetcher, make_build_tool, reporter, artifact_sha1) -> None:
        fetcher, tool = make_fetcher(), make_build_tool()
        _pipeline(fetcher, tool, reporter, checksum=artifact_sha1).run()

        expected_dir = fetcher.handles[0].temp_dir / "widget-1.2.0"
        assert ("install", expected_dir) in tool.calls
        assert ("run", expected_dir, "build") in tool.calls

    def test_fetches_the_requested_reference(self, make_fetcher, make_build_tool, reporter) -> None:
        fetcher = make_fetcher()
        _pipeline(fetcher, make_build_tool(), reporter, url="git@github.com:acme/widget.git").run()
        reference, version = fetcher.calls[0]
        assert (reference.owner, reference.repo, version) == ("acme", "widget", "1.2.0")

    def test_success_message_constant(self) -> None:
        assert SUCCESS_MESSAGE == "Finished!"


class TestChecksumSource:
    def test_uppercase_request_checksum_matches(self, make_fetcher, make_build_tool, reporter, artifact_sha1) -> None:
        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, checksum=artifact_sha1.upper()).run()
        assert outcome.ok

    def test_manifest_checksum_used_when_request_has_none(self, make_fetcher, make_build_tool, reporter) -> None:
        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, checksum=None).run()
        assert outcome.ok

    def test_request_checksum_wins_over_manifest(self, make_fetcher, make_build_tool, reporter) -> None:
        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, checksum="0" * 40).run()
        assert isinstance(outcome, Failure)
        assert outcome.stage is Stage.VERIFY
        assert outcome.message == "Build SHA1 checksum is different"
        assert outcome.client_error is True

    def test_no_checksum_anywhere_fails(
        self, make_fetcher, make_build_tool, make_tarball, make_package_json, reporter
    ) -> None:
        archive = make_tarball("widget-1.2.0", {"package.json": make_package_json(checksums={})})
        outcome = _pipeline(make_fetcher({"widget": archive}), make_build_tool(), reporter).run()
        assert isinstance(outcome, Failure)
        assert outcome.stage is Stage.VERIFY
        assert outcome.message == "Cannot read project package.json"

    def test_rebuilt_artifact_with_different_bytes_mismatches(
        self, make_fetcher, make_build_tool, reporter, artifact_sha1
    ) -> None:
        tool = make_build_tool(artifact_bytes=b"tampered")
        outcome = _pipeline(make_fetcher(), tool, reporter, checksum=artifact_sha1).run()
        assert outcome.message == "Build SHA1 checksum is different"


class TestStageFailures:
    def test_bad_url_stops_before_fetch(self, make_fetcher, make_build_tool, reporter) -> None:
        fetcher, tool = make_fetcher(), make_build_tool()
        outcome = _pipeline(fetcher, tool, reporter, url="https://gitlab.com/acme/widget").run()

        assert isinstance(outcome, Failure)
        assert outcome.stage is Stage.PARSE
        assert outcome.message == "Invalid Github URL"
        assert fetcher.calls == []
        assert reporter.progress == []

    def test_fetch_failure_skips_everything_after(self, make_fetcher, make_build_tool, reporter) -> None:
        tool = make_build_tool()
        outcome = _pipeline(make_fetcher(error=FetchError()), tool, reporter).run()

        assert outcome.stage is Stage.FETCH
        assert outcome.message == "Cannot fetch project tar.gz"
        assert outcome.client_error is False
        assert tool.calls == []
        assert reporter.progress == ALL_PROGRESS[:1]

    def test_corrupt_archive_fails_extract(self, make_fetcher, make_build_tool, reporter) -> None:
        tool = make_build_tool()
        outcome = _pipeline(make_fetcher({"widget": b"not a tarball"}), tool, reporter).run()

        assert outcome.stage is Stage.EXTRACT
        assert outcome.message == "Cannot untar project tar.gz"
        assert tool.calls == []

    def test_archive_without_project_dir_fails_extract(
        self, make_fetcher, make_build_tool, make_tarball, make_package_json, reporter
    ) -> None:
        archive = make_tarball("something-else", {"package.json": make_package_json()})
        outcome = _pipeline(make_fetcher({"widget": archive}), make_build_tool(), reporter).run()
        assert outcome.stage is Stage.EXTRACT

    def test_missing_manifest_fails_install(self, make_fetcher, make_build_tool, make_tarball, reporter) -> None:
        archive = make_tarball("widget-1.2.0", {"README.md": b"# widget\n"})
        tool = make_build_tool()
        outcome = _pipeline(make_fetcher({"widget": archive}), tool, reporter).run()

        assert outcome.stage is Stage.INSTALL
        assert outcome.message == "Cannot read project package.json"
        assert "run" not in tool.stages()

    def test_install_failure_skips_build(self, make_fetcher, make_build_tool, reporter) -> None:
        tool = make_build_tool(install_error=DependencyInstallError())
        outcome = _pipeline(make_fetcher(), tool, reporter).run()

        assert outcome.stage is Stage.INSTALL
        assert outcome.message == "Cannot install project dependencies"
        assert "run" not in tool.stages()
        assert reporter.progress == ALL_PROGRESS[:3]

    def test_missing_build_tool_fails_install(self, make_fetcher, make_build_tool, reporter) -> None:
        tool = make_build_tool(load_error=DependencyInstallError())
        outcome = _pipeline(make_fetcher(), tool, reporter).run()
        assert outcome.stage is Stage.INSTALL
        assert tool.stages() == ["load"]

    def test_manifest_error_reported_before_install_error(
        self, make_fetcher, make_build_tool, make_tarball, reporter
    ) -> None:
        archive = make_tarball("widget-1.2.0", {"README.md": b"# widget\n"})
        tool = make_build_tool(install_error=DependencyInstallError())
        outcome = _pipeline(make_fetcher({"widget": archive}), tool, reporter).run()
        assert outcome.message == "Cannot read project package.json"

    def test_build_failure_skips_verify(self, make_fetcher, make_build_tool, reporter) -> None:
        outcome = _pipeline(make_fetcher(), make_build_tool(build_error=BuildError()), reporter).run()

        assert outcome.stage is Stage.BUILD
        assert outcome.message == "Cannot build project"
        assert reporter.progress == ALL_PROGRESS[:4]

    def test_unexpected_exception_is_mapped_to_stage_error(self, make_fetcher, make_build_tool, reporter) -> None:
        def exploding_extractor(handle, reference, version):  # type: ignore[no-untyped-def]
            raise ValueError("boom")

        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, extractor=exploding_extractor).run()
        assert outcome.stage is Stage.EXTRACT
        assert outcome.message == "Cannot untar project tar.gz"

    def test_missing_artifact_fails_verify(self, make_fetcher, make_build_tool, make_tarball, make_package_json, reporter) -> None:
        archive = make_tarball("widget-1.2.0", {"package.json": make_package_json(bin="dist/other.js")})
        outcome = _pipeline(make_fetcher({"widget": archive}), make_build_tool(), reporter).run()
        assert outcome.stage is Stage.VERIFY
        assert outcome.message == "Cannot check project checksum"


class TestCleanup:
    def test_scratch_dir_removed_after_success(self, make_fetcher, make_build_tool, reporter, scratch_root) -> None:
        fetcher = make_fetcher()
        _pipeline(fetcher, make_build_tool(), reporter).run()
        assert not fetcher.handles[0].temp_dir.exists()
        assert list(scratch_root.iterdir()) == []

    def test_scratch_dir_removed_after_failure(self, make_fetcher, make_build_tool, reporter) -> None:
        fetcher = make_fetcher()
        _pipeline(fetcher, make_build_tool(build_error=BuildError()), reporter).run()
        assert not fetcher.handles[0].temp_dir.exists()

    def test_keep_workspace_leaves_scratch_dir(self, make_fetcher, make_build_tool, reporter) -> None:
        fetcher = make_fetcher()
        settings = PipelineSettings(keep_workspace=True)
        _pipeline(fetcher, make_build_tool(), reporter, settings=settings).run()
        assert (fetcher.handles[0].temp_dir / "widget-1.2.0" / "package.json").is_file()


class TestLifecycle:
    def test_pipeline_is_single_use(self, make_fetcher, make_build_tool, reporter) -> None:
        pipeline = _pipeline(make_fetcher(), make_build_tool(), reporter)
        pipeline.run()
        with pytest.raises(RuntimeError):
            pipeline.run()

    def test_cancelled_token_stops_before_fetch(self, make_fetcher, make_build_tool, reporter) -> None:
        token = CancellationToken()
        token.cancel()
        fetcher = make_fetcher()
        outcome = _pipeline(fetcher, make_build_tool(), reporter, token=token).run()

        assert isinstance(outcome, Failure)
        assert outcome.message == "Publish cancelled"
        assert fetcher.calls == []

    def test_expired_deadline_reports_timeout(self, make_fetcher, make_build_tool, reporter) -> None:
        token = CancellationToken(timeout_seconds=0)
        outcome = _pipeline(make_fetcher(), make_build_tool(), reporter, token=token).run()
        assert outcome.message == "Publish timed out"

    def test_cancel_during_install_skips_build(self, make_fetcher, make_build_tool, reporter) -> None:
        token = CancellationToken()
        tool = make_build_tool(on_install=lambda cwd: token.cancel())
        outcome = _pipeline(make_fetcher(), tool, reporter, token=token).run()

        assert outcome.message == "Publish cancelled"
        assert "run" not in tool.stages()


class TestConcurrentRuns:
    def test_runs_use_separate_directories(
        self, make_fetcher, make_build_tool, make_tarball, make_package_json, widget_archive
    ) -> None:
        gadget_archive = make_tarball(
            "gadget-1.2.0",
            {"package.json": make_package_json(name="gadget")},
        )
        fetcher = make_fetcher({"widget": widget_archive, "gadget": gadget_archive})

        # Both installs must be in flight at the same time.
        barrier = threading.Barrier(2, timeout=10)
        tool = make_build_tool(on_install=lambda cwd: barrier.wait())
        cwd_before = os.getcwd()

        outcomes: dict[str, object] = {}

        threads = []
        for repo in ("widget", "gadget"):
            pipeline = _pipeline(fetcher, tool, _Reporter(), url=f"https://github.com/acme/{repo}")
            thread = threading.Thread(target=lambda p=pipeline, r=repo: outcomes.__setitem__(r, p.run()))
            threads.append(thread)
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert all(outcome.ok for outcome in outcomes.values())  # type: ignore[attr-defined]
        assert os.getcwd() == cwd_before

        run_dirs = {call[1] for call in tool.calls if call[0] == "run"}
        assert {Path(d).name for d in run_dirs} == {"widget-1.2.0", "gadget-1.2.0"}
        assert len({Path(d).parent for d in run_dirs}) == 2


class _Reporter:
    def report_progress(self, stage, message) -> None:  # type: ignore[no-untyped-def]
        pass

    def report_result(self, outcome) -> None:  # type: ignore[no-untyped-def]
        pass
