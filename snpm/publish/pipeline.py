# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The publish pipeline.

A run moves through a fixed, linear sequence of stages:

    parse → fetch → extract → install (+ read manifest) → build → verify

Each stage runs only if every stage before it succeeded. The first failure
ends the run with Failure(stage, message); nothing after it executes.
There are no retries and a pipeline instance is used for exactly one run.

Progress lines go to the StageReporter as each stage starts, and the
terminal outcome is reported once, after the run's scratch directory has
been removed.

All work happens in an explicit project directory passed down to every
collaborator. The process cwd is never touched, which is what makes
concurrent runs safe.
"""

import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from snpm.config.schema import RegistryConfig
from snpm.logging.logger import get_logger
from snpm.publish.buildtool import BuildTool
from snpm.publish.cancellation import CancellationToken
from snpm.publish.errors import (
    ArtifactReadError,
    BuildError,
    DependencyInstallError,
    ExtractError,
    FetchError,
    InvalidReferenceError,
    ManifestError,
    PipelineCancelledError,
    PublishError,
)
from snpm.publish.extractor import extract_project
from snpm.publish.fetcher import ArchiveFetcher
from snpm.publish.manifest import read_manifest
from snpm.publish.models import (
    STAGE_PROGRESS,
    ArchiveHandle,
    Failure,
    PackageManifest,
    PipelineOutcome,
    PublishRequest,
    RepositoryReference,
    Stage,
    Success,
)
from snpm.publish.reference import parse_repository_url
from snpm.publish.reporter import StageReporter
from snpm.publish.verifier import resolve_artifact, verify_artifact
from snpm.utils.filesystem import remove_tree

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")

# Error raised when a stage blows up with something that isn't a PublishError.
_STAGE_ERRORS: dict[Stage, type[PublishError]] = {
    Stage.PARSE: InvalidReferenceError,
    Stage.FETCH: FetchError,
    Stage.EXTRACT: ExtractError,
    Stage.INSTALL: DependencyInstallError,
    Stage.BUILD: BuildError,
    Stage.VERIFY: ArtifactReadError,
}


@dataclass(frozen=True)
class PipelineSettings:
    """The slice of registry config a single run needs."""

    github_host: str = "github.com"
    build_script: str = "build"
    manifest_file: str = "package.json"
    keep_workspace: bool = False
    publish_timeout_seconds: Optional[float] = None

    @classmethod
    def from_config(cls, config: RegistryConfig) -> "PipelineSettings":
        return cls(
            github_host=config.github_host,
            build_script=config.build_tool.build_script,
            manifest_file=config.build_tool.manifest_file,
            keep_workspace=config.keep_workspace,
            publish_timeout_seconds=config.publish_timeout_seconds,
        )


class PublishPipeline:
    """
    One publish run.

    Collaborators are injected so tests can swap any stage for a fake:
      fetcher          - ArchiveFetcher-like, `fetch(reference, version, token)`
      build_tool       - BuildTool-like, `load_config()`, `install(cwd, token)`,
                         `run(cwd, script, token)`
      extractor        - `(handle, reference, version) -> project dir`
      manifest_reader  - `(project dir, manifest filename) -> PackageManifest`
    """

    def __init__(
        self,
        request: PublishRequest,
        reporter: StageReporter,
        fetcher: ArchiveFetcher,
        build_tool: BuildTool,
        settings: Optional[PipelineSettings] = None,
        token: Optional[CancellationToken] = None,
        extractor: Callable[[ArchiveHandle, RepositoryReference, str], Path] = extract_project,
        manifest_reader: Callable[[Path, str], PackageManifest] = read_manifest,
        run_id: Optional[str] = None,
    ) -> None:
        self.request = request
        self.reporter = reporter
        self.fetcher = fetcher
        self.build_tool = build_tool
        self.settings = settings or PipelineSettings()
        self.token = token or CancellationToken(self.settings.publish_timeout_seconds)
        self.extractor = extractor
        self.manifest_reader = manifest_reader
        self.run_id = run_id or uuid.uuid4().hex[:12]

        self.state: Optional[Stage] = None
        self.outcome: Optional[PipelineOutcome] = None
        self._started = False
        self._handle: Optional[ArchiveHandle] = None

    def run(self) -> PipelineOutcome:
        """
        Execute every stage and report the outcome.

        Raises:
            RuntimeError: If this instance already ran.
        """
        if self._started:
            raise RuntimeError("PublishPipeline instances are single-use")
        self._started = True

        logger.info(
            "Publish started",
            extra={
                "run_id": self.run_id,
                "url": self.request.repository_url,
                "version": self.request.version,
            },
        )

        try:
            outcome = self._execute()
        finally:
            self._cleanup()

        self.outcome = outcome
        self.reporter.report_result(outcome)
        return outcome

    def _execute(self) -> PipelineOutcome:
        version = self.request.version
        try:
            reference = self._stage(
                Stage.PARSE,
                lambda: parse_repository_url(self.request.repository_url, self.settings.github_host),
            )
            self._handle = self._stage(
                Stage.FETCH,
                lambda: self.fetcher.fetch(reference, version, self.token),
            )
            handle = self._handle
            build_dir = self._stage(
                Stage.EXTRACT,
                lambda: self.extractor(handle, reference, version),
            )
            manifest = self._stage(Stage.INSTALL, lambda: self._install(build_dir))
            self._stage(
                Stage.BUILD,
                lambda: self.build_tool.run(build_dir, self.settings.build_script, self.token),
            )
            digest = self._stage(Stage.VERIFY, lambda: self._verify(build_dir, manifest))

        except PublishError as err:
            stage = Stage(err.stage) if err.stage else (self.state or Stage.PARSE)
            logger.error(
                "Publish failed",
                extra={
                    "run_id": self.run_id,
                    "stage": stage.value,
                    "error": err.message,
                    "cause": repr(err.__cause__) if err.__cause__ else None,
                },
            )
            return Failure(stage=stage, message=err.message, client_error=err.client_error)

        logger.info(
            "Publish succeeded",
            extra={"run_id": self.run_id, "package": reference.slug, "version": version, "sha1": digest},
        )
        return Success(reference=reference, digest=digest)

    def _stage(self, stage: Stage, action: Callable[[], T]) -> T:
        self.state = stage
        try:
            self.token.check()

            message = STAGE_PROGRESS[stage]
            if message is not None:
                self.reporter.report_progress(stage, message)
            logger.info("Stage started", extra={"run_id": self.run_id, "stage": stage.value})

            return action()

        except PublishError as err:
            if err.stage is None:
                err.stage = stage.value
            raise
        except Exception as err:
            logger.error(
                "Unexpected stage failure",
                extra={"run_id": self.run_id, "stage": stage.value, "error": str(err)},
                exc_info=True,
            )
            raise _STAGE_ERRORS[stage](stage=stage.value) from err

    def _install(self, build_dir: Path) -> PackageManifest:
        """
        Load the build tool, then read the manifest and install dependencies
        side by side. Both have to succeed.
        """
        self.build_tool.load_config()

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"snpm-{self.run_id}") as pool:
            manifest_future = pool.submit(self.manifest_reader, build_dir, self.settings.manifest_file)
            install_future = pool.submit(self.build_tool.install, build_dir, self.token)

            manifest_error = _future_error(manifest_future, ManifestError)
            install_error = _future_error(install_future, DependencyInstallError)

        for error in (manifest_error, install_error):
            if isinstance(error, PipelineCancelledError):
                raise error
        if manifest_error is not None:
            raise manifest_error
        if install_error is not None:
            raise install_error

        return manifest_future.result()

    def _verify(self, build_dir: Path, manifest: PackageManifest) -> str:
        expected = self.request.expected_checksum or manifest.sha1
        if not expected:
            logger.error("Package declares no sha1 checksum", extra={"run_id": self.run_id})
            raise ManifestError()

        artifact = resolve_artifact(build_dir, manifest.bin_path)
        return verify_artifact(artifact, expected)

    def _cleanup(self) -> None:
        if self._handle is None:
            return
        if self.settings.keep_workspace:
            logger.info(
                "Keeping scratch directory",
                extra={"run_id": self.run_id, "temp_dir": str(self._handle.temp_dir)},
            )
            return
        removed = remove_tree(self._handle.temp_dir)
        logger.debug(
            "Scratch directory removed",
            extra={"run_id": self.run_id, "temp_dir": str(self._handle.temp_dir), "removed": removed},
        )


def _future_error(future: Future, fallback: type[PublishError]) -> Optional[PublishError]:
    """The PublishError a finished future raised, wrapping anything else in `fallback`."""
    error = future.exception()
    if error is None:
        return None
    if isinstance(error, PublishError):
        return error
    logger.error("Concurrent install task failed", extra={"error": str(error)}, exc_info=error)
    wrapped = fallback()
    wrapped.__cause__ = error
    return wrapped


class PipelineFactory:
    """
    Builds pipelines that share one fetcher and one build tool.

    The server holds a single factory; every publish request gets a fresh
    PublishPipeline from it.
    """

    def __init__(
        self,
        config: RegistryConfig,
        fetcher: Optional[ArchiveFetcher] = None,
        build_tool: Optional[BuildTool] = None,
    ) -> None:
        self.config = config
        self.settings = PipelineSettings.from_config(config)
        self.fetcher = fetcher or ArchiveFetcher(
            base_url=config.archive_base_url,
            timeout_seconds=config.fetch_timeout_seconds,
            temp_root=Path(config.temp_root) if config.temp_root else None,
        )
        self.build_tool = build_tool or BuildTool(config.build_tool)

    def create(
        self,
        request: PublishRequest,
        reporter: StageReporter,
        token: Optional[CancellationToken] = None,
    ) -> PublishPipeline:
        return PublishPipeline(
            request=request,
            reporter=reporter,
            fetcher=self.fetcher,
            build_tool=self.build_tool,
            settings=self.settings,
            token=token or CancellationToken(self.settings.publish_timeout_seconds),
        )
