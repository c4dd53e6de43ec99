# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for snpm tests.

The pipeline's network and build collaborators are replaced by small fakes
here. The real extractor and manifest reader stay in the loop, so the fakes
hand them genuine tarballs built in memory.
"""

import hashlib
import io
import json
import tarfile
import tempfile
import textwrap
import threading
from pathlib import Path
from typing import Callable, Optional

import pytest

from snpm.publish.models import ArchiveHandle, RepositoryReference

ARTIFACT_PATH = "dist/widget.js"
ARTIFACT_BYTES = b"module.exports = function widget() { return 42 }\n"
ARTIFACT_SHA1 = hashlib.sha1(ARTIFACT_BYTES).hexdigest()


def build_tarball(top_dir: str, files: dict[str, bytes]) -> bytes:
    """A .tar.gz holding `files` under `top_dir/`, like a GitHub tag archive."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        dir_info = tarfile.TarInfo(top_dir)
        dir_info.type = tarfile.DIRTYPE
        dir_info.mode = 0o755
        tar.addfile(dir_info)
        for name, content in files.items():
            info = tarfile.TarInfo(f"{top_dir}/{name}")
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def package_json(**overrides: object) -> bytes:
    manifest: dict[str, object] = {
        "name": "widget",
        "version": "1.2.0",
        "repository": {"type": "git", "url": "git@github.com:acme/widget.git"},
        "bin": ARTIFACT_PATH,
        "checksums": {"sha1": ARTIFACT_SHA1},
        "scripts": {"build": "node build.js"},
    }
    manifest.update(overrides)
    return json.dumps(manifest).encode("utf-8")


class FakeFetcher:
    """Stands in for ArchiveFetcher: writes canned bytes into a fresh scratch dir."""

    def __init__(
        self,
        temp_root: Path,
        archives: Optional[dict[str, bytes]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.temp_root = temp_root
        self.archives = archives or {}
        self.error = error
        self.calls: list[tuple[RepositoryReference, str]] = []
        self.handles: list[ArchiveHandle] = []
        self._lock = threading.Lock()

    def fetch(self, reference: RepositoryReference, version: str, token=None) -> ArchiveHandle:  # type: ignore[no-untyped-def]
        with self._lock:
            self.calls.append((reference, version))
        if self.error is not None:
            raise self.error

        temp_dir = Path(tempfile.mkdtemp(prefix="snpm-", dir=str(self.temp_root)))
        archive_file = temp_dir / f"v{version}.tar.gz"
        archive_file.write_bytes(self.archives[reference.repo])
        handle = ArchiveHandle(temp_dir=temp_dir, archive_file=archive_file)
        with self._lock:
            self.handles.append(handle)
        return handle


class FakeBuildTool:
    """
    Stands in for BuildTool. Records every call with its cwd, and the build
    step writes the artifact bytes into the project like a real build would.
    """

    def __init__(
        self,
        load_error: Optional[Exception] = None,
        install_error: Optional[Exception] = None,
        build_error: Optional[Exception] = None,
        artifact_bytes: bytes = ARTIFACT_BYTES,
        on_install: Optional[Callable[[Path], None]] = None,
    ) -> None:
        self.load_error = load_error
        self.install_error = install_error
        self.build_error = build_error
        self.artifact_bytes = artifact_bytes
        self.on_install = on_install
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *call: object) -> None:
        with self._lock:
            self.calls.append(call)

    def load_config(self) -> None:
        self._record("load")
        if self.load_error is not None:
            raise self.load_error

    def install(self, cwd: Path, token=None) -> None:  # type: ignore[no-untyped-def]
        self._record("install", cwd)
        if self.on_install is not None:
            self.on_install(cwd)
        if self.install_error is not None:
            raise self.install_error

    def run(self, cwd: Path, script: str, token=None) -> None:  # type: ignore[no-untyped-def]
        self._record("run", cwd, script)
        if self.build_error is not None:
            raise self.build_error
        artifact = cwd / ARTIFACT_PATH
        artifact.parent.mkdir(parents=True, exist_ok=True)
        artifact.write_bytes(self.artifact_bytes)

    def stages(self) -> list[str]:
        return [call[0] for call in self.calls]


class RecordingReporter:
    """StageReporter that remembers everything, in order."""

    def __init__(self) -> None:
        self.progress: list[str] = []
        self.results: list = []

    def report_progress(self, stage, message: str) -> None:  # type: ignore[no-untyped-def]
        self.progress.append(message)

    def report_result(self, outcome) -> None:  # type: ignore[no-untyped-def]
        self.results.append(outcome)


@pytest.fixture()
def widget_archive() -> bytes:
    """Tag archive of acme/widget v1.2.0 with a valid package.json."""
    return build_tarball("widget-1.2.0", {"package.json": package_json()})


@pytest.fixture()
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture()
def make_fetcher(scratch_root: Path, widget_archive: bytes) -> Callable[..., FakeFetcher]:
    def _make(archives: Optional[dict[str, bytes]] = None, error: Optional[Exception] = None) -> FakeFetcher:
        return FakeFetcher(scratch_root, archives or {"widget": widget_archive}, error)

    return _make


@pytest.fixture()
def make_build_tool() -> Callable[..., FakeBuildTool]:
    return FakeBuildTool


@pytest.fixture()
def make_tarball() -> Callable[[str, dict[str, bytes]], bytes]:
    return build_tarball


@pytest.fixture()
def make_package_json() -> Callable[..., bytes]:
    return package_json


@pytest.fixture()
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture()
def artifact_sha1() -> str:
    return ARTIFACT_SHA1


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "snpm-test"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML that fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "snpm-test"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
