# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Dependency manager / build tool driver.

Runs the package's own tooling (npm by default) as subprocesses:

    <executable> install           - install declared dependencies
    <executable> run <script>      - run the build script

Every call takes the project directory as an explicit `cwd`. The server's
own working directory is never changed, so two publishes running at the
same time can't redirect each other's install or build.

Each command runs under a hard timeout (the smaller of the per-command limit
and what's left of the run's deadline) and is killed if the run is
cancelled. No shell=True.
"""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Optional

from snpm.config.schema import BuildToolConfig
from snpm.logging.logger import get_logger
from snpm.publish.cancellation import CancellationToken
from snpm.publish.errors import BuildError, DependencyInstallError
from snpm.runtime.environment import find_executable

logger: logging.Logger = get_logger(__name__)

_POLL_INTERVAL_SECONDS = 0.2
_OUTPUT_TAIL_CHARS = 2000


class CommandResult:
    """Exit status and captured output of one external command."""

    def __init__(self, args: list[str], exit_code: int, output: str, elapsed_seconds: float) -> None:
        self.args = args
        self.exit_code = exit_code
        self.output = output
        self.elapsed_seconds = elapsed_seconds

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class BuildTool:
    """
    Drives a package manager against an extracted project directory.

    Call `load_config()` once per run before `install()`/`run()`; it resolves
    the executable and prepares a non-interactive environment.
    """

    def __init__(self, config: Optional[BuildToolConfig] = None) -> None:
        self.config = config or BuildToolConfig()
        self._executable: Optional[str] = None
        self._env: Optional[dict[str, str]] = None

    def load_config(self) -> None:
        """
        Resolve the executable and build the subprocess environment.

        Raises:
            DependencyInstallError: The executable isn't on PATH.
        """
        executable = find_executable(self.config.executable)
        if executable is None:
            logger.error(
                "Build tool executable not found",
                extra={"executable": self.config.executable},
            )
            raise DependencyInstallError()

        self._executable = executable
        self._env = self._build_env()
        logger.debug("Build tool ready", extra={"executable": executable})

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        # Never prompt; there is nobody on the other end of stdin.
        env["CI"] = "true"
        env["npm_config_yes"] = "true"
        if self.config.silent:
            env["npm_config_loglevel"] = "silent"
            env["npm_config_progress"] = "false"
            env["npm_config_fund"] = "false"
            env["npm_config_audit"] = "false"
        return env

    def install(self, cwd: Path, token: Optional[CancellationToken] = None) -> CommandResult:
        """
        Install the project's declared dependencies into `cwd`.

        Raises:
            DependencyInstallError: Non-zero exit, timeout, or the tool could not start.
            PipelineCancelledError: The run was cancelled while installing.
        """
        result = self._run(list(self.config.install_args), cwd, token, DependencyInstallError)
        if not result.success:
            self._log_failure("Dependency install failed", result, cwd)
            raise DependencyInstallError()
        return result

    def run(self, cwd: Path, script: str, token: Optional[CancellationToken] = None) -> CommandResult:
        """
        Run a manifest script (the build) in `cwd`.

        Raises:
            BuildError: Non-zero exit, timeout, or the tool could not start.
            PipelineCancelledError: The run was cancelled while building.
        """
        result = self._run([*self.config.run_args, script], cwd, token, BuildError)
        if not result.success:
            self._log_failure("Build script failed", result, cwd)
            raise BuildError()
        return result

    def _run(
        self,
        args: list[str],
        cwd: Path,
        token: Optional[CancellationToken],
        error_type: type,
    ) -> CommandResult:
        if self._executable is None or self._env is None:
            self.load_config()

        token = token or CancellationToken()
        command = [self._executable, *args]
        timeout = token.remaining(float(self.config.timeout_seconds))
        start = time.monotonic()

        try:
            proc = subprocess.Popen(
                command,
                cwd=str(cwd),
                env=self._env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as err:
            logger.error(
                "Cannot start build tool",
                extra={"command": command, "cwd": str(cwd), "error": str(err)},
            )
            raise error_type() from err

        # Poll instead of a single blocking wait so cancellation gets noticed.
        # communicate() drains the pipe, so a chatty tool can't deadlock us.
        while True:
            try:
                output, _ = proc.communicate(timeout=_POLL_INTERVAL_SECONDS)
                break
            except subprocess.TimeoutExpired:
                elapsed = time.monotonic() - start
                if token.cancelled or token.expired:
                    self._kill(proc)
                    logger.warning("Command aborted", extra={"command": command, "cwd": str(cwd)})
                    token.check()
                if timeout is not None and elapsed >= timeout:
                    self._kill(proc)
                    logger.warning(
                        "Command timed out",
                        extra={"command": command, "cwd": str(cwd), "timeout_seconds": timeout},
                    )
                    raise error_type()

        elapsed = time.monotonic() - start
        logger.debug(
            "Command finished",
            extra={
                "command": command,
                "cwd": str(cwd),
                "exit_code": proc.returncode,
                "elapsed_seconds": round(elapsed, 3),
            },
        )
        return CommandResult(command, proc.returncode, output or "", elapsed)

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        proc.kill()
        proc.communicate()

    @staticmethod
    def _log_failure(message: str, result: CommandResult, cwd: Path) -> None:
        logger.error(
            message,
            extra={
                "command": result.args,
                "cwd": str(cwd),
                "exit_code": result.exit_code,
                "output_tail": result.output[-_OUTPUT_TAIL_CHARS:],
            },
        )
