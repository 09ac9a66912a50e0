"""Run goss tests against built images and export JUnit reports."""

from __future__ import annotations

import io
import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from typing import Protocol, TextIO

from dib.options import TEST_RUNNER_GOSS, RunTestOptions

GOSS_FILENAME = "goss.yaml"
DEFAULT_SHELL = "/bin/bash"

logger = logging.getLogger(__name__)


class CommandFailedError(RuntimeError):
    """Raised when the goss command exits unsuccessfully."""

    def __init__(self, message: str = "goss command failed") -> None:
        super().__init__(message)


class GossTestError(RuntimeError):
    """Raised when goss tests cannot run, fail, or their report cannot be written."""


class GossExecutor(Protocol):
    """Something able to run goss against an image."""

    def execute(self, output: TextIO, opts: RunTestOptions, *args: str) -> None:
        """Run goss, writing its standard output to ``output``."""
        ...


def _run_streaming(
    output: TextIO,
    argv: Sequence[str],
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
) -> None:
    try:
        proc = subprocess.Popen(
            list(argv), cwd=cwd, env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE, text=True,
        )
    except OSError as err:
        raise CommandFailedError(f"goss command failed: {err}") from err
    with proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            output.write(line)
    if proc.returncode != 0:
        raise CommandFailedError(
            f"goss command failed: exit status {proc.returncode}"
        )


class DGossExecutor:
    """Runs goss tests through the dgoss wrapper script."""

    def __init__(self, shell: str = DEFAULT_SHELL) -> None:
        self.shell = shell

    @classmethod
    def from_env(cls) -> DGossExecutor:
        """Use the shell named by $SHELL, falling back to /bin/bash."""
        return cls(os.environ.get("SHELL", DEFAULT_SHELL))

    def execute(self, output: TextIO, opts: RunTestOptions, *args: str) -> None:
        """Run goss on the image; goss.yaml is expected in the image's context path."""
        env = {**os.environ, "GOSS_OPTS": " ".join(args)}
        cmd = f"dgoss run --rm --tty --entrypoint='' {opts.image_reference} sh"
        _run_streaming(
            output,
            [self.shell, "-c", cmd],
            cwd=opts.docker_context_path or None,
            env=env,
        )


class GossRunner:
    """Test runner that validates images with goss."""

    def __init__(
        self,
        executor: GossExecutor,
        reports_directory: str = "",
        working_directory: str = "",
    ) -> None:
        self.executor = executor
        self.reports_directory = reports_directory
        self.working_directory = working_directory

    def name(self) -> str:
        """Return the runner's name."""
        return TEST_RUNNER_GOSS

    def is_configured(self, opts: RunTestOptions) -> bool:
        """Tell whether a goss.yaml file exists in the image's context path."""
        return os.path.exists(os.path.join(opts.docker_context_path, GOSS_FILENAME))

    def run_test(self, opts: RunTestOptions) -> None:
        """Run goss tests on the image and write the JUnit report."""
        os.makedirs(opts.report_junit_dir, mode=0o755, exist_ok=True)

        goss_file = os.path.join(opts.docker_context_path, GOSS_FILENAME)
        try:
            os.stat(goss_file)
        except OSError as err:
            raise GossTestError(f"cannot run goss tests: {err}") from err

        stdout = io.StringIO()
        test_error: Exception | None = None
        try:
            self.executor.execute(stdout, opts, "--format", "junit")
        except Exception as err:  # noqa: BLE001 - reported after the export below
            test_error = err

        try:
            self._export_junit_report(opts, stdout.getvalue())
        except OSError as err:
            raise GossTestError(
                f"goss tests failed, could not export junit report: {err}"
            ) from err

        if test_error is not None:
            raise GossTestError(f"goss tests failed: {test_error}") from test_error

    def _export_junit_report(self, opts: RunTestOptions, stdout: str) -> None:
        relative_context = opts.docker_context_path.replace(
            self.working_directory + "/", ""
        )
        stdout = stdout.replace(
            '<testcase name="',
            f'<testcase classname="goss-{opts.image_name}" '
            f'file="{relative_context}" name="',
        )
        junit_filename = os.path.join(
            opts.report_junit_dir,
            f"junit-{opts.image_name.replace('/', '_')}.xml",
        )
        logger.debug("Writing junit report to %s", junit_filename)
        try:
            with open(junit_filename, "w", encoding="utf-8") as handle:
                handle.write(stdout)
        except OSError as err:
            raise OSError(
                f"could not write junit report to file {junit_filename}: {err}"
            ) from err