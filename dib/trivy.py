"""Scan built images for vulnerabilities with trivy."""

from __future__ import annotations

import io
import logging
import os
import subprocess
from collections.abc import Sequence
from typing import Protocol, TextIO

from dib.options import TEST_RUNNER_TRIVY, RunTestOptions

DEFAULT_SHELL = "/bin/bash"

logger = logging.getLogger(__name__)


class CommandFailedError(RuntimeError):
    """Raised when the trivy command exits unsuccessfully."""

    def __init__(self, message: str = "trivy command failed") -> None:
        super().__init__(message)


class TrivyScanError(RuntimeError):
    """Raised when a trivy scan cannot run, fails, or its report cannot be written."""


class TrivyExecutor(Protocol):
    """Something able to run trivy."""

    def execute(self, output: TextIO, *args: str) -> None:
        """Run trivy with the given arguments, writing its output to ``output``."""
        ...


def _run_streaming(output: TextIO, argv: Sequence[str]) -> None:
    try:
        proc = subprocess.Popen(list(argv), stdout=subprocess.PIPE, text=True)
    except OSError as err:
        raise CommandFailedError(f"trivy command failed: {err}") from err
    with proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            output.write(line)
    if proc.returncode != 0:
        raise CommandFailedError(
            f"trivy command failed: exit status {proc.returncode}"
        )


class LocalExecutor:
    """Runs the trivy command on the local host through a shell."""

    def __init__(self, shell: str = DEFAULT_SHELL) -> None:
        self.shell = shell

    @classmethod
    def from_env(cls) -> LocalExecutor:
        """Use the shell named by $SHELL, falling back to /bin/bash."""
        return cls(os.environ.get("SHELL", DEFAULT_SHELL))

    def execute(self, output: TextIO, *args: str) -> None:
        """Run trivy with the given arguments."""
        cmd = "trivy " + " ".join(args)
        _run_streaming(output, [self.shell, "-c", cmd])


class TrivyRunner:
    """Test runner that scans images with trivy."""

    def __init__(self, executor: TrivyExecutor, working_directory: str = "") -> None:
        self.executor = executor
        self.working_directory = working_directory

    def name(self) -> str:
        """Return the runner's name."""
        return TEST_RUNNER_TRIVY

    def is_configured(self, opts: RunTestOptions) -> bool:
        """Trivy needs no per-image configuration, so it always applies."""
        return True

    def run_test(self, opts: RunTestOptions) -> None:
        """Scan the image and write the JSON report."""
        args = ["image", "--quiet", "--format", "json", opts.image_reference]

        try:
            os.makedirs(opts.report_trivy_dir, mode=0o755, exist_ok=True)
        except OSError as err:
            raise TrivyScanError(
                f"failed to create directory {opts.report_trivy_dir}: {err}"
            ) from err

        stdout = io.StringIO()
        scan_error: Exception | None = None
        try:
            self.executor.execute(stdout, *args)
        except Exception as err:  # noqa: BLE001 - reported after the export below
            scan_error = err

        try:
            self._export_trivy_report(opts, stdout.getvalue())
        except OSError as err:
            raise TrivyScanError(
                f"trivy tests failed, could not export scan report: {err}"
            ) from err

        if scan_error is None:
            return
        if not isinstance(scan_error, CommandFailedError):
            raise TrivyScanError(f"unable to run trivy tests: {scan_error}") from scan_error
        raise TrivyScanError(f"trivy tests failed: {scan_error}") from scan_error

    def _export_trivy_report(self, opts: RunTestOptions, stdout: str) -> None:
        report_file = os.path.join(
            opts.report_trivy_dir, f"{opts.image_name.replace('/', '_')}.json"
        )
        logger.debug("Writing trivy report to %s", report_file)
        try:
            with open(report_file, "w", encoding="utf-8") as handle:
                handle.write(stdout)
        except OSError as err:
            raise OSError(
                f"could not write trivy report to file {report_file}: {err}"
            ) from err