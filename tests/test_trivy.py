import io
import os
import stat

import pytest

from dib.options import RunTestOptions, TestRunnerProtocol
from dib.trivy import CommandFailedError, LocalExecutor, TrivyRunner, TrivyScanError


class FakeExecutor:
    def __init__(self, output="", error=None):
        self.output = output
        self.error = error
        self.recorded_args = None

    def execute(self, output, *args):
        self.recorded_args = list(args)
        output.write(self.output)
        if self.error is not None:
            raise self.error


def _make_script(directory, name, body):
    directory.mkdir(parents=True, exist_ok=True)
    script = directory / name
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def _opts(tmp_path, image_name="image"):
    reports = tmp_path / "reports"
    return RunTestOptions(
        image_name=image_name,
        image_reference="gcr.io/project/image:tag",
        docker_context_path=str(tmp_path / "fixtures"),
        report_junit_dir=str(reports / "junit"),
        report_trivy_dir=str(reports / "trivy"),
    )


def test_local_executor_uses_default_shell(monkeypatch):
    monkeypatch.delenv("SHELL", raising=False)
    assert LocalExecutor.from_env().shell == "/bin/bash"


def test_local_executor_detects_shell_from_env(monkeypatch):
    monkeypatch.setenv("SHELL", "/path/to/shell")
    assert LocalExecutor.from_env().shell == "/path/to/shell"


def test_local_executor_runs_trivy(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    _make_script(bin_dir, "trivy", 'echo "$*"')
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    out = io.StringIO()
    LocalExecutor("/bin/sh").execute(out, "image", "--quiet", "gcr.io/project/image:tag")

    assert out.getvalue() == "image --quiet gcr.io/project/image:tag\n"


def test_local_executor_raises_on_failure(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    _make_script(bin_dir, "trivy", "exit 1")
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    with pytest.raises(CommandFailedError, match="trivy command failed"):
        LocalExecutor("/bin/sh").execute(io.StringIO(), "image")


def test_runner_name_configured_and_protocol(tmp_path):
    runner = TrivyRunner(FakeExecutor())
    assert runner.name() == "trivy"
    assert runner.is_configured(_opts(tmp_path)) is True
    assert isinstance(runner, TestRunnerProtocol)


def test_runner_run_test(tmp_path):
    executor = FakeExecutor(output="{}")
    runner = TrivyRunner(executor, working_directory=str(tmp_path / "test"))
    opts = _opts(tmp_path)

    runner.run_test(opts)

    assert executor.recorded_args == [
        "image", "--quiet", "--format", "json", "gcr.io/project/image:tag",
    ]
    report = tmp_path / "reports" / "trivy" / "image.json"
    assert report.read_text() == "{}"


def test_runner_report_name_replaces_slashes(tmp_path):
    runner = TrivyRunner(FakeExecutor(output="{}"))
    runner.run_test(_opts(tmp_path, image_name="team/image"))
    assert (tmp_path / "reports" / "trivy" / "team_image.json").read_text() == "{}"


def test_runner_command_failure(tmp_path):
    runner = TrivyRunner(FakeExecutor(output="{}", error=CommandFailedError()))
    with pytest.raises(TrivyScanError) as excinfo:
        runner.run_test(_opts(tmp_path))
    assert str(excinfo.value) == "trivy tests failed: trivy command failed"
    assert (tmp_path / "reports" / "trivy" / "image.json").read_text() == "{}"


def test_runner_other_failure(tmp_path):
    runner = TrivyRunner(FakeExecutor(error=RuntimeError("boom")))
    with pytest.raises(TrivyScanError) as excinfo:
        runner.run_test(_opts(tmp_path))
    assert str(excinfo.value) == "unable to run trivy tests: boom"