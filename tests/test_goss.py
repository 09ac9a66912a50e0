import io
import os
import stat

import pytest

from dib.goss import (
    CommandFailedError,
    DGossExecutor,
    GossRunner,
    GossTestError,
)
from dib.options import RunTestOptions, TestRunnerProtocol


class FakeExecutor:
    def __init__(self, output="", error=None):
        self.output = output
        self.error = error
        self.recorded_opts = None
        self.recorded_args = None

    def execute(self, output, opts, *args):
        self.recorded_opts = opts
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


@pytest.fixture
def project(tmp_path):
    working = tmp_path / "test"
    context = working / "fixtures" / "build"
    context.mkdir(parents=True)
    (context / "goss.yaml").write_text("file: {}\n")
    return working, context


def test_dgoss_executor_uses_default_shell(monkeypatch):
    monkeypatch.delenv("SHELL", raising=False)
    assert DGossExecutor.from_env().shell == "/bin/bash"


def test_dgoss_executor_detects_shell_from_env(monkeypatch):
    monkeypatch.setenv("SHELL", "/path/to/shell")
    assert DGossExecutor.from_env().shell == "/path/to/shell"


def test_dgoss_executor_runs_dgoss_with_goss_opts(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    _make_script(bin_dir, "dgoss", 'echo "$GOSS_OPTS|$*"')
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    context = tmp_path / "ctx"
    context.mkdir()

    out = io.StringIO()
    opts = RunTestOptions(
        image_name="image",
        image_reference="registry.org/image:tag",
        docker_context_path=str(context),
    )
    DGossExecutor("/bin/sh").execute(out, opts, "--format", "junit")

    assert out.getvalue() == (
        "--format junit|run --rm --tty --entrypoint= registry.org/image:tag sh\n"
    )


def test_dgoss_executor_raises_on_failure(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    _make_script(bin_dir, "dgoss", "exit 3")
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    opts = RunTestOptions(image_reference="registry.org/image:tag")

    with pytest.raises(CommandFailedError, match="goss command failed"):
        DGossExecutor("/bin/sh").execute(io.StringIO(), opts)


def test_runner_name_and_protocol():
    runner = GossRunner(FakeExecutor())
    assert runner.name() == "goss"
    assert isinstance(runner, TestRunnerProtocol)


@pytest.mark.parametrize("valid, expected", [(True, True), (False, False)])
def test_runner_is_configured(project, valid, expected):
    working, context = project
    runner = GossRunner(
        FakeExecutor(),
        reports_directory=str(working / "reports"),
        working_directory=str(working),
    )
    path = str(context) if valid else "/invalid/path"
    opts = RunTestOptions(
        image_name="image",
        image_reference="gcr.io/project/image:tag",
        docker_context_path=path,
    )
    assert runner.is_configured(opts) is expected


def test_runner_run_test_junit(project, tmp_path):
    working, context = project
    executor = FakeExecutor(output='<testcase name="hello"></testcase>')
    runner = GossRunner(executor, working_directory=str(working))
    junit_dir = tmp_path / "reports" / "junit"
    opts = RunTestOptions(
        image_name="image",
        image_reference="gcr.io/project/image:tag",
        docker_context_path=str(context),
        report_junit_dir=str(junit_dir),
    )

    runner.run_test(opts)

    assert executor.recorded_opts == opts
    assert executor.recorded_args == ["--format", "junit"]
    report = junit_dir / "junit-image.xml"
    assert report.read_text() == (
        '<testcase classname="goss-image" file="fixtures/build" name="hello"></testcase>'
    )


def test_runner_report_name_replaces_slashes(project, tmp_path):
    working, context = project
    runner = GossRunner(FakeExecutor(output="<x/>"), working_directory=str(working))
    junit_dir = tmp_path / "junit"
    opts = RunTestOptions(
        image_name="team/image",
        docker_context_path=str(context),
        report_junit_dir=str(junit_dir),
    )
    runner.run_test(opts)
    assert (junit_dir / "junit-team_image.xml").read_text() == "<x/>"


def test_runner_raises_when_tests_fail_but_writes_report(project, tmp_path):
    working, context = project
    executor = FakeExecutor(output="partial", error=CommandFailedError())
    runner = GossRunner(executor, working_directory=str(working))
    junit_dir = tmp_path / "junit"
    opts = RunTestOptions(
        image_name="image",
        docker_context_path=str(context),
        report_junit_dir=str(junit_dir),
    )

    with pytest.raises(GossTestError) as excinfo:
        runner.run_test(opts)

    assert str(excinfo.value) == "goss tests failed: goss command failed"
    assert (junit_dir / "junit-image.xml").read_text() == "partial"


def test_runner_raises_without_goss_file(tmp_path):
    executor = FakeExecutor()
    runner = GossRunner(executor)
    opts = RunTestOptions(
        image_name="image",
        docker_context_path=str(tmp_path / "nowhere"),
        report_junit_dir=str(tmp_path / "junit"),
    )
    with pytest.raises(GossTestError, match="cannot run goss tests"):
        runner.run_test(opts)
    assert executor.recorded_args is None