"""Build and test reports: statuses, report paths and log post-processing."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum
from typing import Any, Protocol, TypeVar

from dib.junit import JunitParseError, TestSuite, parse_raw_logs
from dib.options import TEST_RUNNER_GOSS, TEST_RUNNER_TRIVY
from dib.trivy_report import ScanReport, parse_trivy_report

logger = logging.getLogger(__name__)

BUILD_REPORT_DIR = "builds"
JUNIT_REPORT_DIR = "junit"
TRIVY_REPORT_DIR = "trivy"

TEST_SKIPPED_WORDING = "Goss tests skipped because the docker image failed to build"
SCAN_SKIPPED_WORDING = "Trivy scans skipped because the docker image failed to build"
BUILD_SKIPPED_WORDING = "Build skipped because a parent image failed to build"

_PATTERN_ANSI_COLORS = r"\x1B\[([0-9]{1,3}(;[0-9]{1,2})?)?[mGK]"
_ANSI_STR = re.compile(_PATTERN_ANSI_COLORS)
_ANSI_BYTES = re.compile(_PATTERN_ANSI_COLORS.encode())
_KANIKO_LOGS = re.compile(r'time=".*" level=.* msg="(?P<message>.*)"')
_SPECIAL_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

_SEVERITY_ORDER = {
    "CRITICAL": 1,
    "HIGH": 2,
    "MEDIUM": 3,
    "LOW": 4,
    "UNKNOWN": 5,
}

_T = TypeVar("_T", str, bytes)


class BuildStatus(IntEnum):
    """Outcome of an image build."""

    SKIPPED = 0
    SUCCESS = 1
    ERROR = 2


class TestsStatus(IntEnum):
    """Outcome of the tests run on an image."""

    __test__ = False

    SKIPPED = 0
    PASSED = 1
    FAILED = 2


class ReportError(RuntimeError):
    """Raised when a report shows a failed build or failed tests."""


class _Runner(Protocol):
    def name(self) -> str: ...


@dataclass
class Options:
    """Settings describing a report and where it lives."""

    root_dir: str = ""
    name: str = ""
    generation_date: datetime | None = None
    version: str = ""
    build_opts: str = ""
    with_graph: bool = False
    with_goss: bool = False
    with_trivy: bool = False


@dataclass
class BuildReport:
    """Build and test status of one image."""

    image: Any = None
    build_status: BuildStatus = BuildStatus.SKIPPED
    tests_status: TestsStatus = TestsStatus.SKIPPED
    failure_message: str = ""

    def with_error(self, err: BaseException | str) -> BuildReport:
        """Return a copy marked as a failed build carrying the error's message."""
        return replace(self, build_status=BuildStatus.ERROR, failure_message=str(err))


def _short_name(build_report: BuildReport) -> str:
    return build_report.image.short_name


@dataclass
class Report:
    """A whole report: its options and one entry per image."""

    options: Options = field(default_factory=Options)
    build_reports: list[BuildReport] = field(default_factory=list)

    def root_dir(self) -> str:
        """Return the report's root directory."""
        return os.path.join(self.options.root_dir, self.options.name)

    def build_report_dir(self) -> str:
        """Return the directory holding build logs."""
        return os.path.join(self.root_dir(), BUILD_REPORT_DIR)

    def junit_report_dir(self) -> str:
        """Return the directory holding JUnit reports."""
        return os.path.join(self.root_dir(), JUNIT_REPORT_DIR)

    def trivy_report_dir(self) -> str:
        """Return the directory holding trivy reports."""
        return os.path.join(self.root_dir(), TRIVY_REPORT_DIR)

    def url(self) -> str:
        """Return where the report can be browsed: a CI artifact URL or a local file URL."""
        job_url = os.environ.get("CI_JOB_URL", "")
        if job_url:
            return f"{job_url}/artifacts/file/{self.root_dir()}/index.html"
        return f"file://{os.path.abspath(self.root_dir())}/index.html"

    def print(self) -> None:
        """Log the build and test status of every image."""
        logger.info("Build report")
        for build_report in self.build_reports:
            name = _short_name(build_report)
            if build_report.build_status == BuildStatus.SUCCESS:
                logger.info("\t[%s]: SUCCESS", name)
            elif build_report.build_status == BuildStatus.SKIPPED:
                logger.info("\t[%s]: SKIPPED", name)
            elif build_report.build_status == BuildStatus.ERROR:
                logger.error("\t[%s]: FAILURE: %s", name, build_report.failure_message)

        logger.info("Tests report")
        for build_report in self.build_reports:
            name = _short_name(build_report)
            if build_report.tests_status == TestsStatus.PASSED:
                logger.info("\t[%s]: PASSED", name)
            elif build_report.tests_status == TestsStatus.SKIPPED:
                logger.info("\t[%s]: SKIPPED", name)
            elif build_report.tests_status == TestsStatus.FAILED:
                logger.error("\t[%s]: FAILED: %s", name, build_report.failure_message)

    def check_error(self) -> None:
        """Raise ReportError if any build or test failed."""
        for build_report in self.build_reports:
            if build_report.build_status == BuildStatus.ERROR:
                raise ReportError(
                    "one of the image build failed, see the report for more details"
                )
            if build_report.tests_status == TestsStatus.FAILED:
                raise ReportError("some tests failed, see report for more details")


def init_report(
    version: str,
    root_dir: str,
    disable_generate_graph: bool,
    test_runners: Iterable[_Runner] | None,
    build_opts: str,
) -> Report:
    """Create an empty report named after the current time."""
    runners = list(test_runners or ())
    generation_date = datetime.now()
    return Report(
        options=Options(
            root_dir=root_dir,
            name=generation_date.strftime("%Y%m%d%H%M%S"),
            generation_date=generation_date,
            version=f"v{version}",
            build_opts=build_opts,
            with_graph=not disable_generate_graph,
            with_goss=is_test_runner_enabled(TEST_RUNNER_GOSS, runners),
            with_trivy=is_test_runner_enabled(TEST_RUNNER_TRIVY, runners),
        ),
    )


def is_test_runner_enabled(name: str, test_runners: Iterable[_Runner] | None) -> bool:
    """Tell whether a runner with the given name is among the runners."""
    return any(runner.name() == name for runner in test_runners or ())


def sort_build_reports(build_reports: list[BuildReport]) -> list[BuildReport]:
    """Sort the reports in place by image short name and return them."""
    build_reports.sort(key=_short_name)
    return build_reports


def sort_trivy_scan(scan_report: ScanReport) -> ScanReport:
    """Sort each result's vulnerabilities by severity, most severe first."""
    for result in scan_report.results:
        result.vulnerabilities.sort(key=lambda vuln: _SEVERITY_ORDER.get(vuln.severity, 0))
    return scan_report


def sanitize(text: str) -> str:
    """Remove characters not allowed in a document.querySelector call."""
    return _SPECIAL_CHARS.sub("", text)


def remove_terminal_colors(data: _T) -> _T:
    """Strip ANSI colour escape codes, returning the same type as given."""
    if isinstance(data, bytes):
        return _ANSI_BYTES.sub(b"", data)
    return _ANSI_STR.sub("", data)


def strip_kaniko_build_logs(data: bytes | str) -> str:
    """Reduce kaniko log lines to their message."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    return _KANIKO_LOGS.sub(r"\g<message>", text)


def beautify_build_logs(raw: bytes | str) -> str:
    """Remove terminal colours and kaniko log noise from build logs."""
    return strip_kaniko_build_logs(remove_terminal_colors(raw))


def _read_bytes(file_path: str) -> bytes:
    with open(file_path, "rb") as handle:
        return handle.read()


def parse_build_logs(report: Report) -> dict[str, str]:
    """Map each image short name to its cleaned build log, or to why there is none."""
    data: dict[str, str] = {}
    for build_report in report.build_reports:
        name = _short_name(build_report)
        if build_report.build_status == BuildStatus.SKIPPED:
            data[name] = BUILD_SKIPPED_WORDING
            continue
        try:
            raw = _read_bytes(os.path.join(report.build_report_dir(), name) + ".txt")
        except OSError as err:
            data[name] = str(err)
            continue
        data[name] = beautify_build_logs(raw)
    return data


def parse_goss_logs(report: Report) -> dict[str, TestSuite | str]:
    """Map each image short name to its parsed goss JUnit report, or an explanation."""
    data: dict[str, TestSuite | str] = {}
    for build_report in report.build_reports:
        name = _short_name(build_report)
        if build_report.tests_status == TestsStatus.SKIPPED:
            data[name] = TEST_SKIPPED_WORDING
            continue
        try:
            raw = _read_bytes(f"{report.junit_report_dir()}/junit-{name}.xml")
            data[name] = parse_raw_logs(raw)
        except (OSError, JunitParseError) as err:
            data[name] = str(err)
    return data


def parse_trivy_reports(report: Report) -> dict[str, ScanReport | str]:
    """Map each image short name to its sorted trivy report, or an explanation."""
    data: dict[str, ScanReport | str] = {}
    for build_report in report.build_reports:
        name = _short_name(build_report)
        if build_report.tests_status == TestsStatus.SKIPPED:
            data[name] = SCAN_SKIPPED_WORDING
            continue
        try:
            raw = _read_bytes(f"{report.trivy_report_dir()}/{name}.json")
            data[name] = sort_trivy_scan(parse_trivy_report(raw))
        except (OSError, ValueError) as err:
            data[name] = str(err)
    return data