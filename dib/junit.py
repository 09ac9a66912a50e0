"""Read JUnit XML reports such as those produced by goss."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field


class JunitParseError(ValueError):
    """Raised when a JUnit report cannot be read."""


@dataclass
class TestCase:
    """One <testcase> element."""

    __test__ = False

    class_name: str = ""
    file: str = ""
    name: str = ""
    time: str = ""
    system_out: str = ""
    failure: str = ""


@dataclass
class TestSuite:
    """A <testsuite> element and its test cases."""

    __test__ = False

    name: str = ""
    errors: str = ""
    tests: str = ""
    failures: str = ""
    skipped: str = ""
    time: str = ""
    timestamp: str = ""
    test_cases: list[TestCase] = field(default_factory=list)


def _child_text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    if child is None:
        return ""
    return "".join(child.itertext())


def _parse_case(element: ET.Element) -> TestCase:
    return TestCase(
        class_name=element.get("classname", ""),
        file=element.get("file", ""),
        name=element.get("name", ""),
        time=element.get("time", ""),
        system_out=_child_text(element, "system-out"),
        failure=_child_text(element, "failure"),
    )


def parse_raw_logs(data: bytes | str) -> TestSuite:
    """Parse a raw JUnit XML report into a TestSuite."""
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, ValueError) as err:
        raise JunitParseError(f"invalid junit report: {err}") from err
    if root.tag != "testsuite":
        raise JunitParseError(
            f"expected element type <testsuite> but have <{root.tag}>"
        )
    return TestSuite(
        name=root.get("name", ""),
        errors=root.get("errors", ""),
        tests=root.get("tests", ""),
        failures=root.get("failures", ""),
        skipped=root.get("skipped", ""),
        time=root.get("time", ""),
        timestamp=root.get("timestamp", ""),
        test_cases=[_parse_case(case) for case in root.findall("testcase")],
    )