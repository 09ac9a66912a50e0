"""Read JSON scan reports produced by trivy."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


def _parse_time(text: str, key: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"field {key!r}: cannot parse {text!r} as RFC 3339 time")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tz
        )
    except ValueError as err:
        raise ValueError(f"field {key!r}: {err}") from err


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a string, got {type(value).__name__}")
    return value


def _int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r}: expected an integer, got {type(value).__name__}")
    return value


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"field {key!r}: expected an object, got {type(value).__name__}")
    return value


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r}: expected an array, got {type(value).__name__}")
    return value


def _str_list(data: dict[str, Any], key: str) -> list[str]:
    items = _list(data, key)
    if not all(isinstance(item, str) for item in items):
        raise ValueError(f"field {key!r}: expected an array of strings")
    return list(items)


def _time(data: dict[str, Any], key: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a string, got {type(value).__name__}")
    return _parse_time(value, key)


def _object(item: Any, what: str) -> dict[str, Any]:
    if item is None:
        return {}
    if not isinstance(item, dict):
        raise ValueError(f"{what}: expected an object, got {type(item).__name__}")
    return item


@dataclass
class Vulnerability:
    """A single vulnerability found in a package."""

    vulnerability_id: str = ""
    pkg_id: str = ""
    pkg_name: str = ""
    installed_version: str = ""
    fixed_version: str = ""
    severity: str = ""
    severity_source: str = ""
    title: str = ""
    description: str = ""
    primary_url: str = ""
    cwe_ids: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    vendor_ids: list[str] = field(default_factory=list)
    published_date: datetime | None = None
    last_modified_date: datetime | None = None
    layer: dict[str, Any] = field(default_factory=dict)
    data_source: dict[str, Any] = field(default_factory=dict)
    cvss: dict[str, Any] = field(default_factory=dict)


@dataclass
class Result:
    """The vulnerabilities found for one scan target."""

    target: str = ""
    class_name: str = ""
    type: str = ""
    vulnerabilities: list[Vulnerability] = field(default_factory=list)


def _vulnerability(data: dict[str, Any]) -> Vulnerability:
    return Vulnerability(
        vulnerability_id=_str(data, "VulnerabilityID"),
        pkg_id=_str(data, "PkgID"),
        pkg_name=_str(data, "PkgName"),
        installed_version=_str(data, "InstalledVersion"),
        fixed_version=_str(data, "FixedVersion"),
        severity=_str(data, "Severity"),
        severity_source=_str(data, "SeveritySource"),
        title=_str(data, "Title"),
        description=_str(data, "Description"),
        primary_url=_str(data, "PrimaryURL"),
        cwe_ids=_str_list(data, "CweIDs"),
        references=_str_list(data, "References"),
        vendor_ids=_str_list(data, "VendorIDs"),
        published_date=_time(data, "PublishedDate"),
        last_modified_date=_time(data, "LastModifiedDate"),
        layer=_mapping(data, "Layer"),
        data_source=_mapping(data, "DataSource"),
        cvss=_mapping(data, "CVSS"),
    )


def _result(data: dict[str, Any]) -> Result:
    return Result(
        target=_str(data, "Target"),
        class_name=_str(data, "Class"),
        type=_str(data, "Type"),
        vulnerabilities=[
            _vulnerability(_object(item, "vulnerability"))
            for item in _list(data, "Vulnerabilities")
        ],
    )


@dataclass
class ScanReport:
    """A whole trivy image scan report."""

    schema_version: int = 0
    artifact_name: str = ""
    artifact_type: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    results: list[Result] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanReport:
        """Build a report from decoded JSON, raising ValueError on wrong types."""
        data = _object(data, "report")
        return cls(
            schema_version=_int(data, "SchemaVersion"),
            artifact_name=_str(data, "ArtifactName"),
            artifact_type=_str(data, "ArtifactType"),
            metadata=_mapping(data, "Metadata"),
            results=[_result(_object(item, "result")) for item in _list(data, "Results")],
        )


def parse_trivy_report(raw: bytes | str) -> ScanReport:
    """Parse a raw trivy JSON report."""
    return ScanReport.from_dict(json.loads(raw))