"""Options passed to image builders and test runners."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, TextIO, runtime_checkable

BACKEND_DOCKER = "docker"
BACKEND_KANIKO = "kaniko"
BACKEND_BUILDKIT = "buildkit"
TEST_RUNNER_GOSS = "goss"
TEST_RUNNER_TRIVY = "trivy"


@dataclass
class ImageBuilderOpts:
    """Everything needed to build an OCI image."""

    context: str = ""
    file: str = ""
    target: str = ""
    tags: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    build_args: dict[str, str] = field(default_factory=dict)
    push: bool = False
    log_output: TextIO | None = None
    progress: str = ""
    buildkit_host: str = ""


@dataclass(frozen=True)
class RunTestOptions:
    """Describes the image a test runner should check and where reports go."""

    image_name: str = ""
    image_reference: str = ""
    docker_context_path: str = ""
    report_junit_dir: str = ""
    report_trivy_dir: str = ""


@runtime_checkable
class TestRunnerProtocol(Protocol):
    """A tool that runs tests (goss, trivy, ...) against a built image."""

    __test__ = False

    def name(self) -> str:
        """Return the runner's name."""
        ...

    def is_configured(self, opts: RunTestOptions) -> bool:
        """Tell whether the runner applies to the given image."""
        ...

    def run_test(self, opts: RunTestOptions) -> None:
        """Run the tests, raising when they cannot run or fail."""
        ...