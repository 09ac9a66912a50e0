# dib

`dib` is a library for building Docker images, testing them and collecting
the results. It drives external tools rather than reimplementing them: Kaniko
builds the images inside a local Docker container, Goss and Trivy test and
scan them, and Graphviz's `dot` renders the dependency graph.

## Modules

- `dib.options` — `ImageBuilderOpts` (context, tags, labels, build args,
  `push`, `log_output`, ...), `RunTestOptions` (image name and reference,
  context path, JUnit and Trivy report directories) and the
  `TestRunnerProtocol` that test runners follow.
- `dib.kaniko` — `Builder` turns `ImageBuilderOpts` into Kaniko arguments
  (`--context=`, `--destination=` per tag, `--build-arg=`, `--label=`,
  `--no-push` when `push` is false) and hands them to an executor; with
  `dry_run=True` it only logs the command. `DockerExecutor` runs Kaniko with
  `docker run` through a `CommandShell`, mounting the Docker config directory
  (`docker_config`, by default `$DOCKER_CONFIG` or `$HOME/.docker`) and the
  volumes and environment of a `ContainerConfig`. The build context comes from
  a `LocalContextProvider` (a `dir://` path) or a `RemoteContextProvider`,
  which packs the context with `create_archive` into a `.tar.gz`, passes it to
  an uploader object you supply (`upload_file(file_path, target_path)` and
  `url(target_path)`), deletes the archive and returns the uploader's URL.
  Failures while preparing the context raise `ContextError`.
- `dib.goss` — `GossRunner` runs Goss through `DGossExecutor` (`dgoss run`
  in the shell from `$SHELL`, or `/bin/bash`) when a `goss.yaml` sits in the
  build context, and writes `junit-<image>.xml` into the JUnit report
  directory, adding `classname` and `file` attributes to each test case.
  Failures raise `GossTestError`.
- `dib.trivy` — `TrivyRunner` runs `trivy image --quiet --format json <ref>`
  through `LocalExecutor` and writes `<image>.json` into the Trivy report
  directory. Failures raise `TrivyScanError`.
- `dib.junit` — `parse_raw_logs` reads a JUnit document into `TestSuite` and
  `TestCase` objects; malformed input raises `JunitParseError`.
- `dib.trivy_report` — `parse_trivy_report` reads a Trivy JSON report into a
  `ScanReport` with `Result` and `Vulnerability` entries.
- `dib.graphviz` — `generate_raw_output` produces DOT text for an image
  graph; `generate_graph` writes `dib.dot` and renders `dib.png` with `dot`.
- `dib.report` — `init_report` creates a `Report` named after the current
  time; `BuildReport` entries record each image's `BuildStatus` and
  `TestsStatus`; `Report.check_error` raises `ReportError` if any build or
  test failed and `Report.print` logs a summary. `parse_build_logs`,
  `parse_goss_logs` and `parse_trivy_reports` collect per-image data from the
  report directories; `remove_terminal_colors`, `strip_kaniko_build_logs`,
  `beautify_build_logs`, `sanitize`, `sort_build_reports` and
  `sort_trivy_scan` help present it.
- `dib.pods` — `PodConfig`, `unique_pod_name` and `merge_object_with_yaml`
  (returns a copy of a mapping with a YAML or JSON override merged in; bad
  overrides raise `InvalidOverrideError`).
- `dib.preflight` — `check_bin_installed` returns a program's path or raises
  `MissingBinaryError`; `run_preflight_checks` logs a warning for each missing
  program and returns their names. Set `SKIP_PREFLIGHT_CHECKS` to skip it.
- `dib.ratelimit` — `ChannelRateLimiter`, usable as a context manager, bounds
  how many holders run at once.
- `dib.strutil` — `convert_kv_strings_to_map` and `dedupe_str_slice`.

## Example

```python
import sys

from dib.kaniko import Builder, CommandShell, ContainerConfig, DockerExecutor, LocalContextProvider
from dib.options import ImageBuilderOpts

executor = DockerExecutor(
    CommandShell(),
    ContainerConfig(image="gcr.io/kaniko-project/executor:latest"),
)
builder = Builder(executor, LocalContextProvider())
builder.build(
    ImageBuilderOpts(
        context="/srv/images/app",
        tags=["registry.example.com/app:1.0"],
        push=False,
        log_output=sys.stdout,
    )
)
```

Testing an image with Goss:

```python
from dib.goss import DGossExecutor, GossRunner
from dib.options import RunTestOptions

runner = GossRunner(DGossExecutor.from_env(), working_directory="/srv/images")
opts = RunTestOptions(
    image_name="app",
    image_reference="registry.example.com/app:1.0",
    docker_context_path="/srv/images/app",
    report_junit_dir="reports/junit",
)
if runner.is_configured(opts):
    runner.run_test(opts)
```

## What it does not do

- There is no command-line tool; everything is used from Python.
- There is no image graph type. `generate_raw_output` and `generate_graph`
  take any object with a `walk(visit)` method whose nodes have an `image`
  (with `name` and `needs_rebuild`) and a `children()` method.
- Reports are not rendered to HTML; `dib.report` computes paths, statuses
  and per-image data only.
- There are no Kubernetes executors: `dib.pods` describes pod settings but
  nothing creates pods. There is no S3 or other uploader for
  `RemoteContextProvider`, and no registry client.

## Requirements

Python 3.10 or later and PyYAML. The executors call `docker`, `dgoss`,
`trivy` and `dot`, which must be on the `PATH` where they are used.