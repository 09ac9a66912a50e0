"""Build images with kaniko, locally in docker or from a prepared build context."""

from __future__ import annotations

import logging
import os
import posixpath
import subprocess
import sys
import tarfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TextIO

from dib.options import ImageBuilderOpts

logger = logging.getLogger(__name__)


class ContextError(RuntimeError):
    """Raised when the kaniko build context cannot be prepared."""


class _Executor(Protocol):
    def execute(self, output: TextIO, args: Sequence[str]) -> None: ...


class _ContextProvider(Protocol):
    def prepare_context(self, opts: ImageBuilderOpts) -> str: ...


class _FileUploader(Protocol):
    def upload_file(self, file_path: str, target_path: str) -> None: ...

    def url(self, target_path: str) -> str: ...


class _Shell(Protocol):
    def execute_with_writer(self, output: TextIO, name: str, *args: str) -> None: ...


@dataclass
class CommandShell:
    """Runs programs, streaming their combined output to a writer."""

    dir: str | None = None
    env: Mapping[str, str] | None = None

    def execute_with_writer(self, output: TextIO, name: str, *args: str) -> None:
        """Run ``name`` with ``args``; raise CalledProcessError on a non-zero exit."""
        argv = [name, *args]
        with subprocess.Popen(
            argv,
            cwd=self.dir,
            env=dict(self.env) if self.env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        ) as proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                output.write(line)
        if proc.returncode != 0:
            raise subprocess.CalledProcessError(proc.returncode, argv)


class LocalContextProvider:
    """Uses the build context where it already is on the local disk."""

    def prepare_context(self, opts: ImageBuilderOpts) -> str:
        """Return the local context path with kaniko's ``dir://`` prefix."""
        return f"dir://{opts.context}"


class RemoteContextProvider:
    """Archives the build context and uploads it where a remote kaniko can fetch it."""

    def __init__(self, uploader: _FileUploader) -> None:
        self.uploader = uploader

    def prepare_context(self, opts: ImageBuilderOpts) -> str:
        """Archive and upload the context, returning its remote URL."""
        if not opts.tags:
            raise ContextError("cannot name the build context: no tag given")
        tag_parts = opts.tags[0].split(":")
        if len(tag_parts) < 2:
            raise ContextError(f"cannot name the build context: tag {opts.tags[0]!r} has no version")
        short_name = posixpath.basename(tag_parts[0])
        remote_dir = f"kaniko/{short_name}"
        filename = f"context-kaniko-{short_name}-{tag_parts[1]}.tar.gz"

        tar_gz_path = os.path.join(opts.context, filename)
        create_archive(opts.context, tar_gz_path)

        target_path = f"{remote_dir}/{filename}"
        _upload_build_context(self.uploader, tar_gz_path, target_path)
        return self.uploader.url(target_path)


def create_archive(build_context_dir: str, tar_gz_path: str) -> None:
    """Write a gzip tar archive holding every entry of the build context directory."""
    logger.info("Creating docker build-context for kaniko")
    try:
        with os.scandir(build_context_dir) as listing:
            entries = sorted(listing, key=lambda entry: entry.name)
    except OSError as err:
        raise ContextError(
            f"can't access directory {build_context_dir}, err is : {err}"
        ) from err

    target = os.path.abspath(tar_gz_path)
    try:
        with tarfile.open(tar_gz_path, "w:gz", compresslevel=9) as archive:
            for entry in entries:
                if os.path.abspath(entry.path) == target:
                    continue
                archive.add(entry.path, arcname=entry.name)
    except (OSError, tarfile.TarError) as err:
        raise ContextError(f"can't create tar archive {tar_gz_path}: {err}") from err


def _upload_build_context(uploader: _FileUploader, tar_gz_path: str, target_path: str) -> None:
    logger.info("Uploading build-context to S3")
    try:
        uploader.upload_file(tar_gz_path, target_path)
    except Exception as err:
        raise ContextError(f"can't upload context archive: {err}") from err
    finally:
        try:
            os.remove(tar_gz_path)
        except OSError as err:
            logger.error("can't remove file %s: %s", tar_gz_path, err)


@dataclass
class ContainerConfig:
    """Settings for the docker container that runs kaniko."""

    image: str = ""
    env: dict[str, str] = field(default_factory=dict)
    volumes: dict[str, str] = field(default_factory=dict)


class DockerExecutor:
    """Runs kaniko inside a local docker container."""

    def __init__(
        self,
        shell: _Shell,
        config: ContainerConfig,
        docker_config: str | None = None,
    ) -> None:
        if docker_config is None:
            docker_config = os.environ.get("DOCKER_CONFIG") or (
                f"{os.environ.get('HOME', '')}/.docker"
            )
        self.shell = shell
        self.config = config
        self.docker_config = docker_config

    def execute(self, output: TextIO, args: Sequence[str]) -> None:
        """Run kaniko with ``args`` in a docker container."""
        logger.info("Building image with kaniko local executor")
        docker_args = [
            "run",
            "--rm",
            "--tty",
            f"--volume={self.docker_config}:/kaniko/.docker",
            "--env=DOCKER_CONFIG=/kaniko/.docker",
        ]
        docker_args.extend(f"--env={key}={value}" for key, value in self.config.env.items())
        docker_args.extend(
            f"--volume={host}:{container}" for host, container in self.config.volumes.items()
        )
        docker_args.append(self.config.image)
        docker_args.extend(args)
        self.shell.execute_with_writer(output, "docker", *docker_args)


class Builder:
    """Image builder backed by kaniko."""

    def __init__(
        self,
        executor: _Executor,
        context_provider: _ContextProvider,
        dry_run: bool = False,
    ) -> None:
        self.executor = executor
        self.context_provider = context_provider
        self.dry_run = dry_run

    def build(self, opts: ImageBuilderOpts) -> None:
        """Build the image; in dry-run mode only log the kaniko command."""
        try:
            context_path = self.context_provider.prepare_context(opts)
        except Exception as err:
            raise ContextError(f"cannot prepare kaniko build context: {err}") from err

        kaniko_args = [
            f"--context={context_path}",
            "--log-format=text",
            "--snapshot-mode=redo",
            "--single-snapshot",
        ]
        kaniko_args.extend(f"--destination={tag}" for tag in opts.tags)
        kaniko_args.extend(f"--build-arg={key}={value}" for key, value in opts.build_args.items())
        kaniko_args.extend(f"--label={key}={value}" for key, value in opts.labels.items())
        if not opts.push:
            kaniko_args.append("--no-push")

        if self.dry_run:
            logger.info("[DRY-RUN] kaniko %s", " ".join(kaniko_args))
            return

        output = opts.log_output if opts.log_output is not None else sys.stdout
        self.executor.execute(output, kaniko_args)