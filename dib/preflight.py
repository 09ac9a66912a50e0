"""Check that the external tools dib relies on are installed."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class MissingBinaryError(RuntimeError):
    """Raised when a required program cannot be found on the PATH."""


def check_bin_installed(name: str) -> str:
    """Return the full path of ``name`` on the PATH, raising if it is missing."""
    found = shutil.which(name)
    if found is None:
        raise MissingBinaryError(
            f'"{name}" does not seem to be installed on your system, '
            "you have to install it before using dib"
        )
    return found


def run_preflight_checks(required_commands: Iterable[str]) -> list[str]:
    """Warn about each required command that is missing and return their names.

    Nothing is checked when SKIP_PREFLIGHT_CHECKS is set to a non-empty value.
    """
    if os.environ.get("SKIP_PREFLIGHT_CHECKS"):
        return []
    logger.info("Running preflights checks...")
    missing: list[str] = []
    for name in required_commands:
        try:
            check_bin_installed(name)
        except MissingBinaryError as err:
            logger.warning("%s", err)
            missing.append(name)
    return missing