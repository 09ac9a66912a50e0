"""Pod configuration helpers for running tools in a Kubernetes cluster."""

from __future__ import annotations

import copy
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import yaml

_MAX_NAME_LENGTH = 63
_RANDOM_LENGTH = 8
# Consonants and digits only, so generated names never spell words.
_RANDOM_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


class InvalidOverrideError(ValueError):
    """Raised when a YAML override cannot be applied."""


@dataclass
class PodConfig:
    """Configuration for a pod to create."""

    name: str = ""
    name_generator: Callable[[], str] | None = None
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    image: str = ""
    image_pull_secrets: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    env_secrets: list[str] = field(default_factory=list)
    container_override: str = ""
    pod_override: str = ""

    def pod_name(self) -> str:
        """Return a generated name when a generator is set, else the fixed name."""
        if self.name_generator is not None:
            return self.name_generator()
        return self.name


def unique_pod_name(identifier: str) -> Callable[[], str]:
    """Return a function producing unique pod names that include ``identifier``."""
    base = identifier.replace(":", "-").replace("/", "-")
    base = base[: _MAX_NAME_LENGTH - _RANDOM_LENGTH - 1]

    def generate() -> str:
        suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(_RANDOM_LENGTH))
        return f"{base}-{suffix}".lower()

    return generate


def _deep_merge(target: dict[str, Any], override: dict[str, Any]) -> None:
    for key, value in override.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def merge_object_with_yaml(obj: dict[str, Any], yaml_override: str) -> dict[str, Any]:
    """Return a copy of ``obj`` with the YAML (or JSON) override applied.

    Mappings are merged recursively, lists and scalars are replaced, and an
    explicit null removes the key. Values not named in the override are kept.
    """
    if not isinstance(obj, dict):
        raise TypeError(f"expected a mapping to merge into, got {type(obj).__name__}")
    merged = copy.deepcopy(obj)
    if not yaml_override:
        return merged
    type_name = type(obj).__name__
    try:
        override = yaml.safe_load(yaml_override)
    except yaml.YAMLError as err:
        raise InvalidOverrideError(
            f"invalid yaml override for type {type_name}: {err}"
        ) from err
    if override is None:
        return merged
    if not isinstance(override, dict):
        raise InvalidOverrideError(
            f"invalid yaml override for type {type_name}: "
            f"expected a mapping, got {type(override).__name__}"
        )
    _deep_merge(merged, override)
    return merged