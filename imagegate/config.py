from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .core.models import GatePolicy

DEFAULT_POLICY_PATH = Path(__file__).resolve().parent / "policies" / "default.yaml"

DEFAULT_IMAGE_NAME = "localsafe-eth"
DEFAULT_TAG = "latest"
DEFAULT_DOCKERFILE = "Dockerfile"
DEFAULT_OUTPUT_DIR = "./dist-package"

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


class ConfigError(Exception):
    """Raised when a configuration value cannot be interpreted."""


class PolicyLoadError(ConfigError):
    """Raised when a policy file is missing or malformed."""


def parse_bool(value: Any, name: str) -> bool:
    """Coerce a config value to bool. Unrecognized values are an error."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ConfigError(f"{name}: expected true/false, got {value!r}")


def load_policy(policy_path: Path) -> GatePolicy:
    """Load a gate policy from YAML.

    Expected shape::

        fail_on:
          critical: true
          high: false

    Missing keys fall back to GatePolicy defaults.
    """
    try:
        with open(policy_path) as f:
            policy = yaml.safe_load(f)
    except FileNotFoundError:
        raise PolicyLoadError(f"policy file not found: {policy_path}") from None
    except OSError as e:
        raise PolicyLoadError(f"cannot read policy file {policy_path}: {e}") from e
    except yaml.YAMLError as e:
        raise PolicyLoadError(f"{policy_path}: invalid YAML: {e}") from e

    if policy is None:
        return GatePolicy()
    if not isinstance(policy, dict):
        raise PolicyLoadError(f"{policy_path}: expected a YAML mapping at top level")

    fail_on = policy.get("fail_on", {})
    if not isinstance(fail_on, dict):
        raise PolicyLoadError(f"{policy_path}: 'fail_on' must be a mapping")

    unknown = set(fail_on) - {"critical", "high"}
    if unknown:
        raise PolicyLoadError(f"{policy_path}: unknown fail_on keys: {sorted(unknown)}")

    defaults = GatePolicy()
    try:
        return GatePolicy(
            fail_on_critical=parse_bool(fail_on.get("critical", defaults.fail_on_critical), "fail_on.critical"),
            fail_on_high=parse_bool(fail_on.get("high", defaults.fail_on_high), "fail_on.high"),
        )
    except ConfigError as e:
        raise PolicyLoadError(f"{policy_path}: {e}") from e


def policy_from_env(base: GatePolicy, environ: Mapping[str, str]) -> GatePolicy:
    """Apply FAIL_ON_CRITICAL / FAIL_ON_HIGH overrides on top of base."""
    policy = base
    raw = environ.get("FAIL_ON_CRITICAL")
    if raw is not None and raw.strip():
        policy = replace(policy, fail_on_critical=parse_bool(raw, "FAIL_ON_CRITICAL"))
    raw = environ.get("FAIL_ON_HIGH")
    if raw is not None and raw.strip():
        policy = replace(policy, fail_on_high=parse_bool(raw, "FAIL_ON_HIGH"))
    return policy


@dataclass(frozen=True)
class BuildConfig:
    """Everything one pipeline run needs, resolved up front."""

    image_name: str = DEFAULT_IMAGE_NAME
    tag: str = DEFAULT_TAG
    dockerfile: Path = Path(DEFAULT_DOCKERFILE)
    context: Path = Path(".")
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    policy: GatePolicy = field(default_factory=GatePolicy)

    @property
    def full_image(self) -> str:
        return f"{self.image_name}:{self.tag}"

    @classmethod
    def from_env(
        cls,
        tag: str | None = None,
        environ: Mapping[str, str] | None = None,
        policy_path: Path | None = None,
        **overrides: Any,
    ) -> "BuildConfig":
        """Build a config from environment variables.

        Precedence for the gate policy: policy file < environment.
        Explicit keyword overrides (from CLI flags) win over everything.
        """
        env = os.environ if environ is None else environ

        base_policy = load_policy(policy_path or DEFAULT_POLICY_PATH)
        policy = policy_from_env(base_policy, env)

        values: dict[str, Any] = {
            "image_name": env.get("IMAGE_NAME") or DEFAULT_IMAGE_NAME,
            "tag": tag or DEFAULT_TAG,
            "dockerfile": Path(env.get("DOCKERFILE") or DEFAULT_DOCKERFILE),
            "context": Path("."),
            "output_dir": Path(env.get("OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
            "policy": policy,
        }
        for key, value in overrides.items():
            if key not in values:
                raise TypeError(f"unknown config field: {key}")
            if value is not None:
                values[key] = value

        if not values["image_name"].strip():
            raise ConfigError("image name must not be empty")
        if not values["tag"].strip() or ":" in values["tag"] or "/" in values["tag"]:
            raise ConfigError(f"invalid image tag: {values['tag']!r}")

        return cls(**values)
