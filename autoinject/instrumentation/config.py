"""
Runtime profile configuration.

This module loads additional runtime profiles from YAML, validates them
against a JSON Schema and composes them with the built-in profiles.

Example file::

    runtimes:
      - name: java
        home_marker: OTEL_JAVA_AUTO_HOME
        rules:
          - name: JAVA_TOOL_OPTIONS
            value: " -javaagent:/otel-auto-instrumentation/javaagent.jar"
            policy: append-joined
            separator: ""
          - name: OTEL_JAVA_AUTO_HOME
            value: /otel-auto-instrumentation
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from jsonschema import Draft7Validator

from .policy import (
    BUILTIN_PROFILES,
    DEFAULT_MOUNT_PATH,
    DEFAULT_SOURCE_DIR,
    DEFAULT_VOLUME_NAME,
    EnvVarRule,
    OverwritePolicy,
    RuntimeProfile,
)

logger = logging.getLogger(__name__)

ENV_VAR_NAME_PATTERN = "^[-._a-zA-Z][-._a-zA-Z0-9]*$"

# JSON Schema for runtime profile files
RUNTIMES_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["runtimes"],
    "properties": {
        "runtimes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "home_marker", "rules"],
                "additionalProperties": False,
                "properties": {
                    "name": {"type": "string", "pattern": "^[a-z][a-z0-9-]*$"},
                    "description": {"type": "string"},
                    "home_marker": {"type": "string", "pattern": ENV_VAR_NAME_PATTERN},
                    "reserved_env": {
                        "type": "array",
                        "items": {"type": "string", "pattern": ENV_VAR_NAME_PATTERN},
                        "uniqueItems": True,
                    },
                    "rules": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["name", "value"],
                            "additionalProperties": False,
                            "properties": {
                                "name": {"type": "string", "pattern": ENV_VAR_NAME_PATTERN},
                                "value": {"type": "string"},
                                "policy": {
                                    "type": "string",
                                    "enum": [p.value for p in OverwritePolicy],
                                },
                                "separator": {"type": "string"},
                            },
                        },
                    },
                    "volume_name": {"type": "string", "minLength": 1},
                    "mount_path": {"type": "string", "pattern": "^/"},
                    "init_container_name": {"type": "string", "minLength": 1},
                    "source_dir": {"type": "string", "pattern": "^/"},
                },
            },
        },
    },
}


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


def validate_runtimes_config(data: Any) -> list[str]:
    """
    Validate runtime profile data against the schema.

    Returns:
        List of validation error messages (empty if valid)
    """
    validator = Draft7Validator(RUNTIMES_SCHEMA)
    errors = []
    for error in validator.iter_errors(data):
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        errors.append(f"{path}: {error.message}")
    if errors:
        return errors

    for i, entry in enumerate(data["runtimes"]):
        marker_error = check_home_marker(entry)
        if marker_error:
            errors.append(f"runtimes.{i}.home_marker: {marker_error}")
    return errors


def check_home_marker(entry: dict[str, Any]) -> Optional[str]:
    """
    Check that one of the profile's rules sets its home marker.

    The marker is how a second pass over a container is detected, so the
    mutator itself has to write it.

    Returns:
        Error message, or None if the marker is covered
    """
    marker = entry.get("home_marker")
    if any(r.get("name") == marker for r in entry.get("rules") or []):
        return None
    return f"'{marker}' is not set by any of the runtime's rules"


def expand_env_vars(value: str) -> str:
    """Expand ${VAR_NAME} references from the process environment."""
    if not isinstance(value, str):
        return value

    def replace_env(match):
        return os.environ.get(match.group(1), "")

    return re.sub(r'\$\{([^}]+)\}', replace_env, value)


def profile_from_dict(data: dict[str, Any]) -> RuntimeProfile:
    """
    Build a RuntimeProfile from one validated ``runtimes`` entry.

    Raises:
        ConfigValidationError: If no rule sets the home marker
    """
    marker_error = check_home_marker(data)
    if marker_error:
        raise ConfigValidationError(
            f"Runtime '{data.get('name')}' has an unusable home marker",
            errors=[f"home_marker: {marker_error}"]
        )

    rules = tuple(
        EnvVarRule(
            name=r["name"],
            value=expand_env_vars(r["value"]),
            policy=OverwritePolicy(r.get("policy", OverwritePolicy.REPLACE_IF_ABSENT.value)),
            separator=r.get("separator", ":"),
        )
        for r in data["rules"]
    )
    volume_name = data.get("volume_name", DEFAULT_VOLUME_NAME)
    return RuntimeProfile(
        name=data["name"],
        home_marker=data["home_marker"],
        reserved_env=tuple(data.get("reserved_env", ())),
        rules=rules,
        volume_name=volume_name,
        mount_path=data.get("mount_path", DEFAULT_MOUNT_PATH),
        init_container_name=data.get("init_container_name", volume_name),
        source_dir=data.get("source_dir", DEFAULT_SOURCE_DIR),
        description=data.get("description", ""),
    )


def load_runtime_profiles(
    path: Optional[Path | str] = None,
    validate: bool = True,
) -> dict[str, RuntimeProfile]:
    """
    Return the built-in profiles composed with those declared in ``path``.

    A profile in the file replaces a built-in profile of the same name.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the YAML is invalid
        ConfigValidationError: If validation fails
    """
    profiles = dict(BUILTIN_PROFILES)
    if path is None:
        return profiles

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Runtime configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigValidationError(
            "Runtime configuration must be a mapping",
            errors=[f"root: expected a mapping, got {type(data).__name__}"]
        )

    if validate:
        errors = validate_runtimes_config(data)
        if errors:
            raise ConfigValidationError(
                f"Runtime configuration validation failed with {len(errors)} error(s)",
                errors=errors
            )

    for entry in data.get("runtimes") or []:
        profile = profile_from_dict(entry)
        if profile.name in profiles:
            logger.info("Runtime profile %s overridden by %s", profile.name, path)
        profiles[profile.name] = profile
    return profiles
