"""
Helpers for ordered container environment lists.

Entries are never removed or reordered; the helpers only append new entries
or rewrite the value of an existing one.
"""

import logging
from dataclasses import replace

from .models import EnvVar

logger = logging.getLogger(__name__)


def index_of_env(envs: list[EnvVar], name: str) -> int:
    """Return the index of the first variable called ``name``, or -1."""
    for i, env in enumerate(envs):
        if env.name == name:
            return i
    return -1


def append_if_absent(envs: list[EnvVar], env: EnvVar) -> bool:
    """
    Append a copy of ``env`` unless a variable with the same name exists.

    Returns:
        True if the variable was appended
    """
    if index_of_env(envs, env.name) > -1:
        logger.debug("Keeping existing value of %s", env.name)
        return False
    envs.append(replace(env))
    return True


def set_env_var(
    envs: list[EnvVar],
    name: str,
    value: str,
    concat: bool = False,
    separator: str = ":",
) -> None:
    """
    Set ``name`` to ``value`` if it is not defined yet.

    When the variable already exists and ``concat`` is true the new value is
    joined onto the old one with ``separator`` (search-path style variables).
    Otherwise the existing value has priority and is left alone.
    """
    idx = index_of_env(envs, name)
    if idx < 0:
        envs.append(EnvVar(name=name, value=value))
        return
    if concat:
        envs[idx].value = f"{envs[idx].value}{separator}{value}"
        logger.debug("Appended %s to %s", value, name)
