"""
Pre-flight checks run before a container is mutated.

All checks are pure: they either return or raise an InjectionError, so a
rejected container is never left half instrumented.
"""

from typing import Optional

from .envvars import index_of_env
from .models import Container, EnvVar, InstrumentationDescriptor
from .policy import RuntimeProfile


class InjectionError(Exception):
    """Base exception for rejected injections."""

    def __init__(self, message: str, variable: Optional[str] = None,
                 container: Optional[str] = None):
        super().__init__(message)
        self.variable = variable
        self.container = container


class AlreadyInstrumentedError(InjectionError):
    """Raised when the container already carries the home marker."""
    pass


class AlreadyInstrumentedInSpecError(InjectionError):
    """Raised when the instrumentation descriptor itself sets the home marker."""
    pass


class ReservedVariableConflictError(InjectionError):
    """Raised when an engine-owned variable is defined through valueFrom."""
    pass


def validate_container_env(envs: list[EnvVar], *names: str, container: Optional[str] = None) -> None:
    """
    Reject variables among ``names`` whose value comes from a reference.

    A valueFrom reference cannot be joined with the injected path, so the
    variable cannot be reconciled.
    """
    for env in envs:
        if env.name in names and env.value_from is not None:
            raise ReservedVariableConflictError(
                f"the container defines env var value via ValueFrom, envVar: {env.name}",
                variable=env.name,
                container=container,
            )


def check_injectable(container: Container, descriptor: InstrumentationDescriptor,
                     profile: RuntimeProfile) -> None:
    """
    Run every guard for ``container`` against ``profile``.

    Raises:
        ReservedVariableConflictError: A reserved variable uses valueFrom
        AlreadyInstrumentedError: The home marker is set in the container
        AlreadyInstrumentedInSpecError: The home marker is set in the descriptor
    """
    validate_container_env(container.env, *profile.reserved_env, container=container.name)

    marker = profile.home_marker
    if index_of_env(container.env, marker) > -1:
        raise AlreadyInstrumentedError(
            f"{marker} environment variable is already set in the container",
            variable=marker,
            container=container.name,
        )

    if index_of_env(list(descriptor.env), marker) > -1:
        raise AlreadyInstrumentedInSpecError(
            f"{marker} environment variable is already set in the {profile.name} instrumentation spec",
            variable=marker,
            container=container.name,
        )
