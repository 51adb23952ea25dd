"""
Pytest configuration and fixtures for the injector.

This module provides shared fixtures and the Hypothesis profiles used by the
property-based tests.
"""

import os

import pytest
from hypothesis import settings, Verbosity

from autoinject.instrumentation.models import (
    Container,
    EnvVar,
    InstrumentationDescriptor,
    Pod,
    PodSpec,
)
from autoinject.instrumentation.policy import DOTNET_PROFILE

# Configure Hypothesis profiles
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)


def pytest_configure(config):
    """Configure pytest with custom settings."""
    settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture
def dotnet_profile():
    """The built-in .NET runtime profile."""
    return DOTNET_PROFILE


@pytest.fixture
def descriptor():
    """Descriptor from the end-to-end example: image agent:1.0, FOO=bar."""
    return InstrumentationDescriptor(image="agent:1.0", env=(EnvVar("FOO", "bar"),))


@pytest.fixture
def make_pod():
    """Factory for pods with the given container names."""

    def _make(*names: str, env: list[EnvVar] | None = None) -> Pod:
        containers = [Container(name=n, image=f"{n}:latest") for n in names or ("app",)]
        if env:
            containers[0].env = list(env)
        return Pod(metadata={"name": "workload"}, spec=PodSpec(containers=containers))

    return _make
