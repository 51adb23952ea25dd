"""
Auto-instrumentation injection engine.

Mutates pod specs so that the selected containers start with an
instrumentation agent preloaded from a shared init-container volume.
"""

from .guard import (
    AlreadyInstrumentedError,
    AlreadyInstrumentedInSpecError,
    InjectionError,
    ReservedVariableConflictError,
)
from .models import (
    Container,
    EnvVar,
    InstrumentationDescriptor,
    Pod,
    PodSpec,
    Volume,
    VolumeMount,
)
from .mutator import attach_shared_payload, container_indexes, inject_containers, inject_sdk
from .policy import DOTNET_PROFILE, EnvVarRule, OverwritePolicy, RuntimeProfile

__all__ = [
    # Errors
    "AlreadyInstrumentedError",
    "AlreadyInstrumentedInSpecError",
    "InjectionError",
    "ReservedVariableConflictError",
    # Models
    "Container",
    "EnvVar",
    "InstrumentationDescriptor",
    "Pod",
    "PodSpec",
    "Volume",
    "VolumeMount",
    # Mutation
    "attach_shared_payload",
    "container_indexes",
    "inject_containers",
    "inject_sdk",
    # Policy
    "DOTNET_PROFILE",
    "EnvVarRule",
    "OverwritePolicy",
    "RuntimeProfile",
]
