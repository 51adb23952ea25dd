"""
Injection policy tables.

A RuntimeProfile bundles everything that differs between runtimes: the
marker variable that flags an instrumented container, the variables the
engine owns, and where the agent payload is copied and mounted. Profiles are
frozen and built once; support for another runtime is added by declaring a
new profile rather than by branching in the mutator.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .envvars import set_env_var
from .models import Container

logger = logging.getLogger(__name__)


class OverwritePolicy(Enum):
    """How a rule treats a variable that is already set."""

    REPLACE_IF_ABSENT = "replace-if-absent"
    APPEND_JOINED = "append-joined"


@dataclass(frozen=True)
class EnvVarRule:
    """One engine-owned environment variable."""

    name: str
    value: str
    policy: OverwritePolicy = OverwritePolicy.REPLACE_IF_ABSENT
    separator: str = ":"


DEFAULT_VOLUME_NAME = "opentelemetry-auto-instrumentation"
DEFAULT_MOUNT_PATH = "/otel-auto-instrumentation"
DEFAULT_SOURCE_DIR = "/autoinstrumentation"


@dataclass(frozen=True)
class RuntimeProfile:
    """
    Constant table for one instrumented runtime.

    Attributes:
        name: Runtime key, matches the section name in an Instrumentation resource
        home_marker: Variable whose presence means the container is instrumented
        reserved_env: Variables that must not be defined through valueFrom
        rules: Engine-owned variables, applied in order
        volume_name: Name of the shared emptyDir volume and of its mounts
        mount_path: Where the payload is mounted in every target container
        init_container_name: Reserved name of the copying init container
        source_dir: Payload directory inside the agent image
    """

    name: str
    home_marker: str
    reserved_env: tuple[str, ...] = ()
    rules: tuple[EnvVarRule, ...] = ()
    volume_name: str = DEFAULT_VOLUME_NAME
    mount_path: str = DEFAULT_MOUNT_PATH
    init_container_name: str = DEFAULT_VOLUME_NAME
    source_dir: str = DEFAULT_SOURCE_DIR
    description: str = field(default="", compare=False)

    @property
    def init_command(self) -> list[str]:
        """Command run by the init container to copy the payload."""
        return ["cp", "-a", f"{self.source_dir}/.", f"{self.mount_path}/"]

    def rule(self, name: str) -> EnvVarRule:
        """Return the rule for ``name``."""
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(f"Runtime '{self.name}' has no rule for {name}")


def apply_rules(container: Container, rules: tuple[EnvVarRule, ...]) -> None:
    """Apply each rule to the container environment, in table order."""
    for rule in rules:
        concat = rule.policy is OverwritePolicy.APPEND_JOINED
        set_env_var(container.env, rule.name, rule.value, concat=concat, separator=rule.separator)
    logger.debug("Applied %d rule(s) to container %s", len(rules), container.name)


# .NET: CLR profiler plus startup hook
ENV_DOTNET_CORECLR_ENABLE_PROFILING = "CORECLR_ENABLE_PROFILING"
ENV_DOTNET_CORECLR_PROFILER = "CORECLR_PROFILER"
ENV_DOTNET_CORECLR_PROFILER_PATH = "CORECLR_PROFILER_PATH"
ENV_DOTNET_ADDITIONAL_DEPS = "DOTNET_ADDITIONAL_DEPS"
ENV_DOTNET_SHARED_STORE = "DOTNET_SHARED_STORE"
ENV_DOTNET_STARTUP_HOOKS = "DOTNET_STARTUP_HOOKS"
ENV_DOTNET_OTEL_AUTO_HOME = "OTEL_DOTNET_AUTO_HOME"

DOTNET_CORECLR_PROFILER_ID = "{918728DD-259F-4A6A-AC2B-B85E1B658318}"

DOTNET_PROFILE = RuntimeProfile(
    name="dotnet",
    home_marker=ENV_DOTNET_OTEL_AUTO_HOME,
    reserved_env=(
        ENV_DOTNET_STARTUP_HOOKS,
        ENV_DOTNET_ADDITIONAL_DEPS,
        ENV_DOTNET_SHARED_STORE,
    ),
    rules=(
        EnvVarRule(ENV_DOTNET_CORECLR_ENABLE_PROFILING, "1"),
        EnvVarRule(ENV_DOTNET_CORECLR_PROFILER, DOTNET_CORECLR_PROFILER_ID),
        EnvVarRule(
            ENV_DOTNET_CORECLR_PROFILER_PATH,
            f"{DEFAULT_MOUNT_PATH}/OpenTelemetry.AutoInstrumentation.Native.so",
        ),
        EnvVarRule(
            ENV_DOTNET_STARTUP_HOOKS,
            f"{DEFAULT_MOUNT_PATH}/net/OpenTelemetry.AutoInstrumentation.StartupHook.dll",
            OverwritePolicy.APPEND_JOINED,
        ),
        EnvVarRule(
            ENV_DOTNET_ADDITIONAL_DEPS,
            f"{DEFAULT_MOUNT_PATH}/AdditionalDeps",
            OverwritePolicy.APPEND_JOINED,
        ),
        EnvVarRule(ENV_DOTNET_OTEL_AUTO_HOME, DEFAULT_MOUNT_PATH),
        EnvVarRule(
            ENV_DOTNET_SHARED_STORE,
            f"{DEFAULT_MOUNT_PATH}/store",
            OverwritePolicy.APPEND_JOINED,
        ),
    ),
    description="OpenTelemetry .NET auto-instrumentation (CLR profiler)",
)

BUILTIN_PROFILES = {DOTNET_PROFILE.name: DOTNET_PROFILE}
