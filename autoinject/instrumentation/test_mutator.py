"""
Tests for pod mutation.
"""

import copy

import pytest

from autoinject.instrumentation.guard import (
    AlreadyInstrumentedError,
    AlreadyInstrumentedInSpecError,
    ReservedVariableConflictError,
)
from autoinject.instrumentation.models import (
    Container,
    EnvVar,
    InstrumentationDescriptor,
    VolumeMount,
)
from autoinject.instrumentation.mutator import (
    CONTAINER_NAMES_ANNOTATION,
    attach_shared_payload,
    container_indexes,
    inject_containers,
    inject_sdk,
)

EXPECTED_DOTNET_ENV = {
    "CORECLR_ENABLE_PROFILING": "1",
    "CORECLR_PROFILER": "{918728DD-259F-4A6A-AC2B-B85E1B658318}",
    "CORECLR_PROFILER_PATH": "/otel-auto-instrumentation/OpenTelemetry.AutoInstrumentation.Native.so",
    "DOTNET_STARTUP_HOOKS": "/otel-auto-instrumentation/net/OpenTelemetry.AutoInstrumentation.StartupHook.dll",
    "DOTNET_ADDITIONAL_DEPS": "/otel-auto-instrumentation/AdditionalDeps",
    "OTEL_DOTNET_AUTO_HOME": "/otel-auto-instrumentation",
    "DOTNET_SHARED_STORE": "/otel-auto-instrumentation/store",
}


class TestInjectSdk:
    """Tests for inject_sdk with the .NET profile."""

    def test_end_to_end(self, make_pod, descriptor):
        pod = make_pod("app")

        result = inject_sdk(descriptor, pod, 0)

        assert result is pod
        container = pod.spec.containers[0]
        assert [e.name for e in container.env] == ["FOO", *EXPECTED_DOTNET_ENV]
        assert {e.name: e.value for e in container.env} == {"FOO": "bar", **EXPECTED_DOTNET_ENV}
        assert container.volume_mounts == [
            VolumeMount(name="opentelemetry-auto-instrumentation",
                        mount_path="/otel-auto-instrumentation"),
        ]

        assert len(pod.spec.volumes) == 1
        assert pod.spec.volumes[0].name == "opentelemetry-auto-instrumentation"
        assert pod.spec.volumes[0].empty_dir == {}

        assert len(pod.spec.init_containers) == 1
        init = pod.spec.init_containers[0]
        assert init.name == "opentelemetry-auto-instrumentation"
        assert init.image == "agent:1.0"
        assert init.command == ["cp", "-a", "/autoinstrumentation/.", "/otel-auto-instrumentation/"]
        assert init.volume_mounts == container.volume_mounts

    def test_second_call_is_rejected(self, make_pod, descriptor):
        pod = make_pod("app")
        inject_sdk(descriptor, pod, 0)
        snapshot = copy.deepcopy(pod)

        with pytest.raises(AlreadyInstrumentedError):
            inject_sdk(descriptor, pod, 0)

        assert pod == snapshot

    def test_user_values_take_precedence(self, make_pod, descriptor):
        pod = make_pod("app", env=[EnvVar("FOO", "mine")])

        inject_sdk(descriptor, pod, 0)

        foo = [e for e in pod.spec.containers[0].env if e.name == "FOO"]
        assert foo == [EnvVar("FOO", "mine")]

    def test_existing_search_paths_are_joined(self, make_pod, descriptor):
        pod = make_pod("app", env=[
            EnvVar("DOTNET_STARTUP_HOOKS", "/app/hook.dll"),
            EnvVar("CORECLR_PROFILER", "{user-profiler}"),
        ])

        inject_sdk(descriptor, pod, 0)

        env = {e.name: e.value for e in pod.spec.containers[0].env}
        assert env["DOTNET_STARTUP_HOOKS"] == (
            "/app/hook.dll:/otel-auto-instrumentation/net/OpenTelemetry.AutoInstrumentation.StartupHook.dll"
        )
        assert env["CORECLR_PROFILER"] == "{user-profiler}"

    def test_existing_entries_keep_their_position(self, make_pod, descriptor):
        original = [EnvVar("Z", "1"), EnvVar("DOTNET_SHARED_STORE", "/s"), EnvVar("A", "2")]
        pod = make_pod("app", env=copy.deepcopy(original))

        inject_sdk(descriptor, pod, 0)

        names = [e.name for e in pod.spec.containers[0].env]
        assert names[:3] == ["Z", "DOTNET_SHARED_STORE", "A"]

    def test_rejected_container_leaves_pod_untouched(self, make_pod):
        pod = make_pod("app", env=[EnvVar("DOTNET_STARTUP_HOOKS", value_from={"configMapKeyRef": {}})])
        snapshot = copy.deepcopy(pod)
        descriptor = InstrumentationDescriptor(image="agent:1.0")

        with pytest.raises(ReservedVariableConflictError):
            inject_sdk(descriptor, pod, 0)

        assert pod == snapshot

    def test_marker_in_descriptor_rejected(self, make_pod):
        pod = make_pod("app")
        descriptor = InstrumentationDescriptor(
            image="agent:1.0", env=(EnvVar("OTEL_DOTNET_AUTO_HOME", "/x"),)
        )

        with pytest.raises(AlreadyInstrumentedInSpecError):
            inject_sdk(descriptor, pod, 0)
        assert pod.spec.init_containers == []

    def test_descriptor_is_not_aliased(self, make_pod, descriptor):
        pod = make_pod("app")
        inject_sdk(descriptor, pod, 0)

        pod.spec.containers[0].env[0].value = "changed"
        assert descriptor.env[0].value == "bar"

    def test_second_container_reuses_shared_payload(self, make_pod, descriptor):
        pod = make_pod("app", "sidecar")

        inject_sdk(descriptor, pod, 1)
        inject_sdk(descriptor, pod, 0)

        assert len(pod.spec.volumes) == 1
        assert len(pod.spec.init_containers) == 1
        for container in pod.spec.containers:
            assert len(container.volume_mounts) == 1

    def test_out_of_range_index(self, make_pod, descriptor):
        with pytest.raises(IndexError):
            inject_sdk(descriptor, make_pod("app"), 3)


class TestAttachSharedPayload:
    """Tests for the pod-level idempotent insert."""

    def test_attaches_once(self, make_pod, dotnet_profile):
        pod = make_pod("app")

        assert attach_shared_payload(pod, dotnet_profile, "agent:1.0") is True
        assert attach_shared_payload(pod, dotnet_profile, "agent:2.0") is False

        assert len(pod.spec.volumes) == 1
        assert [c.image for c in pod.spec.init_containers] == ["agent:1.0"]

    def test_keyed_by_init_container_name(self, make_pod, dotnet_profile):
        pod = make_pod("app")
        pod.spec.init_containers.append(Container(name="migrations", image="db:1"))

        assert attach_shared_payload(pod, dotnet_profile, "agent:1.0") is True
        assert [c.name for c in pod.spec.init_containers] == [
            "migrations", "opentelemetry-auto-instrumentation"
        ]

    def test_existing_reserved_init_container(self, make_pod, dotnet_profile):
        pod = make_pod("app")
        pod.spec.init_containers.append(
            Container(name="opentelemetry-auto-instrumentation", image="agent:0.9")
        )

        assert attach_shared_payload(pod, dotnet_profile, "agent:1.0") is False
        assert pod.spec.volumes == []


class TestContainerSelection:
    """Tests for container_indexes and inject_containers."""

    def test_defaults_to_first_container(self, make_pod):
        assert container_indexes(make_pod("app", "sidecar")) == [0]

    def test_no_containers(self, make_pod):
        pod = make_pod("app")
        pod.spec.containers = []
        assert container_indexes(pod) == []

    def test_explicit_names_without_containers(self, make_pod):
        pod = make_pod("app")
        pod.spec.containers = []

        with pytest.raises(ValueError, match="app"):
            container_indexes(pod, ["app"])

    def test_explicit_names(self, make_pod):
        pod = make_pod("app", "sidecar", "worker")
        assert container_indexes(pod, ["worker", "app"]) == [0, 2]

    def test_annotation_names(self, make_pod):
        pod = make_pod("app", "sidecar", "worker")
        pod.metadata["annotations"] = {CONTAINER_NAMES_ANNOTATION: "sidecar, worker"}
        assert container_indexes(pod) == [1, 2]

    def test_unknown_name(self, make_pod):
        with pytest.raises(ValueError, match="ghost"):
            container_indexes(make_pod("app"), ["ghost"])

    def test_inject_containers_skips_instrumented(self, make_pod, descriptor):
        pod = make_pod("app", "worker")
        pod.spec.containers[0].env.append(EnvVar("OTEL_DOTNET_AUTO_HOME", "/custom"))

        mutated = inject_containers(descriptor, pod, ["app", "worker"])

        assert mutated == ["worker"]
        assert pod.spec.containers[0].volume_mounts == []
        assert len(pod.spec.init_containers) == 1

    def test_inject_containers_propagates_spec_errors(self, make_pod):
        descriptor = InstrumentationDescriptor(
            image="agent:1.0", env=(EnvVar("OTEL_DOTNET_AUTO_HOME", "/x"),)
        )
        with pytest.raises(AlreadyInstrumentedInSpecError):
            inject_containers(descriptor, make_pod("app"))
