"""
Kubernetes object model for the injection engine.

This module defines the subset of the Pod API the engine reads and writes
(containers, environment variables, volumes and their mounts) plus the
instrumentation descriptor handed over by the reconciler. Every manifest key
the engine does not own is kept in an ``extra`` mapping so that a pod survives
a from_dict/to_dict round trip unchanged apart from the injected fields.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class EnvVar:
    """A single container environment variable."""

    name: str
    value: str = ""
    value_from: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data: dict[str, Any] = {"name": self.name}
        if self.value_from is None or self.value:
            data["value"] = self.value
        if self.value_from is not None:
            data["valueFrom"] = self.value_from
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnvVar":
        """Create EnvVar from dictionary."""
        value = data.get("value")
        return cls(
            name=data["name"],
            value="" if value is None else str(value),
            value_from=data.get("valueFrom"),
        )


@dataclass
class VolumeMount:
    """A volume mounted into a container."""

    name: str
    mount_path: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {"name": self.name, "mountPath": self.mount_path, **self.extra}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeMount":
        """Create VolumeMount from dictionary."""
        extra = {k: v for k, v in data.items() if k not in ("name", "mountPath")}
        return cls(name=data["name"], mount_path=data.get("mountPath", ""), extra=extra)


@dataclass
class Volume:
    """A pod level volume."""

    name: str
    empty_dir: Optional[dict[str, Any]] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data: dict[str, Any] = {"name": self.name}
        if self.empty_dir is not None:
            data["emptyDir"] = self.empty_dir
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Volume":
        """Create Volume from dictionary."""
        extra = {k: v for k, v in data.items() if k not in ("name", "emptyDir")}
        return cls(name=data["name"], empty_dir=data.get("emptyDir"), extra=extra)


_CONTAINER_KEYS = ("name", "image", "command", "env", "volumeMounts")


@dataclass
class Container:
    """
    A container (regular or init) inside a pod spec.

    Attributes:
        name: Container name, unique within the pod
        image: Image reference
        command: Entrypoint override
        env: Ordered environment variables
        volume_mounts: Ordered volume mounts
        extra: Any other manifest keys, passed through untouched
    """

    name: str
    image: str = ""
    command: list[str] = field(default_factory=list)
    env: list[EnvVar] = field(default_factory=list)
    volume_mounts: list[VolumeMount] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data: dict[str, Any] = {"name": self.name}
        if self.image:
            data["image"] = self.image
        if self.command:
            data["command"] = list(self.command)
        if self.env:
            data["env"] = [e.to_dict() for e in self.env]
        if self.volume_mounts:
            data["volumeMounts"] = [m.to_dict() for m in self.volume_mounts]
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Container":
        """Create Container from dictionary."""
        return cls(
            name=data["name"],
            image=data.get("image", ""),
            command=list(data.get("command") or []),
            env=[EnvVar.from_dict(e) for e in data.get("env") or []],
            volume_mounts=[VolumeMount.from_dict(m) for m in data.get("volumeMounts") or []],
            extra={k: v for k, v in data.items() if k not in _CONTAINER_KEYS},
        )


@dataclass
class PodSpec:
    """The mutable part of a pod: containers, init containers and volumes."""

    containers: list[Container] = field(default_factory=list)
    init_containers: list[Container] = field(default_factory=list)
    volumes: list[Volume] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def find_init_container(self, name: str) -> Optional[Container]:
        """Return the init container with the given name, if any."""
        for container in self.init_containers:
            if container.name == name:
                return container
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data: dict[str, Any] = {}
        if self.init_containers:
            data["initContainers"] = [c.to_dict() for c in self.init_containers]
        data["containers"] = [c.to_dict() for c in self.containers]
        if self.volumes:
            data["volumes"] = [v.to_dict() for v in self.volumes]
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PodSpec":
        """Create PodSpec from dictionary."""
        owned = ("containers", "initContainers", "volumes")
        return cls(
            containers=[Container.from_dict(c) for c in data.get("containers") or []],
            init_containers=[Container.from_dict(c) for c in data.get("initContainers") or []],
            volumes=[Volume.from_dict(v) for v in data.get("volumes") or []],
            extra={k: v for k, v in data.items() if k not in owned},
        )


@dataclass
class Pod:
    """A pod manifest, or the pod template of a workload."""

    metadata: dict[str, Any] = field(default_factory=dict)
    spec: PodSpec = field(default_factory=PodSpec)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def annotations(self) -> dict[str, str]:
        """Pod annotations (empty when the manifest declares none)."""
        return self.metadata.get("annotations") or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data: dict[str, Any] = {}
        for key in ("apiVersion", "kind"):
            if key in self.extra:
                data[key] = self.extra[key]
        if self.metadata:
            data["metadata"] = self.metadata
        data["spec"] = self.spec.to_dict()
        for key, value in self.extra.items():
            if key not in data:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pod":
        """Create Pod from a Pod manifest or a pod template."""
        return cls(
            metadata=dict(data.get("metadata") or {}),
            spec=PodSpec.from_dict(data.get("spec") or {}),
            extra={k: v for k, v in data.items() if k not in ("metadata", "spec")},
        )


@dataclass(frozen=True)
class InstrumentationDescriptor:
    """
    Per-runtime instrumentation settings produced by the reconciler.

    Attributes:
        image: Image carrying the agent payload, used by the init container
        env: Default environment entries; a container's own values win
    """

    image: str
    env: tuple[EnvVar, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstrumentationDescriptor":
        """Create InstrumentationDescriptor from dictionary."""
        return cls(
            image=data.get("image", ""),
            env=tuple(EnvVar.from_dict(e) for e in data.get("env") or []),
        )

    @classmethod
    def from_instrumentation(cls, manifest: dict[str, Any], runtime: str) -> "InstrumentationDescriptor":
        """
        Create a descriptor from an Instrumentation custom resource.

        Args:
            manifest: The Instrumentation object (apiVersion/kind/metadata/spec)
            runtime: Runtime section to read, e.g. "dotnet"

        Raises:
            KeyError: If the resource has no section for the runtime
        """
        spec = manifest.get("spec") or {}
        if runtime not in spec:
            name = (manifest.get("metadata") or {}).get("name", "<unnamed>")
            raise KeyError(f"Instrumentation '{name}' has no '{runtime}' section")
        return cls.from_dict(spec[runtime] or {})
