"""
Pod mutation for auto-instrumentation.

``inject_sdk`` is the per-container entry point used by the admission webhook:
guard, merge the descriptor defaults, apply the runtime rules, mount the
payload volume, and attach the shared volume/init container once per pod.
``inject_containers`` drives it over the containers selected for a pod.
"""

import logging
from typing import Optional

from .envvars import append_if_absent
from .guard import AlreadyInstrumentedError, check_injectable
from .models import Container, InstrumentationDescriptor, Pod, Volume, VolumeMount
from .policy import DOTNET_PROFILE, RuntimeProfile, apply_rules

logger = logging.getLogger(__name__)

CONTAINER_NAMES_ANNOTATION = "instrumentation.opentelemetry.io/container-names"


def attach_shared_payload(pod: Pod, profile: RuntimeProfile, image: str) -> bool:
    """
    Add the payload volume and the copying init container to the pod.

    Keyed by ``profile.init_container_name``: if an init container with that
    name exists nothing is added, so the pod ends up with at most one of each
    however many containers are instrumented.

    Returns:
        True if the volume and init container were attached
    """
    if pod.spec.find_init_container(profile.init_container_name) is not None:
        return False

    pod.spec.volumes.append(Volume(name=profile.volume_name, empty_dir={}))
    pod.spec.init_containers.append(Container(
        name=profile.init_container_name,
        image=image,
        command=profile.init_command,
        volume_mounts=[VolumeMount(name=profile.volume_name, mount_path=profile.mount_path)],
    ))
    logger.info("Attached init container %s (%s)", profile.init_container_name, image)
    return True


def inject_sdk(
    descriptor: InstrumentationDescriptor,
    pod: Pod,
    index: int,
    profile: RuntimeProfile = DOTNET_PROFILE,
) -> Pod:
    """
    Instrument the container at ``index`` in place.

    Args:
        descriptor: Image and default env for the runtime
        pod: Pod to mutate
        index: Container index, validated by the caller
        profile: Runtime constant table

    Returns:
        The same pod object, mutated

    Raises:
        InjectionError: If a guard rejects the container; the pod is untouched
    """
    container = pod.spec.containers[index]

    check_injectable(container, descriptor, profile)

    for env in descriptor.env:
        append_if_absent(container.env, env)

    apply_rules(container, profile.rules)

    container.volume_mounts.append(
        VolumeMount(name=profile.volume_name, mount_path=profile.mount_path)
    )

    attach_shared_payload(pod, profile, descriptor.image)
    logger.info("Injected %s instrumentation into container %s", profile.name, container.name)
    return pod


def container_indexes(pod: Pod, names: Optional[list[str]] = None) -> list[int]:
    """
    Resolve which containers to instrument.

    Explicit ``names`` win over the container-names annotation; with neither,
    only the first container is selected.

    Raises:
        ValueError: If a requested container does not exist in the pod
    """
    if not names:
        annotation = pod.annotations.get(CONTAINER_NAMES_ANNOTATION, "")
        names = [n.strip() for n in annotation.split(",") if n.strip()]

    if not names:
        return [0] if pod.spec.containers else []

    positions = {c.name: i for i, c in enumerate(pod.spec.containers)}
    missing = [n for n in names if n not in positions]
    if missing:
        raise ValueError(f"Containers not found in pod: {', '.join(missing)}")
    return sorted({positions[n] for n in names})


def inject_containers(
    descriptor: InstrumentationDescriptor,
    pod: Pod,
    names: Optional[list[str]] = None,
    profile: RuntimeProfile = DOTNET_PROFILE,
) -> list[str]:
    """
    Instrument every selected container of ``pod``, one after another.

    Containers that are already instrumented are skipped; any other
    InjectionError propagates.

    Returns:
        Names of the containers that were mutated
    """
    mutated = []
    for index in container_indexes(pod, names):
        name = pod.spec.containers[index].name
        try:
            inject_sdk(descriptor, pod, index, profile)
        except AlreadyInstrumentedError as e:
            logger.warning("Skipping container %s: %s", name, e)
            continue
        mutated.append(name)
    return mutated
