"""Forward translation: put a deployment into dev mode.

Every function here mutates plain deployment/pod dicts in place, in the same
camelCase shape the API Server returns them.
"""

import copy
import posixpath
from typing import Any

from kubernetes.utils import parse_quantity

from tether.common.constants import (
    HOSTNAME_TOPOLOGY_KEY,
    MARKER_PATH_ENV,
    TRANSLATION_VERSION,
    Annotations,
    Labels,
    Names,
    Paths,
)
from tether.common.exceptions import ContainerNotFoundError
from tether.config import DevModeConfig
from tether.logger import init_logger
from tether.model.dev import sync_name
from tether.model.translation import Translation, TranslationRule, VolumeMount, WorkloadSnapshot
from tether.model.types import EnvVar, ResourceRequirements, SecurityContext

logger = init_logger(__name__)

TRANSLATED_RESOURCES = ("cpu", "memory")


def translate(translation: Translation, config: DevModeConfig) -> None:
    """Apply every rule of ``translation`` to ``translation.deployment``.

    The deployment is marked as dev-mode-active. Session-created deployments
    get a snapshot of their complete original spec; deployments that existed
    before the session get the serialized translation instead, which is
    enough to give them back their replica count later on.
    """
    d = translation.deployment
    if d is None:
        raise ValueError(f"translation '{translation.name}' has no deployment to translate")
    original = copy.deepcopy(d)

    metadata = _ensure_dict(d, "metadata")
    annotations = _ensure_dict(metadata, "annotations")
    spec = _ensure_dict(d, "spec")
    template = _ensure_dict(spec, "template")
    template_metadata = _ensure_dict(template, "metadata")
    template_annotations = _ensure_dict(template_metadata, "annotations")

    auto_created = annotations.get(Annotations.AUTO_CREATE) == "true"
    snapshot = None
    previous = None
    if auto_created:
        if Annotations.SNAPSHOT in annotations:
            snapshot = WorkloadSnapshot.from_json(annotations[Annotations.SNAPSHOT])
        else:
            snapshot = WorkloadSnapshot(deployment=original)
    elif Annotations.TRANSLATION in template_annotations:
        previous = Translation.from_json(template_annotations[Annotations.TRANSLATION])

    record = translation
    if previous is not None:
        # already in dev mode: keep the replica count the deployment had before the first session
        record = translation.model_copy(update={"replicas": previous.replicas})

    _ensure_dict(metadata, "labels")[Labels.DEV] = "true"
    annotations[Annotations.DEVELOPER] = config.developer
    annotations[Annotations.VERSION] = TRANSLATION_VERSION
    spec["replicas"] = config.dev_replicas

    template_labels = _ensure_dict(template_metadata, "labels")
    if translation.interactive:
        template_labels[Labels.INTERACTIVE] = translation.name
    else:
        template_labels[Labels.DETACHED] = translation.name

    pod_spec = _ensure_dict(template, "spec")
    pod_spec["terminationGracePeriodSeconds"] = config.termination_grace_period_seconds

    for rule in translation.rules:
        container = get_dev_container(pod_spec, rule.container)
        translate_dev_container(container, rule)
        translate_pod_user_and_group(pod_spec, rule.security_context)
        translate_pod_volumes(pod_spec, rule)
    translate_pod_affinity(pod_spec, translation.name)

    if translation.interactive and translation.rules:
        rule = translation.rules[0]
        translate_init_container(pod_spec, get_dev_container(pod_spec, rule.container), config)
        translate_sync_container(pod_spec, translation, config)

    if snapshot is not None:
        annotations[Annotations.SNAPSHOT] = snapshot.to_json()
    else:
        template_annotations[Annotations.TRANSLATION] = record.to_json()

    logger.debug(f"translated deployment '{metadata.get('name')}' with {len(translation.rules)} rule(s)")


def get_dev_container(pod_spec: dict[str, Any], name: str) -> dict[str, Any]:
    """Return the container called ``name``, or the first container when no name is given."""
    containers = pod_spec.get("containers") or []
    if not name:
        if containers:
            return containers[0]
        raise ContainerNotFoundError("the deployment has no containers")

    for container in containers:
        if container.get("name") == name:
            return container

    raise ContainerNotFoundError(f"container '{name}' does not exist in the deployment")


def translate_dev_container(container: dict[str, Any], rule: TranslationRule) -> None:
    if rule.image:
        container["image"] = rule.image
    if rule.image_pull_policy:
        container["imagePullPolicy"] = rule.image_pull_policy
    if rule.workdir:
        container["workingDir"] = rule.workdir

    if rule.command is not None:
        container["command"] = list(rule.command)
        container["args"] = list(rule.args or [])

    if not rule.healthchecks:
        container.pop("readinessProbe", None)
        container.pop("livenessProbe", None)

    translate_resources(container, rule.resources)
    translate_env_vars(container, rule.environment)
    translate_volume_mounts(container, rule.volumes)
    translate_security_context(container, rule.security_context)


def translate_resources(container: dict[str, Any], resources: ResourceRequirements) -> None:
    """Overwrite cpu/memory limits and requests the rule sets to a non-zero quantity.

    Anything the rule leaves out keeps the container's current value.
    """
    for bound, wanted in (("limits", resources.limits), ("requests", resources.requests)):
        for name in TRANSLATED_RESOURCES:
            quantity = wanted.get(name)
            if quantity is None or parse_quantity(quantity) == 0:
                continue
            current = container.get("resources") or {}
            values = current.get(bound) or {}
            values[name] = quantity
            current[bound] = values
            container["resources"] = current


def translate_env_vars(container: dict[str, Any], environment: list[EnvVar]) -> None:
    if not environment:
        return
    env = container.get("env") or []
    for var in environment:
        for existing in env:
            if existing.get("name") == var.name:
                existing.pop("valueFrom", None)
                existing["value"] = var.value
                break
        else:
            env.append({"name": var.name, "value": var.value})
    container["env"] = env


def translate_volume_mounts(container: dict[str, Any], mounts: list[VolumeMount]) -> None:
    volume_mounts = container.get("volumeMounts") or []
    for mount in mounts:
        _upsert_mount(volume_mounts, mount.to_k8s())
    container["volumeMounts"] = volume_mounts


def translate_security_context(container: dict[str, Any], security_context: SecurityContext | None) -> None:
    """Merge the rule's capabilities into the container as ordered, duplicate-free lists."""
    if security_context is None or security_context.capabilities is None:
        return

    container_context = container.get("securityContext") or {}
    capabilities = container_context.get("capabilities") or {}
    for key, wanted in (("add", security_context.capabilities.add), ("drop", security_context.capabilities.drop)):
        merged = _merge_unique(capabilities.get(key) or [], wanted)
        if merged:
            capabilities[key] = merged
    container_context["capabilities"] = capabilities
    container["securityContext"] = container_context


def translate_pod_user_and_group(pod_spec: dict[str, Any], security_context: SecurityContext | None) -> None:
    """Overwrite the pod's user, group and filesystem group with the ones the rule sets."""
    if security_context is None:
        return

    wanted = {
        "runAsUser": security_context.run_as_user,
        "runAsGroup": security_context.run_as_group,
        "fsGroup": security_context.fs_group,
    }
    wanted = {key: value for key, value in wanted.items() if value is not None}
    if not wanted:
        return

    pod_context = pod_spec.get("securityContext") or {}
    pod_context.update(wanted)
    pod_spec["securityContext"] = pod_context


def translate_pod_volumes(pod_spec: dict[str, Any], rule: TranslationRule) -> None:
    for mount in rule.volumes:
        if mount.name == Names.VOLUME:
            _add_volume(
                pod_spec,
                {"name": Names.VOLUME, "persistentVolumeClaim": {"claimName": Names.VOLUME}},
            )


def translate_pod_affinity(pod_spec: dict[str, Any], name: str) -> None:
    """Schedule the pod on the node running the interactive pod of session ``name``."""
    term = {
        "labelSelector": {"matchLabels": {Labels.INTERACTIVE: name}},
        "topologyKey": HOSTNAME_TOPOLOGY_KEY,
    }
    affinity = pod_spec.get("affinity") or {}
    pod_affinity = affinity.get("podAffinity") or {}
    required = pod_affinity.get("requiredDuringSchedulingIgnoredDuringExecution") or []
    if term not in required:
        required.append(term)
    pod_affinity["requiredDuringSchedulingIgnoredDuringExecution"] = required
    affinity["podAffinity"] = pod_affinity
    pod_spec["affinity"] = affinity


def translate_init_container(pod_spec: dict[str, Any], dev_container: dict[str, Any], config: DevModeConfig) -> None:
    """Seed the binary volume shared by the init container and the dev container."""
    init_containers = pod_spec.get("initContainers") or []
    if not any(c.get("name") == Names.INIT_CONTAINER for c in init_containers):
        init_containers.append(
            {
                "name": Names.INIT_CONTAINER,
                "image": config.init_image,
                "imagePullPolicy": "IfNotPresent",
                "command": ["sh", "-c", f"cp /usr/local/bin/* {Paths.BIN_INIT_MOUNT}"],
                "volumeMounts": [{"name": Names.BIN_VOLUME, "mountPath": Paths.BIN_INIT_MOUNT}],
            }
        )
    pod_spec["initContainers"] = init_containers

    _add_volume(pod_spec, {"name": Names.BIN_VOLUME, "emptyDir": {}})
    translate_volume_mounts(dev_container, [VolumeMount(name=Names.BIN_VOLUME, mount_path=Paths.BIN_DEV_MOUNT)])


def translate_sync_container(pod_spec: dict[str, Any], translation: Translation, config: DevModeConfig) -> None:
    sync = config.sync
    container = {
        "name": Names.SYNC_CONTAINER,
        "image": sync.image,
        "imagePullPolicy": "IfNotPresent",
        "env": [
            {
                "name": MARKER_PATH_ENV,
                "value": posixpath.join(Paths.SYNC_DATA_MOUNT, translation.marker),
            }
        ],
        "resources": {
            "limits": {
                "cpu": sync.limits_cpu,
                "memory": sync.limits_memory,
            }
        },
        "ports": [
            {"containerPort": sync.gui_port},
            {"containerPort": sync.sync_port},
        ],
        "volumeMounts": [
            {"name": Names.SYNC_SECRET_VOLUME, "mountPath": Paths.SYNC_SECRET_MOUNT},
            VolumeMount(
                name=Names.VOLUME,
                mount_path=Paths.SYNC_DATA_MOUNT,
                sub_path=translation.rules[0].volumes[0].sub_path,
            ).to_k8s(),
        ],
    }

    containers = pod_spec.get("containers") or []
    for i, existing in enumerate(containers):
        if existing.get("name") == Names.SYNC_CONTAINER:
            containers[i] = container
            break
    else:
        containers.append(container)
    pod_spec["containers"] = containers

    _add_volume(
        pod_spec,
        {"name": Names.SYNC_SECRET_VOLUME, "secret": {"secretName": sync_name(translation.name)}},
    )


def _ensure_dict(parent: dict[str, Any], key: str) -> dict[str, Any]:
    value = parent.get(key)
    if value is None:
        value = {}
        parent[key] = value
    return value


def _add_volume(pod_spec: dict[str, Any], volume: dict[str, Any]) -> None:
    volumes = pod_spec.get("volumes") or []
    if not any(v.get("name") == volume["name"] for v in volumes):
        volumes.append(volume)
    pod_spec["volumes"] = volumes


def _upsert_mount(volume_mounts: list[dict[str, Any]], mount: dict[str, Any]) -> None:
    for i, existing in enumerate(volume_mounts):
        if existing.get("name") == mount["name"] and existing.get("mountPath") == mount["mountPath"]:
            volume_mounts[i] = mount
            return
    volume_mounts.append(mount)


def _merge_unique(current: list[str], wanted: list[str]) -> list[str]:
    merged = list(dict.fromkeys(current))
    for item in wanted:
        if item not in merged:
            merged.append(item)
    return merged
