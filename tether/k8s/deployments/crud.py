"""Lookup, deployment and dev-mode deactivation of workloads."""

from typing import Any

from tether.common.constants import Annotations, Labels
from tether.common.exceptions import AmbiguousMatchError, NotFoundError
from tether.k8s.api_client import K8sApiClient
from tether.logger import init_logger
from tether.model.dev import Dev
from tether.model.selector import LabelSelector, NameSelector, WorkloadSelector
from tether.model.translation import Translation, WorkloadSnapshot

logger = init_logger(__name__)


async def get(api: K8sApiClient, selector: WorkloadSelector) -> dict[str, Any]:
    """Return the single deployment ``selector`` points at.

    Raises:
        NotFoundError: no deployment matches
        AmbiguousMatchError: a label selector matched more than one deployment
    """
    if isinstance(selector, NameSelector):
        return await api.get_deployment(selector.name)

    if isinstance(selector, LabelSelector):
        deployments = await api.list_deployments(selector.selector)
        if not deployments:
            raise NotFoundError(f"no deployment matches {selector.describe()} in namespace '{api.namespace}'")
        if len(deployments) > 1:
            raise AmbiguousMatchError(f"Found '{len(deployments)}' deployments instead of 1")
        return deployments[0]

    raise TypeError(f"unsupported workload selector: {selector!r}")


async def get_translations(api: K8sApiClient, dev: Dev, d: dict[str, Any] | None) -> dict[str, Translation]:
    """Collect the translations of a session, keyed by deployment name.

    ``d`` is the deployment of the interactive environment. Services whose
    deployment does not exist are skipped; rules that land on the same
    deployment are grouped into one translation.
    """
    groups: dict[str, dict[str, Any]] = {}
    if d is not None:
        groups[deployment_name(d)] = {
            "deployment": d,
            "interactive": True,
            "rules": [dev.to_translation_rule(dev)],
        }

    for service in dev.services:
        try:
            sd = await get(api, service.selector)
        except NotFoundError:
            logger.info(f"deployment for service {service.selector.describe()} not found, skipping it")
            continue

        rule = service.to_translation_rule(dev)
        group = groups.get(deployment_name(sd))
        if group is not None:
            group["rules"].append(rule)
        else:
            groups[deployment_name(sd)] = {
                "deployment": sd,
                "interactive": False,
                "rules": [rule],
            }

    result = {}
    for name, group in groups.items():
        deployment = group["deployment"]
        result[name] = Translation(
            name=dev.name,
            interactive=group["interactive"],
            marker=dev.dev_path if group["interactive"] else "",
            replicas=_replicas(deployment),
            rules=group["rules"],
            deployment=deployment,
        )
    return result


async def deploy(api: K8sApiClient, d: dict[str, Any], force_create: bool = False) -> dict[str, Any]:
    """Create ``d`` when ``force_create`` is set, otherwise overwrite the live deployment."""
    if force_create:
        return await create(api, d)
    return await update(api, d)


def is_dev_mode_on(d: dict[str, Any]) -> bool:
    labels = (d.get("metadata") or {}).get("labels") or {}
    return Labels.DEV in labels


async def dev_mode_off(api: K8sApiClient, d: dict[str, Any]) -> bool:
    """Take ``d`` out of dev mode.

    - With a translation record on the pod template, only the replica count
      and the dev mode labels/annotations are restored. The mutated
      containers stay in place.
    - With a snapshot of the original deployment, the live object is
      replaced by the snapshot.
    - With neither, the deployment was never put in dev mode and nothing is
      written.

    Returns:
        True if the deployment was written back, False if it was left untouched.
    """
    metadata = d.get("metadata") or {}
    template_metadata = ((d.get("spec") or {}).get("template") or {}).get("metadata") or {}
    translation_json = (template_metadata.get("annotations") or {}).get(Annotations.TRANSLATION)

    if not translation_json:
        snapshot_json = (metadata.get("annotations") or {}).get(Annotations.SNAPSHOT)
        if not snapshot_json:
            logger.info(f"{metadata.get('namespace')}/{metadata.get('name')} is not a dev environment")
            return False
        d = WorkloadSnapshot.from_json(snapshot_json).deployment
    else:
        translation = Translation.from_json(translation_json)
        d["spec"]["replicas"] = translation.replicas
        annotations = metadata.get("annotations") or {}
        annotations.pop(Annotations.DEVELOPER, None)
        annotations.pop(Annotations.VERSION, None)
        template_metadata["annotations"].pop(Annotations.TRANSLATION, None)
        labels = metadata.get("labels") or {}
        labels.pop(Labels.DEV, None)

    await update(api, d)
    return True


async def create(api: K8sApiClient, d: dict[str, Any]) -> dict[str, Any]:
    logger.debug(f"creating deployment {api.namespace}/{deployment_name(d)}")
    return await api.create_deployment(d)


async def update(api: K8sApiClient, d: dict[str, Any]) -> dict[str, Any]:
    """Overwrite the live deployment, whatever its current resource version."""
    logger.debug(f"updating deployment {api.namespace}/{deployment_name(d)}")
    (d.get("metadata") or {}).pop("resourceVersion", None)
    d.pop("status", None)
    return await api.replace_deployment(d)


async def destroy(api: K8sApiClient, name: str, grace_period_seconds: int = 0) -> None:
    logger.info(f"deleting deployment '{name}'...")
    try:
        await api.delete_deployment(name, grace_period_seconds=grace_period_seconds)
    except NotFoundError:
        logger.info(f"deployment '{name}' was already deleted.")
        return
    logger.info(f"deployment '{name}' deleted")


def deployment_name(d: dict[str, Any]) -> str:
    return (d.get("metadata") or {}).get("name", "")


def _replicas(d: dict[str, Any]) -> int:
    replicas = (d.get("spec") or {}).get("replicas")
    return 1 if replicas is None else replicas
