"""Deployments created on demand for environments that have no workload yet."""

from typing import Any

from tether.common.constants import Annotations, Labels, Names
from tether.config import DevModeConfig
from tether.logger import init_logger
from tether.model.dev import Dev

logger = init_logger(__name__)


def build_sandbox_manifest(dev: Dev, namespace: str, config: DevModeConfig) -> dict[str, Any]:
    """Build a minimal deployment manifest for ``dev``.

    Structure:
    - metadata: manifest name, target namespace and the auto-create annotation
    - spec.replicas: the configured sandbox replica count
    - spec.selector / template labels: ``app=<name>``
    - a single ``dev`` container idling on ``tail -f /dev/null``

    Everything else (mounts, sidecar, security context) is added later by
    the forward translation, exactly as for a pre-existing deployment.

    Args:
        dev: Manifest of the environment
        namespace: Namespace the deployment is created in
        config: Dev mode configuration (default image, replicas, grace period)

    Returns:
        Deployment manifest dictionary
    """
    image = dev.image or config.default_image
    manifest = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": dev.name,
            "namespace": namespace,
            "annotations": {
                Annotations.AUTO_CREATE: "true",
            },
        },
        "spec": {
            "replicas": config.sandbox_replicas,
            "selector": {
                "matchLabels": {
                    Labels.APP: dev.name,
                },
            },
            "template": {
                "metadata": {
                    "labels": {
                        Labels.APP: dev.name,
                    },
                },
                "spec": {
                    "terminationGracePeriodSeconds": config.termination_grace_period_seconds,
                    "containers": [
                        {
                            "name": Names.SANDBOX_CONTAINER,
                            "image": image,
                            "imagePullPolicy": "Always",
                            "command": ["tail"],
                            "args": ["-f", "/dev/null"],
                        }
                    ],
                },
            },
        },
    }

    logger.debug(f"Built sandbox deployment for {dev.name} in namespace '{namespace}' using image '{image}'")
    return manifest
