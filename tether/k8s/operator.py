"""Dev mode operator: activation, deactivation and restart of dev environments."""

import asyncio
from typing import Any

from kubernetes import client
from kubernetes import config as k8s_config

from tether.common.constants import Annotations, Labels
from tether.common.exceptions import NotFoundError
from tether.config import TetherConfig
from tether.k8s.api_client import K8sApiClient
from tether.k8s.deployments import crud
from tether.k8s.deployments.sandbox import build_sandbox_manifest
from tether.k8s.deployments.translate import translate
from tether.k8s.pods.pod import PodReadinessPoller, RestartOrchestrator
from tether.logger import init_logger
from tether.model.dev import Dev
from tether.model.selector import NameSelector

logger = init_logger(__name__)


class DevModeOperator:
    """Puts the workloads of a manifest into dev mode and takes them out again.

    The Kubernetes client is created lazily on the first call. One
    :class:`K8sApiClient` is kept per namespace, all sharing the same
    underlying connection pool.
    """

    def __init__(self, config: TetherConfig):
        self._config = config
        self._api_client: client.ApiClient | None = None
        self._apis: dict[str, K8sApiClient] = {}

    def _ensure_initialized(self) -> client.ApiClient:
        if self._api_client is not None:
            return self._api_client

        kubeconfig_path = self._config.k8s.kubeconfig_path
        if kubeconfig_path:
            k8s_config.load_kube_config(config_file=kubeconfig_path)
        else:
            # Try in-cluster config first, fallback to default kubeconfig
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()

        self._api_client = client.ApiClient()
        logger.info("K8s client initialized")
        return self._api_client

    def get_api(self, namespace: str | None = None) -> K8sApiClient:
        namespace = namespace or self._config.k8s.namespace
        api = self._apis.get(namespace)
        if api is None:
            api = K8sApiClient(
                api_client=self._ensure_initialized(),
                namespace=namespace,
                qps=self._config.k8s.api_qps,
            )
            self._apis[namespace] = api
        return api

    async def activate(
        self,
        dev: Dev,
        wait_until_deployed: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Put ``dev`` and its services into dev mode.

        When the manifest names a deployment that does not exist, a sandbox
        deployment is created for it. Returns the running interactive pod.
        """
        api = self.get_api(dev.namespace)

        create = False
        try:
            d = await crud.get(api, dev.selector)
        except NotFoundError:
            if not isinstance(dev.selector, NameSelector):
                raise
            logger.info(f"deployment '{dev.name}' not found, creating a sandbox for it")
            d = build_sandbox_manifest(dev, api.namespace, self._config.dev_mode)
            create = True

        translations = await crud.get_translations(api, dev, d)
        for name, translation in translations.items():
            translate(translation, self._config.dev_mode)
            await crud.deploy(api, translation.deployment, force_create=create and name == crud.deployment_name(d))
            logger.info(f"deployment '{name}' is in dev mode")

        poller = PodReadinessPoller(api, self._config.wait)
        return await poller.get_by_label(
            dev,
            Labels.INTERACTIVE,
            wait_until_deployed=wait_until_deployed,
            cancel_event=cancel_event,
        )

    async def deactivate(self, dev: Dev, destroy_sandbox: bool = True) -> None:
        """Take ``dev`` and its services out of dev mode.

        Sandbox deployments are deleted unless ``destroy_sandbox`` is False,
        in which case they are restored from their snapshot.
        """
        api = self.get_api(dev.namespace)

        try:
            d = await crud.get(api, dev.selector)
        except NotFoundError:
            logger.info(f"deployment for {dev.selector.describe()} not found")
            d = None

        if d is not None:
            auto_created = ((d.get("metadata") or {}).get("annotations") or {}).get(Annotations.AUTO_CREATE) == "true"
            if auto_created and destroy_sandbox:
                await crud.destroy(
                    api,
                    crud.deployment_name(d),
                    grace_period_seconds=self._config.dev_mode.termination_grace_period_seconds,
                )
            else:
                await crud.dev_mode_off(api, d)

        for service in dev.services:
            try:
                sd = await crud.get(api, service.selector)
            except NotFoundError:
                logger.info(f"deployment for service {service.selector.describe()} not found, skipping it")
                continue
            await crud.dev_mode_off(api, sd)

    async def restart(self, dev: Dev) -> None:
        """Delete the detached pods of ``dev`` and wait for their replacements."""
        api = self.get_api(dev.namespace)
        orchestrator = RestartOrchestrator(
            api,
            self._config.wait,
            grace_period_seconds=self._config.dev_mode.termination_grace_period_seconds,
        )
        await orchestrator.restart(dev)
