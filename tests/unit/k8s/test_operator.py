"""Unit tests for DevModeOperator.

The operator is exercised end to end against an in-memory set of
deployments; pods are served by the mocked ``list_pods``.
"""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import config as k8s_config

from tether.common.constants import Annotations, Labels
from tether.common.exceptions import NotFoundError
from tether.config import K8sConfig, TetherConfig
from tether.k8s.deployments.sandbox import build_sandbox_manifest
from tether.k8s.operator import DevModeOperator
from tether.model.dev import Dev


@pytest.fixture
def operator(tether_config, mock_api):
    operator = DevModeOperator(tether_config)
    operator._apis["default"] = mock_api
    return operator


class TestGetApi:
    def test_in_cluster_config_first(self, tether_config):
        with patch("tether.k8s.operator.k8s_config") as mock_config, patch("tether.k8s.operator.client") as mock_client:
            mock_config.ConfigException = k8s_config.ConfigException
            operator = DevModeOperator(tether_config)

            api = operator.get_api()

            mock_config.load_incluster_config.assert_called_once()
            mock_config.load_kube_config.assert_not_called()
            mock_client.ApiClient.assert_called_once()
            assert api.namespace == "default"

    def test_fallback_to_kubeconfig(self, tether_config):
        with patch("tether.k8s.operator.k8s_config") as mock_config, patch("tether.k8s.operator.client"):
            mock_config.ConfigException = k8s_config.ConfigException
            mock_config.load_incluster_config.side_effect = k8s_config.ConfigException("not in cluster")

            DevModeOperator(tether_config).get_api()

            mock_config.load_kube_config.assert_called_once_with()

    def test_explicit_kubeconfig(self):
        config = TetherConfig(k8s=K8sConfig(kubeconfig_path="/tmp/kubeconfig", namespace="default"))
        with patch("tether.k8s.operator.k8s_config") as mock_config, patch("tether.k8s.operator.client"):
            DevModeOperator(config).get_api()

            mock_config.load_kube_config.assert_called_once_with(config_file="/tmp/kubeconfig")

    def test_clients_cached_per_namespace(self, tether_config):
        with patch("tether.k8s.operator.k8s_config"), patch("tether.k8s.operator.client") as mock_client:
            operator = DevModeOperator(tether_config)

            assert operator.get_api("team-a") is operator.get_api("team-a")
            assert operator.get_api("team-b").namespace == "team-b"
            mock_client.ApiClient.assert_called_once()


class TestActivate:
    @pytest.mark.asyncio
    async def test_existing_deployments(self, operator, mock_api, web_manifest, deployment_factory, pod_factory):
        mock_api.deployments["web"] = deployment_factory("web", replicas=2)
        mock_api.deployments["worker"] = deployment_factory("worker", replicas=3)
        running = pod_factory("web-1")
        mock_api.list_pods.return_value = [running]

        result = await operator.activate(web_manifest)

        assert result == running
        assert mock_api.replace_deployment.await_count == 2
        mock_api.create_deployment.assert_not_called()
        web = mock_api.deployments["web"]
        worker = mock_api.deployments["worker"]
        assert web["metadata"]["labels"][Labels.DEV] == "true"
        assert web["spec"]["template"]["metadata"]["labels"][Labels.INTERACTIVE] == "web"
        assert worker["spec"]["template"]["metadata"]["labels"][Labels.DETACHED] == "web"
        mock_api.list_pods.assert_awaited_once_with(f"{Labels.INTERACTIVE}=web")

    @pytest.mark.asyncio
    async def test_creates_sandbox(self, operator, mock_api, pod_factory):
        dev = Dev.read("name: scratch\nimage: python:3.11\n")
        mock_api.list_pods.return_value = [pod_factory("scratch-1")]

        await operator.activate(dev)

        mock_api.create_deployment.assert_awaited_once()
        sandbox = mock_api.deployments["scratch"]
        assert sandbox["metadata"]["annotations"][Annotations.AUTO_CREATE] == "true"
        assert Annotations.SNAPSHOT in sandbox["metadata"]["annotations"]
        assert sandbox["spec"]["template"]["spec"]["containers"][0]["image"] == "python:3.11"

    @pytest.mark.asyncio
    async def test_label_selector_not_found(self, operator, mock_api):
        dev = Dev.read("name: web\nlabels:\n  app: web\n")

        with pytest.raises(NotFoundError):
            await operator.activate(dev)

        mock_api.create_deployment.assert_not_called()


class TestDeactivate:
    @pytest.mark.asyncio
    async def test_existing_deployments_restored(
        self, operator, mock_api, web_manifest, deployment_factory, pod_factory
    ):
        mock_api.deployments["web"] = deployment_factory("web", replicas=2)
        mock_api.deployments["worker"] = deployment_factory("worker", replicas=3)
        mock_api.list_pods.return_value = [pod_factory("web-1")]
        await operator.activate(web_manifest)

        await operator.deactivate(web_manifest)

        assert mock_api.deployments["web"]["spec"]["replicas"] == 2
        assert mock_api.deployments["worker"]["spec"]["replicas"] == 3
        assert Labels.DEV not in mock_api.deployments["web"]["metadata"]["labels"]
        assert Labels.DEV not in mock_api.deployments["worker"]["metadata"]["labels"]
        mock_api.delete_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_sandbox_destroyed(self, operator, mock_api, tether_config, pod_factory):
        dev = Dev.read("name: scratch\n")
        mock_api.list_pods.return_value = [pod_factory("scratch-1")]
        await operator.activate(dev)

        await operator.deactivate(dev)

        mock_api.delete_deployment.assert_awaited_once_with("scratch", grace_period_seconds=0)

    @pytest.mark.asyncio
    async def test_sandbox_restored(self, operator, mock_api, tether_config, pod_factory):
        dev = Dev.read("name: scratch\n")
        mock_api.list_pods.return_value = [pod_factory("scratch-1")]
        await operator.activate(dev)

        await operator.deactivate(dev, destroy_sandbox=False)

        expected = build_sandbox_manifest(dev, "default", tether_config.dev_mode)
        assert mock_api.deployments["scratch"] == expected
        mock_api.delete_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_to_deactivate(self, operator, mock_api, web_manifest):
        await operator.deactivate(web_manifest)

        mock_api.replace_deployment.assert_not_called()
        mock_api.delete_deployment.assert_not_called()


@pytest.mark.asyncio
async def test_restart(operator, mock_api, web_manifest, pod_factory):
    mock_api.list_pods.side_effect = [[pod_factory("worker-1")], [pod_factory("worker-2")]]
    mock_api.delete_pod.return_value = MagicMock()

    await operator.restart(web_manifest)

    mock_api.delete_pod.assert_awaited_once_with("worker-1", grace_period_seconds=0)
    mock_api.list_pods.assert_any_await(f"{Labels.DETACHED}=web")
