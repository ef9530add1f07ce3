import copy
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from tether.common.exceptions import NotFoundError
from tether.config import DevModeConfig, K8sConfig, TetherConfig, WaitConfig
from tether.k8s.api_client import K8sApiClient
from tether.logger import init_logger
from tether.model.dev import Dev

logger = init_logger(__name__)

WEB_MANIFEST = """
name: web
container: dev
image: web:latest
command: ["./run_web.sh"]
workdir: /app
volumes:
  - /go/pkg/
  - /root/.cache/go-build
securityContext:
  runAsUser: 100
  runAsGroup: 101
  fsGroup: 102
resources:
  limits:
    cpu: "2"
    memory: 1Gi
services:
  - name: worker
    container: dev
    image: worker:latest
    imagePullPolicy: IfNotPresent
    command: ["./run_worker.sh"]
    mountpath: /src
    workdir: /src
    securityContext:
      runAsUser: 0
      runAsGroup: 0
      fsGroup: 0
"""


def make_deployment(name: str, replicas: int = 2, container: str = "dev") -> dict:
    """Build a deployment dict in the shape the API Server returns it."""
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": "default",
            "resourceVersion": "1234",
            "labels": {"app": name},
        },
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {
                    "containers": [
                        {
                            "name": container,
                            "image": f"{name}:prod",
                            "readinessProbe": {"httpGet": {"path": "/healthz", "port": 8080}},
                            "livenessProbe": {"httpGet": {"path": "/healthz", "port": 8080}},
                        }
                    ],
                },
            },
        },
        "status": {"replicas": replicas},
    }


def make_pod(name: str, phase: str = "Running", ready: bool = True, deleting: bool = False, **status) -> dict:
    metadata = {"name": name}
    if deleting:
        metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    pod_status = {
        "phase": phase,
        "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
    }
    pod_status.update(status)
    return {"metadata": metadata, "status": pod_status}


@pytest.fixture
def web_manifest_file(tmp_path):
    path = tmp_path / "tether.yml"
    path.write_text(WEB_MANIFEST)
    return path


@pytest.fixture
def web_manifest(web_manifest_file) -> Dev:
    return Dev.load(web_manifest_file)


@pytest.fixture
def deployment_factory():
    return make_deployment


@pytest.fixture
def pod_factory():
    return make_pod


@pytest.fixture
def dev_mode_config() -> DevModeConfig:
    return DevModeConfig(developer="alice")


@pytest.fixture
def wait_config() -> WaitConfig:
    return WaitConfig(
        max_attempts=5,
        poll_interval_seconds=0.001,
        workload_check_every=2,
        restart_max_iterations=3,
        restart_interval_seconds=0.001,
        restart_log_every=1,
    )


@pytest.fixture
def tether_config(dev_mode_config, wait_config) -> TetherConfig:
    return TetherConfig(
        k8s=K8sConfig(kubeconfig_path=None, namespace="default", api_qps=100.0),
        dev_mode=dev_mode_config,
        wait=wait_config,
    )


@pytest.fixture
def mock_api_client():
    """Create a K8S ApiClient that only serializes, it never reaches a cluster."""
    return client.ApiClient()


@pytest.fixture
def k8s_api_client(mock_api_client):
    """Create K8sApiClient instance."""
    return K8sApiClient(
        api_client=mock_api_client,
        namespace="tether-test",
        qps=100.0,
    )


@pytest.fixture
def mock_api():
    """Create mock K8sApiClient holding a fake set of deployments."""
    api = MagicMock(spec=K8sApiClient)
    api.namespace = "default"
    api.deployments = {}

    async def get_deployment(name):
        if name not in api.deployments:
            raise NotFoundError(f"get deployment '{name}' not found in namespace 'default'")
        return copy.deepcopy(api.deployments[name])

    async def list_deployments(label_selector):
        wanted = dict(pair.split("=", 1) for pair in label_selector.split(", "))
        return [
            copy.deepcopy(d)
            for d in api.deployments.values()
            if wanted.items() <= (d["metadata"].get("labels") or {}).items()
        ]

    async def store(body):
        api.deployments[body["metadata"]["name"]] = copy.deepcopy(body)
        return copy.deepcopy(body)

    api.get_deployment.side_effect = get_deployment
    api.list_deployments.side_effect = list_deployments
    api.create_deployment.side_effect = store
    api.replace_deployment.side_effect = store
    return api
