"""K8s API Client with rate limiting.

This module provides a wrapper around the Kubernetes AppsV1Api and CoreV1Api with:
- Rate limiting using aiolimiter (configurable QPS)
- Consistent error handling (ApiException -> NotFoundError / ClusterApiError)
- Plain dict results, serialized the same way the API Server returns them

Deployments and pods are handed around as camelCase dicts so they can be
mutated, compared and stored in annotations without going through the
generated model classes.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from aiolimiter import AsyncLimiter
from kubernetes import client
from kubernetes.client.rest import ApiException

from tether.common.exceptions import ClusterApiError, NotFoundError
from tether.logger import init_logger

logger = init_logger(__name__)


class K8sApiClient:
    """Namespaced access to deployments and pods.

    Every call is a single synchronous request to the API Server, run in a
    worker thread and throttled by a shared token bucket. Reads are never
    cached: callers that poll must observe fresh state on each call.
    """

    def __init__(
        self,
        api_client: client.ApiClient,
        namespace: str,
        qps: float = 5.0,
    ):
        """Initialize K8s API client.

        Args:
            api_client: Kubernetes ApiClient instance
            namespace: Namespace for operations
            qps: Queries per second limit (default: 5 for small clusters)
        """
        if not namespace:
            raise ValueError("empty namespace")
        self._api_client = api_client
        self._namespace = namespace
        self._apps_api = client.AppsV1Api(api_client)
        self._core_api = client.CoreV1Api(api_client)

        self._rate_limiter = AsyncLimiter(max_rate=qps, time_period=1.0)

    @property
    def namespace(self) -> str:
        return self._namespace

    async def _call(self, description: str, func: Callable, **kwargs) -> Any:
        async with self._rate_limiter:
            try:
                result = await asyncio.to_thread(func, **kwargs)
            except ApiException as e:
                if e.status == 404:
                    raise NotFoundError(f"{description} not found in namespace '{self._namespace}'") from e
                logger.info(f"error calling the API Server to {description}: {e.status} {e.reason}")
                raise ClusterApiError(f"failed to {description}: {e.reason}", status=e.status) from e
        return self._api_client.sanitize_for_serialization(result)

    async def get_deployment(self, name: str) -> dict[str, Any]:
        return await self._call(
            f"get deployment '{name}'",
            self._apps_api.read_namespaced_deployment,
            name=name,
            namespace=self._namespace,
        )

    async def list_deployments(self, label_selector: str) -> list[dict[str, Any]]:
        result = await self._call(
            "list deployments",
            self._apps_api.list_namespaced_deployment,
            namespace=self._namespace,
            label_selector=label_selector,
        )
        return result.get("items") or []

    async def create_deployment(self, body: dict[str, Any]) -> dict[str, Any]:
        name = body.get("metadata", {}).get("name")
        return await self._call(
            f"create deployment '{name}'",
            self._apps_api.create_namespaced_deployment,
            namespace=self._namespace,
            body=body,
        )

    async def replace_deployment(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace the whole deployment object."""
        name = body.get("metadata", {}).get("name")
        return await self._call(
            f"update deployment '{name}'",
            self._apps_api.replace_namespaced_deployment,
            name=name,
            namespace=self._namespace,
            body=body,
        )

    async def delete_deployment(self, name: str, grace_period_seconds: int | None = None) -> dict[str, Any]:
        return await self._call(
            f"delete deployment '{name}'",
            self._apps_api.delete_namespaced_deployment,
            name=name,
            namespace=self._namespace,
            grace_period_seconds=grace_period_seconds,
        )

    async def get_pod(self, name: str) -> dict[str, Any]:
        return await self._call(
            f"get pod '{name}'",
            self._core_api.read_namespaced_pod,
            name=name,
            namespace=self._namespace,
        )

    async def list_pods(self, label_selector: str) -> list[dict[str, Any]]:
        result = await self._call(
            "list pods",
            self._core_api.list_namespaced_pod,
            namespace=self._namespace,
            label_selector=label_selector,
        )
        return result.get("items") or []

    async def delete_pod(self, name: str, grace_period_seconds: int | None = None) -> dict[str, Any]:
        return await self._call(
            f"delete pod '{name}'",
            self._core_api.delete_namespaced_pod,
            name=name,
            namespace=self._namespace,
            grace_period_seconds=grace_period_seconds,
        )
