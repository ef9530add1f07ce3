"""Kubernetes access and dev mode orchestration."""

from tether.k8s.api_client import K8sApiClient
from tether.k8s.operator import DevModeOperator

__all__ = ["K8sApiClient", "DevModeOperator"]
