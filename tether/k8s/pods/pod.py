"""Waiting for dev environment pods.

Both loops here poll the API Server at a fixed interval and re-evaluate the
listed pods from scratch on every iteration: a pod seen in one listing may
be gone in the next, so no progress is carried over except for logging.
"""

import asyncio
from typing import Any

from tether.common.constants import Labels, Names
from tether.common.exceptions import (
    ClusterApiError,
    ImagePullError,
    InitContainerError,
    NotFoundError,
    PodFailedError,
    QuotaExceededError,
    WaitCancelledError,
    WaitTimeoutError,
)
from tether.config import WaitConfig
from tether.k8s.api_client import K8sApiClient
from tether.k8s.deployments import crud
from tether.logger import init_logger
from tether.model.dev import Dev

logger = init_logger(__name__)

POD_RUNNING = "Running"
POD_PENDING = "Pending"
POD_FAILED = "Failed"

IMAGE_PULL_REASONS = ("ErrImagePull", "ImagePullBackOff")
FAILED_CREATE_REASON = "FailedCreate"
QUOTA_MESSAGE = "exceeded quota"

INIT_CONTAINER_FAILED_MESSAGE = (
    "Error initializing the dev environment volume. This is probably because your development image "
    "is not root. Please, add securityContext.runAsUser and securityContext.fsGroup to your manifest"
)
TIMEOUT_MESSAGE = (
    "kubernetes is taking too long to create the development environment. Please check for errors and try again"
)
LIST_FAILED_MESSAGE = "failed to retrieve dev environment information"


class PeriodicCheck:
    """Counter that is due on its first tick and every ``every`` ticks after that."""

    def __init__(self, every: int):
        if every <= 0:
            raise ValueError("every must be positive")
        self._every = every
        self._countdown = 0

    def tick(self) -> bool:
        if self._countdown == 0:
            self._countdown = self._every - 1
            return True
        self._countdown -= 1
        return False


class PodReadinessPoller:
    """Waits for the single running pod of a dev environment."""

    def __init__(self, api: K8sApiClient, config: WaitConfig):
        self._api = api
        self._config = config

    async def get_by_label(
        self,
        dev: Dev,
        label: str,
        wait_until_deployed: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Return the one running, non-terminating pod labelled ``<label>=<dev.name>``.

        Args:
            dev: Manifest of the environment
            label: Pod label carrying the session name
            wait_until_deployed: keep polling when the deployment is missing or
                out of quota instead of failing
            cancel_event: when set, the wait stops at the next attempt boundary

        Raises:
            ClusterApiError: listing pods failed
            InitContainerError / ImagePullError: a pod can never start
            QuotaExceededError: the deployment cannot create pods
            WaitCancelledError: ``cancel_event`` was set
            WaitTimeoutError: no single running pod within the attempt budget
        """
        selector = f"{label}={dev.name}"
        workload_check = PeriodicCheck(self._config.workload_check_every)

        for _ in range(self._config.max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                logger.debug(f"cancelling wait for pods {selector}")
                raise WaitCancelledError(f"cancelled while waiting for pods {selector}")

            try:
                pods = await self._api.list_pods(selector)
            except (ClusterApiError, NotFoundError) as e:
                logger.info(f"error listing pods: {e}")
                raise ClusterApiError(LIST_FAILED_MESSAGE) from e

            if workload_check.tick() and not pods:
                logger.info(f"Didn't find any pods for {selector}, checking if the deployment is down")
                await self._check_deployment_failed(dev, wait_until_deployed)

            running = []
            for pod in pods:
                if _phase(pod) == POD_RUNNING:
                    if not _is_deleting(pod):
                        running.append(pod)
                else:
                    logger.debug(f"pod {_name(pod)} is on {_phase(pod)}, waiting for it to be running")
                    raise_for_pod_failure(pod)

            if len(running) == 1:
                logger.debug(f"pod/{_name(running[0])} is {POD_RUNNING}")
                return running[0]

            if await self._sleep(cancel_event):
                logger.debug(f"cancelling wait for pods {selector}")
                raise WaitCancelledError(f"cancelled while waiting for pods {selector}")

        logger.debug(f"dev pod wasn't running after {self._config.max_attempts} attempts")
        raise WaitTimeoutError(TIMEOUT_MESSAGE)

    async def _check_deployment_failed(self, dev: Dev, wait_until_deployed: bool) -> None:
        try:
            d = await crud.get(self._api, dev.selector)
        except NotFoundError:
            if not wait_until_deployed:
                raise
            logger.info(f"deployment for {dev.selector.describe()} not found yet, waiting")
            return
        except ClusterApiError as e:
            logger.info(f"failed to get deployment information: {e}")
            return

        for condition in (d.get("status") or {}).get("conditions") or []:
            if (
                condition.get("type") == "ReplicaFailure"
                and condition.get("reason") == FAILED_CREATE_REASON
                and condition.get("status") == "True"
                and QUOTA_MESSAGE in (condition.get("message") or "")
            ):
                if wait_until_deployed:
                    logger.info(f"quota exceeded for {dev.selector.describe()}, waiting until it can be scheduled")
                    return
                raise QuotaExceededError(f"Quota exceeded: {condition.get('message')}")

    async def _sleep(self, cancel_event: asyncio.Event | None) -> bool:
        """Sleep one poll interval. Returns True if ``cancel_event`` fired meanwhile."""
        if cancel_event is None:
            await asyncio.sleep(self._config.poll_interval_seconds)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self._config.poll_interval_seconds)
        except asyncio.TimeoutError:
            return False
        return True


class RestartOrchestrator:
    """Replaces the detached pods of a session and waits for the new ones."""

    def __init__(self, api: K8sApiClient, config: WaitConfig, grace_period_seconds: int = 0):
        self._api = api
        self._config = config
        self._grace_period_seconds = grace_period_seconds

    async def restart(self, dev: Dev) -> None:
        selector = f"{Labels.DETACHED}={dev.name}"
        try:
            pods = await self._api.list_pods(selector)
        except ClusterApiError as e:
            logger.info(f"error listing pods to restart: {e}")
            raise ClusterApiError(LIST_FAILED_MESSAGE) from e

        for pod in pods:
            try:
                await self._api.delete_pod(_name(pod), grace_period_seconds=self._grace_period_seconds)
            except NotFoundError:
                logger.debug(f"pod/{_name(pod)} was already deleted")

        await self.wait_until_running(selector)

    async def wait_until_running(self, selector: str) -> None:
        not_ready: set[str] = set()

        for i in range(self._config.restart_max_iterations):
            verbose = i % self._config.restart_log_every == 0
            if verbose:
                logger.info("checking if pods are ready")

            try:
                pods = await self._api.list_pods(selector)
            except ClusterApiError as e:
                logger.info(f"error listing pods to check status after restart: {e}")
                raise ClusterApiError(LIST_FAILED_MESSAGE) from e

            all_running = True
            for pod in pods:
                name = _name(pod)
                phase = _phase(pod)
                if phase == POD_PENDING:
                    all_running = False
                    not_ready.add(name)
                elif phase == POD_FAILED:
                    raise PodFailedError(f"Pod {name} failed to start")
                elif phase == POD_RUNNING:
                    if is_running(pod):
                        if name in not_ready:
                            logger.info(f"pod/{name} is ready")
                            not_ready.discard(name)
                    else:
                        all_running = False
                        not_ready.add(name)
                        if verbose:
                            logger.info(f"pod/{name} is not ready")

            if all_running:
                logger.info("pods are ready")
                return

            await asyncio.sleep(self._config.restart_interval_seconds)

        elapsed = self._config.restart_max_iterations * self._config.restart_interval_seconds
        raise WaitTimeoutError(f"Pod(s) {','.join(sorted(not_ready))} didn't restart after {elapsed:g} seconds")


async def exists(api: K8sApiClient, pod_name: str) -> bool:
    """Return whether the pod can still be read and is not being deleted."""
    try:
        pod = await api.get_pod(pod_name)
    except (NotFoundError, ClusterApiError):
        return False
    return not _is_deleting(pod)


def is_running(pod: dict[str, Any]) -> bool:
    if _phase(pod) != POD_RUNNING:
        return False

    if _is_deleting(pod):
        return False

    for condition in (pod.get("status") or {}).get("conditions") or []:
        if condition.get("type") == "Ready" and condition.get("status") == "True":
            return True

    return False


def raise_for_pod_failure(pod: dict[str, Any]) -> None:
    """Raise if an init container of ``pod`` shows the pod can never start."""
    for status in (pod.get("status") or {}).get("initContainerStatuses") or []:
        state = status.get("state") or {}
        terminated = state.get("terminated")
        waiting = state.get("waiting")
        if status.get("name") == Names.INIT_CONTAINER and terminated and terminated.get("exitCode", 0) != 0:
            raise InitContainerError(INIT_CONTAINER_FAILED_MESSAGE)
        if waiting and waiting.get("reason") in IMAGE_PULL_REASONS:
            raise ImagePullError(waiting.get("message") or f"failed to pull the image of {status.get('name')}")


def _name(pod: dict[str, Any]) -> str:
    return (pod.get("metadata") or {}).get("name", "")


def _phase(pod: dict[str, Any]) -> str:
    return (pod.get("status") or {}).get("phase", "")


def _is_deleting(pod: dict[str, Any]) -> bool:
    return (pod.get("metadata") or {}).get("deletionTimestamp") is not None
