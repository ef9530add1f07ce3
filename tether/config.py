from dataclasses import dataclass, field
from pathlib import Path

import yaml

from tether import env_vars
from tether.logger import init_logger

logger = init_logger(__name__)


@dataclass
class K8sConfig:
    kubeconfig_path: str | None = field(default_factory=lambda: env_vars.TETHER_KUBECONFIG)
    namespace: str = field(default_factory=lambda: env_vars.TETHER_NAMESPACE)
    api_qps: float = field(default_factory=lambda: env_vars.TETHER_K8S_API_QPS)


@dataclass
class SyncSidecarConfig:
    image: str = "tether/syncthing:1.3.0"
    gui_port: int = 8384
    sync_port: int = 22000
    # namespace-wide limits applied to every sync sidecar
    limits_cpu: str = "1"
    limits_memory: str = "256Mi"


@dataclass
class DevModeConfig:
    termination_grace_period_seconds: int = 0
    sandbox_replicas: int = 1
    dev_replicas: int = 1
    default_image: str = "tether/desk:latest"
    init_image: str = "tether/bin"
    developer: str = field(default_factory=lambda: env_vars.TETHER_DEVELOPER)
    sync: SyncSidecarConfig = field(default_factory=SyncSidecarConfig)

    def __post_init__(self) -> None:
        if isinstance(self.sync, dict):
            self.sync = SyncSidecarConfig(**self.sync)


@dataclass
class WaitConfig:
    """Bounds for the pod polling loops."""

    max_attempts: int = 600
    poll_interval_seconds: float = 0.5
    # the owning workload is inspected once every N attempts while no pod exists
    workload_check_every: int = 10
    restart_max_iterations: int = 60
    restart_interval_seconds: float = 1.0
    # progress is logged at info level once every N restart iterations
    restart_log_every: int = 5

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.workload_check_every <= 0:
            raise ValueError("workload_check_every must be positive")
        if self.restart_max_iterations <= 0:
            raise ValueError("restart_max_iterations must be positive")


@dataclass
class TetherConfig:
    k8s: K8sConfig = field(default_factory=K8sConfig)
    dev_mode: DevModeConfig = field(default_factory=DevModeConfig)
    wait: WaitConfig = field(default_factory=WaitConfig)

    @classmethod
    def from_env(cls, config_path: str | None = None):
        if not config_path:
            config_path = env_vars.TETHER_CONFIG

        if not config_path:
            return cls()

        config_file = Path(config_path)

        if not config_file.exists():
            raise Exception(f"config file {config_file} not found")

        config: dict
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        kwargs = {}
        if "k8s" in config:
            kwargs["k8s"] = K8sConfig(**config["k8s"])
        if "dev_mode" in config:
            kwargs["dev_mode"] = DevModeConfig(**config["dev_mode"])
        if "wait" in config:
            kwargs["wait"] = WaitConfig(**config["wait"])

        return cls(**kwargs)

    def __post_init__(self) -> None:
        logger.debug(f"init TetherConfig: {self}")
