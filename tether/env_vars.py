import getpass
import os
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    TETHER_LOGGING_PATH: str | None = None
    TETHER_LOGGING_FILE_NAME: str | None = None
    TETHER_LOGGING_LEVEL: str | None = None
    TETHER_CONFIG: str | None = None
    TETHER_KUBECONFIG: str | None = None
    TETHER_NAMESPACE: str | None = None
    TETHER_DEVELOPER: str | None = None
    TETHER_K8S_API_QPS: float = 5.0


def _default_developer() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


environment_variables: dict[str, Callable[[], Any]] = {
    "TETHER_LOGGING_PATH": lambda: os.getenv("TETHER_LOGGING_PATH"),
    "TETHER_LOGGING_FILE_NAME": lambda: os.getenv("TETHER_LOGGING_FILE_NAME", "tether.log"),
    "TETHER_LOGGING_LEVEL": lambda: os.getenv("TETHER_LOGGING_LEVEL", "INFO"),
    "TETHER_CONFIG": lambda: os.getenv("TETHER_CONFIG"),
    "TETHER_KUBECONFIG": lambda: os.getenv("TETHER_KUBECONFIG"),
    "TETHER_NAMESPACE": lambda: os.getenv("TETHER_NAMESPACE", "default"),
    "TETHER_DEVELOPER": lambda: os.getenv("TETHER_DEVELOPER") or _default_developer(),
    "TETHER_K8S_API_QPS": lambda: float(os.getenv("TETHER_K8S_API_QPS", "5")),
}


def __getattr__(name: str):
    if name in environment_variables:
        return environment_variables[name]()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def is_set(name: str):
    """Check if an environment variable is explicitly set."""
    if name in environment_variables:
        return name in os.environ
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
