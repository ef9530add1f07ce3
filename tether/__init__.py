from ._codes import codes
from .common.exceptions import (
    ClusterApiError,
    ManifestValidationError,
    NotFoundError,
    TetherException,
    WaitCancelledError,
    WaitTimeoutError,
    raise_for_code,
)

__all__ = [
    "codes",
    "TetherException",
    "ManifestValidationError",
    "NotFoundError",
    "ClusterApiError",
    "WaitTimeoutError",
    "WaitCancelledError",
    "raise_for_code",
]
