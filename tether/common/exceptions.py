from tether._codes import codes


class TetherException(Exception):
    _code: codes = None

    def __init__(self, message, code: codes = None):
        super().__init__(message)
        self._code = code

    @property
    def code(self):
        return self._code


class ManifestValidationError(TetherException):
    """The manifest failed to parse or violates a naming/pull-policy rule."""

    def __init__(self, message, code: codes = codes.VALIDATION_ERROR):
        super().__init__(message, code)


class NotFoundError(TetherException):
    """A named workload or pod does not exist. Callers may choose to skip it."""

    def __init__(self, message, code: codes = codes.NOT_FOUND):
        super().__init__(message, code)


class AmbiguousMatchError(TetherException):
    def __init__(self, message, code: codes = codes.AMBIGUOUS_MATCH):
        super().__init__(message, code)


class ContainerNotFoundError(TetherException):
    def __init__(self, message, code: codes = codes.CONTAINER_NOT_FOUND):
        super().__init__(message, code)


class CorruptStateError(TetherException):
    """Persisted session metadata on a workload could not be decoded."""

    def __init__(self, message, code: codes = codes.CORRUPT_STATE):
        super().__init__(message, code)


class ClusterApiError(TetherException):
    def __init__(self, message, code: codes = codes.CLUSTER_API_ERROR, status: int | None = None):
        super().__init__(message, code)
        self.status = status


class ClassifiedFailure(TetherException):
    """A terminal failure observed in the cluster with a specific, known cause."""


class QuotaExceededError(ClassifiedFailure):
    def __init__(self, message, code: codes = codes.QUOTA_EXCEEDED):
        super().__init__(message, code)


class ImagePullError(ClassifiedFailure):
    def __init__(self, message, code: codes = codes.IMAGE_PULL_FAILED):
        super().__init__(message, code)


class InitContainerError(ClassifiedFailure):
    def __init__(self, message, code: codes = codes.INIT_CONTAINER_FAILED):
        super().__init__(message, code)


class PodFailedError(ClassifiedFailure):
    def __init__(self, message, code: codes = codes.POD_FAILED):
        super().__init__(message, code)


class WaitTimeoutError(TetherException):
    """A bounded wait ran out of attempts. The cluster may still be progressing."""

    def __init__(self, message, code: codes = codes.TIMEOUT):
        super().__init__(message, code)


class WaitCancelledError(TetherException):
    def __init__(self, message, code: codes = codes.CANCELLED):
        super().__init__(message, code)


_CODE_TO_EXCEPTION: dict[codes, type[TetherException]] = {
    codes.VALIDATION_ERROR: ManifestValidationError,
    codes.NOT_FOUND: NotFoundError,
    codes.CONTAINER_NOT_FOUND: ContainerNotFoundError,
    codes.AMBIGUOUS_MATCH: AmbiguousMatchError,
    codes.CORRUPT_STATE: CorruptStateError,
    codes.CANCELLED: WaitCancelledError,
    codes.CLUSTER_API_ERROR: ClusterApiError,
    codes.QUOTA_EXCEEDED: QuotaExceededError,
    codes.IMAGE_PULL_FAILED: ImagePullError,
    codes.INIT_CONTAINER_FAILED: InitContainerError,
    codes.POD_FAILED: PodFailedError,
    codes.TIMEOUT: WaitTimeoutError,
}


def raise_for_code(code: codes, message: str):
    if code is None or codes.is_success(code):
        return

    exc_class = _CODE_TO_EXCEPTION.get(code)
    if exc_class is not None:
        raise exc_class(message)
    if codes.is_client_error(code):
        raise ManifestValidationError(message, code=code)
    if codes.is_server_error(code):
        raise ClusterApiError(message, code=code)

    raise TetherException(message, code=code)
