from __future__ import annotations

from enum import IntEnum

__all__ = ["codes"]


class codes(IntEnum):
    """
    Tether status codes enumeration.

    This class extends IntEnum to provide status codes with associated phrase descriptions.
    Each enum member has both an integer value and a phrase attribute for human-readable descriptions.

    The ranges follow the error taxonomy of the dev-mode core:
    4xxx for problems with the caller's input or the state it points at,
    5xxx for failures reported by, or observed in, the cluster.
    """

    _ignore_ = ["phrase"]
    phrase: str = ""

    def __new__(cls, value: int, phrase: str = "") -> codes:
        """
        Create a new codes enum member with both value and phrase.

        Args:
            value: The integer status code value
            phrase: Human-readable description of the status

        Returns:
            A new codes enum member with the phrase attribute set
        """
        obj = int.__new__(cls, value)
        obj._value_ = value
        obj.phrase = phrase
        return obj

    def __str__(self) -> str:
        """Return string representation of the status code value."""
        return str(self.value)

    @classmethod
    def get_reason_phrase(cls, value: int) -> str:
        """
        Get the reason phrase for a given status code value.

        Args:
            value: The integer status code value to look up

        Returns:
            The reason phrase string, or empty string if code not found

        Example:
            >>> codes.get_reason_phrase(2000)
            'OK'
            >>> codes.get_reason_phrase(9999)
            ''
        """
        try:
            return codes(value).phrase
        except ValueError:
            return ""

    @classmethod
    def is_success(cls, value: int) -> bool:
        """True if the code is in the 2000-2999 range."""
        return 2000 <= value <= 2999

    @classmethod
    def is_client_error(cls, value: int) -> bool:
        """True if the code is in the 4000-4999 range."""
        return 4000 <= value <= 4999

    @classmethod
    def is_server_error(cls, value: int) -> bool:
        """True if the code is in the 5000-5999 range."""
        return 5000 <= value <= 5999

    @classmethod
    def is_error(cls, value: int) -> bool:
        """True if the code is in the 4000-5999 range."""
        return 4000 <= value <= 5999

    OK = 2000, "OK"
    """
    Success codes (2xxx)
    """

    VALIDATION_ERROR = 4000, "Validation Error"
    """
    Client error codes (4xxx):

    The manifest or the persisted session state is not usable as given.
    """

    NOT_FOUND = 4004, "Not Found"
    CONTAINER_NOT_FOUND = 4005, "Container Not Found"
    AMBIGUOUS_MATCH = 4009, "Ambiguous Match"
    CORRUPT_STATE = 4022, "Corrupt State"
    CANCELLED = 4099, "Cancelled"

    CLUSTER_API_ERROR = 5000, "Cluster API Error"
    """
    Server error codes (5xxx):

    Transport or server errors from the cluster API and failures
    classified while waiting for pods.
    """

    QUOTA_EXCEEDED = 5001, "Quota Exceeded"
    IMAGE_PULL_FAILED = 5002, "Image Pull Failed"
    INIT_CONTAINER_FAILED = 5003, "Init Container Failed"
    POD_FAILED = 5004, "Pod Failed"
    TIMEOUT = 5040, "Timeout"


# Include lower-case styles for `requests` compatibility.
for code in codes:
    setattr(codes, code._name_.lower(), int(code))
