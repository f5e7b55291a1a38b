"""Error kinds raised by the light registry services.

Each error carries a stable ``error_code`` and the HTTP status the API
layer answers with. Services raise them; ``app.main`` renders them.
"""
from fastapi import status


class LightRegistryError(Exception):
    """Base class for registry failures reported to the caller."""

    error_code = "LIGHT_REGISTRY_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "errorCode": self.error_code,
            "message": self.message,
        }


class NotFound(LightRegistryError):
    """Referenced light or history entry does not exist."""

    error_code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidVillageCode(LightRegistryError):
    error_code = "INVALID_VILLAGE_CODE"


class MalformedCoordinate(LightRegistryError):
    error_code = "MALFORMED_COORDINATE"


class InvalidAttachment(LightRegistryError):
    error_code = "INVALID_ATTACHMENT"


class ConcurrencyTimeout(LightRegistryError):
    """The mutation lock could not be acquired in time."""

    error_code = "CONCURRENCY_TIMEOUT"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class StorageUnavailable(LightRegistryError):
    """The backing store rejected or could not complete a read/write."""

    error_code = "STORAGE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class LightAlreadyExists(LightRegistryError):
    """A new light was given an explicit id that is already in use."""

    error_code = "LIGHT_ALREADY_EXISTS"
    status_code = status.HTTP_409_CONFLICT


class RepairAlreadyClosed(LightRegistryError):
    """A repair report that was already completed was completed again."""

    error_code = "REPAIR_ALREADY_CLOSED"
    status_code = status.HTTP_409_CONFLICT
