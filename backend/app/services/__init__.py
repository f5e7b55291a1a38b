"""Services exports."""
from app.services.errors import (
    LightRegistryError,
    NotFound,
    InvalidVillageCode,
    MalformedCoordinate,
    InvalidAttachment,
    ConcurrencyTimeout,
    StorageUnavailable,
    LightAlreadyExists,
    RepairAlreadyClosed,
)

__all__ = [
    "LightRegistryError",
    "NotFound",
    "InvalidVillageCode",
    "MalformedCoordinate",
    "InvalidAttachment",
    "ConcurrencyTimeout",
    "StorageUnavailable",
    "LightAlreadyExists",
    "RepairAlreadyClosed",
]
