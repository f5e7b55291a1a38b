"""Model exports."""
from app.models.light import StreetLight, LightHistory
from app.models.lock import RegistryLock, REGISTRY_LOCK_NAME
from app.models.repair import RepairReport

__all__ = [
    "StreetLight",
    "LightHistory",
    "RegistryLock",
    "REGISTRY_LOCK_NAME",
    "RepairReport",
]
