"""Storage backend factory.

Returns the appropriate storage backend based on STORAGE_BACKEND config:
- "local": Local filesystem storage under LOCAL_DATA_PATH
- "minio": MinIO/S3 object storage
"""
import logging
import threading
from typing import Optional

from app.config import get_settings
from app.services.storage_base import StorageBackend

logger = logging.getLogger(__name__)

_storage: Optional[StorageBackend] = None
_storage_lock = threading.Lock()


def get_storage() -> StorageBackend:
    """Get the storage backend instance (thread-safe singleton)."""
    global _storage
    if _storage is None:
        with _storage_lock:
            if _storage is None:
                settings = get_settings()
                backend = settings.STORAGE_BACKEND.lower()
                if backend == "minio":
                    from app.services.storage_minio import MinIOStorageBackend
                    _storage = MinIOStorageBackend()
                elif backend == "local":
                    from app.services.storage_local import LocalStorageBackend
                    _storage = LocalStorageBackend(
                        settings.LOCAL_DATA_PATH,
                        url_prefix=f"{settings.API_V1_PREFIX}/storage/files",
                    )
                else:
                    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
                logger.info("Using %s attachment storage", backend)
    return _storage


def set_storage(storage: Optional[StorageBackend]) -> None:
    """Replace the active storage backend (None resets to the configured one)."""
    global _storage
    with _storage_lock:
        _storage = storage
