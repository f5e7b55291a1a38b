"""Attachment storage backend abstract base class.

Defines the interface for the backends that hold repair photos attached
to history entries (MinIO, local filesystem).
Consumers should use get_storage() from storage.py to get the active backend.
"""
from abc import ABC, abstractmethod
from typing import Optional


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def upload_bytes(
        self,
        data: bytes,
        object_name: str,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload bytes to storage.

        Args:
            data: Object content
            object_name: Object name/key in storage
            content_type: MIME type of the content

        Returns:
            The object name/key
        """
        ...

    @abstractmethod
    def get_url(self, object_name: str) -> str:
        """URL under which a browser can view the object."""
        ...

    @abstractmethod
    def delete_object(self, object_name: str) -> None:
        """Delete an object from storage."""
        ...

    @abstractmethod
    def object_exists(self, object_name: str) -> bool:
        """Check if an object exists in storage."""
        ...

    def get_local_path(self, object_name: str) -> Optional[str]:
        """Return local filesystem path if the object is on local disk."""
        return None
