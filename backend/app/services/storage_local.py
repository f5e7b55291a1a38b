"""Local filesystem storage backend implementation.

Stores attachments on local disk using the same key structure as MinIO.
Files are served back through /api/v1/storage/files/.
"""
from pathlib import Path
from typing import Optional

from app.services.storage_base import StorageBackend


class LocalStorageBackend(StorageBackend):
    """Storage backend using local filesystem."""

    def __init__(self, base_path: str, url_prefix: str = "/api/v1/storage/files"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _resolve(self, object_name: str) -> Path:
        """Resolve object name to absolute path with path traversal protection."""
        if not object_name or object_name.startswith("/"):
            raise ValueError(f"Invalid object name: {object_name}")
        target = (self.base_path / object_name).resolve()
        if not target.is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Path traversal detected: {object_name}")
        return target

    def upload_bytes(
        self,
        data: bytes,
        object_name: str,
        content_type: Optional[str] = None,
    ) -> str:
        dest = self._resolve(object_name)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return object_name

    def get_url(self, object_name: str) -> str:
        return f"{self.url_prefix}/{object_name}"

    def delete_object(self, object_name: str) -> None:
        path = self._resolve(object_name)
        if path.exists():
            path.unlink()

    def object_exists(self, object_name: str) -> bool:
        return self._resolve(object_name).exists()

    def get_local_path(self, object_name: str) -> Optional[str]:
        """Return local filesystem path for direct access."""
        return str(self._resolve(object_name))
