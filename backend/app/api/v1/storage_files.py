"""Local storage file serving endpoint.

Serves attachment photos from local storage when STORAGE_BACKEND=local.
"""
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
from pathlib import Path

from app.services.storage import get_storage

router = APIRouter(prefix="/storage", tags=["Storage"])


@router.get("/files/{path:path}")
async def serve_storage_file(path: str):
    """Serve a file from local storage."""
    # Reject obvious path traversal attempts early
    if ".." in path or path.startswith("/"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    storage = get_storage()
    try:
        local_path = storage.get_local_path(path)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    # Only local storage exposes file paths
    if not local_path or not Path(local_path).is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return FileResponse(local_path, media_type="image/jpeg")
