"""API v1 router aggregation."""
from fastapi import APIRouter

from app.api.v1.lights import router as lights_router
from app.api.v1.history import router as history_router
from app.api.v1.repairs import router as repairs_router
from app.api.v1.villages import router as villages_router
from app.api.v1.storage_files import router as storage_files_router

router = APIRouter()

router.include_router(lights_router)
router.include_router(history_router)
router.include_router(repairs_router)
router.include_router(villages_router)
router.include_router(storage_files_router)
