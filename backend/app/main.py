"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.database import init_db
from app.api.v1 import router as api_v1_router
from app.services.errors import LightRegistryError
from app.services.village_resolver import get_regions

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting %s...", settings.APP_NAME)
    if settings.RECORD_STORE == "database" and settings.DATABASE_URL.startswith("sqlite"):
        # SQLite is only used for local development; PostgreSQL is migrated by alembic
        init_db()
    regions = get_regions()
    if not regions:
        logger.warning("No village boundaries loaded; every point resolves to the fallback village")
    yield
    # Shutdown
    logger.info("Shutting down %s...", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="路燈位置與置換紀錄管理",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LightRegistryError)
async def light_registry_error_handler(request: Request, exc: LightRegistryError):
    """Render registry failures as labeled error bodies."""
    logger.info("%s %s failed: %s %s", request.method, request.url.path, exc.error_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include API routers
app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.APP_NAME}
