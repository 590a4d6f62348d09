"""
FastAPI application entry point for SEOLens.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seolens.api.v1.router import api_router
from seolens.config import settings
from seolens.core.exceptions import StorageError
from seolens.database import init_db
from seolens.services.seo_service import build_seo_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the shared analysis service; close provider clients on exit."""
    await init_db()
    app.state.seo_service = build_seo_service()
    logger.info(
        f"SEOLens started (content analysis: "
        f"{'enabled' if app.state.seo_service.llm_client else 'default signals'})"
    )
    yield
    await app.state.seo_service.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Issue storage unavailable"},
    )


def _capabilities(request: Request) -> dict:
    service = getattr(request.app.state, "seo_service", None)
    if service is None:
        return {}
    return {
        "content_analysis": service.llm_client is not None,
        "pagespeed": service.speed_estimator.pagespeed is not None,
        "issue_tracking": service.tracker is not None,
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check with the analysis features this instance has configured."""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "capabilities": _capabilities(request),
    }


@app.get(f"{settings.API_V1_STR}/health")
async def api_health_check():
    """API health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}
