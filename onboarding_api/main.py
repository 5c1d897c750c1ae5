"""
FastAPI application for the onboarding dashboard.

Mounts the dashboard cards under /api/v1/dashboard and system health under
/api/v1/system. Every request is traced with an X-Request-ID header and
timed; the caller's X-Username is bound into the log context.
"""

import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onboarding_api import __version__
from onboarding_api.config import get_settings
from onboarding_api.routers import dashboard, system
from onboarding_api.utils.logging import bind_request_context, configure_logging, get_logger

# Configure logging at module level
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Prepare the DuckDB directory on startup and log shutdown."""
    settings = get_settings()

    # Startup
    logger.info(
        "application_startup",
        version=app.version,
        dev_mode=settings.dev_mode,
        db_path=settings.db_path,
        default_period=settings.default_period,
        weekly_grid_weeks=settings.weekly_grid_weeks,
    )

    # DuckDB creates the file but not its parent directory
    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)

    yield

    # Shutdown
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Build the dashboard application with CORS, tracing and routers."""
    settings = get_settings()

    app = FastAPI(
        title="Onboarding Dashboard API",
        description="BRD dashboard metrics: status transitions, prefill rates and weekly upload grids",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS for the dashboard frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Bind request context, time the request and echo X-Request-ID."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_request_context(request_id, request.headers.get("X-Username"))
        started = time.perf_counter()

        logger.info("request_started", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            # Unhandled errors still answer in the dashboard envelope
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": "Internal server error",
                    "data": None,
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    # Load balancer health check
    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "healthy", "version": app.version}

    app.include_router(dashboard.router, prefix="/api/v1/dashboard", tags=["Dashboard"])
    app.include_router(system.router, prefix="/api/v1/system", tags=["System"])

    logger.info("application_configured", routers_count=2)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "onboarding_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
