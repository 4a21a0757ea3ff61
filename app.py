import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
load_dotenv()  # Load .env file before importing settings

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from core.config import settings
from core.containers import TransportContainer, build_transport_container
from core.database import check_connection
from core.rate_limiter import limiter, rate_limit_exceeded_handler, RateLimits
from src.transport_bc.shared.domain.errors import RateLimitedError, TransportError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_with_snapshot_sweep(app: FastAPI):
    """Start the periodic location snapshot sweep unless Celery beat owns it."""
    scheduler = app.state.container.snapshot_scheduler()
    sweep_in_api = settings.tracking.SNAPSHOT_SWEEP_IN_API

    if sweep_in_api:
        await scheduler.start()
    else:
        logger.info("Snapshot sweep delegated to Celery beat")

    yield

    if sweep_in_api:
        await scheduler.stop()


async def transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


async def rate_limited_error_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
    retry_after = max(1, round(exc.retry_after))
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": exc.message,
            "retry_after": retry_after,
            "reset_at": exc.reset_at.isoformat(),
        },
        headers={"Retry-After": str(retry_after)},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Invalid request: {details}"},
    )


def create_app(container: Optional[TransportContainer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Tests pass a container with in-memory backends; otherwise one is built
    from settings.
    """
    app = FastAPI(
        title="School Transport Tracking API",
        description="Real-time vehicle tracking, geofencing, trip progress and ETA for school buses",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan_with_snapshot_sweep,
    )
    app.state.container = container or build_transport_container(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL] if settings.is_production else ["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(RateLimitedError, rate_limited_error_handler)
    app.add_exception_handler(TransportError, transport_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Register routers
    from adapters.http.api.transport.routers import tracking_router, eta_router
    app.include_router(tracking_router, prefix="/api/v1/transport")
    app.include_router(eta_router, prefix="/api/v1/transport")

    @app.get("/api/v1/transport/health")
    @limiter.limit(RateLimits.HEALTH)
    def health_check(request: Request):
        """Health check endpoint.

        The ephemeral store and the database are reported separately. Only a
        database outage makes the service unhealthy: the tracking paths fail
        open without the store.
        """
        state = request.app.state.container
        store_ok = state.kv_store().ping()
        database_ok = check_connection(state.session_factory(), max_retries=1)
        snapshot_sweep = state.snapshot_scheduler().status

        body = {
            "success": database_ok,
            "data": {
                "status": "healthy" if database_ok and store_ok else ("degraded" if database_ok else "unhealthy"),
                "kv_store": "up" if store_ok else "down",
                "database": "up" if database_ok else "down",
                "snapshot_sweep": snapshot_sweep,
            },
        }
        return JSONResponse(status_code=200 if database_ok else 503, content=body)

    return app


app = create_app()
