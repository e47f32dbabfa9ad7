"""
Incident Watch - FastAPI Application Entry Point

Citizens report location-tagged incidents; moderators verify them before
they become public, and each verified incident is routed to the nearest
police station.

DESIGN PRINCIPLES:
- Nothing is public until a moderator verifies it
- Every moderator decision is audited in the same transaction as the change
- Notifications are fire-and-forget and never fail a request
- Submission and login are rate limited per publisher / per address
"""

import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.errors import AppError, RateLimited
from app.core.settings import settings
from app.routes import admin, auth, health, reports, stations
from app.services.container import get_services

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Incident reporting with moderation, jurisdiction routing and an audit trail",
    debug=settings.DEBUG,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors carry their own status code."""
    content = {"success": False, "message": exc.message, "code": exc.code}
    if exc.details is not None:
        content["details"] = exc.details

    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(int(exc.retry_after + 0.999))}

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Validation failed",
            "code": "VALIDATION_ERROR",
            "details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()],
        },
    )


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log the full traceback; the caller gets a generic message only."""
    logger.exception(f"🔥 Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error", "code": "INTERNAL_ERROR"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _sweep_loop(interval: int) -> None:
    """Periodically drop expired one-time codes and elapsed rate windows."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await asyncio.get_running_loop().run_in_executor(None, get_services().sweep)
            if removed:
                logger.info(f"[SWEEP] Removed {removed} expired record(s)")
        except Exception:
            logger.exception("[SWEEP] Sweep failed")


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Store connection, notification worker, expiry sweeper.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    services = get_services()
    services.dispatcher.start()
    app.state.sweeper = asyncio.create_task(_sweep_loop(settings.OTP_SWEEP_INTERVAL_SECONDS))


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on application shutdown.
    """
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        sweeper.cancel()
    get_services().dispatcher.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(reports.router)
app.include_router(stations.router)
app.include_router(admin.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
    }
