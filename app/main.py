"""
Ripple Civic Reports - FastAPI Application Entry Point

Residents report civic issues with a photo and location; admins triage,
supervisors assign workers and complete the work, and an image classifier
verifies completion before a report is resolved.

DESIGN PRINCIPLES:
- Duplicate reports of the same issue in the same block are merged
- Status changes follow a strict state machine
- The classifier only auto-resolves when it is confident; otherwise a human decides
- Notifications are best-effort and never block an action
"""

import logging
import sys
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.errors import InvalidTransitionError, LifecycleError
from app.core.settings import settings
from app.routes import admin, auth, health, reports, supervisor
from app.services.notification_service import shutdown_notification_dispatcher

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Civic issue reporting with triage, assignment and ML-verified resolution",
    debug=settings.DEBUG
)


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    """Map lifecycle errors to their HTTP status codes."""
    logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    content = {"detail": exc.message}
    if isinstance(exc, InvalidTransitionError):
        content["current_status"] = exc.current_status
    return JSONResponse(status_code=exc.status_code, content=content)


# Global exception handler to catch ALL other exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: Firestore connection (skipped in mock DB mode)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if settings.USE_MOCK_DB:
        logger.info("USE_MOCK_DB=true, using the in-memory report store")
        return

    from app.config.firebase import initialize_firestore
    try:
        initialize_firestore()
    except RuntimeError as e:
        logger.warning(f"Firestore initialization failed: {e}")
        logger.warning("The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on application shutdown.
    """
    shutdown_notification_dispatcher()
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(reports.router)
app.include_router(admin.router)
app.include_router(supervisor.router)


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
        "health": "/health"
    }
