"""
REHABCOACH Backend API
Stroke-Rehabilitation Exercise Coaching

FastAPI application entry point. Clients stream pose landmarks per frame;
the movement-analysis engine returns form, rep and coaching feedback.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

# Core utilities
from core.config import settings
from shared.utils import parse_log_level, setup_logger

# Service routers
from rehab_service.router import router as coaching_router
from rehab_service.models import get_session_manager

# Setup logging
log_level = parse_log_level(settings.LOG_LEVEL)
setup_logger("rehab_service", level=log_level)
logger = setup_logger("rehabcoach.main", level=log_level)
request_logger = setup_logger("rehabcoach.requests", level=log_level)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        request_logger.debug(f"{request.method} {request.url.path} from {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.exception(
                f"{request.method} {request.url.path} -> ERROR: {type(e).__name__}: {e} ({process_time:.1f}ms)"
            )
            raise

        process_time = (time.time() - start_time) * 1000
        log = request_logger.warning if response.status_code >= 400 else request_logger.info
        log(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.1f}ms)")

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info(f"{settings.APP_NAME} API starting up...")
    manager = get_session_manager()
    logger.info(f"Session capacity: {manager.max_sessions}")
    logger.info(f"{settings.APP_NAME} API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info(f"{settings.APP_NAME} API shutting down...")
    for session_id in list(manager.active_sessions):
        manager.cleanup_session(session_id)
    logger.info("Shutdown complete")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Stroke-Rehabilitation Exercise Coaching - Movement Analysis",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "rehabcoach-api",
        "active_sessions": get_session_manager().active_count
    }


# Include service routers
app.include_router(coaching_router, prefix="/api/coaching", tags=["Coaching"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
