"""
FastAPI Application Entry Point.
Initializes the FastAPI app with middleware, CORS, error handlers and routes.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ephemera.config import settings
from ephemera.core.cache import cache
from ephemera.core.database import engine
from ephemera.core.websocket import connection_manager

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    await cache.connect()
    logger.info(f"[STARTUP] Ephemera server started ({settings.environment})")
    yield
    # Shutdown
    await cache.disconnect()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title="Ephemera Chat Server",
    description="Chat backend with delivery, read, played and view-once acknowledgments",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

from ephemera.api.v1 import messages, rooms, sessions, users

# Rate limiter lives with the send routes it decorates
app.state.limiter = messages.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# CORS Middleware
# Note: For WebSocket connections, CORS is handled by Socket.IO itself (via cors_allowed_origins)
cors_origins = settings.get_allowed_origins_list()
logger.info(f"[STARTUP] CORS allowed origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers: every error body is {"error": ...}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"[ERROR] Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
        exc_info=exc
    )
    return JSONResponse(status_code=500, content={"error": "Server error"})


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "environment": settings.environment,
            "active_connections": len(connection_manager.connections),
        }
    )


# Uploaded voice notes
Path(settings.media_root).mkdir(parents=True, exist_ok=True)
media_mount = settings.media_base_url if settings.media_base_url.startswith("/") else "/media"
app.mount(media_mount, StaticFiles(directory=settings.media_root), name="media")


# Include API routers
app.include_router(
    messages.router,
    prefix="/api/messages",
    tags=["Messages"]
)

app.include_router(
    rooms.router,
    prefix="/api/rooms",
    tags=["Rooms"]
)

app.include_router(
    sessions.router,
    prefix="/api/sessions",
    tags=["Sessions"]
)

app.include_router(
    users.router,
    prefix="/api/users",
    tags=["Users"]
)

# Save reference to FastAPI app (for testing)
fastapi_app = app

# Wrap FastAPI inside Socket.IO ASGIApp - this becomes the final ASGI app
# Client connects to: wss://domain/socket.io/?EIO=4&transport=websocket
app = connection_manager.get_asgi_app(fastapi_app)
