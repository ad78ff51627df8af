"""
FastAPI application for the BGH cloud bridge.

Wires the long-lived services (BGH service, command queue, SSE broadcaster,
session store) into app.state during the lifespan and tears them down on
shutdown.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bgh_bridge.config import load_settings, parse_origins
from bgh_bridge.services.bgh_service import BGHService
from bgh_bridge.services.command_queue import CommandQueue, RetryPolicy
from bgh_bridge.services.event_stream import EventBroadcaster
from bgh_bridge.utils.errors import BGHServiceError
from bgh_bridge.utils.logging import setup_logging, get_logger
from bgh_bridge.utils.sessions import SessionStore
from bgh_bridge.routes import auth, bgh, health

VERSION = "1.0.0"

# Load environment variables
load_dotenv()

# Setup logging
setup_logging()
log = get_logger(__name__)

# Error code -> HTTP status
ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "AUTHENTICATION_ERROR": status.HTTP_401_UNAUTHORIZED,
    "UPSTREAM_ERROR": status.HTTP_502_BAD_GATEWAY,
    "PROTOCOL_ERROR": status.HTTP_502_BAD_GATEWAY,
    "STATUS_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "INVALID_COMMAND": status.HTTP_400_BAD_REQUEST,
    "QUEUE_CLOSED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Origins always allowed besides CORS_ALLOWED_ORIGINS
DEFAULT_ORIGIN_REGEX = (
    r"^(https?://localhost(:\d+)?|http://127\.0\.0\.1(:\d+)?|capacitor://localhost)$"
)


def status_for_error(error: BGHServiceError) -> int:
    return ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    settings = load_settings()
    setup_logging(settings.log_level)
    log.info("application_starting", version=VERSION, sim_mode=settings.sim_mode)

    broadcaster = EventBroadcaster(heartbeat_interval=settings.heartbeat_interval_seconds)
    bgh_service = BGHService(settings)
    command_queue = CommandQueue(
        bgh_service,
        broadcaster,
        RetryPolicy(
            max_attempts=settings.max_attempts,
            delay=settings.poll_delay_seconds
        )
    )

    app.state.settings = settings
    app.state.bgh_service = bgh_service
    app.state.broadcaster = broadcaster
    app.state.command_queue = command_queue
    app.state.sessions = SessionStore(ttl_seconds=settings.session_ttl_seconds)

    log.info("application_ready")

    yield

    # Shutdown
    log.info("application_shutting_down")
    await command_queue.shutdown()
    broadcaster.close()
    log.info("application_stopped")


# Create FastAPI application
app = FastAPI(
    title="BGH Cloud Bridge",
    version=VERSION,
    description="Queued, confirmed control of BGH Smart Control air conditioners",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_origins(os.getenv("CORS_ALLOWED_ORIGINS")),
    allow_origin_regex=DEFAULT_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BGHServiceError)
async def service_error_handler(request: Request, exc: BGHServiceError):
    """Translate typed service errors into {"code", "message"} responses."""
    status_code = status_for_error(exc)
    log.error(
        "service_error_response",
        path=request.url.path,
        code=exc.code,
        status=status_code,
        error=exc.message
    )
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "message": exc.message}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Return structured details ({"code", "message"}) as the response body."""
    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None)
    )


# Custom exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert Pydantic validation errors to clean, user-friendly messages.
    Prevents exposing internal validation details, URLs, and type information.
    """
    errors = exc.errors()

    # Extract simple error messages
    error_messages = []
    for error in errors:
        loc = error.get("loc", [])
        field = " -> ".join(str(l) for l in loc if l != "body")
        msg = error.get("msg", "Invalid value")
        error_messages.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "details": error_messages
        }
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort handler for anything that escaped the routes."""
    log.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_SERVER_ERROR",
            "message": "Unexpected server error."
        }
    )


# Include routers
app.include_router(auth.router, tags=["Authentication"])
app.include_router(bgh.router, tags=["BGH"])
app.include_router(health.router, tags=["Health"])


@app.get("/")
async def root():
    """
    Root endpoint - basic info.

    Returns:
        dict: Application information
    """
    return {
        "ok": True,
        "name": "BGH Cloud Bridge",
        "version": VERSION,
        "status": "operational"
    }


def run():
    """Start a Uvicorn server using HOST/PORT from the environment."""
    import uvicorn

    settings = load_settings()
    log.info("starting_uvicorn", host=settings.host, port=settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
