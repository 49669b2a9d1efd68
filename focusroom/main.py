from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from focusroom.api.router import api_router
from focusroom.config import get_settings
from focusroom.core.errors import FocusRoomError
from focusroom.core.logging import get_logger, setup_logging
from focusroom.core.rate_limit import limiter, rate_limit_exceeded_handler
from focusroom.core.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    setup_logging()
    await start_scheduler()
    yield
    # Shutdown
    await stop_scheduler()


app = FastAPI(
    title="FocusRoom",
    description="Engagement ledger and weekly digest API for FocusRoom",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.base_url, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(FocusRoomError)
async def focusroom_error_handler(request: Request, exc: FocusRoomError) -> JSONResponse:
    """Map application errors to a typed JSON body: ``{"error": code, "detail": message}``."""
    if exc.status_code >= 500:
        logger.bind(path=request.url.path, error=exc.code, detail=exc.message).error(
            "request_failed"
        )
    else:
        logger.bind(path=request.url.path, error=exc.code).info("request_rejected")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}
