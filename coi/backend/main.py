"""
FastAPI application for ACORD 25 certificate extraction.

Provides endpoints for:
- Health checks
- Analyzing an uploaded certificate (one PDF or up to 5 images)
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .models import ErrorDetail, ErrorMetadata, ErrorResponse, HealthResponse
from .routers import analyze
from .services.exceptions import ExtractionError, ValidationError
from .services.extraction_service import get_extraction_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Certificate Extraction Service...")
    # Missing provider credentials fail startup here
    settings = get_settings()
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    get_extraction_service()
    logger.info("Services initialized successfully (uploads in %s)", settings.upload_dir)
    yield
    logger.info("Shutting down Certificate Extraction Service...")


# Create FastAPI application
app = FastAPI(
    title="ACORD 25 Extraction API",
    description="Certificate of insurance extraction using AI",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def stamp_request_start(request: Request, call_next):
    """Record the request start so error envelopes can report processing time."""
    request.state.started_at = time.perf_counter()
    return await call_next(request)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        message="ACORD 25 Extraction API is running",
        version=__version__,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(analyze.router)


# =============================================================================
# Exception Handlers
# =============================================================================


def _elapsed_ms(request: Request) -> int | None:
    started_at = getattr(request.state, "started_at", None)
    if started_at is None:
        return None
    return int((time.perf_counter() - started_at) * 1000)


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details or {}),
        metadata=ErrorMetadata(processing_time=_elapsed_ms(request)),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
    )


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    """Handle every pipeline failure with the error envelope."""
    if isinstance(exc, ValidationError):
        logger.info("Rejected request: %s", exc.message)
        details = dict(exc.details)
    else:
        logger.error("Analysis failed (%s): %s", exc.code, exc.message)
        details = {**exc.details, "originalError": exc.message}

    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        exc.code,
        exc.public_message,
        details,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Handle anything the pipeline did not classify."""
    logger.exception("Unhandled error processing %s", request.url.path)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "Internal server error",
    )
