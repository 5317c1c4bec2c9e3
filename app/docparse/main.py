"""
FastAPI application for the document parsing service.

Provides endpoints for:
- Parsing PDFs and images into JSON or CSV-shaped data
- Generating extraction schemas from a sample document
- Listing built-in schema templates and provider models
"""

import logging

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from . import __version__
from .config import get_settings
from .exceptions import DocParseError
from .models import ErrorDetail, ErrorResponse, HealthResponse
from .routers import catalog, parse, schemas
from .services.ai import ExtractionPipeline, ModelCatalog

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Document Parser Service...")
    settings = get_settings()
    if settings.debug:
        logging.getLogger("app.docparse").setLevel(logging.DEBUG)
    app.state.pipeline = ExtractionPipeline(settings=settings)
    app.state.model_catalog = ModelCatalog(settings=settings)
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is not set; the demo provider is unavailable")
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down Document Parser Service...")


# Create FastAPI application
app = FastAPI(
    title="Document Parser API",
    description="Schema-driven extraction of structured data from PDFs and images",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy", message="Document Parser API is running", version=__version__
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(parse.router)
app.include_router(schemas.router)
app.include_router(catalog.router)


# =============================================================================
# Exception Handlers
# =============================================================================


def error_response(message: str, error_type: str, fields: list[str] | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(message=message, type=error_type, fields=fields))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body.model_dump(exclude_none=True),
    )


def format_validation_errors(errors) -> str:
    """Render pydantic/FastAPI errors as ``Validation error: path: msg, ...``."""
    issues = []
    for error in errors:
        path = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        issues.append(f"{path}: {error.get('msg', 'Invalid value')}")
    return f"Validation error: {', '.join(issues)}"


@app.exception_handler(DocParseError)
async def docparse_error_handler(request: Request, exc: DocParseError):
    """Handle pipeline and request errors."""
    logger.warning("%s: %s", exc.error_type, exc.message)
    return error_response(exc.message, exc.error_type, exc.fields)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle malformed requests (missing form fields, bad path params)."""
    return error_response(format_validation_errors(exc.errors()), "validation_error")


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle request payloads rejected while building pipeline inputs."""
    return error_response(format_validation_errors(exc.errors()), "validation_error")
