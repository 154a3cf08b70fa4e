"""
Body Builder Quotation Engine - Main Application

FastAPI application serving the quotation pricing engine:
- Catalog price resolution
- Line items and base totals
- Discount approval workflow
- Version snapshots and printing
- Quotation life cycle and work order hand-off
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quotation_engine.api.routes import catalog, quotations
from quotation_engine.config.settings import settings
from quotation_engine.database.base import close_db, init_db
from quotation_engine.services.exceptions import QuotationEngineError
from quotation_engine.utils.logging import get_logger, request_logger, setup_logging
from quotation_engine.utils.security import decode_token

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("Starting Quotation Engine", version=settings.app_version)

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down Quotation Engine")
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="""
## Body Builder Quotation Engine API

Pricing, discount approval and versioning for vehicle body-building
quotations.

### Life cycle

`draft` → `review` → `approved` → `converted`, or `review` → `rejected`.
Line items, discounts, versions and overrides are frozen once a quotation
is rejected or converted.

### Authentication

All endpoints require a JWT issued by the auth service.
Include the token in the Authorization header: `Bearer <token>`

### Errors

Every error body is `{kind, message, context}`.
    """,
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _actor_from_request(request: Request) -> str | None:
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    return payload.get("username") or payload.get("sub")


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    start_time = time.time()
    actor_id = _actor_from_request(request)

    request_logger.log_request(
        method=request.method,
        path=request.url.path,
        actor_id=actor_id,
    )

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    request_logger.log_response(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        actor_id=actor_id,
    )

    return response


# Exception handlers
@app.exception_handler(QuotationEngineError)
async def engine_exception_handler(request: Request, exc: QuotationEngineError):
    """Return engine errors as {kind, message, context}."""
    logger.info(
        "Engine error",
        kind=exc.kind,
        error_message=exc.message,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed messages."""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "kind": "validation_error",
            "message": "Request validation failed",
            "context": {"errors": errors},
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(
        "Unhandled exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "kind": "internal_error",
            "message": "An unexpected error occurred",
            "context": {},
        },
    )


# Include routers
app.include_router(quotations.router, prefix=f"{settings.api_prefix}/quotations", tags=["Quotations"])
app.include_router(catalog.router, prefix=f"{settings.api_prefix}/catalog", tags=["Feature Catalog"])


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """System health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/api/docs" if settings.debug else "Disabled in production",
        "currency": settings.quotation.currency,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quotation_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.workers if not settings.debug else 1,
    )
