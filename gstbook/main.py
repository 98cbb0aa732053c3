import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from gstbook.api.v1.router import api_router
from gstbook.config import settings
from gstbook.core.exceptions import FinanceError
from gstbook.database import async_session_factory, init_db
from gstbook.jobs.scheduler import get_job_status, shutdown_scheduler, start_scheduler
from gstbook.services.notification_service import notification_dispatcher


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create missing tables (migrations are managed with Alembic)
    - Start background scheduler

    Shutdown:
    - Stop the scheduler
    - Wait for pending post-commit notifications
    """
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await init_db()

    start_scheduler()

    yield

    shutdown_scheduler()
    await notification_dispatcher.drain()
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Invoices", "description": "Sales invoices: draft, send, cancel"},
    {"name": "Quotations", "description": "Quotations and conversion to invoices"},
    {"name": "Credit Notes", "description": "Customer credit notes and their application to invoices"},
    {"name": "Supplier Bills", "description": "Purchase bills from suppliers"},
    {"name": "Debit Notes", "description": "Supplier debit notes and their application to bills"},
    {"name": "Payments", "description": "Customer receipts and supplier payments with allocations"},
    {"name": "GST", "description": "GST summaries, returns and period locks"},
    {"name": "Activity", "description": "Team activity log"},
    {"name": "Document Sequences", "description": "Gap-free document numbering"},
]

FULL_API_DESCRIPTION = """
## GSTBook Ledger API

Multi-tenant GST accounting core.

### Authentication

An upstream gateway authenticates the caller and forwards two headers:
`X-Team-ID` and `X-User-ID`. The caller's role comes from its team membership.

### Responses

Mutations answer `{"success": "...", "<entity>_id": "..."}` or `{"error": "..."}`.
Money is always a 2-decimal string.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Amount exceeds an available balance |
| 401 | Missing or invalid identity headers |
| 403 | Insufficient team role |
| 404 | Not found in this team |
| 409 | Status transition not allowed, or concurrent modification |
| 422 | Validation failed |
| 423 | GST period is locked |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    """Domain errors raised outside an action (reads, query validation)."""
    logger.info("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=422, content={"error": message, "details": jsonable_errors(errors)})


def jsonable_errors(errors):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log the traceback; the client only gets a generic message."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        },
        "jobs": get_job_status(),
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error("Health check database error: %s", e)
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
