"""
EcolithSwap - FastAPI Backend
Main application entry point
"""
import logging
import sys
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import check_connection, init_db
from exceptions import AuthError, EcolithSwapError, InternalError
from middleware import RequestLoggingMiddleware
from routers import analytics, auth, batteries, dashboard, payments, rentals, stations, support, users, waste

logger = logging.getLogger(__name__)

def setup_logging() -> None:
    """Configure the root logger once at startup"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # Third-party loggers are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging()
    logger.info("Starting EcolithSwap API...")
    logger.info(f"  - Database: {settings.database_url.split('@')[-1]}")
    logger.info(f"  - Environment: {settings.environment}")

    if settings.auto_create_tables:
        init_db()
        logger.info("  - Tables created")

    yield

    logger.info("Shutting down EcolithSwap API...")

app = FastAPI(
    title="EcolithSwap API",
    description="""
    Battery swap station platform.

    ## Features
    - **Customers**: Rent and return batteries, recycle plastic for points, pay for rentals
    - **Station managers**: Verify waste drop-offs, manage station maintenance, process payments
    - **Admins**: Manage users, stations and the battery fleet, view platform statistics
    - **Support**: Customers open tickets; staff triage and reply
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ============================================
# Exception handlers
# ============================================

@app.exception_handler(EcolithSwapError)
async def handle_app_error(request: Request, exc: EcolithSwapError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message} | Context: {exc.context}")
    elif exc.status_code == 409:
        logger.warning(f"Conflict on {request.method} {request.url.path}: {exc.message}")

    content = {"error": exc.error_code, "message": exc.message}
    if exc.status_code == 400 and exc.context:
        content["details"] = jsonable_encoder(exc.context)

    headers = None
    if type(exc) is AuthError:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )

@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=True)
    error = InternalError("Internal server error")
    content = {"error": error.error_code, "message": error.message}
    if not settings.is_production:
        content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=error.status_code, content=content)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(stations.router, prefix="/api/stations", tags=["Stations"])
app.include_router(batteries.router, prefix="/api/batteries", tags=["Batteries"])
app.include_router(rentals.router, prefix="/api/rentals", tags=["Rentals"])
app.include_router(waste.router, prefix="/api/waste", tags=["Waste"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(support.router, prefix="/api/support", tags=["Support"])

@app.get("/", tags=["Health"])
async def root():
    """API root endpoint"""
    return {
        "message": "EcolithSwap API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "ok"
    }

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "ecolithswap-api",
        "environment": settings.environment,
        "database": "connected" if check_connection() else "unavailable"
    }
