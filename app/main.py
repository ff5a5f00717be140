import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - register tables with Base
from .config import CORS_ORIGINS
from .database import Base, IS_SQLITE, engine
from .domain.analytics.router import router as analytics_router
from .domain.bookings.router import router as bookings_router
from .domain.catalog.router import router as catalog_router
from .domain.insights.router import router as insights_router
from .domain.messaging.router import router as messaging_router
from .domain.milestones.router import progress_router
from .domain.milestones.router import router as milestones_router
from .domain.tracking.router import router as tracking_router
from .routes.audit import router as audit_router
from .routes.notifications import router as notifications_router
from .routes.status_automation import router as status_router
from .security_headers import SecurityHeadersMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SERVICE_NAME = "marketplace-api"
VERSION = "1.0.0"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
SLOW_REQUEST_SECONDS = float(os.getenv("SLOW_REQUEST_SECONDS", "2.0"))

ROUTERS = (
    catalog_router,
    bookings_router,
    insights_router,
    milestones_router,
    progress_router,
    analytics_router,
    tracking_router,
    messaging_router,
    notifications_router,
    audit_router,
    status_router,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 {SERVICE_NAME} {VERSION} starting ({'sqlite' if IS_SQLITE else 'postgres'})")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
    except Exception as e:
        # Several API workers may race to create the same tables
        if "already exists" not in str(e) and "duplicate key" not in str(e):
            logger.error(f"❌ Failed to create database tables: {e}")
            raise
        logger.info("Database tables already exist (created by another worker)")
    yield
    logger.info(f"👋 {SERVICE_NAME} shutting down")


app = FastAPI(title="Service Marketplace API", version=VERSION, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"⚠️ Invalid request to {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "message": "Invalid request data"},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} failed: {e}")
        raise
    elapsed = time.perf_counter() - started
    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning(f"🐌 {request.method} {request.url.path} took {elapsed:.2f}s")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
else:
    logger.warning("Security headers DISABLED - only use in development!")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": SERVICE_NAME, "version": VERSION}
