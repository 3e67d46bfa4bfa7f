from __future__ import annotations

import logging

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import models  # noqa: F401  (registers tables on Base.metadata)
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.db.session import engine
from app.models.base import Base

from app.routes.admin import router as admin_router
from app.routes.cars import router as cars_router
from app.routes.search import router as search_router
from app.routes.users import router as users_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "car-market-api"
VERSION = "1.0.0"

# ============================================================
# DB table creation (DEV ONLY)
# - Guarded so a transient DB outage doesn't prevent app startup.
# ============================================================
if settings.RUN_CREATE_ALL:
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("DB tables ensured via create_all (RUN_CREATE_ALL=1).")
    except SQLAlchemyError:
        logger.exception("Base.metadata.create_all failed; continuing startup without it.")

# FastAPI app
app = FastAPI(
    title="Car Market API",
    version=VERSION,
)

register_exception_handlers(app)

# ============================================================
# CORS
# - localhost for dev and FRONTEND_URL for production.
# ============================================================
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if settings.FRONTEND_URL and settings.FRONTEND_URL.strip():
    origins.append(settings.FRONTEND_URL.strip())

# Deduplicate + drop empties
allow_origins = sorted({o for o in origins if o})

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"


# ========================================
# Root Endpoint
# ========================================
@app.api_route("/", methods=["GET", "HEAD"], status_code=status.HTTP_200_OK)
def root():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": VERSION,
    }


# ========================================
# Health Endpoint
# ========================================
@app.api_route("/health", methods=["GET", "HEAD"], status_code=status.HTTP_200_OK)
def health_check():
    """Health check endpoint for uptime monitoring."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": VERSION,
            "database": "connected",
        }

    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        return {
            "status": "error",
            "service": SERVICE_NAME,
            "database": "disconnected",
        }


# Routers
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(cars_router, prefix=API_PREFIX)
app.include_router(search_router, prefix=API_PREFIX)
app.include_router(admin_router, prefix=API_PREFIX)
