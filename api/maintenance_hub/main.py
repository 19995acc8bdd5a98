# maintenance_hub/main.py
# Maintenance Hub API - batch integrity report + role/feature access
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from maintenance_hub.settings import settings
from maintenance_hub.cache import QueryCache
from maintenance_hub.database import init_db, close_db, check_db_health
from maintenance_hub.routers.integrity import router as integrity_router
from maintenance_hub.routers.roles import router as roles_router

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from maintenance_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ---------------------------------------------------------
# Lifespan: Database init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    app.state.query_cache = QueryCache.from_settings(settings)
    await init_db(settings)
    logger.info("database engine initialised")
    yield
    await close_db()
    logger.info("database engine disposed")

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Maintenance Hub API",
    version=VERSION,
    description="Batch integrity checks and role-based feature access",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(integrity_router)
app.include_router(roles_router)

# ---------------------------------------------------------
# Endpoints
# ---------------------------------------------------------
@app.get("/health")
async def health():
    """Health check endpoint with database status."""
    result = {
        "status": "ok",
        "version": VERSION,
    }
    db_health = await check_db_health()
    result["database"] = db_health
    if db_health.get("status") != "healthy":
        result["status"] = "degraded"
    return result
