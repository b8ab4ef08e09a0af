"""LeadBoard — FastAPI Application Entry Point.

Marketing lead dashboard: ingestion, WhatsApp and Meta sync, aggregation.
"""

import os
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from leadboard.database import init_db, test_connection
from leadboard.scheduler.jobs import start_scheduler, stop_scheduler
from leadboard.api.dashboard_routes import router as dashboard_router
from leadboard.api.ingest_routes import router as ingest_router
from leadboard.api.lead_routes import router as lead_router
from leadboard.api.meta_routes import router as meta_router
from leadboard.api.metrics_routes import router as metrics_router
from leadboard.api.system_routes import router as system_router
from leadboard.api.whatsapp_routes import router as whatsapp_router
from leadboard.core.logging import get_logger

logger = get_logger("main")

FRONTEND_DIR = Path(__file__).resolve().parent.parent / "frontend"
API_PREFIX = "/api"
NO_STORE = "no-store, max-age=0"

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 LeadBoard starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    db_ok = test_connection()
    if db_ok:
        try:
            init_db()
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected, store-backed endpoints will fail")
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("LeadBoard shut down")


app = FastAPI(
    title="LeadBoard",
    description="Marketing lead dashboard: WhatsApp leads, Meta ad spend, cost per lead.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_store_middleware(request: Request, call_next):
    """Mark every response uncacheable and log API request timings."""
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["Cache-Control"] = NO_STORE
    if request.url.path.startswith(API_PREFIX):
        logger.info(
            f"{request.method} {request.url.path}",
            extra={
                "endpoint": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
    return response


# Routers
for router in (
    system_router,
    ingest_router,
    lead_router,
    meta_router,
    metrics_router,
    whatsapp_router,
    dashboard_router,
):
    app.include_router(router, prefix=API_PREFIX)

# Static files (frontend)
if FRONTEND_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=str(FRONTEND_DIR)), name="static")


@app.get("/", include_in_schema=False)
async def root():
    """Serve the dashboard page."""
    return FileResponse(str(FRONTEND_DIR / "index.html"))


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "leadboard",
        "version": "1.0.0",
    }
