"""
JobPilot - Main Application

FastAPI backend with:
- PostgreSQL for structured data
- MongoDB GridFS for résumé files
- LLM for listing matching, résumé summaries and application rating
- Identity provider session tokens (JWT) for auth, plans and permissions
- In-process event worker for background jobs and daily emails

Run: uvicorn jobpilot.main:app --reload
"""

import asyncio
import contextlib
import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobpilot.api.routes import api_router
from jobpilot.core.config import get_settings
from jobpilot.core.exceptions import JobPilotError
from jobpilot.core.logging import configure_logging
from jobpilot.db.mongodb import init_mongo_indexes
from jobpilot.db.postgres import init_db, test_postgres_connection
from jobpilot.services.events import get_event_worker
from jobpilot.services.notification_service import register_functions, run_daily_scheduler

settings = get_settings()

logger = logging.getLogger("jobpilot.api")

background_tasks = []

# Create FastAPI app
app = FastAPI(
    title="JobPilot",
    description="""
    A job board for organizations and job seekers.

    ## Features
    - **Job listings**: Draft, publish and feature listings within plan limits
    - **Search**: Filtered search and AI search over published listings
    - **Applications**: Apply with a résumé; employers review, stage and rate
    - **Notifications**: Daily emails with new listings and new applications
    - **Identity**: Users and organizations synced from the identity provider
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(JobPilotError)
async def jobpilot_error_handler(request: Request, exc: JobPilotError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "success": False},
    )


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as exc:
        duration_ms = (time.perf_counter() - started) * 1000
        logger.exception(
            json.dumps(
                {
                    "event": "request_complete",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": 500,
                    "duration_ms": round(duration_ms, 3),
                    "error": str(exc),
                }
            )
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error", "request_id": request_id},
            headers={"x-request-id": request_id},
        )

    duration_ms = (time.perf_counter() - started) * 1000
    response.headers["x-request-id"] = request_id
    logger.info(
        json.dumps(
            {
                "event": "request_complete",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 3),
            }
        )
    )
    return response


# Startup event
@app.on_event("startup")
async def startup_event():
    """Create tables, start the event worker and (optionally) the daily scheduler."""
    configure_logging(settings.debug)
    init_db()

    try:
        init_mongo_indexes()
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)

    worker = register_functions(get_event_worker())
    background_tasks.append(asyncio.create_task(worker.run()))
    if settings.scheduler_enabled:
        background_tasks.append(asyncio.create_task(run_daily_scheduler(worker)))
    logger.info("Event worker started (scheduler %s)", "on" if settings.scheduler_enabled else "off")


@app.on_event("shutdown")
async def shutdown_event():
    for task in background_tasks:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    background_tasks.clear()
    await get_event_worker().stop()


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    from jobpilot.db.mongodb import test_mongo_connection

    return {
        "status": "healthy",
        "database": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected",
        "queued_events": get_event_worker().queue.qsize(),
    }
