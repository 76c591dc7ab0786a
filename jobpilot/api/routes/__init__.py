"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from jobpilot.api.routes.application_routes import router as application_router
from jobpilot.api.routes.cron_routes import router as cron_router
from jobpilot.api.routes.job_listing_routes import router as job_listing_router
from jobpilot.api.routes.organization_routes import router as organization_router
from jobpilot.api.routes.user_routes import router as user_router
from jobpilot.api.routes.webhook_routes import router as webhook_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(job_listing_router)
api_router.include_router(application_router)
api_router.include_router(user_router)
api_router.include_router(organization_router)
api_router.include_router(webhook_router)
api_router.include_router(cron_router)
