"""
Application Routes

Job seekers:
POST /job-listings/{id}/applications     - Apply with the stored résumé
GET  /job-listings/{id}/applications/me  - Own application for a listing

Employers (active organization):
GET   /employer/job-listings/{id}/applications                    - Applications for review
PATCH /employer/job-listings/{id}/applications/{user_id}/stage    - Move to another stage
PATCH /employer/job-listings/{id}/applications/{user_id}/rating   - Rate 1-5 or clear
"""

from fastapi import APIRouter, Depends, HTTPException

from jobpilot.core.auth import get_current_organization, get_current_user
from jobpilot.schemas.schemas import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationRatingUpdate,
    ApplicationResponse,
    ApplicationStageUpdate,
)
from jobpilot.services import application_service
from jobpilot.services.events import EventWorker, get_event_worker

router = APIRouter(tags=["Applications"])


@router.post("/job-listings/{job_listing_id}/applications", response_model=ApplicationResponse, status_code=201)
async def apply_to_job_listing(
    job_listing_id: str,
    payload: ApplicationCreate,
    auth: dict = Depends(get_current_user),
    worker: EventWorker = Depends(get_event_worker),
):
    """Submit an application. The user must have uploaded a résumé."""
    application = application_service.create_job_listing_application(auth, job_listing_id, payload.cover_letter)
    await worker.send(application_service.application_created_event(job_listing_id, auth["user_id"]))
    return application


@router.get("/job-listings/{job_listing_id}/applications/me", response_model=ApplicationResponse)
async def get_my_application(job_listing_id: str, auth: dict = Depends(get_current_user)):
    application = application_service.get_my_job_listing_application(auth, job_listing_id)
    if not application:
        raise HTTPException(status_code=404, detail="You have not applied for this job listing.")
    return application


@router.get("/employer/job-listings/{job_listing_id}/applications", response_model=ApplicationListResponse)
async def list_applications(job_listing_id: str, auth: dict = Depends(get_current_organization)):
    applications = application_service.get_applications_for_employer(auth, job_listing_id)
    return ApplicationListResponse(applications=applications, total=len(applications))


@router.patch(
    "/employer/job-listings/{job_listing_id}/applications/{user_id}/stage",
    response_model=ApplicationResponse,
)
async def update_application_stage(
    job_listing_id: str,
    user_id: str,
    payload: ApplicationStageUpdate,
    auth: dict = Depends(get_current_organization),
):
    return application_service.update_job_listing_application_stage(
        auth, job_listing_id, user_id, payload.stage.value
    )


@router.patch(
    "/employer/job-listings/{job_listing_id}/applications/{user_id}/rating",
    response_model=ApplicationResponse,
)
async def update_application_rating(
    job_listing_id: str,
    user_id: str,
    payload: ApplicationRatingUpdate,
    auth: dict = Depends(get_current_organization),
):
    return application_service.update_job_listing_application_rating(
        auth, job_listing_id, user_id, payload.rating
    )
