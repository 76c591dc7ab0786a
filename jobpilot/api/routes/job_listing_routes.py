"""
Job Listing Routes

Public (job seekers):
GET  /job-listings                 - Search published listings
GET  /job-listings/{id}            - Published listing details
POST /job-listings/ai-search       - AI search (signed-in users)

Employer (active organization):
GET    /employer/job-listings                     - Listings grouped by status
GET    /employer/job-listings/most-recent         - Most recently created listing
GET    /employer/job-listings/plan-limits         - Whether plan limits are reached
POST   /employer/job-listings                     - Create listing (draft)
GET    /employer/job-listings/{id}                - Listing details
PUT    /employer/job-listings/{id}                - Update listing
DELETE /employer/job-listings/{id}                - Delete listing
POST   /employer/job-listings/{id}/toggle-status  - Publish / delist
POST   /employer/job-listings/{id}/toggle-featured - Feature / unfeature
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from jobpilot.core.auth import get_current_organization, get_current_user
from jobpilot.schemas.schemas import (
    AISearchRequest,
    AISearchResponse,
    EmployerJobListingGroup,
    JobListingCreate,
    JobListingListResponse,
    JobListingResponse,
    JobListingUpdate,
    MessageResponse,
    PlanLimitsResponse,
    PublicJobListingResponse,
    StatusChangeResponse,
)
from jobpilot.services import job_listing_service
from jobpilot.services.llm_client import get_llm_client

router = APIRouter(tags=["Job Listings"])


# ============================================================
# PUBLIC
# ============================================================

@router.get("/job-listings", response_model=JobListingListResponse)
async def search_job_listings(
    title: Optional[str] = Query(None, description="Case-insensitive title search"),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None, description="State abbreviation"),
    experience: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    location_requirement: Optional[str] = Query(None, alias="locationRequirement"),
    job_ids: Optional[List[str]] = Query(None, alias="jobIds"),
    job_listing_id: Optional[str] = Query(None, alias="jobListingId", description="Always included when published"),
):
    """Published listings, featured first then most recently posted. Invalid filters are ignored."""
    filters = job_listing_service.parse_search_filters(
        title=title,
        city=city,
        state=state,
        experience=experience,
        type=type,
        location_requirement=location_requirement,
        job_ids=job_ids,
    )
    listings = job_listing_service.search_published_job_listings(filters, job_listing_id)
    return JobListingListResponse(job_listings=listings, total=len(listings))


@router.post("/job-listings/ai-search", response_model=AISearchResponse)
async def ai_search_job_listings(payload: AISearchRequest, user: dict = Depends(get_current_user)):
    """Let the AI pick up to 10 published listings that fit the description."""
    job_ids = await run_in_threadpool(
        job_listing_service.ai_search_job_listings, payload.query, get_llm_client()
    )
    return AISearchResponse(job_ids=job_ids)


@router.get("/job-listings/{job_listing_id}", response_model=PublicJobListingResponse)
async def get_job_listing(job_listing_id: str):
    return job_listing_service.get_published_job_listing(job_listing_id)


# ============================================================
# EMPLOYER
# ============================================================

@router.get("/employer/job-listings", response_model=List[EmployerJobListingGroup])
async def list_organization_job_listings(auth: dict = Depends(get_current_organization)):
    listings = job_listing_service.list_organization_job_listings(auth["org_id"])
    return job_listing_service.group_job_listings_by_status(listings)


@router.get("/employer/job-listings/most-recent", response_model=Optional[JobListingResponse])
async def get_most_recent_job_listing(auth: dict = Depends(get_current_organization)):
    return job_listing_service.get_most_recent_job_listing(auth["org_id"])


@router.get("/employer/job-listings/plan-limits", response_model=PlanLimitsResponse)
async def get_plan_limits(auth: dict = Depends(get_current_organization)):
    return PlanLimitsResponse(
        reached_max_published_job_listings=job_listing_service.has_reached_max_published_job_listings(auth),
        reached_max_featured_job_listings=job_listing_service.has_reached_max_featured_job_listings(auth),
    )


@router.post("/employer/job-listings", response_model=JobListingResponse, status_code=201)
async def create_job_listing(payload: JobListingCreate, auth: dict = Depends(get_current_organization)):
    """Create a draft listing. Requires the create permission."""
    return job_listing_service.create_job_listing(auth, payload)


@router.get("/employer/job-listings/{job_listing_id}", response_model=JobListingResponse)
async def get_organization_job_listing(job_listing_id: str, auth: dict = Depends(get_current_organization)):
    return job_listing_service.get_job_listing_or_404(job_listing_id, auth["org_id"])


@router.put("/employer/job-listings/{job_listing_id}", response_model=JobListingResponse)
async def update_job_listing(
    job_listing_id: str,
    payload: JobListingUpdate,
    auth: dict = Depends(get_current_organization),
):
    return job_listing_service.update_job_listing(auth, job_listing_id, payload)


@router.delete("/employer/job-listings/{job_listing_id}", response_model=MessageResponse)
async def delete_job_listing(job_listing_id: str, auth: dict = Depends(get_current_organization)):
    job_listing_service.delete_job_listing(auth, job_listing_id)
    return MessageResponse(message="Job listing deleted successfully.")


@router.post("/employer/job-listings/{job_listing_id}/toggle-status", response_model=StatusChangeResponse)
async def toggle_job_listing_status(job_listing_id: str, auth: dict = Depends(get_current_organization)):
    listing = job_listing_service.toggle_job_listing_status(auth, job_listing_id)
    return StatusChangeResponse(
        message=f"Job listing {listing['status']}.",
        status=listing["status"],
        is_featured=listing["is_featured"],
    )


@router.post("/employer/job-listings/{job_listing_id}/toggle-featured", response_model=StatusChangeResponse)
async def toggle_job_listing_featured(job_listing_id: str, auth: dict = Depends(get_current_organization)):
    listing = job_listing_service.toggle_job_listing_featured(auth, job_listing_id)
    return StatusChangeResponse(
        message="Job listing featured." if listing["is_featured"] else "Job listing unfeatured.",
        status=listing["status"],
        is_featured=listing["is_featured"],
    )
