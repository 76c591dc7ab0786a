"""
Job Listing Application Service

Job seekers apply to published listings with their stored résumé; employers
review the applications of their organization's listings, move them through
stages and rate them. New applications are rated by the LLM in the
background.
"""

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from jobpilot.core.auth import (
    PERMISSION_APPLICATIONS_CHANGE_RATING,
    PERMISSION_APPLICATIONS_CHANGE_STAGE,
    has_org_user_permission,
)
from jobpilot.core.cache import cache_tag, data_cache
from jobpilot.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from jobpilot.db.cache_tags import (
    get_job_listing_application_global_tag,
    get_job_listing_application_id_tag,
    get_job_listing_application_job_listing_tag,
    get_user_id_tag,
    get_user_resume_id_tag,
    revalidate_job_listing_application_cache,
)
from jobpilot.db.postgres import execute_raw_sql, fetch_one, get_db_session, utc_now
from jobpilot.db.tables import APPLICATION_STAGES
from jobpilot.services.events import JOB_LISTING_APPLICATION_CREATED, Event
from jobpilot.services.job_listing_service import (
    find_published_job_listing,
    get_job_listing_organization_id,
    load_job_listing,
)
from jobpilot.services.llm_client import get_llm_client
from jobpilot.services.user_service import get_user_resume
from jobpilot.utils.formatters import application_stage_sort_key, format_application_stage, parse_timestamp

logger = logging.getLogger(__name__)

APPLICATION_COLUMNS = "a.job_listing_id, a.user_id, a.cover_letter, a.rating, a.stage, a.created_at, a.updated_at"


def _with_stage_label(application: dict) -> dict:
    application = dict(application)
    application["stage_label"] = format_application_stage(application["stage"])
    return application


# ============================================================
# DATA ACCESS
# ============================================================

@data_cache.cached(
    lambda job_listing_id, user_id: get_job_listing_application_id_tag(job_listing_id, user_id),
    lambda job_listing_id, user_id: get_job_listing_application_global_tag(),
)
def get_job_listing_application(job_listing_id: str, user_id: str) -> Optional[dict]:
    row = fetch_one(
        f"SELECT {APPLICATION_COLUMNS} FROM job_listing_applications a "
        "WHERE a.job_listing_id = :job_listing_id AND a.user_id = :user_id",
        {"job_listing_id": job_listing_id, "user_id": user_id},
    )
    return _with_stage_label(row) if row else None


def insert_job_listing_application(job_listing_id: str, user_id: str, cover_letter: Optional[str]) -> dict:
    now = utc_now()
    try:
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO job_listing_applications
                        (job_listing_id, user_id, cover_letter, rating, stage, created_at, updated_at)
                    VALUES (:job_listing_id, :user_id, :cover_letter, NULL, 'applied', :now, :now)
                """),
                {"job_listing_id": job_listing_id, "user_id": user_id, "cover_letter": cover_letter, "now": now},
            )
    except IntegrityError:
        raise ConflictError("You have already applied for this job listing.") from None

    revalidate_job_listing_application_cache(job_listing_id, user_id)
    return get_job_listing_application(job_listing_id, user_id)


def update_job_listing_application(job_listing_id: str, user_id: str, data: dict) -> dict:
    allowed = {"stage", "rating"}
    if set(data) - allowed:
        raise ValueError(f"Cannot update application fields: {sorted(set(data) - allowed)}")

    params = dict(data)
    params.update({"job_listing_id": job_listing_id, "user_id": user_id, "updated_at": utc_now()})
    assignments = ", ".join(f"{field} = :{field}" for field in data)

    with get_db_session() as db:
        result = db.execute(
            text(
                f"UPDATE job_listing_applications SET {assignments}, updated_at = :updated_at "
                "WHERE job_listing_id = :job_listing_id AND user_id = :user_id"
            ),
            params,
        )
        if result.rowcount == 0:
            raise NotFoundError("Application not found.")

    revalidate_job_listing_application_cache(job_listing_id, user_id)
    return get_job_listing_application(job_listing_id, user_id)


@data_cache.cached(
    lambda job_listing_id: get_job_listing_application_job_listing_tag(job_listing_id),
    lambda job_listing_id: get_job_listing_application_global_tag(),
)
def list_job_listing_applications(job_listing_id: str) -> List[dict]:
    """Applications of a listing with applicant and résumé, sorted for review."""
    rows = execute_raw_sql(
        f"""
        SELECT {APPLICATION_COLUMNS},
               u.name AS applicant_name, u.email AS applicant_email, u.image_url AS applicant_image_url,
               r.resume_file_url, r.ai_summary AS resume_ai_summary
        FROM job_listing_applications a
        JOIN users u ON u.id = a.user_id
        LEFT JOIN user_resumes r ON r.user_id = a.user_id
        WHERE a.job_listing_id = :job_listing_id
        """,
        {"job_listing_id": job_listing_id},
    )

    applications = []
    for row in rows:
        cache_tag(get_user_id_tag(row["user_id"]), get_user_resume_id_tag(row["user_id"]))
        application = _with_stage_label({
            key: row[key]
            for key in ("job_listing_id", "user_id", "cover_letter", "rating", "stage", "created_at", "updated_at")
        })
        application["applicant"] = {
            "id": row["user_id"],
            "name": row["applicant_name"],
            "email": row["applicant_email"],
            "image_url": row["applicant_image_url"],
            "resume_file_url": row["resume_file_url"],
            "resume_ai_summary": row["resume_ai_summary"],
        }
        applications.append(application)

    return sort_applications(applications)


def sort_applications(applications: List[dict]) -> List[dict]:
    """Stage order first, then best rating (unrated last), then newest."""
    newest_first = sorted(applications, key=lambda a: parse_timestamp(a["created_at"]), reverse=True)
    by_rating = sorted(newest_first, key=lambda a: -(a["rating"] or 0))
    return sorted(by_rating, key=lambda a: application_stage_sort_key(a["stage"]))


# ============================================================
# JOB SEEKER OPERATIONS
# ============================================================

def create_job_listing_application(auth: dict, job_listing_id: str, cover_letter: Optional[str]) -> dict:
    user_id = auth.get("user_id")
    if not user_id:
        raise PermissionDeniedError("You don't have permission to submit an application.")

    resume = get_user_resume(user_id)
    job_listing = find_published_job_listing(job_listing_id)
    if not resume or not job_listing:
        raise PermissionDeniedError("You must have a resume to apply for a job listing.")

    if get_job_listing_application.uncached(job_listing_id, user_id):
        raise ConflictError("You have already applied for this job listing.")

    application = insert_job_listing_application(job_listing_id, user_id, cover_letter)
    logger.info("User %s applied to job listing %s", user_id, job_listing_id)
    return application


def application_created_event(job_listing_id: str, user_id: str) -> Event:
    return Event(
        name=JOB_LISTING_APPLICATION_CREATED,
        data={"job_listing_id": job_listing_id, "user_id": user_id},
        user={"id": user_id},
    )


def get_my_job_listing_application(auth: dict, job_listing_id: str) -> Optional[dict]:
    user_id = auth.get("user_id")
    if not user_id:
        return None
    return get_job_listing_application(job_listing_id, user_id)


# ============================================================
# EMPLOYER OPERATIONS
# ============================================================

def _require_listing_of_organization(auth: dict, job_listing_id: str) -> None:
    org_id = auth.get("org_id")
    if not org_id or get_job_listing_organization_id(job_listing_id) != org_id:
        raise PermissionDeniedError("You do not have permission to update this application.")


def get_applications_for_employer(auth: dict, job_listing_id: str) -> List[dict]:
    org_id = auth.get("org_id")
    if not org_id or get_job_listing_organization_id(job_listing_id) != org_id:
        raise NotFoundError("Job listing not found.")
    return list_job_listing_applications(job_listing_id)


def update_job_listing_application_stage(auth: dict, job_listing_id: str, user_id: str, stage: str) -> dict:
    if stage not in APPLICATION_STAGES:
        raise ValidationError("Invalid application stage.")
    if not has_org_user_permission(auth, PERMISSION_APPLICATIONS_CHANGE_STAGE):
        raise PermissionDeniedError("You don't have permission to change the application stage.")
    _require_listing_of_organization(auth, job_listing_id)

    return update_job_listing_application(job_listing_id, user_id, {"stage": stage})


def update_job_listing_application_rating(
    auth: dict, job_listing_id: str, user_id: str, rating: Optional[int]
) -> dict:
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Invalid application rating.")
    if not has_org_user_permission(auth, PERMISSION_APPLICATIONS_CHANGE_RATING):
        raise PermissionDeniedError("You don't have permission to change the application rating.")
    _require_listing_of_organization(auth, job_listing_id)

    return update_job_listing_application(job_listing_id, user_id, {"rating": rating})


# ============================================================
# BACKGROUND: AI RANKING
# ============================================================

async def rank_application(event: Event, worker) -> None:
    function_id = "rank-job-listing-application"
    job_listing_id = event.data["job_listing_id"]
    user_id = event.data["user_id"]

    with worker.step(function_id, "get-cover-letter"):
        application = await run_in_threadpool(get_job_listing_application.uncached, job_listing_id, user_id)
    if application is None:
        logger.warning("Application %s/%s no longer exists", job_listing_id, user_id)
        return

    with worker.step(function_id, "get-resume"):
        resume = await run_in_threadpool(get_user_resume.uncached, user_id)
    if resume is None or not resume["ai_summary"]:
        logger.warning("No resume summary for user %s, application left unrated", user_id)
        return

    with worker.step(function_id, "get-job-listing"):
        job_listing = await run_in_threadpool(load_job_listing, job_listing_id)

    with worker.step(function_id, "rate-application"):
        rating = await run_in_threadpool(
            get_llm_client().rate_application,
            job_listing,
            resume["ai_summary"],
            application["cover_letter"],
        )

    with worker.step(function_id, "save-rating"):
        await run_in_threadpool(update_job_listing_application, job_listing_id, user_id, {"rating": rating})
    logger.info("Rated application %s/%s: %d", job_listing_id, user_id, rating)


def organization_has_applicant(organization_id: str, user_id: str) -> bool:
    """True when the user applied to any listing of the organization."""
    row = fetch_one(
        """
        SELECT 1 AS found
        FROM job_listing_applications a
        JOIN job_listings jl ON jl.id = a.job_listing_id
        WHERE jl.organization_id = :org_id AND a.user_id = :user_id
        LIMIT 1
        """,
        {"org_id": organization_id, "user_id": user_id},
    )
    return row is not None
