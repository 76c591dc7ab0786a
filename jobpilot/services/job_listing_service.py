"""
Job Listing Service

Employer side:
- create / update / delete listings of the active organization
- publish / delist and feature / unfeature, gated by plan features
- organization listing overview with application counts

Job seeker side:
- search published listings with filters
- AI search over published listings

Every write revalidates the listing's cache tags (global, organization, id).
"""

import logging
import uuid
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import text

from jobpilot.core.auth import (
    PERMISSION_JOB_LISTINGS_CHANGE_STATUS,
    PERMISSION_JOB_LISTINGS_CREATE,
    PERMISSION_JOB_LISTINGS_DELETE,
    PERMISSION_JOB_LISTINGS_UPDATE,
    has_org_user_permission,
    has_plan_feature,
)
from jobpilot.core.cache import cache_tag, data_cache
from jobpilot.core.exceptions import NotFoundError, PermissionDeniedError, PlanLimitError, ValidationError
from jobpilot.db.cache_tags import (
    get_job_listing_application_job_listing_tag,
    get_job_listing_global_tag,
    get_job_listing_id_tag,
    get_job_listing_organization_tag,
    get_organization_id_tag,
    revalidate_job_listing_application_global_cache,
    revalidate_job_listing_cache,
)
from jobpilot.db.postgres import execute_raw_sql, fetch_one, get_db_session, utc_now
from jobpilot.db.tables import (
    EXPERIENCE_LEVELS,
    JOB_LISTING_TYPES,
    LOCATION_REQUIREMENTS,
)
from jobpilot.schemas.schemas import JobListingCreate
from jobpilot.utils.formatters import (
    days_since,
    format_days_since_posted,
    format_job_listing_status,
    job_listing_badges,
)

logger = logging.getLogger(__name__)

JOB_LISTING_COLUMNS = """
    jl.id, jl.organization_id, jl.title, jl.description, jl.wage, jl.wage_interval,
    jl.state_abbreviation, jl.city, jl.is_featured, jl.location_requirement,
    jl.experience_level, jl.status, jl.type, jl.posted_at, jl.created_at, jl.updated_at
"""

UPDATABLE_FIELDS = (
    "title",
    "description",
    "wage",
    "wage_interval",
    "state_abbreviation",
    "city",
    "is_featured",
    "location_requirement",
    "experience_level",
    "status",
    "type",
    "posted_at",
)

# Display order of the employer overview groups
STATUS_GROUP_ORDER = ("published", "draft", "delisted")

AI_SEARCH_MAX_JOBS = 10

# Plan features: (feature key, limit); None means unlimited
PUBLISHED_LISTING_FEATURES = (
    ("post_1_job_listing", 1),
    ("post_3_job_listings", 3),
    ("post_15_job_listings", 15),
)
FEATURED_LISTING_FEATURES = (
    ("1_featured_job_listing", 1),
    ("unlimited_featured_jobs_listings", None),
)


def _normalize_listing(row: dict) -> dict:
    listing = dict(row)
    listing["is_featured"] = bool(listing.get("is_featured"))
    return listing


def _require_organization(auth: dict) -> str:
    org_id = auth.get("org_id")
    if not org_id:
        raise PermissionDeniedError("Organization not found.")
    return org_id


def _like_pattern(value: str) -> str:
    escaped = value.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# ============================================================
# READS
# ============================================================

@data_cache.cached(lambda job_listing_id, organization_id: get_job_listing_id_tag(job_listing_id))
def get_job_listing(job_listing_id: str, organization_id: str) -> Optional[dict]:
    """Listing of an organization (any status)."""
    row = fetch_one(
        f"SELECT {JOB_LISTING_COLUMNS} FROM job_listings jl "
        "WHERE jl.id = :id AND jl.organization_id = :org_id",
        {"id": job_listing_id, "org_id": organization_id},
    )
    return _normalize_listing(row) if row else None


def get_job_listing_or_404(job_listing_id: str, organization_id: str) -> dict:
    listing = get_job_listing(job_listing_id, organization_id)
    if not listing:
        raise NotFoundError("Job listing not found.")
    return listing


@data_cache.cached(lambda job_listing_id: get_job_listing_id_tag(job_listing_id))
def get_job_listing_organization_id(job_listing_id: str) -> Optional[str]:
    row = fetch_one(
        "SELECT organization_id FROM job_listings WHERE id = :id",
        {"id": job_listing_id},
    )
    return row["organization_id"] if row else None


@data_cache.cached(lambda organization_id: get_job_listing_organization_tag(organization_id))
def get_published_job_listings_count(organization_id: str) -> int:
    row = fetch_one(
        "SELECT COUNT(*) AS count FROM job_listings "
        "WHERE organization_id = :org_id AND status = 'published'",
        {"org_id": organization_id},
    )
    return int(row["count"]) if row else 0


@data_cache.cached(lambda organization_id: get_job_listing_organization_tag(organization_id))
def get_featured_job_listings_count(organization_id: str) -> int:
    row = fetch_one(
        "SELECT COUNT(*) AS count FROM job_listings "
        "WHERE organization_id = :org_id AND status = 'published' AND is_featured = TRUE",
        {"org_id": organization_id},
    )
    return int(row["count"]) if row else 0


@data_cache.cached(lambda organization_id: get_job_listing_organization_tag(organization_id))
def list_organization_job_listings(organization_id: str) -> List[dict]:
    """All listings of an organization with their application counts, newest first."""
    rows = execute_raw_sql(
        """
        SELECT jl.id, jl.title, jl.status, jl.is_featured, jl.created_at,
               COUNT(a.user_id) AS application_count
        FROM job_listings jl
        LEFT JOIN job_listing_applications a ON a.job_listing_id = jl.id
        WHERE jl.organization_id = :org_id
        GROUP BY jl.id, jl.title, jl.status, jl.is_featured, jl.created_at
        ORDER BY jl.created_at DESC
        """,
        {"org_id": organization_id},
    )
    for row in rows:
        cache_tag(get_job_listing_application_job_listing_tag(row["id"]))
    return [_normalize_listing(row) for row in rows]


def group_job_listings_by_status(listings: List[dict]) -> List[dict]:
    """Split the overview into status groups; empty groups are left out."""
    groups = []
    for status in STATUS_GROUP_ORDER:
        members = [listing for listing in listings if listing["status"] == status]
        if members:
            groups.append({
                "status": status,
                "label": format_job_listing_status(status),
                "job_listings": members,
            })
    return groups


@data_cache.cached(lambda organization_id: get_job_listing_organization_tag(organization_id))
def get_most_recent_job_listing(organization_id: str) -> Optional[dict]:
    row = fetch_one(
        f"SELECT {JOB_LISTING_COLUMNS} FROM job_listings jl "
        "WHERE jl.organization_id = :org_id ORDER BY jl.created_at DESC LIMIT 1",
        {"org_id": organization_id},
    )
    return _normalize_listing(row) if row else None


# ============================================================
# WRITES
# ============================================================

def insert_job_listing(organization_id: str, data: dict) -> dict:
    now = utc_now()
    job_listing_id = str(uuid.uuid4())
    params = {
        "id": job_listing_id,
        "organization_id": organization_id,
        "title": data["title"],
        "description": data["description"],
        "wage": data.get("wage"),
        "wage_interval": data.get("wage_interval"),
        "state_abbreviation": data.get("state_abbreviation"),
        "city": data.get("city"),
        "is_featured": False,
        "location_requirement": data["location_requirement"],
        "experience_level": data["experience_level"],
        "status": data.get("status", "draft"),
        "type": data["type"],
        "posted_at": None,
        "created_at": now,
        "updated_at": now,
    }
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO job_listings (id, organization_id, title, description, wage, wage_interval,
                    state_abbreviation, city, is_featured, location_requirement, experience_level,
                    status, type, posted_at, created_at, updated_at)
                VALUES (:id, :organization_id, :title, :description, :wage, :wage_interval,
                    :state_abbreviation, :city, :is_featured, :location_requirement, :experience_level,
                    :status, :type, :posted_at, :created_at, :updated_at)
            """),
            params,
        )

    revalidate_job_listing_cache(job_listing_id, organization_id)
    logger.info("Created job listing %s for organization %s", job_listing_id, organization_id)
    return load_job_listing(job_listing_id)


def update_job_listing_db(job_listing_id: str, data: dict) -> dict:
    """Partial update; unknown keys are rejected, ``None`` values are written."""
    unknown = set(data) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update job listing fields: {sorted(unknown)}")

    updates = [f"{field} = :{field}" for field in data]
    params = dict(data)
    params["id"] = job_listing_id
    params["updated_at"] = utc_now()
    updates.append("updated_at = :updated_at")

    with get_db_session() as db:
        db.execute(
            text(f"UPDATE job_listings SET {', '.join(updates)} WHERE id = :id"),
            params,
        )

    listing = load_job_listing(job_listing_id)
    revalidate_job_listing_cache(job_listing_id, listing["organization_id"])
    return listing


def delete_job_listing_db(job_listing_id: str, organization_id: str) -> None:
    with get_db_session() as db:
        # Applications go first so SQLite (no enforced cascades) matches PostgreSQL
        db.execute(
            text("DELETE FROM job_listing_applications WHERE job_listing_id = :id"),
            {"id": job_listing_id},
        )
        db.execute(text("DELETE FROM job_listings WHERE id = :id"), {"id": job_listing_id})

    revalidate_job_listing_cache(job_listing_id, organization_id)
    revalidate_job_listing_application_global_cache()
    logger.info("Deleted job listing %s", job_listing_id)


def load_job_listing(job_listing_id: str) -> dict:
    row = fetch_one(
        f"SELECT {JOB_LISTING_COLUMNS} FROM job_listings jl WHERE jl.id = :id",
        {"id": job_listing_id},
    )
    if not row:
        raise NotFoundError("Job listing not found.")
    return _normalize_listing(row)


# ============================================================
# PLAN FEATURES
# ============================================================

def _within_plan_limit(auth: dict, features: Iterable[Tuple[str, Optional[int]]], count: int) -> bool:
    return any(
        has_plan_feature(auth, feature) and (limit is None or count < limit)
        for feature, limit in features
    )


def has_reached_max_published_job_listings(auth: dict) -> bool:
    org_id = auth.get("org_id")
    if not org_id:
        return True
    count = get_published_job_listings_count(org_id)
    return not _within_plan_limit(auth, PUBLISHED_LISTING_FEATURES, count)


def has_reached_max_featured_job_listings(auth: dict) -> bool:
    org_id = auth.get("org_id")
    if not org_id:
        return True
    count = get_featured_job_listings_count(org_id)
    return not _within_plan_limit(auth, FEATURED_LISTING_FEATURES, count)


# ============================================================
# EMPLOYER OPERATIONS
# ============================================================

def create_job_listing(auth: dict, payload: JobListingCreate) -> dict:
    org_id = _require_organization(auth)
    if not has_org_user_permission(auth, PERMISSION_JOB_LISTINGS_CREATE):
        raise PermissionDeniedError(
            "You do not have permission to create job listings. Please ensure you are part "
            "of an organization with the appropriate plan."
        )

    data = payload.model_dump(mode="json")
    data["status"] = "draft"
    return insert_job_listing(org_id, data)


def update_job_listing(auth: dict, job_listing_id: str, payload: JobListingCreate) -> dict:
    org_id = _require_organization(auth)
    if not has_org_user_permission(auth, PERMISSION_JOB_LISTINGS_UPDATE):
        raise PermissionDeniedError(
            "You do not have permission to update job listings. Please ensure you are part "
            "of an organization with the appropriate plan."
        )

    get_job_listing_or_404(job_listing_id, org_id)
    return update_job_listing_db(job_listing_id, payload.model_dump(mode="json"))


def delete_job_listing(auth: dict, job_listing_id: str) -> None:
    org_id = _require_organization(auth)
    if not has_org_user_permission(auth, PERMISSION_JOB_LISTINGS_DELETE):
        raise PermissionDeniedError(
            "You do not have permission to delete job listings. Please ensure you are part "
            "of an organization with the appropriate plan."
        )

    get_job_listing_or_404(job_listing_id, org_id)
    delete_job_listing_db(job_listing_id, org_id)


def get_next_job_listing_status(status: str) -> str:
    if status in ("draft", "delisted"):
        return "published"
    if status == "published":
        return "delisted"
    raise ValueError(f"Invalid job listing status: {status}")


def toggle_job_listing_status(auth: dict, job_listing_id: str) -> dict:
    org_id = _require_organization(auth)
    listing = get_job_listing_or_404(job_listing_id, org_id)
    new_status = get_next_job_listing_status(listing["status"])

    if not has_org_user_permission(auth, PERMISSION_JOB_LISTINGS_CHANGE_STATUS):
        raise PermissionDeniedError(
            "You do not have permission to change the status of this job listing."
        )
    if new_status == "published" and has_reached_max_published_job_listings(auth):
        raise PlanLimitError(
            "You have reached the maximum number of published job listings allowed by your plan."
        )

    data = {"status": new_status}
    if new_status == "published":
        if not listing["posted_at"]:
            data["posted_at"] = utc_now()
    else:
        data["is_featured"] = False

    updated = update_job_listing_db(job_listing_id, data)
    logger.info("Job listing %s status %s -> %s", job_listing_id, listing["status"], new_status)
    return updated


def toggle_job_listing_featured(auth: dict, job_listing_id: str) -> dict:
    org_id = _require_organization(auth)
    listing = get_job_listing_or_404(job_listing_id, org_id)
    new_featured = not listing["is_featured"]

    if not has_org_user_permission(auth, PERMISSION_JOB_LISTINGS_CHANGE_STATUS):
        raise PermissionDeniedError(
            "You do not have permission to change the featured status of this job listing."
        )
    if new_featured:
        if listing["status"] != "published":
            raise ValidationError("Only published job listings can be featured.")
        if has_reached_max_featured_job_listings(auth):
            raise PlanLimitError(
                "You have reached the maximum number of featured job listings allowed by your plan."
            )

    return update_job_listing_db(job_listing_id, {"is_featured": new_featured})


# ============================================================
# JOB SEEKER OPERATIONS
# ============================================================

def parse_search_filters(
    title: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    experience: Optional[str] = None,
    type: Optional[str] = None,
    location_requirement: Optional[str] = None,
    job_ids: Optional[List[str]] = None,
) -> dict:
    """Keep the usable filters; blank or invalid values are ignored, never rejected."""
    filters = {}
    if title and title.strip():
        filters["title"] = title.strip()
    if city and city.strip():
        filters["city"] = city.strip()
    if state and state.strip():
        filters["state"] = state.strip().upper()
    if experience in EXPERIENCE_LEVELS:
        filters["experience"] = experience
    if type in JOB_LISTING_TYPES:
        filters["type"] = type
    if location_requirement in LOCATION_REQUIREMENTS:
        filters["location_requirement"] = location_requirement
    ids = tuple(job_id for job_id in (job_ids or []) if job_id)
    if ids:
        filters["job_ids"] = ids
    return filters


@data_cache.cached(lambda filter_items, job_listing_id=None: get_job_listing_global_tag())
def _search_published_job_listings(filter_items: tuple, job_listing_id: Optional[str] = None) -> List[dict]:
    filters = dict(filter_items)
    conditions = []
    params = {}

    if "title" in filters:
        conditions.append("LOWER(jl.title) LIKE :title ESCAPE '\\'")
        params["title"] = _like_pattern(filters["title"])
    if "location_requirement" in filters:
        conditions.append("jl.location_requirement = :location_requirement")
        params["location_requirement"] = filters["location_requirement"]
    if "city" in filters:
        conditions.append("LOWER(jl.city) LIKE :city ESCAPE '\\'")
        params["city"] = _like_pattern(filters["city"])
    if "state" in filters:
        conditions.append("jl.state_abbreviation = :state")
        params["state"] = filters["state"]
    if "experience" in filters:
        conditions.append("jl.experience_level = :experience")
        params["experience"] = filters["experience"]
    if "type" in filters:
        conditions.append("jl.type = :type")
        params["type"] = filters["type"]
    if "job_ids" in filters:
        placeholders = []
        for index, job_id in enumerate(filters["job_ids"]):
            params[f"job_id_{index}"] = job_id
            placeholders.append(f":job_id_{index}")
        conditions.append(f"jl.id IN ({', '.join(placeholders)})")

    where = " AND ".join(["jl.status = 'published'"] + conditions)
    if job_listing_id:
        where = f"(jl.status = 'published' AND jl.id = :job_listing_id) OR ({where})"
        params["job_listing_id"] = job_listing_id

    rows = execute_raw_sql(
        f"""
        SELECT {JOB_LISTING_COLUMNS},
               o.name AS organization_name, o.image_url AS organization_image_url
        FROM job_listings jl
        JOIN organizations o ON o.id = jl.organization_id
        WHERE {where}
        ORDER BY jl.is_featured DESC, jl.posted_at DESC
        """,
        params,
    )
    for row in rows:
        cache_tag(get_organization_id_tag(row["organization_id"]))
    return [_normalize_listing(row) for row in rows]


def to_public_listing(row: dict) -> dict:
    days = days_since(row.get("posted_at"))
    return {
        "id": row["id"],
        "title": row["title"],
        "description": row["description"],
        "wage": row["wage"],
        "wage_interval": row["wage_interval"],
        "state_abbreviation": row["state_abbreviation"],
        "city": row["city"],
        "is_featured": row["is_featured"],
        "location_requirement": row["location_requirement"],
        "experience_level": row["experience_level"],
        "type": row["type"],
        "posted_at": row["posted_at"],
        "days_since_posted": days,
        "posted_label": format_days_since_posted(days),
        "badges": job_listing_badges(row),
        "organization": {
            "id": row["organization_id"],
            "name": row["organization_name"],
            "image_url": row["organization_image_url"],
        },
    }


def search_published_job_listings(filters: dict, job_listing_id: Optional[str] = None) -> List[dict]:
    """
    Published listings matching the filters, featured first then newest.

    ``job_listing_id`` (the listing open next to the results) is included even
    when it does not match the filters, as long as it is published.
    """
    rows = _search_published_job_listings(tuple(sorted(filters.items())), job_listing_id)
    return [to_public_listing(row) for row in rows]


@data_cache.cached(lambda job_listing_id: get_job_listing_id_tag(job_listing_id))
def find_published_job_listing(job_listing_id: str) -> Optional[dict]:
    row = fetch_one(
        f"""
        SELECT {JOB_LISTING_COLUMNS},
               o.name AS organization_name, o.image_url AS organization_image_url
        FROM job_listings jl
        JOIN organizations o ON o.id = jl.organization_id
        WHERE jl.id = :id AND jl.status = 'published'
        """,
        {"id": job_listing_id},
    )
    if not row:
        return None
    cache_tag(get_organization_id_tag(row["organization_id"]))
    return _normalize_listing(row)


def get_published_job_listing(job_listing_id: str) -> dict:
    row = find_published_job_listing(job_listing_id)
    if not row:
        raise NotFoundError("Job listing not found.")
    return to_public_listing(row)


@data_cache.cached(lambda: get_job_listing_global_tag())
def list_published_job_listings_for_matching() -> List[dict]:
    rows = execute_raw_sql(
        f"SELECT {JOB_LISTING_COLUMNS} FROM job_listings jl WHERE jl.status = 'published'"
    )
    return [_normalize_listing(row) for row in rows]


def ai_search_job_listings(query: str, llm_client) -> List[str]:
    """Ids of published listings the model matched to the query (at most 10)."""
    listings = list_published_job_listings_for_matching()
    return llm_client.get_matching_job_listings(query, listings, max_number_of_jobs=AI_SEARCH_MAX_JOBS)
