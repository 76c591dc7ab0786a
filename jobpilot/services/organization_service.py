"""
Organization Service

Organizations mirrored from the identity provider and the per-member
settings for the daily applications email.
"""

import logging
from typing import Optional

from sqlalchemy import text

from jobpilot.core.cache import data_cache
from jobpilot.db.cache_tags import (
    get_organization_id_tag,
    get_organization_user_settings_id_tag,
    revalidate_job_listing_application_global_cache,
    revalidate_job_listing_cache,
    revalidate_organization_cache,
    revalidate_organization_user_settings_cache,
)
from jobpilot.db.postgres import execute_raw_sql, fetch_one, get_db_session, utc_now

logger = logging.getLogger(__name__)


@data_cache.cached(lambda organization_id: get_organization_id_tag(organization_id))
def get_organization(organization_id: str) -> Optional[dict]:
    return fetch_one(
        "SELECT id, name, image_url, created_at, updated_at FROM organizations WHERE id = :id",
        {"id": organization_id},
    )


def upsert_organization(organization_id: str, name: str, image_url: Optional[str] = None) -> None:
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO organizations (id, name, image_url, created_at, updated_at)
                VALUES (:id, :name, :image_url, :now, :now)
                ON CONFLICT (id) DO UPDATE SET
                    name = excluded.name,
                    image_url = excluded.image_url,
                    updated_at = excluded.updated_at
            """),
            {"id": organization_id, "name": name, "image_url": image_url, "now": now},
        )
    revalidate_organization_cache(organization_id)


def delete_organization(organization_id: str) -> None:
    listing_ids = [
        row["id"]
        for row in execute_raw_sql(
            "SELECT id FROM job_listings WHERE organization_id = :id", {"id": organization_id}
        )
    ]
    with get_db_session() as db:
        db.execute(
            text(
                "DELETE FROM job_listing_applications WHERE job_listing_id IN "
                "(SELECT id FROM job_listings WHERE organization_id = :id)"
            ),
            {"id": organization_id},
        )
        db.execute(text("DELETE FROM job_listings WHERE organization_id = :id"), {"id": organization_id})
        db.execute(text("DELETE FROM organization_user_settings WHERE organization_id = :id"), {"id": organization_id})
        db.execute(text("DELETE FROM organizations WHERE id = :id"), {"id": organization_id})

    revalidate_organization_cache(organization_id)
    for listing_id in listing_ids:
        revalidate_job_listing_cache(listing_id, organization_id)
    revalidate_job_listing_application_global_cache()
    logger.info("Deleted organization %s with %d job listings", organization_id, len(listing_ids))


# ============================================================
# ORGANIZATION USER SETTINGS
# ============================================================

def _normalize_settings(row: dict) -> dict:
    return {
        "user_id": row["user_id"],
        "organization_id": row["organization_id"],
        "new_application_email_notifications": bool(row["new_application_email_notifications"]),
        "minimum_rating": row["minimum_rating"],
    }


@data_cache.cached(
    lambda organization_id, user_id: get_organization_user_settings_id_tag(organization_id, user_id)
)
def get_organization_user_settings(organization_id: str, user_id: str) -> dict:
    """Settings of a member; defaults when none are stored yet."""
    row = fetch_one(
        "SELECT user_id, organization_id, new_application_email_notifications, minimum_rating "
        "FROM organization_user_settings WHERE organization_id = :org_id AND user_id = :user_id",
        {"org_id": organization_id, "user_id": user_id},
    )
    if not row:
        return {
            "user_id": user_id,
            "organization_id": organization_id,
            "new_application_email_notifications": False,
            "minimum_rating": None,
        }
    return _normalize_settings(row)


def insert_organization_user_settings(organization_id: str, user_id: str) -> None:
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO organization_user_settings
                    (user_id, organization_id, new_application_email_notifications, minimum_rating,
                     created_at, updated_at)
                VALUES (:user_id, :org_id, FALSE, NULL, :now, :now)
                ON CONFLICT (user_id, organization_id) DO NOTHING
            """),
            {"user_id": user_id, "org_id": organization_id, "now": now},
        )
    revalidate_organization_user_settings_cache(organization_id, user_id)


def update_organization_user_settings(
    organization_id: str,
    user_id: str,
    new_application_email_notifications: bool,
    minimum_rating: Optional[int],
) -> dict:
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO organization_user_settings
                    (user_id, organization_id, new_application_email_notifications, minimum_rating,
                     created_at, updated_at)
                VALUES (:user_id, :org_id, :enabled, :minimum_rating, :now, :now)
                ON CONFLICT (user_id, organization_id) DO UPDATE SET
                    new_application_email_notifications = excluded.new_application_email_notifications,
                    minimum_rating = excluded.minimum_rating,
                    updated_at = excluded.updated_at
            """),
            {
                "user_id": user_id,
                "org_id": organization_id,
                "enabled": new_application_email_notifications,
                "minimum_rating": minimum_rating,
                "now": now,
            },
        )
    revalidate_organization_user_settings_cache(organization_id, user_id)
    return get_organization_user_settings(organization_id, user_id)


def delete_organization_user_settings(organization_id: str, user_id: str) -> None:
    with get_db_session() as db:
        db.execute(
            text("DELETE FROM organization_user_settings WHERE organization_id = :org_id AND user_id = :user_id"),
            {"org_id": organization_id, "user_id": user_id},
        )
    revalidate_organization_user_settings_cache(organization_id, user_id)
