"""
User Service

- users mirrored from the identity provider (written by the webhook)
- notification settings (daily job listing email, optional AI prompt)
- résumés: upload, download, AI summary
"""

import logging
from typing import Optional

from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from jobpilot.core.cache import data_cache
from jobpilot.core.exceptions import NotFoundError
from jobpilot.db.cache_tags import (
    get_user_id_tag,
    get_user_notification_settings_id_tag,
    get_user_resume_id_tag,
    revalidate_job_listing_application_global_cache,
    revalidate_user_cache,
    revalidate_user_notification_settings_cache,
    revalidate_user_resume_cache,
)
from jobpilot.db.postgres import fetch_one, get_db_session, utc_now
from jobpilot.services.events import RESUME_UPLOADED, Event
from jobpilot.services.file_storage import get_file_store, resume_download_url
from jobpilot.services.llm_client import get_llm_client
from jobpilot.utils.file_upload import extract_text

logger = logging.getLogger(__name__)


# ============================================================
# USERS
# ============================================================

@data_cache.cached(lambda user_id: get_user_id_tag(user_id))
def get_user(user_id: str) -> Optional[dict]:
    return fetch_one(
        "SELECT id, name, email, image_url, created_at, updated_at FROM users WHERE id = :id",
        {"id": user_id},
    )


def upsert_user(user_id: str, name: str, email: str, image_url: Optional[str] = None) -> None:
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO users (id, name, email, image_url, created_at, updated_at)
                VALUES (:id, :name, :email, :image_url, :now, :now)
                ON CONFLICT (id) DO UPDATE SET
                    name = excluded.name,
                    email = excluded.email,
                    image_url = excluded.image_url,
                    updated_at = excluded.updated_at
            """),
            {"id": user_id, "name": name, "email": email, "image_url": image_url, "now": now},
        )
    revalidate_user_cache(user_id)


def delete_user(user_id: str) -> None:
    with get_db_session() as db:
        file_key = db.execute(
            text("SELECT resume_file_key FROM user_resumes WHERE user_id = :id"), {"id": user_id}
        ).scalar()
        for table in (
            "job_listing_applications",
            "user_resumes",
            "user_notification_settings",
            "organization_user_settings",
        ):
            db.execute(text(f"DELETE FROM {table} WHERE user_id = :id"), {"id": user_id})
        db.execute(text("DELETE FROM users WHERE id = :id"), {"id": user_id})

    revalidate_user_cache(user_id)
    revalidate_user_notification_settings_cache(user_id)
    revalidate_job_listing_application_global_cache()
    revalidate_user_resume_cache(user_id)
    if file_key:
        get_file_store().delete(file_key)
    logger.info("Deleted user %s", user_id)


# ============================================================
# NOTIFICATION SETTINGS
# ============================================================

def _normalize_settings(row: dict) -> dict:
    return {
        "user_id": row["user_id"],
        "new_job_email_notifications": bool(row["new_job_email_notifications"]),
        "ai_prompt": row["ai_prompt"],
    }


@data_cache.cached(lambda user_id: get_user_notification_settings_id_tag(user_id))
def get_user_notification_settings(user_id: str) -> dict:
    """Settings of a user; defaults when none are stored yet."""
    row = fetch_one(
        "SELECT user_id, new_job_email_notifications, ai_prompt "
        "FROM user_notification_settings WHERE user_id = :user_id",
        {"user_id": user_id},
    )
    if not row:
        return {"user_id": user_id, "new_job_email_notifications": False, "ai_prompt": None}
    return _normalize_settings(row)


def insert_user_notification_settings(user_id: str) -> None:
    """Default settings for a new user; existing settings are left alone."""
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO user_notification_settings
                    (user_id, new_job_email_notifications, ai_prompt, created_at, updated_at)
                VALUES (:user_id, FALSE, NULL, :now, :now)
                ON CONFLICT (user_id) DO NOTHING
            """),
            {"user_id": user_id, "now": now},
        )
    revalidate_user_notification_settings_cache(user_id)


def update_user_notification_settings(
    user_id: str,
    new_job_email_notifications: bool,
    ai_prompt: Optional[str],
) -> dict:
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO user_notification_settings
                    (user_id, new_job_email_notifications, ai_prompt, created_at, updated_at)
                VALUES (:user_id, :enabled, :ai_prompt, :now, :now)
                ON CONFLICT (user_id) DO UPDATE SET
                    new_job_email_notifications = excluded.new_job_email_notifications,
                    ai_prompt = excluded.ai_prompt,
                    updated_at = excluded.updated_at
            """),
            {"user_id": user_id, "enabled": new_job_email_notifications, "ai_prompt": ai_prompt, "now": now},
        )
    revalidate_user_notification_settings_cache(user_id)
    return get_user_notification_settings(user_id)


# ============================================================
# RESUMES
# ============================================================

@data_cache.cached(lambda user_id: get_user_resume_id_tag(user_id))
def get_user_resume(user_id: str) -> Optional[dict]:
    return fetch_one(
        "SELECT user_id, resume_file_url, resume_file_key, ai_summary, created_at, updated_at "
        "FROM user_resumes WHERE user_id = :user_id",
        {"user_id": user_id},
    )


def upsert_user_resume(user_id: str, resume_file_url: str, resume_file_key: str) -> None:
    """A new file resets the AI summary until the summary job has run."""
    now = utc_now()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO user_resumes
                    (user_id, resume_file_url, resume_file_key, ai_summary, created_at, updated_at)
                VALUES (:user_id, :url, :key, NULL, :now, :now)
                ON CONFLICT (user_id) DO UPDATE SET
                    resume_file_url = excluded.resume_file_url,
                    resume_file_key = excluded.resume_file_key,
                    ai_summary = NULL,
                    updated_at = excluded.updated_at
            """),
            {"user_id": user_id, "url": resume_file_url, "key": resume_file_key, "now": now},
        )
    revalidate_user_resume_cache(user_id)


def update_user_resume_summary(user_id: str, ai_summary: str) -> None:
    with get_db_session() as db:
        db.execute(
            text("UPDATE user_resumes SET ai_summary = :summary, updated_at = :now WHERE user_id = :user_id"),
            {"summary": ai_summary, "now": utc_now(), "user_id": user_id},
        )
    revalidate_user_resume_cache(user_id)


def store_user_resume(user_id: str, filename: str, content: bytes, content_type: str) -> dict:
    """
    Save a new résumé file for the user.

    The previous file (if any) is removed from storage once the row points at
    the new one. Returns the résumé row; the caller emits the upload event.
    """
    store = get_file_store()
    previous = get_user_resume.uncached(user_id)

    file_key = store.put(user_id, filename, content, content_type)
    upsert_user_resume(user_id, resume_download_url(user_id), file_key)

    if previous and previous["resume_file_key"] != file_key:
        store.delete(previous["resume_file_key"])

    logger.info("Stored resume for user %s", user_id)
    return get_user_resume(user_id)


def resume_uploaded_event(user_id: str) -> Event:
    return Event(name=RESUME_UPLOADED, data={"user_id": user_id}, user={"id": user_id})


def get_user_resume_file(user_id: str) -> tuple:
    """``(filename, content, content_type)`` of the user's résumé."""
    resume = get_user_resume(user_id)
    if not resume:
        raise NotFoundError("Resume not found.")
    stored = get_file_store().get(resume["resume_file_key"])
    if stored is None:
        raise NotFoundError("Resume file not found.")
    return stored


# ============================================================
# BACKGROUND: AI RESUME SUMMARY
# ============================================================

async def create_ai_summary_of_uploaded_resume(event: Event, worker) -> None:
    function_id = "create-ai-summary-of-uploaded-resume"
    user_id = event.data["user_id"]

    with worker.step(function_id, "get-user-resume"):
        resume = await run_in_threadpool(get_user_resume, user_id)
    if resume is None:
        logger.warning("No resume for user %s, skipping summary", user_id)
        return

    with worker.step(function_id, "read-resume-file"):
        stored = await run_in_threadpool(get_file_store().get, resume["resume_file_key"])
        if stored is None:
            logger.warning("Resume file %s is missing", resume["resume_file_key"])
            return
        filename, content, _ = stored
        resume_text = await run_in_threadpool(extract_text, content, filename)

    if not resume_text.strip():
        logger.warning("Resume of user %s has no extractable text", user_id)
        return

    with worker.step(function_id, "summarize-resume"):
        summary = await run_in_threadpool(get_llm_client().summarize_resume, resume_text)

    with worker.step(function_id, "save-ai-summary"):
        await run_in_threadpool(update_user_resume_summary, user_id, summary)
    logger.info("Saved AI resume summary for user %s", user_id)
