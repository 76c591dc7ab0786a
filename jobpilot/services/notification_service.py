"""
Daily Notifications

Once a day (cron endpoint or in-process scheduler) two fan-out functions run:

1. job seekers: every user with job emails enabled gets the listings
   published in the last day, filtered by their AI prompt when they set one
2. employers: every member with application emails enabled gets the
   applications of the last day for their organizations, above their
   minimum rating

Each fan-out emits one email event per recipient; the email functions are
throttled so the mail provider is not flooded.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from starlette.concurrency import run_in_threadpool

from jobpilot.core.config import get_settings
from jobpilot.db.postgres import execute_raw_sql
from jobpilot.services.application_service import rank_application
from jobpilot.services.email_service import get_email_service
from jobpilot.services.events import (
    DAILY_NOTIFICATIONS_CRON,
    DAILY_ORGANIZATION_USER_APPLICATIONS_EMAIL,
    DAILY_USER_JOB_LISTINGS_EMAIL,
    JOB_LISTING_APPLICATION_CREATED,
    RESUME_UPLOADED,
    Event,
    EventWorker,
    Throttle,
)
from jobpilot.services.llm_client import get_llm_client
from jobpilot.services.user_service import create_ai_summary_of_uploaded_resume

logger = logging.getLogger(__name__)

settings = get_settings()

DAILY_JOB_LISTINGS_LIMIT = 10


# ============================================================
# QUERIES
# ============================================================

def get_users_with_job_notifications() -> List[dict]:
    return execute_raw_sql(
        """
        SELECT s.user_id, s.ai_prompt, u.email, u.name
        FROM user_notification_settings s
        JOIN users u ON u.id = s.user_id
        WHERE s.new_job_email_notifications = TRUE
        """
    )


def get_recent_job_listings(since: datetime) -> List[dict]:
    rows = execute_raw_sql(
        """
        SELECT jl.id, jl.title, jl.description, jl.wage, jl.wage_interval, jl.state_abbreviation,
               jl.city, jl.is_featured, jl.location_requirement, jl.experience_level, jl.type,
               o.name AS organization_name
        FROM job_listings jl
        JOIN organizations o ON o.id = jl.organization_id
        WHERE jl.status = 'published' AND jl.posted_at >= :since
        ORDER BY jl.posted_at DESC
        LIMIT :limit
        """,
        {"since": since, "limit": DAILY_JOB_LISTINGS_LIMIT},
    )
    for row in rows:
        row["is_featured"] = bool(row["is_featured"])
    return rows


def get_organization_user_settings_with_application_notifications() -> List[dict]:
    return execute_raw_sql(
        """
        SELECT s.user_id, s.organization_id, s.minimum_rating, u.email, u.name
        FROM organization_user_settings s
        JOIN users u ON u.id = s.user_id
        WHERE s.new_application_email_notifications = TRUE
        """
    )


def get_recent_applications(since: datetime) -> List[dict]:
    return execute_raw_sql(
        """
        SELECT a.rating, u.name AS user_name, jl.id AS job_listing_id, jl.title AS job_listing_title,
               o.id AS organization_id, o.name AS organization_name
        FROM job_listing_applications a
        JOIN users u ON u.id = a.user_id
        JOIN job_listings jl ON jl.id = a.job_listing_id
        JOIN organizations o ON o.id = jl.organization_id
        WHERE a.created_at >= :since
        ORDER BY a.created_at
        """,
        {"since": since},
    )


# ============================================================
# FAN-OUT
# ============================================================

def build_user_job_listing_events(users: List[dict], job_listings: List[dict]) -> List[Event]:
    if not users or not job_listings:
        return []
    return [
        Event(
            name=DAILY_USER_JOB_LISTINGS_EMAIL,
            user={"email": user["email"], "name": user["name"]},
            data={"ai_prompt": user["ai_prompt"], "job_listings": job_listings},
        )
        for user in users
    ]


def build_organization_user_application_events(
    user_settings: List[dict],
    applications: List[dict],
) -> List[Event]:
    """
    One event per user (a user may watch several organizations).

    An application is kept when its organization is one the user watches and
    its rating (unrated counts as 0) reaches that organization's minimum.
    """
    if not user_settings or not applications:
        return []

    grouped = OrderedDict()
    for setting in user_settings:
        grouped.setdefault(setting["user_id"], []).append(setting)

    events = []
    for settings_of_user in grouped.values():
        minimum_by_org = {s["organization_id"]: s["minimum_rating"] for s in settings_of_user}
        kept = [
            {
                "organization_id": application["organization_id"],
                "organization_name": application["organization_name"],
                "job_listing_id": application["job_listing_id"],
                "job_listing_title": application["job_listing_title"],
                "user_name": application["user_name"],
                "rating": application["rating"],
            }
            for application in applications
            if application["organization_id"] in minimum_by_org
            and (
                not minimum_by_org[application["organization_id"]]
                or (application["rating"] or 0) >= minimum_by_org[application["organization_id"]]
            )
        ]
        if not kept:
            continue

        first = settings_of_user[0]
        events.append(Event(
            name=DAILY_ORGANIZATION_USER_APPLICATIONS_EMAIL,
            user={"email": first["email"], "name": first["name"]},
            data={"applications": kept},
        ))
    return events


async def prepare_daily_user_job_listing_notifications(event: Event, worker: EventWorker) -> None:
    function_id = "prepare-daily-user-job-listing-notifications"
    since = event.ts - timedelta(days=1)

    with worker.step(function_id, "get-users"):
        users = await run_in_threadpool(get_users_with_job_notifications)
    with worker.step(function_id, "get-recent-job-listings"):
        job_listings = await run_in_threadpool(get_recent_job_listings, since)

    events = build_user_job_listing_events(users, job_listings)
    if not events:
        logger.info("No job listing notifications to send")
        return

    with worker.step(function_id, "send-emails"):
        await worker.send(events)
    logger.info("Queued %d daily job listing emails", len(events))


async def prepare_daily_organization_user_application_notifications(event: Event, worker: EventWorker) -> None:
    function_id = "prepare-daily-organization-user-application-notifications"
    since = event.ts - timedelta(days=1)

    with worker.step(function_id, "get-user-settings"):
        user_settings = await run_in_threadpool(get_organization_user_settings_with_application_notifications)
    with worker.step(function_id, "get-recent-applications"):
        applications = await run_in_threadpool(get_recent_applications, since)

    events = build_organization_user_application_events(user_settings, applications)
    if not events:
        logger.info("No application notifications to send")
        return

    with worker.step(function_id, "send-emails"):
        await worker.send(events)
    logger.info("Queued %d daily application emails", len(events))


# ============================================================
# EMAILS
# ============================================================

def select_job_listings_for_user(ai_prompt: Optional[str], job_listings: List[dict]) -> List[dict]:
    if not job_listings:
        return []
    if not ai_prompt or not ai_prompt.strip():
        return job_listings
    matching_ids = get_llm_client().get_matching_job_listings(ai_prompt, job_listings)
    return [listing for listing in job_listings if listing["id"] in matching_ids]


async def send_daily_user_job_listing_email(event: Event, worker: EventWorker) -> None:
    function_id = "send-daily-user-job-listing-email"
    job_listings = event.data.get("job_listings") or []
    if not job_listings:
        return

    with worker.step(function_id, "match-job-listings"):
        matching = await run_in_threadpool(
            select_job_listings_for_user, event.data.get("ai_prompt"), job_listings
        )
    if not matching:
        logger.info("No matching job listings for %s", event.user["email"])
        return

    with worker.step(function_id, "send-email"):
        await run_in_threadpool(
            get_email_service().send_daily_job_listings,
            event.user["email"],
            event.user["name"],
            matching,
        )


async def send_daily_organization_user_application_email(event: Event, worker: EventWorker) -> None:
    function_id = "send-daily-organization-user-application-email"
    applications = event.data.get("applications") or []
    if not applications:
        return

    with worker.step(function_id, "send-email"):
        await run_in_threadpool(
            get_email_service().send_daily_applications,
            event.user["email"],
            event.user["name"],
            applications,
        )


# ============================================================
# REGISTRATION & SCHEDULING
# ============================================================

def register_functions(worker: EventWorker) -> EventWorker:
    worker.register(JOB_LISTING_APPLICATION_CREATED, "rank-job-listing-application", rank_application)
    worker.register(RESUME_UPLOADED, "create-ai-summary-of-uploaded-resume", create_ai_summary_of_uploaded_resume)
    worker.register(
        DAILY_NOTIFICATIONS_CRON,
        "prepare-daily-user-job-listing-notifications",
        prepare_daily_user_job_listing_notifications,
    )
    worker.register(
        DAILY_NOTIFICATIONS_CRON,
        "prepare-daily-organization-user-application-notifications",
        prepare_daily_organization_user_application_notifications,
    )
    worker.register(
        DAILY_USER_JOB_LISTINGS_EMAIL,
        "send-daily-user-job-listing-email",
        send_daily_user_job_listing_email,
        throttle=Throttle(limit=10, period=60),
    )
    worker.register(
        DAILY_ORGANIZATION_USER_APPLICATIONS_EMAIL,
        "send-daily-organization-user-application-email",
        send_daily_organization_user_application_email,
        throttle=Throttle(limit=100, period=60),
    )
    return worker


def next_run_after(instant: datetime, hour: int, tz_name: str) -> datetime:
    """The first ``hour``:00 in ``tz_name`` strictly after ``instant`` (aware), in UTC."""
    tz = ZoneInfo(tz_name)
    local = instant.astimezone(tz)
    next_run = local.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= local:
        next_run = (local + timedelta(days=1)).replace(hour=hour, minute=0, second=0, microsecond=0)
    # Compare in UTC so DST changes between now and the next run are honoured
    return next_run.astimezone(timezone.utc)


def seconds_until_next_run(now: datetime, hour: int, tz_name: str) -> float:
    """Seconds from ``now`` (aware) until the next ``hour``:00 in ``tz_name``."""
    return (next_run_after(now, hour, tz_name) - now.astimezone(timezone.utc)).total_seconds()


def daily_notifications_event() -> Event:
    return Event(name=DAILY_NOTIFICATIONS_CRON)


async def run_daily_scheduler(
    worker: EventWorker,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> None:
    """
    Queue the daily notifications event at ``notification_hour`` every day.

    Each run is scheduled from the previous scheduled instant, and a sleep
    that wakes early sleeps again, so a run fires once per day.
    """
    next_run = next_run_after(clock(), settings.notification_hour, settings.notification_timezone)
    while True:
        delay = (next_run - clock()).total_seconds()
        logger.info("Next daily notifications run in %.0f seconds", delay)
        while delay > 0:
            await asyncio.sleep(delay)
            delay = (next_run - clock()).total_seconds()
        await worker.send(daily_notifications_event())
        next_run = next_run_after(next_run, settings.notification_hour, settings.notification_timezone)
