"""
Table definitions.

Queries are written as raw SQL (see db/postgres.py); these definitions exist
so the schema can be created with ``metadata.create_all`` on PostgreSQL and
on SQLite for tests.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)

metadata = MetaData()

# ============================================================
# ENUM VALUES (stored as varchar)
# ============================================================

WAGE_INTERVALS = ("hourly", "daily", "weekly", "monthly", "yearly")
LOCATION_REQUIREMENTS = ("remote", "onsite", "hybrid")
EXPERIENCE_LEVELS = ("junior", "mid-level", "senior")
JOB_LISTING_STATUSES = ("draft", "published", "delisted")
JOB_LISTING_TYPES = ("internship", "full-time", "part-time", "contract")
APPLICATION_STAGES = ("applied", "interested", "interviewed", "hired", "rejected")


def _timestamps():
    return [
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    ]


users = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False, unique=True),
    Column("image_url", String, nullable=True),
    *_timestamps(),
)

organizations = Table(
    "organizations",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("image_url", String, nullable=True),
    *_timestamps(),
)

organization_user_settings = Table(
    "organization_user_settings",
    metadata,
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("organization_id", String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    Column("new_application_email_notifications", Boolean, nullable=False, default=False),
    Column("minimum_rating", Integer, nullable=True),
    *_timestamps(),
    PrimaryKeyConstraint("user_id", "organization_id"),
)

user_notification_settings = Table(
    "user_notification_settings",
    metadata,
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("new_job_email_notifications", Boolean, nullable=False, default=False),
    Column("ai_prompt", String, nullable=True),
    *_timestamps(),
)

user_resumes = Table(
    "user_resumes",
    metadata,
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("resume_file_url", String, nullable=False),
    Column("resume_file_key", String, nullable=False),
    Column("ai_summary", Text, nullable=True),
    *_timestamps(),
)

job_listings = Table(
    "job_listings",
    metadata,
    Column("id", String, primary_key=True),
    Column("organization_id", String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    Column("title", String, nullable=False),
    Column("description", Text, nullable=False),
    Column("wage", Integer, nullable=True),
    Column("wage_interval", String, nullable=True),
    Column("state_abbreviation", String, nullable=True),
    Column("city", String, nullable=True),
    Column("is_featured", Boolean, nullable=False, default=False),
    Column("location_requirement", String, nullable=False),
    Column("experience_level", String, nullable=False),
    Column("status", String, nullable=False, default="draft"),
    Column("type", String, nullable=False),
    Column("posted_at", DateTime(timezone=True), nullable=True),
    *_timestamps(),
    Index("ix_job_listings_state_abbreviation", "state_abbreviation"),
)

job_listing_applications = Table(
    "job_listing_applications",
    metadata,
    Column("job_listing_id", String, ForeignKey("job_listings.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("cover_letter", Text, nullable=True),
    Column("rating", Integer, nullable=True),
    Column("stage", String, nullable=False, default="applied"),
    *_timestamps(),
    PrimaryKeyConstraint("job_listing_id", "user_id"),
)
