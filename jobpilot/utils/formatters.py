"""Display labels for listing and application fields (used by API and emails)."""

from datetime import datetime, timezone
from typing import Optional

WAGE_INTERVAL_LABELS = {
    "hourly": "Hour",
    "daily": "Day",
    "weekly": "Week",
    "monthly": "Month",
    "yearly": "Year",
}

WAGE_INTERVAL_PHRASES = {
    "hourly": "per hour",
    "daily": "per day",
    "weekly": "per week",
    "monthly": "per month",
    "yearly": "per year",
}

LOCATION_REQUIREMENT_LABELS = {
    "remote": "Remote",
    "onsite": "Onsite",
    "hybrid": "Hybrid",
}

JOB_TYPE_LABELS = {
    "internship": "Internship",
    "full-time": "Full-time",
    "part-time": "Part-time",
    "contract": "Contract",
}

EXPERIENCE_LEVEL_LABELS = {
    "junior": "Junior",
    "mid-level": "Mid-level",
    "senior": "Senior",
}

JOB_LISTING_STATUS_LABELS = {
    "draft": "Draft",
    "published": "Published",
    "delisted": "Delisted",
}

APPLICATION_STAGE_LABELS = {
    "applied": "Applied",
    "interested": "Interested",
    "interviewed": "Interviewed",
    "hired": "Hired",
    "rejected": "Rejected",
}

APPLICATION_STAGE_ORDER = {
    "applied": 0,
    "interested": 1,
    "interviewed": 2,
    "hired": 3,
    "rejected": 4,
}


def _label(labels: dict, value: str, kind: str) -> str:
    try:
        return labels[value]
    except KeyError:
        raise ValueError(f"Invalid {kind}: {value}") from None


def format_wage_interval(interval: str) -> str:
    return _label(WAGE_INTERVAL_LABELS, interval, "wage interval")


def format_location_requirement(requirement: str) -> str:
    return _label(LOCATION_REQUIREMENT_LABELS, requirement, "location requirement")


def format_job_type(job_type: str) -> str:
    return _label(JOB_TYPE_LABELS, job_type, "job type")


def format_experience_level(level: str) -> str:
    return _label(EXPERIENCE_LEVEL_LABELS, level, "experience level")


def format_job_listing_status(status: str) -> str:
    return _label(JOB_LISTING_STATUS_LABELS, status, "job listing status")


def format_application_stage(stage: str) -> str:
    return _label(APPLICATION_STAGE_LABELS, stage, "application stage")


def application_stage_sort_key(stage: str) -> int:
    return APPLICATION_STAGE_ORDER[stage]


def format_wage(wage: int, wage_interval: str) -> str:
    """Format as US dollars without cents, e.g. ``$85,000 per year``."""
    phrase = _label(WAGE_INTERVAL_PHRASES, wage_interval, "wage interval")
    return f"${wage:,.0f} {phrase}"


def format_location(state_abbreviation: Optional[str], city: Optional[str]) -> str:
    if not state_abbreviation and not city:
        return "None"
    parts = []
    if city:
        parts.append(city)
    if state_abbreviation:
        parts.append(state_abbreviation)
    return ", ".join(parts)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Normalise a timestamp read from the database.

    PostgreSQL returns aware datetimes; SQLite returns ISO strings. Naive
    values are taken to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def days_since(value, now: Optional[datetime] = None) -> Optional[int]:
    posted_at = parse_timestamp(value)
    if posted_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    return (now - posted_at).days


def format_days_since_posted(days: Optional[int]) -> Optional[str]:
    """``New`` on the posting day, then ``3d ago``."""
    if days is None:
        return None
    if days <= 0:
        return "New"
    return f"{days}d ago"


def job_listing_badges(listing: dict) -> list:
    """Badge labels shown on a listing card, in display order."""
    badges = []
    if listing.get("is_featured"):
        badges.append("Featured")
    if listing.get("wage") is not None and listing.get("wage_interval"):
        badges.append(format_wage(listing["wage"], listing["wage_interval"]))
    if listing.get("state_abbreviation") or listing.get("city"):
        badges.append(format_location(listing.get("state_abbreviation"), listing.get("city")))
    badges.append(format_location_requirement(listing["location_requirement"]))
    badges.append(format_job_type(listing["type"]))
    badges.append(format_experience_level(listing["experience_level"]))
    return badges
