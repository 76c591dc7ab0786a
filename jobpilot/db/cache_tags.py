"""
Cache tags per entity and the revalidation helpers called after each write.

Each entity has a global tag, an id tag and, where it belongs to a parent,
a parent tag. A write revalidates all of them.
"""

from jobpilot.core.cache import (
    data_cache,
    get_global_tag,
    get_id_tag,
    get_job_listing_tag,
    get_organization_tag,
)


# ============================================================
# JOB LISTINGS
# ============================================================

def get_job_listing_global_tag() -> str:
    return get_global_tag("jobListings")


def get_job_listing_organization_tag(organization_id: str) -> str:
    return get_organization_tag("jobListings", organization_id)


def get_job_listing_id_tag(job_listing_id: str) -> str:
    return get_id_tag("jobListings", job_listing_id)


def revalidate_job_listing_cache(job_listing_id: str, organization_id: str) -> None:
    data_cache.revalidate_tag(get_job_listing_global_tag())
    data_cache.revalidate_tag(get_job_listing_organization_tag(organization_id))
    data_cache.revalidate_tag(get_job_listing_id_tag(job_listing_id))


# ============================================================
# JOB LISTING APPLICATIONS
# ============================================================

def get_job_listing_application_global_tag() -> str:
    return get_global_tag("jobListingApplications")


def get_job_listing_application_job_listing_tag(job_listing_id: str) -> str:
    return get_job_listing_tag("jobListingApplications", job_listing_id)


def get_job_listing_application_id_tag(job_listing_id: str, user_id: str) -> str:
    return get_id_tag("jobListingApplications", f"{job_listing_id}-{user_id}")


def revalidate_job_listing_application_cache(job_listing_id: str, user_id: str) -> None:
    data_cache.revalidate_tag(get_job_listing_application_global_tag())
    data_cache.revalidate_tag(get_job_listing_application_job_listing_tag(job_listing_id))
    data_cache.revalidate_tag(get_job_listing_application_id_tag(job_listing_id, user_id))


def revalidate_job_listing_application_global_cache() -> None:
    """After bulk deletes (user, organization, listing) that remove applications."""
    data_cache.revalidate_tag(get_job_listing_application_global_tag())


# ============================================================
# USERS
# ============================================================

def get_user_global_tag() -> str:
    return get_global_tag("users")


def get_user_id_tag(user_id: str) -> str:
    return get_id_tag("users", user_id)


def revalidate_user_cache(user_id: str) -> None:
    data_cache.revalidate_tag(get_user_global_tag())
    data_cache.revalidate_tag(get_user_id_tag(user_id))


def get_user_notification_settings_global_tag() -> str:
    return get_global_tag("userNotificationSettings")


def get_user_notification_settings_id_tag(user_id: str) -> str:
    return get_id_tag("userNotificationSettings", user_id)


def revalidate_user_notification_settings_cache(user_id: str) -> None:
    data_cache.revalidate_tag(get_user_notification_settings_global_tag())
    data_cache.revalidate_tag(get_user_notification_settings_id_tag(user_id))


def get_user_resume_global_tag() -> str:
    return get_global_tag("userResumes")


def get_user_resume_id_tag(user_id: str) -> str:
    return get_id_tag("userResumes", user_id)


def revalidate_user_resume_cache(user_id: str) -> None:
    data_cache.revalidate_tag(get_user_resume_global_tag())
    data_cache.revalidate_tag(get_user_resume_id_tag(user_id))


# ============================================================
# ORGANIZATIONS
# ============================================================

def get_organization_global_tag() -> str:
    return get_global_tag("organizations")


def get_organization_id_tag(organization_id: str) -> str:
    return get_id_tag("organizations", organization_id)


def revalidate_organization_cache(organization_id: str) -> None:
    data_cache.revalidate_tag(get_organization_global_tag())
    data_cache.revalidate_tag(get_organization_id_tag(organization_id))


def get_organization_user_settings_global_tag() -> str:
    return get_global_tag("organizationUserSettings")


def get_organization_user_settings_id_tag(organization_id: str, user_id: str) -> str:
    return get_id_tag("organizationUserSettings", f"{organization_id}-{user_id}")


def revalidate_organization_user_settings_cache(organization_id: str, user_id: str) -> None:
    data_cache.revalidate_tag(get_organization_user_settings_global_tag())
    data_cache.revalidate_tag(get_organization_user_settings_id_tag(organization_id, user_id))
