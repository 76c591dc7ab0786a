"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


def _blank_to_none(value):
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


# ============================================================
# ENUMS
# ============================================================

class WageInterval(str, Enum):
    hourly = "hourly"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class LocationRequirement(str, Enum):
    remote = "remote"
    onsite = "onsite"
    hybrid = "hybrid"


class ExperienceLevel(str, Enum):
    junior = "junior"
    mid_level = "mid-level"
    senior = "senior"


class JobListingStatus(str, Enum):
    draft = "draft"
    published = "published"
    delisted = "delisted"


class JobListingType(str, Enum):
    internship = "internship"
    full_time = "full-time"
    part_time = "part-time"
    contract = "contract"


class ApplicationStage(str, Enum):
    applied = "applied"
    interested = "interested"
    interviewed = "interviewed"
    hired = "hired"
    rejected = "rejected"


# ============================================================
# JOB LISTING SCHEMAS
# ============================================================

class JobListingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    experience_level: ExperienceLevel
    location_requirement: LocationRequirement
    type: JobListingType
    wage: Optional[int] = Field(None, gt=0)
    wage_interval: Optional[WageInterval] = None
    state_abbreviation: Optional[str] = Field(None, max_length=2)
    city: Optional[str] = None

    @field_validator("state_abbreviation", "city", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)

    @field_validator("state_abbreviation")
    @classmethod
    def upper_state(cls, value):
        return value.upper() if value else value

    @model_validator(mode="after")
    def check_location(self):
        if self.location_requirement != LocationRequirement.remote:
            if self.city is None:
                raise ValueError("city is required for non-remote listings")
            if self.state_abbreviation is None:
                raise ValueError("state_abbreviation is required for non-remote listings")
        if self.wage is not None and self.wage_interval is None:
            raise ValueError("wage_interval is required when a wage is given")
        return self


class JobListingUpdate(JobListingCreate):
    """Updates replace the editable fields wholesale, like the create form."""


class OrganizationSummary(BaseModel):
    id: str
    name: str
    image_url: Optional[str] = None


class JobListingResponse(BaseModel):
    id: str
    organization_id: str
    title: str
    description: str
    wage: Optional[int] = None
    wage_interval: Optional[str] = None
    state_abbreviation: Optional[str] = None
    city: Optional[str] = None
    is_featured: bool = False
    location_requirement: str
    experience_level: str
    status: str
    type: str
    posted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EmployerJobListingItem(BaseModel):
    id: str
    title: str
    status: str
    is_featured: bool
    application_count: int
    created_at: datetime


class EmployerJobListingGroup(BaseModel):
    status: str
    label: str
    job_listings: List[EmployerJobListingItem]


class PublicJobListingResponse(BaseModel):
    id: str
    title: str
    description: str
    wage: Optional[int] = None
    wage_interval: Optional[str] = None
    state_abbreviation: Optional[str] = None
    city: Optional[str] = None
    is_featured: bool = False
    location_requirement: str
    experience_level: str
    type: str
    posted_at: Optional[datetime] = None
    days_since_posted: Optional[int] = None
    posted_label: Optional[str] = None
    badges: List[str] = []
    organization: OrganizationSummary


class JobListingListResponse(BaseModel):
    job_listings: List[PublicJobListingResponse]
    total: int


class StatusChangeResponse(BaseModel):
    message: str
    success: bool = True
    status: str
    is_featured: bool


class PlanLimitsResponse(BaseModel):
    reached_max_published_job_listings: bool
    reached_max_featured_job_listings: bool


class AISearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=5000)


class AISearchResponse(BaseModel):
    job_ids: List[str]


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class ApplicationCreate(BaseModel):
    cover_letter: Optional[str] = None

    @field_validator("cover_letter", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)


class ApplicationStageUpdate(BaseModel):
    stage: ApplicationStage


class ApplicationRatingUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)


class ApplicantSummary(BaseModel):
    id: str
    name: str
    email: str
    image_url: Optional[str] = None
    resume_file_url: Optional[str] = None
    resume_ai_summary: Optional[str] = None


class ApplicationResponse(BaseModel):
    job_listing_id: str
    user_id: str
    cover_letter: Optional[str] = None
    rating: Optional[int] = None
    stage: str
    stage_label: str
    created_at: datetime
    updated_at: datetime
    applicant: Optional[ApplicantSummary] = None


class ApplicationListResponse(BaseModel):
    applications: List[ApplicationResponse]
    total: int


# ============================================================
# USER SCHEMAS
# ============================================================

class UserNotificationSettingsUpdate(BaseModel):
    new_job_email_notifications: bool
    ai_prompt: Optional[str] = Field(None, max_length=5000)

    @field_validator("ai_prompt", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)


class UserNotificationSettingsResponse(BaseModel):
    user_id: str
    new_job_email_notifications: bool = False
    ai_prompt: Optional[str] = None


class UserResumeResponse(BaseModel):
    user_id: str
    resume_file_url: str
    resume_file_key: str
    ai_summary: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ResumeUploadResponse(BaseModel):
    success: bool
    message: str
    filename: Optional[str] = None
    resume_file_url: Optional[str] = None


# ============================================================
# ORGANIZATION SCHEMAS
# ============================================================

class OrganizationUserSettingsUpdate(BaseModel):
    new_application_email_notifications: bool
    minimum_rating: Optional[int] = Field(None, ge=1, le=5)


class OrganizationUserSettingsResponse(BaseModel):
    user_id: str
    organization_id: str
    new_application_email_notifications: bool = False
    minimum_rating: Optional[int] = None


# ============================================================
# IDENTITY PROVIDER WEBHOOK SCHEMAS
# ============================================================

class IdentityUserData(BaseModel):
    id: str
    name: str
    email: EmailStr
    image_url: Optional[str] = None


class IdentityOrganizationData(BaseModel):
    id: str
    name: str
    image_url: Optional[str] = None


class IdentityMembershipData(BaseModel):
    user_id: str
    organization_id: str


class IdentityDeletedData(BaseModel):
    id: str


class IdentityWebhookEvent(BaseModel):
    type: str
    data: dict


# ============================================================
# CRON SCHEMAS
# ============================================================

class CronTriggerResponse(BaseModel):
    status: str
    queued_events: int
    scheduled_at: str


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    detail: str
    success: bool = False
