"""
Organization Routes

GET /organizations/me/user-settings - Application email settings in the active organization
PUT /organizations/me/user-settings - Update them
"""

from fastapi import APIRouter, Depends

from jobpilot.core.auth import get_current_organization
from jobpilot.schemas.schemas import OrganizationUserSettingsResponse, OrganizationUserSettingsUpdate
from jobpilot.services import organization_service

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.get("/me/user-settings", response_model=OrganizationUserSettingsResponse)
async def get_organization_user_settings(auth: dict = Depends(get_current_organization)):
    return organization_service.get_organization_user_settings(auth["org_id"], auth["user_id"])


@router.put("/me/user-settings", response_model=OrganizationUserSettingsResponse)
async def update_organization_user_settings(
    payload: OrganizationUserSettingsUpdate,
    auth: dict = Depends(get_current_organization),
):
    return organization_service.update_organization_user_settings(
        auth["org_id"],
        auth["user_id"],
        payload.new_application_email_notifications,
        payload.minimum_rating,
    )
