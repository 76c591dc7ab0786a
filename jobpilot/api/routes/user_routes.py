"""
User Routes

GET  /users/me/notification-settings - Daily job email settings
PUT  /users/me/notification-settings - Update them
GET  /users/me/resume                - Stored résumé with AI summary
POST /users/me/resume                - Upload résumé (PDF, DOCX, TXT)
GET  /users/{user_id}/resume/file    - Download a résumé (owner or employers it applied to)
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response

from jobpilot.core.auth import get_current_user
from jobpilot.schemas.schemas import (
    ResumeUploadResponse,
    UserNotificationSettingsResponse,
    UserNotificationSettingsUpdate,
    UserResumeResponse,
)
from jobpilot.services import user_service
from jobpilot.services.application_service import organization_has_applicant
from jobpilot.services.events import EventWorker, get_event_worker
from jobpilot.utils.file_upload import content_disposition, read_resume_upload

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me/notification-settings", response_model=UserNotificationSettingsResponse)
async def get_notification_settings(auth: dict = Depends(get_current_user)):
    return user_service.get_user_notification_settings(auth["user_id"])


@router.put("/me/notification-settings", response_model=UserNotificationSettingsResponse)
async def update_notification_settings(
    payload: UserNotificationSettingsUpdate,
    auth: dict = Depends(get_current_user),
):
    return user_service.update_user_notification_settings(
        auth["user_id"],
        payload.new_job_email_notifications,
        payload.ai_prompt,
    )


@router.get("/me/resume", response_model=UserResumeResponse)
async def get_my_resume(auth: dict = Depends(get_current_user)):
    resume = user_service.get_user_resume(auth["user_id"])
    if not resume:
        raise HTTPException(status_code=404, detail="Resume not found.")
    return resume


@router.post("/me/resume", response_model=ResumeUploadResponse)
async def upload_resume(
    file: UploadFile = File(...),
    auth: dict = Depends(get_current_user),
    worker: EventWorker = Depends(get_event_worker),
):
    """
    Upload a résumé (max size from settings, 8 MB by default).

    Replaces the previous file; the AI summary is regenerated in the background.
    """
    content, filename, content_type = await read_resume_upload(file)
    resume = user_service.store_user_resume(auth["user_id"], filename, content, content_type)
    await worker.send(user_service.resume_uploaded_event(auth["user_id"]))

    return ResumeUploadResponse(
        success=True,
        message="Resume uploaded successfully.",
        filename=filename,
        resume_file_url=resume["resume_file_url"],
    )


@router.get("/{user_id}/resume/file")
async def download_resume(user_id: str, auth: dict = Depends(get_current_user)):
    is_owner = auth["user_id"] == user_id
    is_employer = bool(auth["org_id"]) and organization_has_applicant(auth["org_id"], user_id)
    if not is_owner and not is_employer:
        raise HTTPException(status_code=403, detail="You do not have access to this resume.")

    filename, content, content_type = user_service.get_user_resume_file(user_id)
    return Response(
        content=content,
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(filename)},
    )
