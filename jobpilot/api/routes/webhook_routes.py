"""
Webhook Routes

POST /webhooks/identity - Users, organizations and memberships from the identity provider
"""

import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError

from jobpilot.schemas.schemas import IdentityWebhookEvent, MessageResponse
from jobpilot.services.identity_sync import handle_identity_event, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/identity", response_model=MessageResponse)
async def identity_webhook(
    request: Request,
    x_webhook_signature: Optional[str] = Header(None),
):
    """Verify the HMAC-SHA256 signature of the raw body, then mirror the event."""
    body = await request.body()
    if not verify_signature(body, x_webhook_signature):
        logger.warning("Rejected identity webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = IdentityWebhookEvent.model_validate_json(body)
        handled = handle_identity_event(event)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid webhook payload: {e.errors()}")

    return MessageResponse(message="processed" if handled else "ignored")
