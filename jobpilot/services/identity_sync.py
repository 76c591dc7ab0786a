"""
Identity provider webhook handling.

The provider owns users, organizations and memberships; we keep a local
mirror so listings, applications and emails can join against them.
"""

import hashlib
import hmac
import logging
from typing import Callable, Dict, Optional

from jobpilot.core.config import get_settings
from jobpilot.schemas.schemas import (
    IdentityDeletedData,
    IdentityMembershipData,
    IdentityOrganizationData,
    IdentityUserData,
    IdentityWebhookEvent,
)
from jobpilot.services import organization_service, user_service

logger = logging.getLogger(__name__)

settings = get_settings()


def sign_payload(body: bytes, secret: Optional[str] = None) -> str:
    secret = secret if secret is not None else settings.identity_webhook_secret
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(body), signature.strip().lower())


def _user_created(data: dict) -> None:
    user = IdentityUserData(**data)
    user_service.upsert_user(user.id, user.name, user.email, user.image_url)
    user_service.insert_user_notification_settings(user.id)


def _user_updated(data: dict) -> None:
    user = IdentityUserData(**data)
    user_service.upsert_user(user.id, user.name, user.email, user.image_url)


def _user_deleted(data: dict) -> None:
    user_service.delete_user(IdentityDeletedData(**data).id)


def _organization_upserted(data: dict) -> None:
    organization = IdentityOrganizationData(**data)
    organization_service.upsert_organization(organization.id, organization.name, organization.image_url)


def _organization_deleted(data: dict) -> None:
    organization_service.delete_organization(IdentityDeletedData(**data).id)


def _membership_created(data: dict) -> None:
    membership = IdentityMembershipData(**data)
    organization_service.insert_organization_user_settings(membership.organization_id, membership.user_id)


def _membership_deleted(data: dict) -> None:
    membership = IdentityMembershipData(**data)
    organization_service.delete_organization_user_settings(membership.organization_id, membership.user_id)


HANDLERS: Dict[str, Callable[[dict], None]] = {
    "user.created": _user_created,
    "user.updated": _user_updated,
    "user.deleted": _user_deleted,
    "organization.created": _organization_upserted,
    "organization.updated": _organization_upserted,
    "organization.deleted": _organization_deleted,
    "organizationMembership.created": _membership_created,
    "organizationMembership.deleted": _membership_deleted,
}


def handle_identity_event(event: IdentityWebhookEvent) -> bool:
    """Apply one provider event. Returns False for event types we do not mirror."""
    handler = HANDLERS.get(event.type)
    if handler is None:
        logger.info("Ignoring identity event %s", event.type)
        return False

    handler(event.data)
    logger.info("Applied identity event %s", event.type)
    return True
