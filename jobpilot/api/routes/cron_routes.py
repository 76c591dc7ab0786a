"""
Cron Routes

POST /cron/daily-notifications - Start the daily notification fan-out (x-cron-secret header)
"""

import hmac
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from jobpilot.core.config import get_settings
from jobpilot.schemas.schemas import CronTriggerResponse
from jobpilot.services.events import EventWorker, get_event_worker
from jobpilot.services.notification_service import daily_notifications_event

settings = get_settings()

router = APIRouter(prefix="/cron", tags=["Cron"])


@router.post("/daily-notifications", response_model=CronTriggerResponse, status_code=202)
async def trigger_daily_notifications(
    x_cron_secret: Optional[str] = Header(None),
    worker: EventWorker = Depends(get_event_worker),
):
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Invalid cron secret")

    queued = await worker.send(daily_notifications_event())
    return CronTriggerResponse(
        status="queued",
        queued_events=queued,
        scheduled_at=datetime.now(timezone.utc).isoformat(),
    )
