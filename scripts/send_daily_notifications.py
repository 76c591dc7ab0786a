#!/usr/bin/env python3
"""
Run the daily notification pipeline once, outside the API process.

Useful from a system cron when the in-process scheduler is disabled.
Usage: python scripts/send_daily_notifications.py
"""

import asyncio

from jobpilot.core.config import get_settings
from jobpilot.core.logging import configure_logging
from jobpilot.services.events import EventWorker
from jobpilot.services.notification_service import daily_notifications_event, register_functions


async def run_once() -> int:
    worker = register_functions(EventWorker())
    await worker.send(daily_notifications_event())

    processed = 0
    while not worker.queue.empty():
        event = await worker.queue.get()
        await worker.handle(event)
        worker.queue.task_done()
        processed += 1
    return processed


def main():
    configure_logging(get_settings().debug)
    processed = asyncio.run(run_once())
    print(f"Processed {processed} events")


if __name__ == "__main__":
    main()
