from __future__ import annotations

import asyncio

from turno_flash.core import get_settings
from turno_flash.core.logging import configure_logging
from turno_flash.db.supabase import SupabaseClient
from turno_flash.reminders.scheduler import ReminderScheduler


async def _run_scheduler() -> None:
    settings = get_settings()
    logger = configure_logging(settings)

    if not settings.supabase_service_key:
        raise RuntimeError("SUPABASE_SERVICE_KEY is required to run the reminder scheduler")

    client = SupabaseClient(settings, api_key=settings.supabase_service_key)
    scheduler = ReminderScheduler(client)

    logger.info("Starting reminder scheduler in %s environment", settings.environment)
    await scheduler.start()

    try:
        await asyncio.Event().wait()
    finally:
        # Graceful shutdown
        await scheduler.stop()
        await client.close()


def main() -> None:
    try:
        asyncio.run(_run_scheduler())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
