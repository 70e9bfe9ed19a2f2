from __future__ import annotations

import logging
from datetime import date
from typing import Any, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from turno_flash.core.promise import with_retry
from turno_flash.db.supabase import SupabaseClient, SupabaseError
from turno_flash.services.error_logger import ErrorLogger

logger = logging.getLogger(__name__)


def _is_retryable(exc: Exception) -> bool:
    # Client errors (bad payload, missing permission) will not fix themselves
    if isinstance(exc, SupabaseError) and exc.status_code is not None:
        return exc.status_code >= 500
    return True


class ReminderScheduler:
    """
    APScheduler manager for appointment reminders.
    Triggers the `send-reminders` edge function once a day.
    """

    def __init__(
        self,
        client: SupabaseClient,
        *,
        organization_ids: Sequence[str] | None = None,
        hour: int | None = None,
        retries: int = 2,
        retry_delay_ms: float = 5000,
    ) -> None:
        self.client = client
        self.organization_ids = list(
            organization_ids
            if organization_ids is not None
            else client.settings.reminder_organization_ids
        )
        self.hour = hour if hour is not None else client.settings.reminder_hour
        self.retries = retries
        self.retry_delay_ms = retry_delay_ms
        self.error_logger = ErrorLogger(client)
        self.scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        """
        Initialize and start the scheduler.
        """
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_once,
            CronTrigger(hour=self.hour, minute=0),
            id="daily_reminders",
            name="Daily Appointment Reminders",
        )
        self.scheduler.start()
        logger.info("Appointment reminder scheduler started (hour=%s)", self.hour)

    async def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
            logger.info("Appointment reminder scheduler stopped")

    async def run_once(self, target_date: date | str | None = None) -> list[dict[str, Any]]:
        """
        Ask the edge function to send reminders, once per configured
        organization (or once for all when none is configured).

        Failures are recorded through the error logger and do not stop the
        remaining organizations; returns the successful responses.
        """

        targets: list[str | None] = list(self.organization_ids) or [None]
        responses: list[dict[str, Any]] = []

        for organization_id in targets:
            try:
                response = await with_retry(
                    lambda org=organization_id: self.client.send_reminders(
                        target_date=target_date,
                        organization_id=org,
                    ),
                    retries=self.retries,
                    delay_ms=self.retry_delay_ms,
                    should_retry=_is_retryable,
                )
            except Exception as exc:  # noqa: BLE001
                await self.error_logger.error(
                    "Failed to send reminders",
                    exc,
                    {"organization_id": organization_id, "date": str(target_date)},
                )
                continue

            logger.info(
                "Reminders processed for %s: %s",
                organization_id or "all organizations",
                response.get("message"),
            )
            responses.append(response)

        return responses
