from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from turno_flash.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)

ERROR_LOGS_TABLE = "error_logs"


def _format_stack(error: BaseException | None) -> str | None:
    if error is None:
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


class ErrorLogger:
    """
    Records errors in the `error_logs` table in addition to the local log.

    Remote logging is best effort: a failed insert is written to the local
    log and never reaches the caller.

        await error_logger.error("Failed to load data", exc, {"action": "loadCustomers"})
    """

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def error(
        self,
        message: str,
        error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        logger.error("%s: %s", message, error, exc_info=error)

        payload = {
            "error_message": message,
            "error_stack": _format_stack(error),
            "context": json.dumps(context, default=str) if context else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._client.insert_row(ERROR_LOGS_TABLE, payload)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to log error: %s", exc)

    def info(self, message: str, data: Any = None) -> None:
        if data is None:
            logger.info(message)
        else:
            logger.info("%s %s", message, data)

    async def list_recent(self, limit: int = 50) -> list[dict[str, Any]]:
        return await self._client.select_rows(
            ERROR_LOGS_TABLE,
            order="timestamp.desc",
            limit=limit,
        )
