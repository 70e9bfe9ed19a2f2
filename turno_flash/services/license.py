from __future__ import annotations

import logging
from typing import Literal

from pydantic import ValidationError

from turno_flash.core import Settings, get_settings
from turno_flash.db.models import LicenseStatus, LicenseStatusResult
from turno_flash.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)

AlertType = Literal["error", "warning", "info"]

NOTIFY_DAYS_BEFORE = 7
URGENT_DAYS_BEFORE = 3


def get_grace_period_days(settings: Settings | None = None) -> int:
    """Days an expired license keeps working; 7 unless configured."""

    return (settings or get_settings()).license_grace_period_days


async def get_my_organization_license_status(
    client: SupabaseClient,
    grace_period_days: int | None = None,
) -> LicenseStatusResult | None:
    """
    License status of the signed-in user's organization, computed by the
    `get_my_organization_license_status` database function.

    Returns None when it cannot be determined; never raises.
    """

    if grace_period_days is None:
        grace_period_days = get_grace_period_days(client.settings)

    try:
        data = await client.rpc(
            "get_my_organization_license_status",
            {"grace_period_days": grace_period_days},
        )
    except Exception as exc:  # noqa: BLE001
        logger.error("Error fetching license status: %s", exc)
        return None

    # The function returns a single-row set
    if not isinstance(data, list) or not data:
        return None
    try:
        return LicenseStatusResult.model_validate(data[0])
    except ValidationError as exc:
        logger.error("Unexpected license status row: %s", exc)
        return None


def can_use_application(license_status: LicenseStatusResult | None) -> bool:
    # Unknown status does not lock anyone out
    if license_status is None:
        return True
    return license_status.is_usable


def should_show_license_notification(license_status: LicenseStatusResult | None) -> bool:
    if license_status is None:
        return False

    status = license_status.status
    days_remaining = license_status.days_remaining

    if status in (LicenseStatus.GRACE_PERIOD, LicenseStatus.EXPIRED):
        return True
    return (
        status == LicenseStatus.ACTIVE
        and days_remaining is not None
        and days_remaining <= NOTIFY_DAYS_BEFORE
    )


def get_license_alert_type(license_status: LicenseStatusResult | None) -> AlertType:
    if license_status is None:
        return "info"

    status = license_status.status
    days_remaining = license_status.days_remaining

    if status in (LicenseStatus.EXPIRED, LicenseStatus.GRACE_PERIOD):
        return "error"
    if status == LicenseStatus.ACTIVE and days_remaining is not None:
        if days_remaining <= URGENT_DAYS_BEFORE:
            return "error"
        if days_remaining <= NOTIFY_DAYS_BEFORE:
            return "warning"
    return "info"


def format_license_message(license_status: LicenseStatusResult | None) -> str:
    if license_status is None:
        return "No se pudo verificar el estado de la licencia"
    return license_status.message


_TITLES = {
    LicenseStatus.ACTIVE: "Licencia activa",
    LicenseStatus.GRACE_PERIOD: "⚠️ Licencia vencida - Período de gracia",
    LicenseStatus.EXPIRED: "🚫 Licencia expirada",
    LicenseStatus.NO_LICENSE: "Sin licencia configurada",
}


def get_license_message_title(license_status: LicenseStatusResult | None) -> str:
    if license_status is None:
        return "Estado de licencia"
    return _TITLES.get(license_status.status, "Estado de licencia")
