from __future__ import annotations

import asyncio
import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Sequence

from turno_flash.core.promise import safe_async_with_timeout
from turno_flash.db.models import (
    Appointment,
    AppointmentStatus,
    AppointmentWithDetails,
    Customer,
    Service,
    StaffMember,
)
from turno_flash.db.supabase import SupabaseClient
from turno_flash.state.normalized import (
    NormalizedState,
    create_empty_normalized_state,
    denormalize_appointments,
    get_appointment_by_id,
    get_appointment_with_details,
    get_appointments_array,
    get_customer_by_id,
    get_customers_array,
    get_service_by_id,
    get_services_array,
    get_staff_array,
    get_staff_by_id,
    merge_normalized_state,
    normalize_appointments,
)

logger = logging.getLogger(__name__)


def current_month_range(today: date | None = None) -> tuple[date, date]:
    today = today or date.today()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


@dataclass
class AppointmentFilters:
    start_date: date | None = None
    end_date: date | None = None
    staff_id: str | None = None
    service_id: str | None = None
    customer_id: str | None = None
    statuses: Sequence[AppointmentStatus | str] = field(default_factory=tuple)


class NormalizedDataLoader:
    """
    Fetches appointments, customers, services and staff of one organization
    and keeps them in a single `NormalizedState`.

    Appointments are normalized first; customers, services and staff fetched
    on their own carry every column and are merged over the partial entities
    rebuilt from the joined rows. Each `load()` rebuilds the state from
    scratch. A failing source is recorded in `errors` and the others still
    load.
    """

    def __init__(
        self,
        client: SupabaseClient,
        organization_id: str,
        *,
        include_appointments: bool = True,
        include_customers: bool = True,
        include_services: bool = True,
        include_staff: bool = True,
        timeout_ms: float | None = None,
    ) -> None:
        self._client = client
        self.organization_id = organization_id
        self.include_appointments = include_appointments
        self.include_customers = include_customers
        self.include_services = include_services
        self.include_staff = include_staff
        self._timeout_ms = (
            timeout_ms
            if timeout_ms is not None
            else client.settings.request_timeout_seconds * 1000
        )
        self.state: NormalizedState = create_empty_normalized_state()
        self.errors: dict[str, Exception] = {}
        self.loading = False

    @property
    def error(self) -> Exception | None:
        return next(iter(self.errors.values()), None)

    def _sources(self, filters: AppointmentFilters) -> dict[str, Awaitable[Any]]:
        sources: dict[str, Awaitable[Any]] = {}
        if self.include_appointments:
            default_start, default_end = current_month_range()
            sources["appointments"] = self._client.list_appointments_with_details(
                self.organization_id,
                start_date=filters.start_date or default_start,
                end_date=filters.end_date or default_end,
                staff_id=filters.staff_id,
                service_id=filters.service_id,
                customer_id=filters.customer_id,
                statuses=filters.statuses or None,
            )
        if self.include_customers:
            sources["customers"] = self._client.list_customers(self.organization_id)
        if self.include_services:
            sources["services"] = self._client.list_services(self.organization_id)
        if self.include_staff:
            sources["staff"] = self._client.list_staff(self.organization_id)
        return sources

    async def load(self, filters: AppointmentFilters | None = None) -> NormalizedState:
        sources = self._sources(filters or AppointmentFilters())
        self.loading = True
        try:
            outcomes = await asyncio.gather(
                *(
                    safe_async_with_timeout(operation, self._timeout_ms)
                    for operation in sources.values()
                )
            )
        finally:
            self.loading = False

        state = create_empty_normalized_state()
        errors: dict[str, Exception] = {}
        fetched: dict[str, list[Any]] = {}
        for name, (error, result) in zip(sources, outcomes):
            if error is not None:
                logger.error("Failed to load %s for %s: %s", name, self.organization_id, error)
                errors[name] = error
            else:
                fetched[name] = result or []

        if "appointments" in fetched:
            state = merge_normalized_state(state, normalize_appointments(fetched["appointments"]))
        # Separately fetched entities are complete, so they replace partial ones
        state = merge_normalized_state(
            state,
            NormalizedState(
                customers={c.id: c for c in fetched.get("customers", [])},
                services={s.id: s for s in fetched.get("services", [])},
                staff={m.id: m for m in fetched.get("staff", [])},
            ),
        )

        self.state = state
        self.errors = errors
        return state

    @property
    def appointments(self) -> list[AppointmentWithDetails]:
        if not self.include_appointments:
            return []
        return denormalize_appointments(get_appointments_array(self.state), self.state)

    @property
    def customers(self) -> list[Customer]:
        return get_customers_array(self.state)

    @property
    def services(self) -> list[Service]:
        return get_services_array(self.state)

    @property
    def staff(self) -> list[StaffMember]:
        return get_staff_array(self.state)

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        return get_appointment_by_id(self.state, appointment_id)

    def get_appointment_with_details(self, appointment_id: str) -> AppointmentWithDetails | None:
        return get_appointment_with_details(self.state, appointment_id)

    def get_customer(self, customer_id: str) -> Customer | None:
        return get_customer_by_id(self.state, customer_id)

    def get_service(self, service_id: str) -> Service | None:
        return get_service_by_id(self.state, service_id)

    def get_staff(self, staff_id: str) -> StaffMember | None:
        return get_staff_by_id(self.state, staff_id)
