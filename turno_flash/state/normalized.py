"""
Normalized entity cache for joined appointment rows.

The `appointments_with_details` view repeats the same customer, service and
staff data on every appointment row. Normalizing splits each row into
separate entity tables keyed by ID:

    rows = [
        {"id": "a1", "customer_id": "c1", "customer_first_name": "Juan", ...},
        {"id": "a2", "customer_id": "c1", "customer_first_name": "Juan", ...},
    ]
    state.appointments == {"a1": Appointment(...), "a2": Appointment(...)}
    state.customers == {"c1": Customer(id="c1", first_name="Juan", ...)}

Entities rebuilt from a joined row only carry the columns the view exposes,
so the cache is only as complete as the view that filled it. There is no
eviction: callers discard the whole state and rebuild it on the next fetch.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field

from turno_flash.db.models import (
    Appointment,
    AppointmentWithDetails,
    Customer,
    Service,
    StaffMember,
)


class NormalizedState(BaseModel):
    appointments: dict[str, Appointment] = Field(default_factory=dict)
    customers: dict[str, Customer] = Field(default_factory=dict)
    services: dict[str, Service] = Field(default_factory=dict)
    staff: dict[str, StaffMember] = Field(default_factory=dict)


def create_empty_normalized_state() -> NormalizedState:
    return NormalizedState()


def _strip_details(record: Appointment) -> Appointment:
    return Appointment(**{name: getattr(record, name) for name in Appointment.model_fields})


def _as_record(record: AppointmentWithDetails | Mapping[str, Any]) -> AppointmentWithDetails:
    if isinstance(record, AppointmentWithDetails):
        return record
    return AppointmentWithDetails.model_validate(record)


def normalize_appointments(
    records: Iterable[AppointmentWithDetails | Mapping[str, Any]],
) -> NormalizedState:
    """
    Split joined appointment rows into entity tables.

    Appointments are upserted (a later row with the same ID replaces the
    earlier one). Customers, services and staff are only inserted the first
    time their ID is seen; later rows never overwrite them. Appointments
    without staff, or whose staff row has no first name, add no staff entry.
    """

    state = create_empty_normalized_state()

    for raw in records:
        record = _as_record(raw)
        state.appointments[record.id] = _strip_details(record)

        if record.customer_id not in state.customers:
            state.customers[record.customer_id] = Customer(
                id=record.customer_id,
                organization_id=record.organization_id,
                first_name=record.customer_first_name,
                last_name=record.customer_last_name,
                phone=record.customer_phone,
                email=record.customer_email,
            )

        if record.service_id not in state.services:
            state.services[record.service_id] = Service(
                id=record.service_id,
                organization_id=record.organization_id,
                name=record.service_name,
                duration_minutes=record.duration_minutes,
                price=record.service_price,
            )

        if (
            record.staff_id
            and record.staff_id not in state.staff
            and record.staff_first_name
        ):
            state.staff[record.staff_id] = StaffMember(
                id=record.staff_id,
                organization_id=record.organization_id,
                first_name=record.staff_first_name,
                last_name=record.staff_last_name or "",
                nickname=record.staff_nickname,
            )

    return state


def merge_normalized_state(
    existing: NormalizedState,
    incoming: NormalizedState,
) -> NormalizedState:
    """Shallow merge per table; incoming entries replace existing ones by ID."""

    return NormalizedState(
        appointments={**existing.appointments, **incoming.appointments},
        customers={**existing.customers, **incoming.customers},
        services={**existing.services, **incoming.services},
        staff={**existing.staff, **incoming.staff},
    )


def denormalize_appointment(
    appointment: Appointment,
    state: NormalizedState,
) -> AppointmentWithDetails | None:
    """
    Rebuild the joined row for `appointment`.

    Returns None when its customer or service is missing from `state`.
    A missing staff member leaves the staff columns empty.
    """

    customer = state.customers.get(appointment.customer_id)
    service = state.services.get(appointment.service_id)
    staff = state.staff.get(appointment.staff_id) if appointment.staff_id else None

    if customer is None or service is None:
        return None

    return AppointmentWithDetails(
        **_strip_details(appointment).model_dump(),
        customer_first_name=customer.first_name,
        customer_last_name=customer.last_name,
        customer_phone=customer.phone,
        customer_email=customer.email or None,
        service_name=service.name,
        duration_minutes=service.duration_minutes,
        service_price=service.price,
        staff_first_name=(staff.first_name or None) if staff else None,
        staff_last_name=(staff.last_name or None) if staff else None,
        staff_nickname=(staff.nickname or None) if staff else None,
        # Not kept in the normalized tables
        organization_name="",
        organization_timezone=appointment.timezone or "UTC",
    )


def denormalize_appointments(
    appointments: Iterable[Appointment],
    state: NormalizedState,
) -> list[AppointmentWithDetails]:
    results = []
    for appointment in appointments:
        details = denormalize_appointment(appointment, state)
        if details is not None:
            results.append(details)
    return results


def get_appointments_array(state: NormalizedState) -> list[Appointment]:
    return list(state.appointments.values())


def get_customers_array(state: NormalizedState) -> list[Customer]:
    return list(state.customers.values())


def get_services_array(state: NormalizedState) -> list[Service]:
    return list(state.services.values())


def get_staff_array(state: NormalizedState) -> list[StaffMember]:
    return list(state.staff.values())


def get_appointment_by_id(state: NormalizedState, appointment_id: str) -> Appointment | None:
    return state.appointments.get(appointment_id)


def get_customer_by_id(state: NormalizedState, customer_id: str) -> Customer | None:
    return state.customers.get(customer_id)


def get_service_by_id(state: NormalizedState, service_id: str) -> Service | None:
    return state.services.get(service_id)


def get_staff_by_id(state: NormalizedState, staff_id: str) -> StaffMember | None:
    return state.staff.get(staff_id)


def get_appointment_with_details(
    state: NormalizedState,
    appointment_id: str,
) -> AppointmentWithDetails | None:
    appointment = state.appointments.get(appointment_id)
    if appointment is None:
        return None
    return denormalize_appointment(appointment, state)
