from __future__ import annotations

import re
from datetime import date, time
from decimal import Decimal
from typing import Any, Mapping

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from turno_flash.db.models import AppointmentSource, AppointmentStatus


_UUID_REGEX = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_REGEX = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")

MIN_PASSWORD_LENGTH = 6
MAX_NOTES_LENGTH = 500
MAX_PAYMENT_METHOD_LENGTH = 50

_FINAL_STEPS = [
    AppointmentStatus.CHECKED_IN,
    AppointmentStatus.IN_PROGRESS,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
]

ALLOWED_STATUS_TRANSITIONS: dict[AppointmentStatus, list[AppointmentStatus]] = {
    AppointmentStatus.PENDING: [AppointmentStatus.CONFIRMED, *_FINAL_STEPS],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.REMINDED,
        AppointmentStatus.CLIENT_CONFIRMED,
        *_FINAL_STEPS,
    ],
    AppointmentStatus.REMINDED: [AppointmentStatus.CLIENT_CONFIRMED, *_FINAL_STEPS],
    AppointmentStatus.CLIENT_CONFIRMED: list(_FINAL_STEPS),
    AppointmentStatus.CHECKED_IN: [
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    ],
    AppointmentStatus.IN_PROGRESS: [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED],
    # Only rescheduling is allowed once an appointment is completed
    AppointmentStatus.COMPLETED: [AppointmentStatus.RESCHEDULED],
    AppointmentStatus.CANCELLED: [],
    AppointmentStatus.NO_SHOW: [],
    AppointmentStatus.RESCHEDULED: [],
}


def validate_password_update(password: str, confirmation: str) -> list[str]:
    """
    Check a new password before sending it to the auth provider.

    Returns user-facing messages; an empty list means the password is acceptable.
    """

    errors: list[str] = []
    if password != confirmation:
        errors.append("Las contraseñas no coinciden")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )
    return errors


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("appointment_form", message)


_ID_MESSAGES = {
    "customer_id": "ID de cliente inválido",
    "service_id": "ID de servicio inválido",
    "staff_id": "ID de personal inválido",
}

_TIME_MESSAGES = {
    "start_time": "Hora de inicio inválida. Formato esperado: HH:MM",
    "end_time": "Hora de fin inválida. Formato esperado: HH:MM",
}

_NOTES_MESSAGES = {
    "notes": "Las notas no pueden superar los 500 caracteres",
    "internal_notes": "Las notas internas no pueden superar los 500 caracteres",
}

_REQUIRED_MESSAGES = {
    "customer_id": "Debes seleccionar un cliente",
    "service_id": "Debes seleccionar un servicio",
    "appointment_date": "Debes seleccionar una fecha",
    "start_time": "Debes seleccionar una hora de inicio",
    "end_time": "Debes seleccionar una hora de fin",
}

_INVALID_MESSAGES = {
    "status": "Estado de turno inválido",
    "source": "Origen de turno inválido",
    "price_charged": "Precio inválido",
    "was_paid": "Valor de pago inválido",
}


class AppointmentForm(BaseModel):
    """
    Data entered to create or edit an appointment.

    Validation messages are user-facing (Spanish); `validate_appointment_data`
    flattens them into a list. Pass `context={"today": date}` to pin the
    date used by the not-in-the-past rule.
    """

    customer_id: str
    service_id: str
    staff_id: str | None = None
    appointment_date: str
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    source: AppointmentSource = AppointmentSource.ADMIN
    notes: str | None = None
    internal_notes: str | None = None
    price_charged: Decimal | None = None
    was_paid: bool = False
    payment_method: str | None = None

    @field_validator("appointment_date", mode="before")
    @classmethod
    def _date_to_text(cls, value: Any) -> Any:
        if isinstance(value, date):
            return value.isoformat()
        return value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _time_to_text(cls, value: Any) -> Any:
        if isinstance(value, time):
            return value.strftime("%H:%M")
        return value

    @field_validator("customer_id", "service_id", "staff_id")
    @classmethod
    def _check_id(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return value
        if not _UUID_REGEX.match(value):
            raise _invalid(_ID_MESSAGES[info.field_name])
        return value

    @field_validator("appointment_date")
    @classmethod
    def _check_date(cls, value: str, info: ValidationInfo) -> str:
        if not _DATE_REGEX.match(value):
            raise _invalid("Fecha inválida. Formato esperado: YYYY-MM-DD")
        try:
            appointment_date = date.fromisoformat(value)
        except ValueError:
            raise _invalid("Fecha inválida. Formato esperado: YYYY-MM-DD") from None

        today = (info.context or {}).get("today") or date.today()
        if appointment_date < today:
            raise _invalid("La fecha del turno no puede ser en el pasado")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str, info: ValidationInfo) -> str:
        if not _TIME_REGEX.match(value):
            raise _invalid(_TIME_MESSAGES[info.field_name])
        # start_time is validated first; it is absent here when it was invalid
        start_time = info.data.get("start_time")
        if info.field_name == "end_time" and start_time and value <= start_time:
            raise _invalid("La hora de fin debe ser posterior a la hora de inicio")
        return value

    @field_validator("notes", "internal_notes")
    @classmethod
    def _check_notes(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is not None and len(value) > MAX_NOTES_LENGTH:
            raise _invalid(_NOTES_MESSAGES[info.field_name])
        return value

    @field_validator("price_charged")
    @classmethod
    def _check_price(cls, value: Decimal | None) -> Decimal | None:
        if value is not None and value < 0:
            raise _invalid("El precio no puede ser negativo")
        return value

    @field_validator("payment_method")
    @classmethod
    def _check_payment_method(cls, value: str | None) -> str | None:
        if value is not None and len(value) > MAX_PAYMENT_METHOD_LENGTH:
            raise _invalid("El método de pago no puede superar los 50 caracteres")
        return value


def _form_error_message(error: Mapping[str, Any]) -> str:
    field = str(error["loc"][0]) if error["loc"] else ""
    if error["type"] == "appointment_form":
        return str(error["msg"])
    if error["type"] == "missing":
        return _REQUIRED_MESSAGES.get(field, f"Falta el campo {field}")
    return _INVALID_MESSAGES.get(field, f"Valor inválido en {field}")


def validate_appointment_data(
    data: Mapping[str, Any],
    *,
    today: date | None = None,
) -> list[str]:
    """
    Check appointment form data; an empty list means it can be submitted.
    """

    try:
        AppointmentForm.model_validate(dict(data), context={"today": today})
    except ValidationError as exc:
        return [_form_error_message(error) for error in exc.errors()]
    return []


def is_valid_status_transition(
    current: AppointmentStatus | str,
    new: AppointmentStatus | str,
) -> bool:
    try:
        current_status = AppointmentStatus(current)
        new_status = AppointmentStatus(new)
    except ValueError:
        return False
    return new_status in ALLOWED_STATUS_TRANSITIONS.get(current_status, [])
