import unittest
from datetime import date, time
from decimal import Decimal

from turno_flash.core.validation import (
    AppointmentForm,
    is_valid_status_transition,
    validate_appointment_data,
    validate_password_update,
)
from turno_flash.db.models import AppointmentSource, AppointmentStatus

TODAY = date(2026, 10, 18)
CUSTOMER_ID = "0b9d6c1e-3f5a-4d2b-9a7c-1e2f3a4b5c6d"
SERVICE_ID = "7f1e2d3c-4b5a-4c6d-8e9f-0a1b2c3d4e5f"
STAFF_ID = "c2d3e4f5-a6b7-4c8d-9e0f-1a2b3c4d5e6f"


def _form(**overrides):
    data = {
        "customer_id": CUSTOMER_ID,
        "service_id": SERVICE_ID,
        "appointment_date": "2026-10-20",
        "start_time": "10:00",
        "end_time": "10:30",
    }
    data.update(overrides)
    return data


class PasswordValidationTestCase(unittest.TestCase):
    def test_valid(self) -> None:
        self.assertEqual(validate_password_update("secreto1", "secreto1"), [])

    def test_mismatch_and_length(self) -> None:
        self.assertEqual(
            validate_password_update("abc", "abd"),
            [
                "Las contraseñas no coinciden",
                "La contraseña debe tener al menos 6 caracteres",
            ],
        )


class AppointmentFormTestCase(unittest.TestCase):
    def test_complete_data_and_defaults(self) -> None:
        self.assertEqual(validate_appointment_data(_form(), today=TODAY), [])

        form = AppointmentForm.model_validate(_form(), context={"today": TODAY})
        self.assertEqual(form.status, AppointmentStatus.PENDING)
        self.assertEqual(form.source, AppointmentSource.ADMIN)
        self.assertFalse(form.was_paid)
        self.assertIsNone(form.staff_id)

    def test_date_and_time_objects_are_accepted(self) -> None:
        form = AppointmentForm.model_validate(
            _form(appointment_date=date(2026, 10, 20), start_time=time(9, 5), end_time=time(9, 45)),
            context={"today": TODAY},
        )
        self.assertEqual(form.appointment_date, "2026-10-20")
        self.assertEqual(form.start_time, "09:05")

    def test_missing_fields(self) -> None:
        errors = validate_appointment_data({}, today=TODAY)
        self.assertEqual(
            errors,
            [
                "Debes seleccionar un cliente",
                "Debes seleccionar un servicio",
                "Debes seleccionar una fecha",
                "Debes seleccionar una hora de inicio",
                "Debes seleccionar una hora de fin",
            ],
        )

    def test_ids_must_be_uuids(self) -> None:
        errors = validate_appointment_data(
            _form(customer_id="cus-1", service_id="", staff_id="stf-1"),
            today=TODAY,
        )
        self.assertEqual(
            errors,
            ["ID de cliente inválido", "ID de servicio inválido", "ID de personal inválido"],
        )
        self.assertEqual(validate_appointment_data(_form(staff_id=STAFF_ID), today=TODAY), [])
        self.assertEqual(validate_appointment_data(_form(staff_id=None), today=TODAY), [])

    def test_date_format(self) -> None:
        for value in ("20/10/2026", "2026-13-40"):
            self.assertEqual(
                validate_appointment_data(_form(appointment_date=value), today=TODAY),
                ["Fecha inválida. Formato esperado: YYYY-MM-DD"],
            )

    def test_date_in_the_past(self) -> None:
        self.assertEqual(
            validate_appointment_data(_form(appointment_date="2026-10-17"), today=TODAY),
            ["La fecha del turno no puede ser en el pasado"],
        )
        self.assertEqual(validate_appointment_data(_form(appointment_date="2026-10-18"), today=TODAY), [])

    def test_time_format(self) -> None:
        errors = validate_appointment_data(
            _form(start_time="24:00", end_time="10:30:00"),
            today=TODAY,
        )
        self.assertEqual(
            errors,
            [
                "Hora de inicio inválida. Formato esperado: HH:MM",
                "Hora de fin inválida. Formato esperado: HH:MM",
            ],
        )

    def test_end_must_follow_start(self) -> None:
        for end_time in ("10:00", "09:30"):
            self.assertEqual(
                validate_appointment_data(_form(end_time=end_time), today=TODAY),
                ["La hora de fin debe ser posterior a la hora de inicio"],
            )

    def test_notes_length(self) -> None:
        self.assertEqual(validate_appointment_data(_form(notes="x" * 500), today=TODAY), [])
        self.assertEqual(
            validate_appointment_data(
                _form(notes="x" * 501, internal_notes="y" * 501),
                today=TODAY,
            ),
            [
                "Las notas no pueden superar los 500 caracteres",
                "Las notas internas no pueden superar los 500 caracteres",
            ],
        )

    def test_price_and_payment_method(self) -> None:
        form = AppointmentForm.model_validate(_form(price_charged=0), context={"today": TODAY})
        self.assertEqual(form.price_charged, Decimal("0"))

        self.assertEqual(
            validate_appointment_data(
                _form(price_charged=-1, payment_method="m" * 51),
                today=TODAY,
            ),
            [
                "El precio no puede ser negativo",
                "El método de pago no puede superar los 50 caracteres",
            ],
        )

    def test_status_and_source_enums(self) -> None:
        self.assertEqual(
            validate_appointment_data(_form(status="archived", source="fax"), today=TODAY),
            ["Estado de turno inválido", "Origen de turno inválido"],
        )
        form = AppointmentForm.model_validate(
            _form(status="confirmed", source="whatsapp"),
            context={"today": TODAY},
        )
        self.assertEqual(form.status, AppointmentStatus.CONFIRMED)
        self.assertEqual(form.source, AppointmentSource.WHATSAPP)


class StatusTransitionTestCase(unittest.TestCase):
    def test_allowed(self) -> None:
        self.assertTrue(is_valid_status_transition("pending", "confirmed"))
        self.assertTrue(is_valid_status_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.REMINDED))
        self.assertTrue(is_valid_status_transition("completed", "rescheduled"))

    def test_rejected(self) -> None:
        self.assertFalse(is_valid_status_transition("pending", "reminded"))
        self.assertFalse(is_valid_status_transition("cancelled", "confirmed"))
        self.assertFalse(is_valid_status_transition("in_progress", "no_show"))
        self.assertFalse(is_valid_status_transition("unknown", "confirmed"))


if __name__ == "__main__":
    unittest.main()
