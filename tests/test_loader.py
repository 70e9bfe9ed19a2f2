import asyncio
import unittest
from datetime import date

import httpx

from turno_flash.core.promise import OperationTimeoutError
from turno_flash.db.supabase import SupabaseError
from turno_flash.state.loader import AppointmentFilters, NormalizedDataLoader, current_month_range

from tests.support import appointment_row, make_client

FULL_CUSTOMER = {
    "id": "cus-1",
    "organization_id": "org-1",
    "first_name": "Juan",
    "last_name": "Pérez",
    "phone": "+5491155550000",
    "whatsapp_number": "+5491155550000",
    "total_appointments": 12,
}
FULL_SERVICE = {
    "id": "svc-1",
    "organization_id": "org-1",
    "name": "Corte",
    "duration_minutes": 30,
    "buffer_time_minutes": 10,
    "price": "4500.00",
}
FULL_STAFF = {"id": "stf-1", "organization_id": "org-1", "first_name": "Ana", "last_name": "García"}


def _handler(tables, seen=None):
    async def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        result = tables.get(table, [])
        if callable(result):
            return await result()
        return httpx.Response(200, json=result)

    return handler


class CurrentMonthRangeTestCase(unittest.TestCase):
    def test_range(self) -> None:
        self.assertEqual(
            current_month_range(date(2026, 2, 14)),
            (date(2026, 2, 1), date(2026, 2, 28)),
        )
        self.assertEqual(
            current_month_range(date(2024, 12, 31)),
            (date(2024, 12, 1), date(2024, 12, 31)),
        )


class NormalizedDataLoaderTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_full_entities_replace_partial_ones(self) -> None:
        client = make_client(
            _handler(
                {
                    "appointments_with_details": [
                        appointment_row(),
                        appointment_row(id="apt-2", start_time="11:00:00", end_time="11:30:00"),
                    ],
                    "customers": [FULL_CUSTOMER],
                    "services": [FULL_SERVICE],
                    "staff_members": [FULL_STAFF],
                }
            )
        )
        loader = NormalizedDataLoader(client, "org-1")
        state = await loader.load()
        await client.close()

        self.assertEqual(loader.errors, {})
        self.assertIsNone(loader.error)
        self.assertEqual(set(state.appointments), {"apt-1", "apt-2"})
        self.assertEqual(loader.get_customer("cus-1").total_appointments, 12)
        self.assertEqual(loader.get_service("svc-1").buffer_time_minutes, 10)
        # Staff nickname only came from the joined rows, the full row replaces it
        self.assertIsNone(loader.get_staff("stf-1").nickname)

        appointments = loader.appointments
        self.assertEqual([a.id for a in appointments], ["apt-1", "apt-2"])
        self.assertEqual(appointments[0].customer_first_name, "Juan")
        self.assertEqual(loader.get_appointment_with_details("apt-2").service_name, "Corte")
        self.assertEqual(loader.get_appointment("apt-1").customer_id, "cus-1")

    async def test_filters_are_forwarded(self) -> None:
        seen = []
        client = make_client(_handler({}, seen))
        loader = NormalizedDataLoader(
            client,
            "org-1",
            include_customers=False,
            include_services=False,
            include_staff=False,
        )
        await loader.load(
            AppointmentFilters(
                start_date=date(2026, 10, 1),
                end_date=date(2026, 10, 7),
                customer_id="cus-1",
                statuses=("cancelled",),
            )
        )
        await client.close()

        self.assertEqual(len(seen), 1)
        params = seen[0].url.params
        self.assertEqual(params.get_list("appointment_date"), ["gte.2026-10-01", "lte.2026-10-07"])
        self.assertEqual(params["customer_id"], "eq.cus-1")
        self.assertEqual(params["status"], "in.(cancelled)")

    async def test_failing_source_does_not_block_others(self) -> None:
        async def forbidden():
            return httpx.Response(403, json={"message": "permission denied"})

        client = make_client(
            _handler(
                {
                    "appointments_with_details": [appointment_row()],
                    "customers": forbidden,
                    "services": [FULL_SERVICE],
                    "staff_members": [],
                }
            )
        )
        loader = NormalizedDataLoader(client, "org-1")
        await loader.load()
        await client.close()

        self.assertEqual(list(loader.errors), ["customers"])
        self.assertIsInstance(loader.error, SupabaseError)
        # The partial customer from the joined row is still there
        self.assertEqual(loader.get_customer("cus-1").first_name, "Juan")
        self.assertIsNone(loader.get_customer("cus-1").whatsapp_number)
        self.assertEqual(len(loader.appointments), 1)

    async def test_slow_source_times_out(self) -> None:
        async def slow():
            await asyncio.sleep(0.3)
            return httpx.Response(200, json=[FULL_STAFF])

        client = make_client(_handler({"staff_members": slow}))
        loader = NormalizedDataLoader(client, "org-1", timeout_ms=50)
        await loader.load()

        self.assertIsInstance(loader.errors["staff"], OperationTimeoutError)
        self.assertEqual(loader.staff, [])
        self.assertFalse(loader.loading)

        await asyncio.sleep(0.3)
        await client.close()

    async def test_reload_rebuilds_state(self) -> None:
        tables = {"appointments_with_details": [appointment_row()]}
        client = make_client(_handler(tables))
        loader = NormalizedDataLoader(client, "org-1")

        await loader.load()
        self.assertIn("apt-1", loader.state.appointments)

        tables["appointments_with_details"] = [appointment_row(id="apt-9")]
        await loader.load()
        await client.close()

        self.assertEqual(set(loader.state.appointments), {"apt-9"})

    async def test_appointments_excluded(self) -> None:
        client = make_client(_handler({"customers": [FULL_CUSTOMER]}))
        loader = NormalizedDataLoader(client, "org-1", include_appointments=False)
        await loader.load()
        await client.close()

        self.assertEqual(loader.appointments, [])
        self.assertEqual([c.id for c in loader.customers], ["cus-1"])
        self.assertEqual(loader.services, [])


if __name__ == "__main__":
    unittest.main()
