from __future__ import annotations

import json
from typing import Any, Callable

import httpx

from turno_flash.core.config import Settings
from turno_flash.db.supabase import SupabaseClient

SUPABASE_URL = "https://project.supabase.co"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "supabase_anon_key": "anon-key",
        "environment": "local",
    }
    values.update(overrides)
    return Settings(**values)


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    **settings_overrides: Any,
) -> SupabaseClient:
    return SupabaseClient(
        make_settings(**settings_overrides),
        transport=httpx.MockTransport(handler),
    )


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode() or "null")


def appointment_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": "apt-1",
        "organization_id": "org-1",
        "customer_id": "cus-1",
        "service_id": "svc-1",
        "staff_id": "stf-1",
        "appointment_date": "2026-10-20",
        "start_time": "10:00:00",
        "end_time": "10:30:00",
        "timezone": "America/Argentina/Buenos_Aires",
        "status": "confirmed",
        "source": "web",
        "customer_first_name": "Juan",
        "customer_last_name": "Pérez",
        "customer_phone": "+5491155550000",
        "customer_email": "juan@example.com",
        "service_name": "Corte",
        "duration_minutes": 30,
        "service_price": "4500.00",
        "staff_first_name": "Ana",
        "staff_last_name": "García",
        "staff_nickname": "Anita",
        "organization_name": "Barbería Centro",
        "organization_timezone": "America/Argentina/Buenos_Aires",
    }
    row.update(overrides)
    return row


def session_payload(user_id: str = "user-1", email: str = "ana@example.com") -> dict[str, Any]:
    return {
        "access_token": f"access-{user_id}",
        "refresh_token": f"refresh-{user_id}",
        "token_type": "bearer",
        "expires_in": 3600,
        "user": {"id": user_id, "email": email, "user_metadata": {"full_name": "Ana García"}},
    }


def profile_row(user_id: str = "user-1", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": f"profile-{user_id}",
        "user_id": user_id,
        "email": "ana@example.com",
        "full_name": "Ana García",
        "role": "owner",
        "organization_id": "org-1",
        "is_active": True,
    }
    row.update(overrides)
    return row


def no_rows_response() -> httpx.Response:
    return httpx.Response(
        406,
        json={
            "code": "PGRST116",
            "message": "JSON object requested, multiple (or no) rows returned",
            "details": "The result contains 0 rows",
        },
    )
