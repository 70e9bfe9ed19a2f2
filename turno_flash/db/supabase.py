from __future__ import annotations

import inspect
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Literal, Sequence

import httpx

from turno_flash.core import Settings, get_settings
from turno_flash.db.models import (
    AppointmentStatus,
    AppointmentWithDetails,
    AuthUser,
    Customer,
    Organization,
    Service,
    Session,
    StaffMember,
    UserProfile,
)

logger = logging.getLogger(__name__)

AuthChangeEvent = Literal[
    "INITIAL_SESSION",
    "SIGNED_IN",
    "SIGNED_OUT",
    "TOKEN_REFRESHED",
    "USER_UPDATED",
    "PASSWORD_RECOVERY",
]
AuthListener = Callable[[str, Session | None], Awaitable[None] | None]

# PostgREST answers `.single()` requests that matched no rows with this code
NO_ROWS_CODE = "PGRST116"

QueryParams = list[tuple[str, str]]


class SupabaseError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.code = code

    @property
    def is_not_found(self) -> bool:
        return self.code == NO_ROWS_CODE


def _error_fields(response: httpx.Response) -> tuple[str | None, str | None]:
    """Extract (code, message) from a PostgREST, GoTrue or edge function error body."""

    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    code = body.get("code") or body.get("error_code")
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
    )
    return (str(code) if code is not None else None), message


def _raise_for_response(response: httpx.Response, message: str) -> None:
    if response.status_code < 400:
        return
    code, backend_message = _error_fields(response)
    raise SupabaseError(
        f"{message}: {backend_message}" if backend_message else message,
        status_code=response.status_code,
        detail=response.text,
        code=code,
    )


class SupabaseClient:
    """
    Minimal async Supabase client: REST (PostgREST), Auth (GoTrue) and
    Edge Functions.

    With the anon key every request runs as the signed-in user, so row-level
    security policies in the database are the only tenant isolation.
    Requests are authorized with the current session's access token once a
    session exists, and with the API key otherwise.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._api_key = api_key or self._settings.supabase_anon_key
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

        base_url = str(self._settings.supabase_url).rstrip("/")
        common_headers = {
            "apikey": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        timeout = self._settings.request_timeout_seconds
        self._rest = httpx.AsyncClient(
            base_url=f"{base_url}/rest/v1",
            headers=common_headers,
            timeout=timeout,
            transport=transport,
        )
        self._auth = httpx.AsyncClient(
            base_url=f"{base_url}/auth/v1",
            headers=common_headers,
            timeout=timeout,
            transport=transport,
        )
        self._functions = httpx.AsyncClient(
            base_url=f"{base_url}/functions/v1",
            headers=common_headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    async def close(self) -> None:
        await self._rest.aclose()
        await self._auth.aclose()
        await self._functions.aclose()

    def _bearer(self) -> dict[str, str]:
        token = self._session.access_token if self._session else self._api_key
        return {"Authorization": f"Bearer {token}"}

    # ------------------------------------------------------------------
    # REST
    # ------------------------------------------------------------------

    async def select_rows(
        self,
        table: str,
        params: QueryParams | None = None,
        *,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query: QueryParams = [("select", columns), *(params or [])]
        if order:
            query.append(("order", order))
        if limit is not None:
            query.append(("limit", str(limit)))

        response = await self._rest.get(f"/{table}", params=query, headers=self._bearer())
        _raise_for_response(response, f"Supabase REST GET failed for '{table}'")
        items: list[dict[str, Any]] = response.json()
        return items

    async def select_single(
        self,
        table: str,
        params: QueryParams,
        *,
        columns: str = "*",
    ) -> dict[str, Any]:
        """
        Fetch exactly one row. Zero (or several) matches raise `SupabaseError`
        with code PGRST116.
        """

        response = await self._rest.get(
            f"/{table}",
            params=[("select", columns), *params],
            headers={**self._bearer(), "Accept": "application/vnd.pgrst.object+json"},
        )
        _raise_for_response(response, f"Supabase REST GET failed for '{table}'")
        row: dict[str, Any] = response.json()
        return row

    async def insert_row(
        self,
        table: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._rest.post(
            f"/{table}",
            json=payload,
            headers={**self._bearer(), "Prefer": "return=representation"},
        )
        _raise_for_response(response, f"Supabase REST INSERT failed for '{table}'")
        items: list[dict[str, Any]] = response.json()
        if not items:
            raise SupabaseError(f"Empty insert response for table '{table}'")
        return items[0]

    async def update_rows(
        self,
        table: str,
        params: QueryParams,
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await self._rest.patch(
            f"/{table}",
            params=params,
            json=payload,
            headers={**self._bearer(), "Prefer": "return=representation"},
        )
        _raise_for_response(response, f"Supabase REST UPDATE failed for '{table}'")
        items: list[dict[str, Any]] = response.json()
        return items

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._rest.post(
            f"/rpc/{function}",
            json=params or {},
            headers=self._bearer(),
        )
        _raise_for_response(response, f"Supabase RPC '{function}' failed")
        return response.json()

    # ------------------------------------------------------------------
    # Data queries
    # ------------------------------------------------------------------

    async def list_appointments_with_details(
        self,
        organization_id: str,
        *,
        start_date: date | str,
        end_date: date | str,
        staff_id: str | None = None,
        service_id: str | None = None,
        customer_id: str | None = None,
        statuses: Sequence[AppointmentStatus | str] | None = None,
    ) -> list[AppointmentWithDetails]:
        """
        Appointments of one organization joined with customer, service and
        staff data, ordered by date and start time.
        """

        params: QueryParams = [
            ("organization_id", f"eq.{organization_id}"),
            ("appointment_date", f"gte.{start_date}"),
            ("appointment_date", f"lte.{end_date}"),
        ]
        if staff_id:
            params.append(("staff_id", f"eq.{staff_id}"))
        if service_id:
            params.append(("service_id", f"eq.{service_id}"))
        if customer_id:
            params.append(("customer_id", f"eq.{customer_id}"))
        if statuses:
            params.append(("status", status_filter(statuses)))

        items = await self.select_rows(
            "appointments_with_details",
            params,
            order="appointment_date.asc,start_time.asc",
        )
        return [AppointmentWithDetails.model_validate(item) for item in items]

    async def list_customers(
        self,
        organization_id: str,
        *,
        active_only: bool = False,
    ) -> list[Customer]:
        params: QueryParams = [("organization_id", f"eq.{organization_id}")]
        if active_only:
            params.append(("is_active", "eq.true"))
        items = await self.select_rows("customers", params, order="first_name.asc")
        return [Customer.model_validate(item) for item in items]

    async def list_services(
        self,
        organization_id: str,
        *,
        active_only: bool = False,
    ) -> list[Service]:
        params: QueryParams = [("organization_id", f"eq.{organization_id}")]
        if active_only:
            params.append(("is_active", "eq.true"))
        items = await self.select_rows(
            "services", params, order="sort_order.asc,name.asc"
        )
        return [Service.model_validate(item) for item in items]

    async def list_staff(
        self,
        organization_id: str,
        *,
        active_only: bool = False,
    ) -> list[StaffMember]:
        params: QueryParams = [("organization_id", f"eq.{organization_id}")]
        if active_only:
            params.append(("is_active", "eq.true"))
        items = await self.select_rows(
            "staff_members", params, order="sort_order.asc,first_name.asc"
        )
        return [StaffMember.model_validate(item) for item in items]

    async def get_user_profile(self, user_id: str) -> UserProfile:
        row = await self.select_single("user_profiles", [("user_id", f"eq.{user_id}")])
        return UserProfile.model_validate(row)

    async def get_organization(self, organization_id: str) -> Organization | None:
        items = await self.select_rows(
            "organizations",
            [("id", f"eq.{organization_id}")],
            limit=1,
        )
        if not items:
            return None
        return Organization.model_validate(items[0])

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def get_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """
        Register a session-change listener. Returns a callable that removes it.

        Listeners receive the event name and the new session (None after
        sign-out) and may be plain functions or coroutines.
        """

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: str, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                logger.exception("Auth listener failed on %s: %s", event, exc)

    async def _store_session(self, data: dict[str, Any], event: str) -> Session:
        session = Session.model_validate(data)
        self._session = session
        await self._emit(event, session)
        return session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        response = await self._auth.post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        _raise_for_response(response, "Supabase Auth sign in failed")
        return await self._store_session(response.json(), "SIGNED_IN")

    async def set_session(
        self,
        access_token: str,
        refresh_token: str,
        *,
        event: str = "SIGNED_IN",
    ) -> Session:
        """
        Adopt tokens received out of band (implicit flow: invite and recovery
        links carry them in the URL fragment).
        """

        response = await self._auth.get(
            "/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        _raise_for_response(response, "Supabase Auth rejected the session tokens")
        return await self._store_session(
            {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "user": response.json(),
            },
            event,
        )

    async def exchange_code_for_session(
        self,
        auth_code: str,
        code_verifier: str | None = None,
    ) -> Session:
        """Authorization-code (PKCE) exchange."""

        payload: dict[str, Any] = {"auth_code": auth_code}
        if code_verifier:
            payload["code_verifier"] = code_verifier
        response = await self._auth.post(
            "/token",
            params={"grant_type": "pkce"},
            json=payload,
        )
        _raise_for_response(response, "Supabase Auth code exchange failed")
        return await self._store_session(response.json(), "SIGNED_IN")

    async def refresh_session(self) -> Session:
        if self._session is None:
            raise SupabaseError("No active session to refresh", status_code=401)

        response = await self._auth.post(
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._session.refresh_token},
        )
        _raise_for_response(response, "Supabase Auth session refresh failed")
        return await self._store_session(response.json(), "TOKEN_REFRESHED")

    async def get_user(self) -> AuthUser | None:
        if self._session is None:
            return None
        response = await self._auth.get("/user", headers=self._bearer())
        _raise_for_response(response, "Supabase Auth user lookup failed")
        return AuthUser.model_validate(response.json())

    async def update_password(self, password: str) -> AuthUser:
        if self._session is None:
            raise SupabaseError("No active session", status_code=401)

        response = await self._auth.put(
            "/user",
            json={"password": password},
            headers=self._bearer(),
        )
        _raise_for_response(response, "Supabase Auth password update failed")
        user = AuthUser.model_validate(response.json())
        self._session = self._session.model_copy(update={"user": user})
        await self._emit("USER_UPDATED", self._session)
        return user

    async def sign_out(self) -> None:
        """
        Revoke the current session and forget it locally. The local session is
        cleared even when the server call fails.
        """

        if self._session is None:
            return

        headers = self._bearer()
        self._session = None
        try:
            response = await self._auth.post("/logout", headers=headers)
            # An already expired or revoked token is as good as signed out
            if response.status_code not in (401, 403, 404):
                _raise_for_response(response, "Supabase Auth sign out failed")
        finally:
            await self._emit("SIGNED_OUT", None)

    # ------------------------------------------------------------------
    # Edge functions
    # ------------------------------------------------------------------

    async def invoke_function(
        self,
        name: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._functions.post(
            f"/{name}",
            json=body or {},
            headers=self._bearer(),
        )
        _raise_for_response(response, f"Edge function '{name}' failed")
        data: dict[str, Any] = response.json()
        return data

    async def invite_user(
        self,
        email: str,
        *,
        redirect_to: str | None = None,
        organization_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Ask the `invite-user` function to email an invitation link.

        Only admins and owners (of `organization_id`) may invite; the function
        enforces that against the caller's profile.
        """

        if redirect_to is None and self._settings.site_url:
            redirect_to = f"{self._settings.site_url.rstrip('/')}/auth/callback?type=invite"

        body: dict[str, Any] = {"email": email}
        if redirect_to:
            body["redirectTo"] = redirect_to
        if organization_id:
            body["organization_id"] = organization_id
        return await self.invoke_function("invite-user", body)

    async def send_reminders(
        self,
        *,
        target_date: date | str | None = None,
        organization_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Trigger the `send-reminders` function. Without `target_date` the
        function reminds tomorrow's pending and confirmed appointments.
        """

        body: dict[str, Any] = {}
        if target_date is not None:
            body["date"] = str(target_date)
        if organization_id:
            body["organization_id"] = organization_id
        return await self.invoke_function("send-reminders", body)


def status_filter(statuses: Iterable[AppointmentStatus | str]) -> str:
    return "in.(" + ",".join(AppointmentStatus(s).value for s in statuses) + ")"

