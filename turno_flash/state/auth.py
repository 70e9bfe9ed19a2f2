from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel, ConfigDict

from turno_flash.core.promise import OperationTimeoutError, with_timeout
from turno_flash.db.models import AuthUser, Session, UserProfile, UserRole
from turno_flash.db.supabase import SupabaseClient, SupabaseError
from turno_flash.state.store import Store

logger = logging.getLogger(__name__)


class AuthState(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: AuthUser | None = None
    profile: UserProfile | None = None
    loading: bool = True


@dataclass(frozen=True)
class AuthCallbackParams:
    """Parameters of an auth redirect (invite, recovery, magic link, OAuth)."""

    type: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    code: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def has_tokens(self) -> bool:
        return bool(self.access_token and self.refresh_token)


def parse_auth_callback(url: str) -> AuthCallbackParams:
    """
    Read callback parameters from both the query string (PKCE `code`) and the
    URL fragment (implicit-flow tokens). `type` comes from the query string
    and falls back to the fragment.
    """

    parts = urlsplit(url)
    query = {k: v[0] for k, v in parse_qs(parts.query).items()}
    fragment = {k: v[0] for k, v in parse_qs(parts.fragment).items()}

    return AuthCallbackParams(
        type=query.get("type") or fragment.get("type"),
        access_token=fragment.get("access_token"),
        refresh_token=fragment.get("refresh_token"),
        code=query.get("code"),
        error=query.get("error") or fragment.get("error"),
        error_description=(
            query.get("error_description") or fragment.get("error_description")
        ),
    )


def _placeholder_profile(user: AuthUser) -> UserProfile:
    # Users arriving from an invitation have no profile row yet
    now = datetime.now(timezone.utc)
    return UserProfile(
        id=user.id,
        user_id=user.id,
        email=user.email or "",
        full_name=user.user_metadata.get("full_name") or "",
        role=UserRole.STAFF,
        organization_id=None,
        is_active=True,
        created_at=now,
        updated_at=now,
    )


class AuthStore(Store[AuthState]):
    """
    Current user and profile, kept in sync with the client's session.

    Create one at application start, call `start()`, and `close()` it on
    shutdown. Subscribers receive a new `AuthState` snapshot on every change.
    """

    def __init__(
        self,
        client: SupabaseClient,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(AuthState())
        self._client = client
        self._timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else client.settings.auth_timeout_seconds
        )
        self._unsubscribe = None
        # (user id, event) of the last session change handled
        self._last_event: tuple[str | None, str | None] = (None, None)

    @property
    def user(self) -> AuthUser | None:
        return self.snapshot.user

    @property
    def profile(self) -> UserProfile | None:
        return self.snapshot.profile

    @property
    def loading(self) -> bool:
        return self.snapshot.loading

    def _update(self, **changes) -> None:
        self._set(self.snapshot.model_copy(update=changes))

    async def start(self) -> None:
        """
        Subscribe to session changes and resolve the initial session.

        Gives up waiting after the auth timeout and marks loading as done;
        a late profile load still updates the store unless it was closed.
        """

        if self._unsubscribe is None:
            self._unsubscribe = self._client.on_auth_state_change(self._on_auth_change)

        try:
            await with_timeout(
                self._init_session(),
                self._timeout_seconds * 1000,
                "La verificación de la sesión tardó demasiado tiempo",
            )
        except OperationTimeoutError:
            logger.warning("Auth timeout reached - forcing loading to false")
            self._update(loading=False)

    async def _init_session(self) -> None:
        try:
            session = self._client.get_session()
            user = session.user if session else None
            if session is not None and user is None:
                user = await self._client.get_user()
        except Exception as exc:  # noqa: BLE001
            logger.error("Error getting session: %s", exc)
            self._update(loading=False)
            return

        if user is None:
            self._update(loading=False)
            return

        self._last_event = (user.id, "INIT_SESSION")
        self._update(user=user)
        await self._load_profile(user)

    async def _load_profile(self, user: AuthUser) -> None:
        profile: UserProfile | None
        try:
            profile = await self._client.get_user_profile(user.id)
        except SupabaseError as exc:
            if exc.is_not_found:
                logger.info("User profile not found (new user from invitation)")
                profile = _placeholder_profile(user)
            else:
                logger.error("Error loading user profile: %s", exc)
                profile = None
        except Exception as exc:  # noqa: BLE001
            logger.error("Error loading user profile: %s", exc)
            profile = None

        self._update(profile=profile, loading=False)

    async def _on_auth_change(self, event: str, session: Session | None) -> None:
        # The initial session is resolved by start()
        if event == "INITIAL_SESSION" or self.closed:
            return

        user = session.user if session else None
        user_id = user.id if user else None
        if self._last_event == (user_id, event):
            logger.debug("Skipping duplicate auth event: %s %s", event, user_id)
            return

        logger.info("Auth state changed: %s", event)
        self._last_event = (user_id, event)
        self._update(user=user)

        if user is not None:
            await self._load_profile(user)
        else:
            self._update(profile=None, loading=False)
            self._last_event = (None, None)

    async def sign_out(self) -> None:
        await self._client.sign_out()
        self._update(user=None, profile=None)

    async def refresh_profile(self) -> None:
        user = await self._client.get_user()
        if user is not None:
            await self._load_profile(user)

    async def handle_callback(
        self,
        url: str,
        *,
        code_verifier: str | None = None,
    ) -> str | None:
        """
        Turn an auth redirect URL into a session.

        Fragment tokens (invites, password recovery) are tried first, then a
        PKCE `code`. Returns the callback type (e.g. "invite", "recovery") so
        the caller can route to password setup.
        """

        params = parse_auth_callback(url)
        if params.error:
            raise SupabaseError(
                params.error_description or params.error,
                code=params.error,
            )

        if params.has_tokens:
            logger.debug("Using implicit flow (tokens in fragment)")
            event = "PASSWORD_RECOVERY" if params.type == "recovery" else "SIGNED_IN"
            await self._client.set_session(
                params.access_token,
                params.refresh_token,
                event=event,
            )
        elif params.code:
            logger.debug("Using PKCE flow (code in query)")
            await self._client.exchange_code_for_session(params.code, code_verifier)
        else:
            raise SupabaseError("No se encontraron credenciales en el enlace de autenticación")

        return params.type

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        super().close()
