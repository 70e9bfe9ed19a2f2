from __future__ import annotations

import logging
from enum import Enum

import httpx

from turno_flash.db.models import UserRole
from turno_flash.db.supabase import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    MANAGE_USERS = "manage_users"
    MANAGE_ORGANIZATION = "manage_organization"
    MANAGE_SERVICES = "manage_services"
    MANAGE_BOOKINGS = "manage_bookings"
    VIEW_BOOKINGS = "view_bookings"
    MANAGE_SETTINGS = "manage_settings"


# Row-level security in the database is what actually enforces these; the
# table only decides what the client offers to each role.
ROLE_PERMISSIONS: dict[UserRole, frozenset[Permission]] = {
    UserRole.ADMIN: frozenset(Permission),
    UserRole.OWNER: frozenset(
        {
            Permission.MANAGE_ORGANIZATION,
            Permission.MANAGE_SERVICES,
            Permission.MANAGE_BOOKINGS,
            Permission.VIEW_BOOKINGS,
            Permission.MANAGE_SETTINGS,
        }
    ),
    UserRole.STAFF: frozenset({Permission.VIEW_BOOKINGS, Permission.MANAGE_BOOKINGS}),
    UserRole.SPECIAL: frozenset({Permission.VIEW_BOOKINGS, Permission.MANAGE_BOOKINGS}),
}


def has_permission(role: UserRole | str, permission: Permission | str) -> bool:
    try:
        return Permission(permission) in ROLE_PERMISSIONS.get(UserRole(role), frozenset())
    except ValueError:
        return False


def is_admin_or_owner(role: UserRole | str | None) -> bool:
    return role in (UserRole.ADMIN, UserRole.OWNER)


def is_admin(role: UserRole | str | None) -> bool:
    return role == UserRole.ADMIN


async def check_permission(client: SupabaseClient, permission: Permission | str) -> bool:
    """
    Whether the signed-in user's role grants `permission`. Users without a
    profile, or with an inactive one, have no permissions.
    """

    try:
        user = await client.get_user()
        if user is None:
            return False
        profile = await client.get_user_profile(user.id)
    except SupabaseError as exc:
        if not exc.is_not_found:
            logger.warning("Failed to load the current user profile: %s", exc)
        return False
    except httpx.HTTPError as exc:
        logger.warning("Failed to load the current user profile: %s", exc)
        return False

    if not profile.is_active:
        return False
    return has_permission(profile.role, permission)
