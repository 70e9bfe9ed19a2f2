"""
Supabase integration.

Currently includes:
- SupabaseClient: REST, auth and edge-function access over httpx
- Pydantic models mirroring the backend tables (`turno_flash.db.models`)
"""

from .supabase import SupabaseClient, SupabaseError

__all__ = ["SupabaseClient", "SupabaseError"]
