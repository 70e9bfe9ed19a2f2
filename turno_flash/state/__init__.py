"""
Client-side state.

Currently includes:
- Normalized entity tables for joined appointment rows (`normalized`)
- NormalizedDataLoader: fetch-and-normalize for one organization (`loader`)
- AuthStore and ThemeStore: subscribable stores built on `Store`
"""

from .auth import AuthState, AuthStore
from .loader import AppointmentFilters, NormalizedDataLoader
from .normalized import NormalizedState
from .store import Store
from .theme import Theme, ThemeStore

__all__ = [
    "AppointmentFilters",
    "AuthState",
    "AuthStore",
    "NormalizedDataLoader",
    "NormalizedState",
    "Store",
    "Theme",
    "ThemeStore",
]
