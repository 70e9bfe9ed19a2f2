from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path

from turno_flash.state.store import Store

logger = logging.getLogger(__name__)

THEME_STORAGE_KEY = "turno-flash-theme"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class ThemeStore(Store[Theme]):
    """
    Light/dark preference, persisted to a small JSON file.

    Without a stored value (or when the file cannot be read) the system
    preference decides. Persisting is best effort: write errors are logged.
    """

    def __init__(
        self,
        storage_path: str | Path | None = None,
        *,
        prefers_dark: bool = False,
    ) -> None:
        self._storage_path = Path(storage_path) if storage_path else None
        self._prefers_dark = prefers_dark
        super().__init__(self._load())

    @property
    def theme(self) -> Theme:
        return self.snapshot

    def _system_theme(self) -> Theme:
        return Theme.DARK if self._prefers_dark else Theme.LIGHT

    def _load(self) -> Theme:
        if self._storage_path is None or not self._storage_path.exists():
            return self._system_theme()
        try:
            data = json.loads(self._storage_path.read_text(encoding="utf-8"))
            return Theme(data[THEME_STORAGE_KEY])
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring stored theme in %s: %s", self._storage_path, exc)
            return self._system_theme()

    def _save(self, theme: Theme) -> None:
        if self._storage_path is None:
            return
        try:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._storage_path.write_text(
                json.dumps({THEME_STORAGE_KEY: theme.value}),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Failed to save theme to %s: %s", self._storage_path, exc)

    def set_theme(self, theme: Theme | str) -> None:
        value = Theme(theme)
        self._save(value)
        self._set(value)

    def toggle_theme(self) -> None:
        self.set_theme(Theme.LIGHT if self.theme == Theme.DARK else Theme.DARK)
