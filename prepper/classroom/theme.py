"""ThemePreference - Persisted light/dark mode flag."""

import logging

from .storage import StorageTier, THEME_STORAGE_KEY


logger = logging.getLogger(__name__)


class ThemePreference:
    def __init__(self, storage: StorageTier, storage_key: str = THEME_STORAGE_KEY):
        self.storage = storage
        self.storage_key = storage_key
        self.dark_mode = False
        self.is_loaded = False

    def load_theme_preference(self, system_default: bool = False) -> bool:
        """Restore the flag; system_default applies when nothing usable is stored."""
        saved = self.storage.load(self.storage_key)
        if isinstance(saved, bool):
            self.dark_mode = saved
        else:
            if saved is not None:
                logger.warning(f"Ignoring non-boolean theme preference: {saved!r}")
            self.dark_mode = system_default
        self.is_loaded = True
        return self.dark_mode

    def set_dark_mode(self, value: bool):
        self.dark_mode = bool(value)
        self.storage.save(self.storage_key, self.dark_mode)

    def toggle_theme(self) -> bool:
        self.set_dark_mode(not self.dark_mode)
        return self.dark_mode
