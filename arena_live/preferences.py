"""User preference store with atomic writes to data/preferences.yaml."""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Preferences(BaseModel):
    """Persisted dashboard preferences."""

    dark_mode: bool = True


PreferenceListener = Callable[[Preferences], None]


class PreferencesStore:
    """Single owner of the dashboard preferences.

    ``load()`` initializes from disk; every change is persisted immediately
    and then announced to listeners.
    """

    def __init__(self, path: Path):
        self.path = path
        self._preferences = Preferences()
        self._listeners: list[PreferenceListener] = []

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    @property
    def dark_mode(self) -> bool:
        return self._preferences.dark_mode

    def subscribe(self, listener: PreferenceListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def load(self) -> Preferences:
        """Load preferences, falling back to defaults if the file is missing or empty."""
        if not self.path.exists():
            logger.info(f"Preferences file not found: {self.path}. Using defaults.")
            self._preferences = Preferences()
            return self._preferences

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Corrupted YAML in preferences file: {e}")
            raise

        if not raw_data:
            logger.warning(f"Empty preferences file: {self.path}. Using defaults.")
            self._preferences = Preferences()
        else:
            self._preferences = Preferences(**raw_data)
        return self._preferences

    def set_dark_mode(self, enabled: bool) -> Preferences:
        return self._update(self._preferences.model_copy(update={"dark_mode": enabled}))

    def toggle_dark_mode(self) -> Preferences:
        return self.set_dark_mode(not self.dark_mode)

    def _update(self, preferences: Preferences) -> Preferences:
        changed = preferences != self._preferences
        self._preferences = preferences
        self.save()
        if changed:
            for listener in list(self._listeners):
                listener(preferences)
        return preferences

    def save(self) -> None:
        """Atomically write preferences using a tempfile -> rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self.path.parent,
                delete=False,
                suffix=".yaml",
                encoding="utf-8",
            ) as temp_file:
                yaml.dump(
                    self._preferences.model_dump(mode="json"),
                    temp_file,
                    default_flow_style=False,
                    sort_keys=False,
                )
                temp_path = Path(temp_file.name)

            shutil.move(str(temp_path), str(self.path))
            logger.debug(f"Saved preferences to {self.path}")

        except Exception as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            logger.error(f"Failed to save preferences: {e}")
            raise
