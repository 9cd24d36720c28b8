"""
Application settings management.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from filesync.core.models import SyncMode


@dataclass
class SyncSettings:
    """Defaults for a synchronization run; command line flags override them."""
    mode: SyncMode = SyncMode.UPDATE_ONLY
    threads: int = os.cpu_count() or 1
    follow_symlinks: bool = False

    # Logging
    verbose: bool = False
    log_level: str = "INFO"
    log_file: str = ""


class SettingsManager:
    """Manager for loading/saving settings."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else self._get_default_path()
        self._settings: Optional[SyncSettings] = None

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            # Windows
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'FileSync' / 'settings.json'
        else:
            # Linux/Mac
            config_home = os.environ.get('XDG_CONFIG_HOME',
                                         os.path.expanduser('~/.config'))
            return Path(config_home) / 'filesync' / 'settings.json'

    @property
    def settings(self) -> SyncSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> SyncSettings:
        """Load settings from disk. A missing or unreadable file gives defaults."""
        if not self.settings_path.exists():
            return SyncSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logging.warning(f"SettingsManager - Could not read {self.settings_path}: {e}")
            return SyncSettings()

        if not isinstance(data, dict):
            logging.warning(f"SettingsManager - Ignoring malformed settings file {self.settings_path}")
            return SyncSettings()

        return self._from_dict(data)

    def save(self, settings: Optional[SyncSettings] = None) -> bool:
        """Save settings to disk."""
        settings = settings or self._settings
        if settings is None:
            return False

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(self._to_dict(settings), f, indent=2)

            self._settings = settings
            return True

        except OSError as e:
            logging.error(f"SettingsManager - Could not write {self.settings_path}: {e}")
            return False

    def reset(self) -> SyncSettings:
        """Reset to default settings."""
        self._settings = SyncSettings()
        self.save()
        return self._settings

    def _to_dict(self, settings: SyncSettings) -> dict:
        """Convert settings to dictionary for JSON serialization."""
        def convert(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.name
            return obj

        return {k: convert(v) for k, v in asdict(settings).items()}

    def _from_dict(self, data: dict) -> SyncSettings:
        """Convert dictionary back to settings, falling back to defaults per field."""
        defaults = SyncSettings()

        try:
            mode = SyncMode.from_string(str(data.get('mode', defaults.mode.name)))
        except ValueError as e:
            logging.warning(f"SettingsManager - {e}, using {defaults.mode.name}")
            mode = defaults.mode

        threads = data.get('threads', defaults.threads)
        if not isinstance(threads, int) or isinstance(threads, bool) or threads < 1:
            logging.warning(f"SettingsManager - Invalid thread count {threads!r}, using {defaults.threads}")
            threads = defaults.threads

        return SyncSettings(
            mode=mode,
            threads=threads,
            follow_symlinks=bool(data.get('follow_symlinks', defaults.follow_symlinks)),
            verbose=bool(data.get('verbose', defaults.verbose)),
            log_level=str(data.get('log_level', defaults.log_level)).upper(),
            log_file=str(data.get('log_file', defaults.log_file)),
        )
