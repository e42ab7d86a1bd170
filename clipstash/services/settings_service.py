#!/usr/bin/env python3
"""
Settings Service - Wrapper for settings management
"""
import logging
from pathlib import Path
from typing import Optional

from clipstash.settings import ServerSettings, SettingsManager

logger = logging.getLogger(__name__)


class SettingsService:
    """Service for managing application settings"""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings service

        Args:
            config_path: Optional path to settings file
        """
        logger.info(f"[SettingsService.__init__] Loading settings from: {config_path or 'default path'}")
        self._manager = SettingsManager(config_path)

    def get(self, key: str) -> Optional[str]:
        """Get a flat setting value as a string (None if unknown)"""
        return self._manager.get(key)

    @property
    def thumbnail_workers(self) -> int:
        return self._manager.settings.thumbnails.max_workers

    @property
    def server(self) -> ServerSettings:
        return self._manager.settings.server

    @property
    def data_dir(self) -> Path:
        return self._manager.data_dir

    @property
    def db_path(self) -> Path:
        return self._manager.settings.paths.db_path

    @property
    def images_dir(self) -> Path:
        return self._manager.settings.paths.images_dir

    def update_settings(self, **kwargs):
        """Update settings"""
        self._manager.update_settings(**kwargs)

    def reload(self):
        """Reload settings from file"""
        self._manager.reload()
