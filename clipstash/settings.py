#!/usr/bin/env python3
"""
ClipStash Settings Management
Loads and validates settings from settings.yml using Pydantic
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from clipstash.utils import DEFAULT_MAX_ITEM_SIZE_MB, default_data_dir

logger = logging.getLogger(__name__)

RETENTION_POLICIES = ("unlimited", "days", "count")


class StorageSettings(BaseModel):
    """Ingestion limits"""
    max_item_size_mb: int = Field(
        default=DEFAULT_MAX_ITEM_SIZE_MB,
        ge=1,
        description="Largest clipboard item stored, in megabytes"
    )


class RetentionSettings(BaseModel):
    """Retention policy settings"""
    policy: str = Field(
        default="unlimited",
        description="One of unlimited, days, count"
    )
    days: int = Field(
        default=0,
        ge=0,
        description="For the days policy: remove items older than this many days"
    )
    count: int = Field(
        default=0,
        ge=0,
        description="For the count policy: keep this many most recent items"
    )

    @field_validator('policy')
    @classmethod
    def validate_policy(cls, v: str) -> str:
        """Normalize the policy name"""
        v = v.strip().lower()
        if v not in RETENTION_POLICIES:
            raise ValueError(f"policy must be one of {', '.join(RETENTION_POLICIES)}")
        return v


class ThumbnailSettings(BaseModel):
    """Thumbnail worker pool settings"""
    max_workers: int = Field(default=2, ge=1, le=16)


class ServerSettings(BaseModel):
    """WebSocket server settings"""
    host: str = "localhost"
    port: int = Field(default=8765, ge=1, le=65535)
    max_message_size: int = Field(default=5 * 1024 * 1024, ge=1024)


class PathSettings(BaseModel):
    """Where the database and archived images live"""
    data_dir: Path = Field(default_factory=default_data_dir)

    @field_validator('data_dir')
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @property
    def db_path(self) -> Path:
        return self.data_dir / "clipstash.db"

    @property
    def images_dir(self) -> Path:
        return self.data_dir / "images"


class Settings(BaseModel):
    """Main settings model"""
    storage: StorageSettings = Field(default_factory=StorageSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    thumbnails: ThumbnailSettings = Field(default_factory=ThumbnailSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    paths: PathSettings = Field(default_factory=PathSettings)


# Flat keys consumed by the storage core, mapped onto the nested settings
SETTING_KEYS = {
    "max_item_size_mb": ("storage", "max_item_size_mb"),
    "retention_policy": ("retention", "policy"),
    "retention_days": ("retention", "days"),
    "retention_count": ("retention", "count"),
}


class SettingsManager:
    """Manages loading and accessing settings"""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings manager

        Args:
            config_path: Path to settings.yml file. Defaults to <data_dir>/settings.yml
        """
        if config_path is None:
            config_path = default_data_dir() / "settings.yml"

        self.config_path = Path(config_path)
        self.settings = self._load_settings()

    def _load_settings(self) -> Settings:
        """Load and validate settings from YAML file"""
        if not self.config_path.exists():
            logger.info(f"Settings file not found at {self.config_path}, using defaults")
            return Settings()

        try:
            with open(self.config_path, 'r') as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error reading settings file: {e}")
            logger.error("Using default settings")
            return Settings()

        if config_data is None:
            logger.info("Settings file is empty, using defaults")
            return Settings()

        try:
            settings = Settings(**config_data)
        except (ValidationError, TypeError) as e:
            logger.error(f"Invalid settings in {self.config_path}: {e}")
            logger.error("Using default settings")
            return Settings()

        logger.info(f"Loaded settings from {self.config_path}")
        logger.info(f"  - Retention policy: {settings.retention.policy}")
        return settings

    def reload(self):
        """Reload settings from file"""
        self.settings = self._load_settings()

    def get(self, key: str) -> Optional[str]:
        """
        Get a flat setting value as a string

        Args:
            key: One of max_item_size_mb, retention_policy, retention_days, retention_count

        Returns:
            The value as a string, or None for unknown keys
        """
        path = SETTING_KEYS.get(key)
        if path is None:
            return None
        section, name = path
        return str(getattr(getattr(self.settings, section), name))

    @property
    def data_dir(self) -> Path:
        return self.settings.paths.data_dir

    def update_settings(self, **kwargs):
        """
        Update settings and save to file

        Keys may be nested with dots ('retention.policy') or use the flat names
        accepted by get(). The result is validated before it is saved.
        """
        config_data = self.settings.model_dump(mode="json")
        for key, value in kwargs.items():
            if key in SETTING_KEYS:
                parts = list(SETTING_KEYS[key])
            else:
                parts = key.split('.')
            target = config_data
            for part in parts[:-1]:
                target = target.setdefault(part, {})
            target[parts[-1]] = value

        self.settings = Settings(**config_data)
        self._save_settings()

    def _save_settings(self):
        """Save current settings to YAML file"""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        config_data = self.settings.model_dump(mode="json")
        with open(self.config_path, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False)
