"""Settings fixtures for tests."""

import pytest
import yaml
from pathlib import Path

from clipstash.settings import Settings, SettingsManager


@pytest.fixture
def default_settings() -> Settings:
    """Create default settings object."""
    return Settings()


@pytest.fixture
def temp_settings_file(tmp_path: Path) -> Path:
    """Create a temporary settings file."""
    config_data = {
        'storage': {
            'max_item_size_mb': 10
        },
        'retention': {
            'policy': 'unlimited',
            'days': 0,
            'count': 0
        },
        'paths': {
            'data_dir': str(tmp_path / "data")
        }
    }
    settings_path = tmp_path / "settings.yml"
    with open(settings_path, 'w') as f:
        yaml.dump(config_data, f)
    return settings_path


@pytest.fixture
def settings_manager(temp_settings_file: Path) -> SettingsManager:
    """Create a settings manager with temporary settings file."""
    return SettingsManager(config_path=temp_settings_file)


@pytest.fixture
def custom_settings_data() -> dict:
    """Custom settings data for testing."""
    return {
        'storage': {
            'max_item_size_mb': 2
        },
        'retention': {
            'policy': 'count',
            'count': 100
        },
        'server': {
            'port': 9876
        }
    }
