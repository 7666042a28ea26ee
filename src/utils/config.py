"""
Configuration management for the food package engine.

This module handles:
- Database path configuration
- Image store, download and upload directories
- Environment-specific configuration (development vs. production)
- Export and conversion tunables
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_EXPORT_BATCH_SIZE,
)

logger = logging.getLogger(__name__)


class Config:
    """
    Application configuration manager.

    Handles all configuration settings including database paths,
    package working directories, and environment settings.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_documents_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME

        self._images_dir = self._dir_from_env("FOOD_PACKAGE_IMAGES_DIR", "images")
        self._downloads_dir = self._dir_from_env("FOOD_PACKAGE_DOWNLOADS_DIR", "downloads")
        self._uploads_dir = self._dir_from_env("FOOD_PACKAGE_UPLOADS_DIR", "uploads")

        self._export_batch_size = self._positive_int_from_env(
            "FOOD_PACKAGE_EXPORT_BATCH_SIZE", DEFAULT_EXPORT_BATCH_SIZE
        )
        self._albane_locale = os.environ.get("FOOD_PACKAGE_ALBANE_LOCALE", "fr_FR")

        self._ensure_directories()

    def _get_project_data_dir(self) -> Path:
        """Project data/ directory used in development."""
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_documents_dir(self) -> Path:
        """
        Get the user's Documents directory for production.

        Returns:
            Path to user's Documents folder with app subdirectory
        """
        if os.name == "nt":  # Windows
            documents = Path(os.path.expanduser("~")) / "Documents"
        else:  # Linux/Mac
            documents = Path.home() / "Documents"

        return documents / "FoodPackages"

    def _dir_from_env(self, variable: str, default_name: str) -> Path:
        value = os.environ.get(variable)
        if value:
            return Path(value)
        return self._base_dir / default_name

    def _positive_int_from_env(self, variable: str, default: int) -> int:
        """Read a positive integer, falling back to the default with a warning."""
        value = os.environ.get(variable)
        if value is None:
            return default
        try:
            parsed = int(value)
        except ValueError:
            parsed = 0
        if parsed <= 0:
            logger.warning(f"Invalid {variable}={value!r}, using default {default}")
            return default
        return parsed

    def _ensure_directories(self):
        """Create necessary directories if they don't exist."""
        for directory in (
            self._database_dir,
            self._images_dir,
            self._downloads_dir,
            self._uploads_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            Database URL string for SQLAlchemy
        """
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def images_dir(self) -> Path:
        """Root of the source image store copied into exported packages."""
        return self._images_dir

    @property
    def downloads_dir(self) -> Path:
        """Directory receiving finished export archives."""
        return self._downloads_dir

    @property
    def uploads_dir(self) -> Path:
        """Directory holding verified package extractions."""
        return self._uploads_dir

    @property
    def export_batch_size(self) -> int:
        """Primary rows fetched per export batch."""
        return self._export_batch_size

    @property
    def albane_locale(self) -> str:
        """Locale code assigned to converted Albane packages."""
        return self._albane_locale

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """
        Check if database file exists.

        Returns:
            True if database file exists, False otherwise
        """
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', " f"database_path='{self._database_path}')"
        )


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents accidental database
    switching mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    FOOD_PACKAGE_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get("FOOD_PACKAGE_ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    """SQLAlchemy database URL of the active configuration."""
    return get_config().database_url
