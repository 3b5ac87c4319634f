"""
Configuration management for the SendIT parcel core.

This module handles:
- Database location and connection settings
- Environment-specific configuration (development vs. production)
- Pricing tariff location
- Logging and draft retention settings

Every setting can be overridden with a ``SENDIT_*`` environment variable.
Invalid overrides fall back to the default and log a warning.
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
    DEFAULT_DB_TIMEOUT,
    DEFAULT_DRAFT_TTL_HOURS,
    DEFAULT_LOG_LEVEL,
    ENV_DATA_DIR,
    ENV_DATABASE_URL,
    ENV_DB_TIMEOUT,
    ENV_DB_TYPE,
    ENV_DRAFT_TTL_HOURS,
    ENV_ENVIRONMENT,
    ENV_LOG_LEVEL,
    ENV_PRICING_CONFIG,
    SUPPORTED_DB_TYPES,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _int_from_env(name: str, default: int) -> int:
    """Read a positive integer from the environment, warning on bad input."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Invalid {name}={raw!r} (must be > 0); using default {default}")
        return default
    return value


class Config:
    """
    Application configuration manager.

    Handles database paths, connection settings and the location of the
    pricing tariff. Values are read once at construction.
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

        data_dir = os.environ.get(ENV_DATA_DIR)
        if data_dir:
            self._base_dir = Path(data_dir)
        elif environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = Path.home() / ".sendit"

        self._database_path = self._base_dir / DATABASE_FILENAME

        self._database_type = self._read_database_type()
        self._db_timeout = _int_from_env(ENV_DB_TIMEOUT, DEFAULT_DB_TIMEOUT)
        self._draft_ttl_hours = _int_from_env(ENV_DRAFT_TTL_HOURS, DEFAULT_DRAFT_TTL_HOURS)
        self._log_level = self._read_log_level()

        pricing_path = os.environ.get(ENV_PRICING_CONFIG)
        self._pricing_config_path = Path(pricing_path) if pricing_path else None

    def _get_project_data_dir(self) -> Path:
        """Project-local data/ directory used in development."""
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _read_database_type(self) -> str:
        raw = os.environ.get(ENV_DB_TYPE, "sqlite").lower()
        if raw not in SUPPORTED_DB_TYPES:
            logger.warning(f"Invalid {ENV_DB_TYPE}={raw!r}; falling back to sqlite")
            return "sqlite"
        return raw

    def _read_log_level(self) -> str:
        raw = os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()
        if raw not in _LOG_LEVELS:
            logger.warning(f"Invalid {ENV_LOG_LEVEL}={raw!r}; using {DEFAULT_LOG_LEVEL}")
            return DEFAULT_LOG_LEVEL
        return raw

    def ensure_directories(self) -> None:
        """Create the data directory for file-based SQLite databases."""
        if self._database_type == "sqlite":
            self._base_dir.mkdir(parents=True, exist_ok=True)

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
        """Full path to the SQLite database file."""
        return self._database_path

    @property
    def database_type(self) -> str:
        """Database backend: 'sqlite' or 'postgresql'."""
        return self._database_type

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Raises:
            ValueError: If postgresql is selected without DATABASE_URL
        """
        if self._database_type == "postgresql":
            url = os.environ.get(ENV_DATABASE_URL)
            if not url:
                raise ValueError(
                    f"{ENV_DB_TYPE}=postgresql requires {ENV_DATABASE_URL} to be set"
                )
            return url

        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def db_timeout(self) -> int:
        """Seconds to wait on a locked database before failing."""
        return self._db_timeout

    @property
    def draft_ttl_hours(self) -> int:
        """Hours a parcel draft stays alive after its last write."""
        return self._draft_ttl_hours

    @property
    def log_level(self) -> str:
        """Root log level name."""
        return self._log_level

    @property
    def pricing_config_path(self) -> Optional[Path]:
        """JSON tariff file, or None to use the built-in tariff."""
        return self._pricing_config_path

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """Check if the SQLite database file exists."""
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', "
            f"database_type='{self._database_type}', "
            f"database_path='{self._database_path}')"
        )


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    SENDIT_ENV or defaults to production. Ignored if the
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
