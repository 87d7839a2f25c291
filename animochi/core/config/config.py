"""
Static configuration management for Animochi.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at application startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Create required directories (logs, data)
- Detect and warn about security issues in production

Non-Responsibilities
--------------------
- Economy and quest balance values (handled by ConfigManager)
- Runtime configuration changes (except safe reload)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Loaded explicitly at bootstrap via Config.validate()
- Directory paths relative to project root for portability

Configuration Categories
------------------------
1. Database: connection URL, pool and retry settings
2. Environment: environment type, logging
3. Quests: cycle timezone and the operator reset secret

Dependencies
------------
- python-dotenv: Environment variable loading
- pathlib: Cross-platform path handling
- logging: Basic logging (bootstrap only)

Environment Variables
---------------------
Optional (with defaults):
- DATABASE_URL: SQLAlchemy async URL (default: local SQLite file)
- DATABASE_POOL_SIZE: Connection pool size (default: 10)
- ENVIRONMENT: Environment type (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- QUEST_TIMEZONE: IANA zone used for the daily cycle (default: UTC)
- QUEST_RESET_SECRET: Secret required by the bulk daily reset

See individual attributes for complete list.
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """
    Deployment environment types.

    Defines valid environment values with strict type safety.
    """
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not configured yet during bootstrap
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for Animochi.

    All configuration values loaded from environment variables with sensible
    defaults. Validates critical settings on startup to prevent runtime failures.

    Usage
    -----
    >>> Config.validate()
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    _validated: bool = False
    _validation_errors: Dict[str, str] = {}

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/animochi.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    DATABASE_POOL_TIMEOUT: int = 30

    DATABASE_RETRY_MAX_ATTEMPTS: int = 3
    DATABASE_RETRY_INITIAL_BACKOFF_MS: int = 50
    DATABASE_RETRY_MAX_BACKOFF_MS: int = 1000
    DATABASE_RETRY_JITTER_MS: int = 25

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_TO_FILE: bool = False

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Quest Cycle
    # =========================================================================

    QUEST_TIMEZONE: str = "UTC"
    QUEST_RESET_SECRET: str = ""

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _record_error(cls, key: str, error: str) -> None:
        logging.warning(error)
        cls._validation_errors[key] = error

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Out-of-range or unparsable values fall back to ``default`` and are
        recorded as validation errors.

        Example
        -------
        >>> Config._safe_int("DATABASE_POOL_SIZE", 10, min_val=1, max_val=200)
        10
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._record_error(
                key, f"{key}='{raw_value}' is not a valid integer, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            cls._record_error(
                key, f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default

        if max_val is not None and value > max_val:
            cls._record_error(
                key, f"{key}={value} exceeds maximum {max_val}, using default {default}"
            )
            return default

        return value

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        cls._record_error(
            key, f"{key}='{raw_value}' is not a valid boolean, using default {default}"
        )
        return default

    @classmethod
    def _safe_str(cls, key: str, default: str, required: bool = False) -> str:
        """Safely get string from environment."""
        value = os.getenv(key, default)
        if required and not value:
            error = f"Required environment variable {key} is not set"
            logging.error(error)
            cls._validation_errors[key] = error
        return value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Can be called again to pick up changed environment variables, which
        is what the test suite does after monkeypatching the environment.
        """
        cls._validation_errors = {}

        # Database Configuration
        cls.DATABASE_URL = cls._safe_str(
            "DATABASE_URL", "sqlite+aiosqlite:///./data/animochi.db", required=True
        )
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 10, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 5, min_val=0, max_val=200
        )
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 3600, min_val=60
        )
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int(
            "DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=300
        )

        # Retry policy
        cls.DATABASE_RETRY_MAX_ATTEMPTS = cls._safe_int(
            "DATABASE_RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=10
        )
        cls.DATABASE_RETRY_INITIAL_BACKOFF_MS = cls._safe_int(
            "DATABASE_RETRY_INITIAL_BACKOFF_MS", 50, min_val=0
        )
        cls.DATABASE_RETRY_MAX_BACKOFF_MS = cls._safe_int(
            "DATABASE_RETRY_MAX_BACKOFF_MS", 1000, min_val=0
        )
        cls.DATABASE_RETRY_JITTER_MS = cls._safe_int(
            "DATABASE_RETRY_JITTER_MS", 25, min_val=0
        )

        # Environment Configuration
        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", cls.is_production())
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", False)

        # Quest Cycle
        cls.QUEST_TIMEZONE = cls._safe_str("QUEST_TIMEZONE", "UTC")
        cls.QUEST_RESET_SECRET = cls._safe_str(
            "QUEST_RESET_SECRET", "", required=cls.is_production()
        )

    @classmethod
    def validate(cls) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ValueError:
            If required config values are missing or invalid in production.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)

        try:
            cls.load()

            if not cls.DATABASE_URL:
                raise ValueError("DATABASE_URL environment variable is required")

            if cls.is_production() and cls.DATABASE_URL.startswith("sqlite"):
                logger.warning(
                    "Production environment using SQLite database - "
                    "this may be incorrect"
                )

            valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            if cls.is_production() and not cls.QUEST_RESET_SECRET:
                raise ValueError("QUEST_RESET_SECRET is required in production")

            if cls.LOG_TO_FILE:
                cls.LOGS_DIR.mkdir(exist_ok=True)
            if cls.DATABASE_URL.startswith("sqlite") and "/./data/" in cls.DATABASE_URL:
                cls.DATA_DIR.mkdir(exist_ok=True)

            cls._validated = True
            logger.info(f"Configuration loaded: {cls.get_config_summary()}")

            if cls._validation_errors:
                logger.warning(f"Configuration warnings: {cls._validation_errors}")

        except Exception as e:
            logger.warning(f"Config validation warning (safe for tests): {e}")
            if cls.is_production():
                logger.error("Configuration validation failed in production!")
                raise

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def get_environment(cls) -> Environment:
        return Environment.from_string(cls.ENVIRONMENT)

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_testing(cls) -> bool:
        """Check if running in testing environment."""
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Summary
    # =========================================================================

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["reset_secret_set"]
        False
        """
        return {
            "environment": cls.get_environment().value,
            "log_level": cls.LOG_LEVEL,
            "database_backend": cls.DATABASE_URL.split(":", 1)[0],
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "database_max_overflow": cls.DATABASE_MAX_OVERFLOW,
            "quest_timezone": cls.QUEST_TIMEZONE,
            "reset_secret_set": bool(cls.QUEST_RESET_SECRET),
            "loaded_at": datetime.now(timezone.utc).isoformat(),
        }
