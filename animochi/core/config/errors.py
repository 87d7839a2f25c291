"""
Configuration error hierarchy for Animochi.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (schema/type validation failures)
└── ConfigInitializationError (startup/init failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     manager.initialize()
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """
    pass


class ConfigValidationError(ConfigError):
    """
    Raised when a configuration value has the wrong type or shape.

    Raised for YAML files whose root is not a mapping and for explicit
    overrides that do not merge cleanly into the defaults.
    """
    pass


class ConfigInitializationError(ConfigError):
    """Raised when ConfigManager cannot load its YAML sources."""
    pass
