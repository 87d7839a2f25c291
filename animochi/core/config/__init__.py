"""
Configuration management subsystem for Animochi.

Architecture
------------
- **config.py**: Static configuration from environment variables
- **manager.py**: Balance configuration from YAML defaults
- **errors.py**: Domain-specific exception hierarchy

Static vs Balance Configuration
-------------------------------
**Static (Config):**
- Loaded from environment variables at startup
- Includes: database URL, pool sizes, log settings, reset secret
- Changes require application restart

**Balance (ConfigManager):**
- Loaded from built-in defaults + `config/*.yaml`
- Includes: welcome balance, transaction limits, quest templates

Usage Examples
--------------
```python
from animochi.core.config import Config, ConfigManager

Config.validate()
manager = ConfigManager(config_dir=Config.CONFIG_DIR)
manager.initialize()
welcome = manager.get("economy.welcome_balance", 3000)
```
"""

from animochi.core.config.config import Config, Environment
from animochi.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)
from animochi.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
]
