from .loader import (
    DEFAULT_CONFIG_PATH,
    ApiSettings,
    AppConfig,
    ConfigError,
    DatabaseConfig,
    ImportSettings,
    load_config,
    reload_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ApiSettings",
    "AppConfig",
    "ConfigError",
    "DatabaseConfig",
    "ImportSettings",
    "load_config",
    "reload_config",
]
