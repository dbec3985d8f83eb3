"""Core modules for configuration and logging."""

from core.config import (
    ApiConfig,
    AppConfig,
    ConfigurationError,
    ImportConfig,
    StorageConfig,
    get_config,
    load_config_from_env,
    reset_config,
)
from core.logging_config import (
    LogContext,
    clear_context,
    generate_batch_id,
    get_logger,
    set_context,
    setup_logging,
)

__all__ = [
    "AppConfig",
    "StorageConfig",
    "ImportConfig",
    "ApiConfig",
    "ConfigurationError",
    "load_config_from_env",
    "get_config",
    "reset_config",
    "setup_logging",
    "get_logger",
    "LogContext",
    "generate_batch_id",
    "set_context",
    "clear_context",
]
