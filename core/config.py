"""Centralized configuration management with validation."""
import os
from dataclasses import dataclass, field
from typing import Optional, List
from pathlib import Path

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class StorageConfig:
    """Storage/persistence configuration."""
    database_path: str = "data/dealership.db"
    data_dir: str = "data"

    def validate(self) -> List[str]:
        """Validate storage configuration, return list of errors."""
        errors = []
        # Ensure parent directory exists or can be created
        db_parent = Path(self.database_path).parent
        if str(db_parent) != "." and not db_parent.exists():
            try:
                db_parent.mkdir(parents=True, exist_ok=True)
            except Exception as e:
                errors.append(f"Cannot create database directory: {e}")
        return errors


@dataclass
class ImportConfig:
    """CSV stock import limits and defaults."""
    max_file_bytes: int = 5 * 1024 * 1024
    max_rows: int = 5000
    default_location: str = "WAREHOUSE"
    sample_size: int = 3

    def validate(self) -> List[str]:
        """Validate import configuration, return list of errors."""
        errors = []
        if self.max_file_bytes <= 0:
            errors.append("IMPORT_MAX_FILE_BYTES must be positive")
        if self.max_rows <= 0:
            errors.append("IMPORT_MAX_ROWS must be positive")
        if not self.default_location.strip():
            errors.append("IMPORT_DEFAULT_LOCATION must not be empty")
        if self.sample_size < 0:
            errors.append("IMPORT_SAMPLE_SIZE must not be negative")
        return errors


@dataclass
class ApiConfig:
    """HTTP API configuration."""
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    default_actor: str = "system"

    def validate(self) -> List[str]:
        errors = []
        if not self.cors_origins:
            errors.append("CORS_ORIGINS must list at least one origin")
        return errors


@dataclass
class AppConfig:
    """Main application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

    # Runtime settings
    log_level: str = "INFO"
    log_format: str = "text"  # "json" or "text"

    def validate(self) -> None:
        """Validate all configuration, raise ConfigurationError if invalid."""
        errors = []

        errors.extend(self.storage.validate())
        errors.extend(self.imports.validate())
        errors.extend(self.api.validate())

        if self.log_format not in ("json", "text"):
            errors.append(f"Unknown LOG_FORMAT: {self.log_format}")

        if errors:
            raise ConfigurationError("Configuration errors:\n  - " + "\n  - ".join(errors))

    def __repr__(self) -> str:
        return (f"AppConfig(\n  storage={self.storage},\n  imports={self.imports},\n  "
                f"api={self.api},\n  log_level={self.log_level}, log_format={self.log_format}\n)")


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables."""
    load_dotenv()

    config = AppConfig(
        storage=StorageConfig(
            database_path=os.getenv("DATABASE_PATH", "data/dealership.db"),
            data_dir=os.getenv("DATA_DIR", "data"),
        ),
        imports=ImportConfig(
            max_file_bytes=int(os.getenv("IMPORT_MAX_FILE_BYTES", str(5 * 1024 * 1024))),
            max_rows=int(os.getenv("IMPORT_MAX_ROWS", "5000")),
            default_location=os.getenv("IMPORT_DEFAULT_LOCATION", "WAREHOUSE").upper(),
            sample_size=int(os.getenv("IMPORT_SAMPLE_SIZE", "3")),
        ),
        api=ApiConfig(
            cors_origins=_parse_list(os.getenv("CORS_ORIGINS", "*")),
            default_actor=os.getenv("DEFAULT_ACTOR", "system"),
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "text").lower(),
    )

    return config


# Singleton config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config_from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
