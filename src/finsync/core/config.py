#!/usr/bin/env python3
"""
Configuration Management for finsync

Handles environment-based configuration with secure defaults and validation.
Supports multiple environments (development, test, production) and exposes the
timing knobs of the sync engine (guard window, debounce delays, inactivity
threshold) so they can be tuned without code changes.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


@dataclass
class SyncConfig:
    """Timing configuration for the sync engine."""

    guard_window_ms: int = 2000
    debounce_ms: int = 500
    ledger_debounce_ms: int = 300
    inactivity_threshold_seconds: float = 60.0
    max_category_depth: int = 32

    @property
    def guard_window_seconds(self) -> float:
        return self.guard_window_ms / 1000

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def ledger_debounce_seconds(self) -> float:
        return self.ledger_debounce_ms / 1000


@dataclass
class RemoteConfig:
    """Remote system-of-record configuration."""

    # Directory holding the JSON table snapshots served by FileRemote
    snapshot_dir: Path
    principal_id: str | None = None


@dataclass
class Config:
    """
    Main configuration class for finsync.

    Loads configuration from environment variables with secure defaults
    and validation for each environment type.
    """

    environment: Environment

    # Core directories
    data_dir: Path
    cache_dir: Path
    output_dir: Path

    # Component configurations
    sync: SyncConfig
    remote: RemoteConfig

    # Application settings
    base_currency: str = "USD"
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Config":
        """Create configuration from environment variables."""
        env = Environment(os.getenv("FINSYNC_ENV", "development"))

        # Base directories
        if env == Environment.TEST:
            default_test_dir = Path(tempfile.gettempdir()) / "test_finsync"
            base_dir = Path(os.getenv("FINSYNC_DATA_DIR", str(default_test_dir)))
        else:
            base_dir = Path(os.getenv("FINSYNC_DATA_DIR", "./data")).expanduser().resolve()

        data_dir = base_dir
        cache_dir = data_dir / "cache"
        output_dir = data_dir / "reports"

        # Ensure directories exist
        for directory in [data_dir, cache_dir, output_dir]:
            directory.mkdir(parents=True, exist_ok=True)

        sync = SyncConfig(
            guard_window_ms=int(os.getenv("FINSYNC_GUARD_WINDOW_MS", "2000")),
            debounce_ms=int(os.getenv("FINSYNC_DEBOUNCE_MS", "500")),
            ledger_debounce_ms=int(os.getenv("FINSYNC_LEDGER_DEBOUNCE_MS", "300")),
            inactivity_threshold_seconds=float(os.getenv("FINSYNC_INACTIVITY_THRESHOLD", "60")),
            max_category_depth=int(os.getenv("FINSYNC_MAX_CATEGORY_DEPTH", "32")),
        )

        remote = RemoteConfig(
            snapshot_dir=Path(os.getenv("FINSYNC_REMOTE_DIR", str(data_dir / "remote"))).expanduser(),
            principal_id=os.getenv("FINSYNC_PRINCIPAL_ID"),
        )

        return cls(
            environment=env,
            data_dir=data_dir,
            cache_dir=cache_dir,
            output_dir=output_dir,
            sync=sync,
            remote=remote,
            base_currency=os.getenv("FINSYNC_BASE_CURRENCY", "USD").upper(),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> list:
        """Validate configuration and return list of errors."""
        errors = []

        # Check required directories
        for name, path in [
            ("data_dir", self.data_dir),
            ("cache_dir", self.cache_dir),
            ("output_dir", self.output_dir),
        ]:
            if not path.exists():
                errors.append(f"{name} does not exist: {path}")

        if self.environment == Environment.PRODUCTION and not self.remote.principal_id:
            errors.append("FINSYNC_PRINCIPAL_ID is required in production")

        if len(self.base_currency) != 3:
            errors.append(f"Base currency must be a 3-letter ISO code: {self.base_currency}")

        # Validate numeric values
        try:
            if self.sync.guard_window_ms < 0:
                errors.append("Guard window must be non-negative")
            if self.sync.debounce_ms < 0 or self.sync.ledger_debounce_ms < 0:
                errors.append("Debounce delays must be non-negative")
            if self.sync.inactivity_threshold_seconds <= 0:
                errors.append("Inactivity threshold must be positive")
            if self.sync.max_category_depth <= 0:
                errors.append("Maximum category depth must be positive")
        except (ValueError, TypeError) as e:
            errors.append(f"Invalid numeric configuration: {e}")

        return errors

    def setup_logging(self) -> None:
        """Configure logging based on configuration."""
        level = getattr(logging, self.log_level, logging.INFO)

        # Configure format based on environment
        if self.environment == Environment.DEVELOPMENT:
            format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_str = "%(asctime)s - %(levelname)s - %(message)s"

        logging.basicConfig(level=level, format=format_str, datefmt="%Y-%m-%d %H:%M:%S")

        # Reduce noise from asyncio internals outside development
        if self.environment != Environment.DEVELOPMENT:
            logging.getLogger("asyncio").setLevel(logging.WARNING)

    def get_sensitive_fields(self) -> list:
        """Get list of field names that contain sensitive data."""
        return [
            "remote.principal_id",
        ]

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Convert configuration to dictionary, optionally excluding sensitive data."""
        result: dict[str, Any] = {}

        for field_name, field_value in self.__dict__.items():
            if hasattr(field_value, "__dict__"):
                # Nested dataclass
                nested_dict: dict[str, Any] = {}
                for nested_name, nested_value in field_value.__dict__.items():
                    full_field_name = f"{field_name}.{nested_name}"

                    if not include_sensitive and full_field_name in self.get_sensitive_fields():
                        nested_dict[nested_name] = "***REDACTED***"
                    elif isinstance(nested_value, Path):
                        nested_dict[nested_name] = str(nested_value)
                    elif isinstance(nested_value, Enum):
                        nested_dict[nested_name] = nested_value.value
                    else:
                        nested_dict[nested_name] = nested_value

                result[field_name] = nested_dict
            elif isinstance(field_value, Path):
                result[field_name] = str(field_value)
            elif isinstance(field_value, Enum):
                result[field_name] = field_value.value
            else:
                result[field_name] = field_value

        return result


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_environment()

        errors = _config.validate()
        if errors:
            from .errors import ConfigurationError

            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        _config.setup_logging()

    return _config


def reload_config() -> Config:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = None
    return get_config()


# Convenience functions
def get_data_dir() -> Path:
    """Get the data directory path."""
    return get_config().data_dir


def get_cache_dir() -> Path:
    """Get the cache directory path."""
    return get_config().cache_dir


def is_development() -> bool:
    """Check if running in development environment."""
    return get_config().environment == Environment.DEVELOPMENT


def is_test() -> bool:
    """Check if running in test environment."""
    return get_config().environment == Environment.TEST


def is_production() -> bool:
    """Check if running in production environment."""
    return get_config().environment == Environment.PRODUCTION
