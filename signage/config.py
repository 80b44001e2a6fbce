"""
Configuration for the signage content scheduler
===============================================
Runtime settings loaded from environment variables.
Sets up the logging configuration as well.
"""

import logging
import os
import sys
from contextlib import suppress
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path

from signage.domain.devices import DEFAULT_DEVICES, DeviceRegistry
from signage.domain.exceptions import ConfigurationError

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.", detail={"name": name}) from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("SIGNAGE_ENV", "development"))
    database_path: str = field(default_factory=lambda: os.getenv("SIGNAGE_DATABASE_PATH", "database/signage.db"))

    # Background sweep
    sweep_interval_seconds: int = field(default_factory=lambda: _env_int("SIGNAGE_SWEEP_INTERVAL_SECONDS", 60))
    scheduler_check_interval: float = field(
        default_factory=lambda: float(_env_int("SIGNAGE_SCHEDULER_CHECK_INTERVAL", 1))
    )
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("SIGNAGE_SCHEDULER_MAX_WORKERS", 2))

    # Devices as "KEY:Display Name" pairs
    devices: str = field(default_factory=lambda: os.getenv("SIGNAGE_DEVICES", DEFAULT_DEVICES))

    DEBUG: bool = field(default_factory=lambda: _env_bool("SIGNAGE_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("SIGNAGE_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("SIGNAGE_LOG_FILE", "logs/signage.log"))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.sweep_interval_seconds <= 0:
            raise ConfigurationError(
                "SIGNAGE_SWEEP_INTERVAL_SECONDS must be positive",
                detail={"value": self.sweep_interval_seconds},
            )
        if self.scheduler_check_interval <= 0:
            raise ConfigurationError("SIGNAGE_SCHEDULER_CHECK_INTERVAL must be positive")
        if self.scheduler_max_workers < 1:
            raise ConfigurationError("SIGNAGE_SCHEDULER_MAX_WORKERS must be at least 1")
        self.log_level = (self.log_level or "INFO").upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.log_level}", detail={"value": self.log_level})
        if not self.database_path:
            raise ConfigurationError("SIGNAGE_DATABASE_PATH must not be empty")
        # Fails fast on a malformed device list
        self.device_registry()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def device_registry(self) -> DeviceRegistry:
        return DeviceRegistry.from_config(self.devices)


def setup_logging(debug: bool = False, level: str = "INFO", log_file: str | None = "logs/signage.log") -> None:
    """Setup logging configuration."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when called more than once
    has_console = any(getattr(h, "name", "") == "signage_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "signage_file" for h in root.handlers)
    added_handler = False

    # Console handler (force UTF-8 to avoid UnicodeEncodeError on Windows terminals)
    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "signage_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if log_file and not has_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "signage_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"signage_console", "signage_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    config = AppConfig()
    logging.getLogger("config_loader").debug(
        "Loaded configuration for %s (database=%s, sweep every %ss)",
        config.environment,
        config.database_path,
        config.sweep_interval_seconds,
    )
    return config
