"""
Configuration for RackPower
===========================
Runtime settings for the socket registry, the device HTTP client and the
automation scheduler, read from ``RACKPOWER_*`` environment variables.
Sets up the logging configuration as well.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from rackpower.domain.exceptions import ConfigurationError


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
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("RACKPOWER_ENV", "development"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("RACKPOWER_DEBUG", False))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("RACKPOWER_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("RACKPOWER_LOG_FILE", "logs/rackpower.log"))
    audit_log_path: str = field(default_factory=lambda: os.getenv("RACKPOWER_AUDIT_LOG_PATH", "logs/audit.log"))

    # Socket registry and automation seed file
    registry_path: str = field(default_factory=lambda: os.getenv("RACKPOWER_REGISTRY_PATH", "config/sockets.json"))
    automations_path: str = field(default_factory=lambda: os.getenv("RACKPOWER_AUTOMATIONS_PATH", ""))

    # Scheduler
    scheduler_check_interval: float = field(
        default_factory=lambda: _env_float("RACKPOWER_SCHEDULER_CHECK_INTERVAL", 1.0)
    )
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("RACKPOWER_SCHEDULER_MAX_WORKERS", 4))
    scheduler_max_history: int = field(default_factory=lambda: _env_int("RACKPOWER_SCHEDULER_MAX_HISTORY", 1000))

    # Device HTTP client
    http_timeout_seconds: float = field(default_factory=lambda: _env_float("RACKPOWER_HTTP_TIMEOUT", 5.0))


# ==================== CONFIGURATION VALIDATION ====================


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: AppConfig instance

    Returns:
        List of warning messages (empty if all valid)

    Raises:
        ConfigurationError: If a value cannot work at all
    """
    if config.scheduler_max_workers < 1:
        raise ConfigurationError(
            "Scheduler worker count must be at least 1",
            detail={"scheduler_max_workers": config.scheduler_max_workers},
        )
    if config.scheduler_check_interval <= 0:
        raise ConfigurationError(
            "Scheduler check interval must be positive",
            detail={"scheduler_check_interval": config.scheduler_check_interval},
        )
    if config.http_timeout_seconds <= 0:
        raise ConfigurationError(
            "HTTP timeout must be positive",
            detail={"http_timeout_seconds": config.http_timeout_seconds},
        )
    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        raise ConfigurationError(f"Unknown log level: {config.log_level}", detail={"log_level": config.log_level})

    warnings = []

    # Check scheduler resolution
    if config.scheduler_check_interval > 30:
        warnings.append(
            f"Scheduler check interval ({config.scheduler_check_interval}s) is long. "
            "Triggers may fire noticeably late. Recommended: 1s"
        )

    if config.scheduler_max_history < 10:
        warnings.append(f"Scheduler history size ({config.scheduler_max_history}) keeps very few results")

    # Check files exist
    if not Path(config.registry_path).exists():
        warnings.append(f"Socket registry file does not exist: {config.registry_path}")
    if config.automations_path and not Path(config.automations_path).exists():
        warnings.append(f"Automations file does not exist: {config.automations_path}")

    return warnings


def setup_logging(debug: bool = False, log_file: str | None = "logs/rackpower.log", level: str = "INFO") -> None:
    """Setup logging configuration."""
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when called more than once
    has_console = any(getattr(h, "name", "") == "rackpower_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "rackpower_file" for h in root.handlers)
    added_handler = False

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Console handler on stderr; stdout carries command output
    if not has_console:
        console_handler = logging.StreamHandler(stream=sys.stderr)
        console_handler.name = "rackpower_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    # File handler
    if log_file and not has_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "rackpower_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"rackpower_console", "rackpower_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")

    # Per-request connection logs from the device HTTP client
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    logger = logging.getLogger("config_loader")

    try:
        config = AppConfig()
    except ValueError as e:
        raise ConfigurationError(str(e)) from None

    for warning in validate_config(config):
        logger.warning(warning)

    return config
