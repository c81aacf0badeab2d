#!/usr/bin/env python3
"""
Configuration Management for Bookkeeping Reconciliation

Handles environment-based configuration with defaults and validation.
Supports multiple environments (development, test, production).
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_EXCHANGE_RATE_API_URL = "https://api.argentinadatos.com/v1/cotizaciones/dolares/oficial"


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


@dataclass
class MatchingConfig:
    """Matching windows and tolerances."""

    days_before: int = 10  # LOW tier: payment may precede the document by less than this
    days_after: int = 60  # LOW tier: payment may follow the document by less than this
    amount_tolerance: Decimal = Decimal("1")
    cross_currency_tolerance_percent: Decimal = Decimal("5")
    max_cascade_depth: int = 5


@dataclass
class ExchangeRateConfig:
    """Exchange rate API configuration."""

    api_url: str = DEFAULT_EXCHANGE_RATE_API_URL
    timeout: float = 10.0
    cache_hours: int = 24


@dataclass
class StorageConfig:
    """Row store file locations."""

    store_file: Path


@dataclass
class Config:
    """
    Main configuration class for the bookkeeping application.

    Loads configuration from environment variables with defaults
    and validation for each environment type.
    """

    environment: Environment

    # Core directories
    data_dir: Path

    # Component configurations
    matching: MatchingConfig
    exchange_rate: ExchangeRateConfig
    storage: StorageConfig

    # Application settings
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Config":
        """Create configuration from environment variables."""
        env = Environment(os.getenv("BOOKKEEPING_ENV", "development"))

        if env == Environment.TEST:
            default_test_dir = Path(tempfile.gettempdir()) / "test_bookkeeping"
            data_dir = Path(os.getenv("BOOKKEEPING_DATA_DIR", str(default_test_dir)))
        else:
            data_dir = Path(os.getenv("BOOKKEEPING_DATA_DIR", "./data")).expanduser().resolve()

        data_dir.mkdir(parents=True, exist_ok=True)

        matching = MatchingConfig(
            days_before=int(os.getenv("MATCH_DAYS_BEFORE", "10")),
            days_after=int(os.getenv("MATCH_DAYS_AFTER", "60")),
            amount_tolerance=_parse_decimal(os.getenv("AMOUNT_TOLERANCE", "1")),
            cross_currency_tolerance_percent=_parse_decimal(os.getenv("USD_ARS_TOLERANCE_PERCENT", "5")),
            max_cascade_depth=int(os.getenv("MAX_CASCADE_DEPTH", "5")),
        )

        exchange_rate = ExchangeRateConfig(
            api_url=os.getenv("EXCHANGE_RATE_API_URL", DEFAULT_EXCHANGE_RATE_API_URL).rstrip("/"),
            timeout=float(os.getenv("EXCHANGE_RATE_TIMEOUT", "10")),
            cache_hours=int(os.getenv("EXCHANGE_RATE_CACHE_HOURS", "24")),
        )

        storage = StorageConfig(store_file=data_dir / "rows.json")

        return cls(
            environment=env,
            data_dir=data_dir,
            matching=matching,
            exchange_rate=exchange_rate,
            storage=storage,
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> list:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.data_dir.exists():
            errors.append(f"data_dir does not exist: {self.data_dir}")

        if self.matching.days_before <= 0:
            errors.append("MATCH_DAYS_BEFORE must be positive")
        if self.matching.days_after <= 30:
            # The MEDIUM tier reaches 30 days after the document date
            errors.append("MATCH_DAYS_AFTER must be greater than 30")
        if self.matching.amount_tolerance < 0:
            errors.append("AMOUNT_TOLERANCE must be non-negative")
        if not 0 <= self.matching.cross_currency_tolerance_percent < 100:
            errors.append("USD_ARS_TOLERANCE_PERCENT must be between 0 and 100")
        if self.matching.max_cascade_depth < 1:
            errors.append("MAX_CASCADE_DEPTH must be at least 1")

        if self.exchange_rate.timeout <= 0:
            errors.append("EXCHANGE_RATE_TIMEOUT must be positive")
        if self.exchange_rate.cache_hours < 0:
            errors.append("EXCHANGE_RATE_CACHE_HOURS must be non-negative")
        if not self.exchange_rate.api_url.startswith(("http://", "https://")):
            errors.append(f"EXCHANGE_RATE_API_URL is not an http(s) URL: {self.exchange_rate.api_url}")

        return errors

    def setup_logging(self) -> None:
        """Configure logging based on configuration."""
        level = logging.DEBUG if self.debug else getattr(logging, self.log_level, logging.INFO)

        # Configure format based on environment
        if self.environment == Environment.DEVELOPMENT:
            format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_str = "%(asctime)s - %(levelname)s - %(message)s"

        logging.basicConfig(level=level, format=format_str, datefmt="%Y-%m-%d %H:%M:%S")

        # Reduce noise from the HTTP client outside development
        if self.environment != Environment.DEVELOPMENT:
            logging.getLogger("httpx").setLevel(logging.WARNING)
            logging.getLogger("httpcore").setLevel(logging.WARNING)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-friendly dictionary."""
        result: dict[str, Any] = {}

        for field_name, field_value in self.__dict__.items():
            if hasattr(field_value, "__dict__") and not isinstance(field_value, (Path, Enum)):
                result[field_name] = {
                    nested_name: _plain(nested_value) for nested_name, nested_value in field_value.__dict__.items()
                }
            else:
                result[field_name] = _plain(field_value)

        return result


def _plain(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    return value


def _parse_decimal(value: str) -> Decimal:
    """Parse a numeric environment value, raising ValueError on garbage."""
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid numeric configuration value: {value!r}") from e
    if not parsed.is_finite():
        raise ValueError(f"Invalid numeric configuration value: {value!r}")
    return parsed


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        config = Config.from_environment()

        # Validate configuration
        errors = config.validate()
        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        # Setup logging
        config.setup_logging()
        _config = config

    return _config


def reload_config() -> Config:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = None
    return get_config()


def get_data_dir() -> Path:
    """Get the data directory path."""
    return get_config().data_dir


def is_test() -> bool:
    """Check if running in test environment."""
    return get_config().environment == Environment.TEST
