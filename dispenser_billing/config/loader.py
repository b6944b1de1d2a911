"""
Configuration management and loading.

Handles pricing, storage and logging settings from a YAML file.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dispenser_billing.core.pricing import DEFAULT_CURRENCY_SYMBOL, UNIT_PRICE, PricingPolicy
from dispenser_billing.storage.db import DEFAULT_DB_PATH


class StorageBackend(Enum):
    """Where dispensers and tap events are kept."""
    MEMORY = "memory"
    SQLITE = "sqlite"


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class StorageConfig:
    """Storage backend selection."""
    backend: StorageBackend = StorageBackend.MEMORY
    db_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        """Validate the database path is usable."""
        if self.backend is StorageBackend.SQLITE and not self.db_path:
            raise ValueError("db_path is required for the sqlite backend")


@dataclass(frozen=True)
class LoggingConfig:
    """Logging level and output format."""
    level: str = "INFO"
    json: bool = False

    def __post_init__(self):
        """Validate log level is known."""
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging level must be one of: {sorted(_LOG_LEVELS)}")


@dataclass(frozen=True)
class BillingConfig:
    """Complete application configuration."""
    pricing: PricingPolicy = field(default_factory=PricingPolicy)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_billing_config(path: Optional[str] = None) -> BillingConfig:
    """Load and validate configuration from a YAML file.

    Unknown keys are rejected so a typo never silently falls back to a
    default price or an in-memory store.

    Args:
        path: Path to YAML configuration file; None returns the defaults

    Returns:
        Validated BillingConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return BillingConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Billing config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'pricing', 'storage', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return BillingConfig(
        pricing=_parse_pricing(_section(raw_config, 'pricing')),
        storage=_parse_storage(_section(raw_config, 'storage')),
        logging=_parse_logging(_section(raw_config, 'logging')),
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _parse_pricing(data: Dict[str, Any]) -> PricingPolicy:
    """Parse and validate the pricing section.

    Raises:
        ValueError: If unit_price is not a positive number
    """
    _check_keys(data, {'unit_price', 'currency_symbol'}, "pricing")

    unit_price = data.get('unit_price', UNIT_PRICE)
    if isinstance(unit_price, bool):
        raise ValueError("'unit_price' in pricing must be a number")
    try:
        unit_price = Decimal(str(unit_price))
    except InvalidOperation:
        raise ValueError("'unit_price' in pricing must be a number")
    if not unit_price.is_finite() or unit_price <= 0:
        raise ValueError("'unit_price' in pricing must be > 0")

    symbol = data.get('currency_symbol', DEFAULT_CURRENCY_SYMBOL)
    if not isinstance(symbol, str):
        raise ValueError("'currency_symbol' in pricing must be a string")

    return PricingPolicy(unit_price=unit_price, currency_symbol=symbol)


def _parse_storage(data: Dict[str, Any]) -> StorageConfig:
    _check_keys(data, {'backend', 'db_path'}, "storage")

    backend_str = data.get('backend', StorageBackend.MEMORY.value)
    if not isinstance(backend_str, str):
        raise ValueError("'backend' in storage must be a string")
    try:
        backend = StorageBackend(backend_str.lower())
    except ValueError:
        valid_backends = [backend.value for backend in StorageBackend]
        raise ValueError(f"'backend' in storage must be one of: {valid_backends}")

    db_path = data.get('db_path', DEFAULT_DB_PATH)
    if not isinstance(db_path, str):
        raise ValueError("'db_path' in storage must be a string")

    return StorageConfig(backend=backend, db_path=db_path)


def _parse_logging(data: Dict[str, Any]) -> LoggingConfig:
    _check_keys(data, {'level', 'json'}, "logging")

    level = data.get('level', "INFO")
    if not isinstance(level, str):
        raise ValueError("'level' in logging must be a string")
    json_format = data.get('json', False)
    if not isinstance(json_format, bool):
        raise ValueError("'json' in logging must be true or false")

    return LoggingConfig(level=level.upper(), json=json_format)
