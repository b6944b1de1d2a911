"""
Unit tests for configuration loading and validation.
"""

import os
import tempfile
from decimal import Decimal

import pytest
import yaml

from dispenser_billing.config.loader import (
    BillingConfig,
    LoggingConfig,
    StorageBackend,
    StorageConfig,
    load_billing_config,
)
from dispenser_billing.core.pricing import UNIT_PRICE


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_defaults_without_file(self):
        config = load_billing_config(None)
        assert config == BillingConfig()
        assert config.pricing.unit_price == UNIT_PRICE
        assert config.storage.backend == StorageBackend.MEMORY
        assert config.logging.level == "INFO"

    def test_valid_config_loads_correctly(self):
        config_path = self._write_config({
            "pricing": {"unit_price": 10.5, "currency_symbol": "€"},
            "storage": {"backend": "sqlite", "db_path": "bar.db"},
            "logging": {"level": "debug", "json": True},
        })

        config = load_billing_config(config_path)

        assert config.pricing.unit_price == Decimal("10.5")
        assert config.pricing.currency_symbol == "€"
        assert config.storage == StorageConfig(backend=StorageBackend.SQLITE, db_path="bar.db")
        assert config.logging == LoggingConfig(level="DEBUG", json=True)

    def test_partial_config_uses_defaults(self):
        config_path = self._write_config({"storage": {"backend": "SQLITE"}})
        config = load_billing_config(config_path)
        assert config.storage.backend == StorageBackend.SQLITE
        assert config.pricing.unit_price == UNIT_PRICE

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError, match="Billing config file not found"):
            load_billing_config(os.path.join(self.temp_dir, "nope.yaml"))

    def test_empty_file(self):
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        with pytest.raises(ValueError, match="empty"):
            load_billing_config(config_path)

    def test_invalid_yaml(self):
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("pricing: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_billing_config(config_path)

    def test_unknown_top_level_key(self):
        config_path = self._write_config({"pricing": {}, "tenants": {}})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_billing_config(config_path)

    def test_unknown_section_key(self):
        config_path = self._write_config({"pricing": {"unit_prise": 1}})
        with pytest.raises(ValueError, match="Unknown keys in pricing"):
            load_billing_config(config_path)

    @pytest.mark.parametrize("price", [0, -1, "abc", True])
    def test_invalid_unit_price(self, price):
        config_path = self._write_config({"pricing": {"unit_price": price}})
        with pytest.raises(ValueError, match="unit_price"):
            load_billing_config(config_path)

    def test_invalid_backend(self):
        config_path = self._write_config({"storage": {"backend": "mongo"}})
        with pytest.raises(ValueError, match="must be one of"):
            load_billing_config(config_path)

    def test_section_must_be_mapping(self):
        config_path = self._write_config({"logging": "debug"})
        with pytest.raises(ValueError, match="'logging' must be a dictionary"):
            load_billing_config(config_path)

    def test_invalid_log_level(self):
        config_path = self._write_config({"logging": {"level": "LOUD"}})
        with pytest.raises(ValueError, match="logging level"):
            load_billing_config(config_path)
