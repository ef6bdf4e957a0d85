"""Test configuration management."""

import pytest
from pydantic import ValidationError

from cartridge_history.core.config import HistoryConfig, StorageConfig
from cartridge_history.records.filter import DEFAULT_DDL_FILTER


def test_default_config():
    """Test default configuration values."""
    config = HistoryConfig()

    assert config.name is None
    assert config.history_name == "default"
    assert config.skip_unparseable_ddl is False
    assert config.store_only_monitored_tables_ddl is False
    assert config.ddl_filter == DEFAULT_DDL_FILTER
    assert config.assume_monotonic_positions is False
    assert config.storage.type == "memory"
    assert config.storage.initialize_on_start is False
    assert config.monitoring.prometheus.enabled is False


def test_config_from_file(sample_config_file):
    """Test loading configuration from file."""
    config = HistoryConfig.from_file(sample_config_file)

    assert config.history_name == "inventory-history"
    assert config.storage.type == "file"
    assert config.storage.path.name == "schema-history.jsonl"
    assert config.storage.initialize_on_start is True
    assert config.monitoring.log_level == "DEBUG"


def test_config_from_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        HistoryConfig.from_file(tmp_path / "missing.yaml")


def test_file_storage_requires_path():
    """Test backend-specific validation."""
    with pytest.raises(ValidationError, match="storage.path is required"):
        StorageConfig(type="file")


def test_postgresql_storage_requires_connection_string():
    with pytest.raises(ValidationError, match="connection_string is required"):
        StorageConfig(type="postgresql")


def test_unknown_storage_type_rejected():
    with pytest.raises(ValidationError):
        StorageConfig(type="kafka")


class TestFromOptions:
    """Test building configuration from flat dotted option names."""

    def test_prefixed_options(self):
        config = HistoryConfig.from_options(
            {
                "database.history.name": "orders",
                "database.history.skip.unparseable.ddl": True,
                "database.history.store.only.monitored.tables.ddl": "true",
                "database.history.ddl.filter": "SAVEPOINT .*,FLUSH .*",
            }
        )

        assert config.history_name == "orders"
        assert config.skip_unparseable_ddl is True
        assert config.store_only_monitored_tables_ddl is True
        assert config.ddl_filter == ["SAVEPOINT .*", "FLUSH .*"]

    def test_unprefixed_and_nested_options(self, tmp_path):
        config = HistoryConfig.from_options(
            {
                "table.whitelist": "inventory.orders, customers",
                "storage.type": "file",
                "storage.path": str(tmp_path / "history.jsonl"),
                "monitoring.prometheus.enabled": False,
                "monitoring.log_level": "WARNING",
            }
        )

        assert config.table_whitelist == ["inventory.orders", "customers"]
        assert config.storage.type == "file"
        assert config.storage.path == tmp_path / "history.jsonl"
        assert config.monitoring.log_level == "WARNING"

    def test_unknown_option_rejected(self):
        with pytest.raises(ValueError, match="Unknown history options: database.history.bogus"):
            HistoryConfig.from_options({"database.history.bogus": 1})

    def test_invalid_filter_pattern_rejected(self):
        with pytest.raises(ValidationError, match="Invalid ddl.filter pattern"):
            HistoryConfig.from_options({"ddl.filter": ["CREATE TABLE ("]})

    def test_escaped_comma_kept_in_filter_pattern(self):
        config = HistoryConfig.from_options(
            {"ddl.filter": r"CREATE TABLE tmp_\d{1\,3},FLUSH .*"}
        )

        assert config.ddl_filter == [r"CREATE TABLE tmp_\d{1,3}", "FLUSH .*"]

    def test_filter_list_items_not_split(self):
        config = HistoryConfig.from_options({"ddl.filter": [r"CREATE TABLE tmp_\d{1,3}"]})

        assert config.ddl_filter == [r"CREATE TABLE tmp_\d{1,3}"]

    def test_empty_filter_disables_filtering(self):
        config = HistoryConfig.from_options({"ddl.filter": ""})
        assert config.ddl_filter == []


class TestMonitoredTables:
    """Test whitelist/blacklist table selection."""

    def test_everything_monitored_by_default(self):
        config = HistoryConfig()
        assert config.is_table_monitored("inventory.orders")

    def test_whitelist_matches_full_identifier_or_table_name(self):
        config = HistoryConfig(table_whitelist="inventory.orders,customers")

        assert config.is_table_monitored("inventory.orders")
        assert config.is_table_monitored("crm.customers")
        assert not config.is_table_monitored("inventory.products")

    def test_whitelist_takes_precedence_over_blacklist(self):
        config = HistoryConfig(table_whitelist=["orders"], table_blacklist=["orders"])
        assert config.is_table_monitored("orders")

    def test_blacklist(self):
        config = HistoryConfig(table_blacklist=["audit_log"])

        assert not config.is_table_monitored("inventory.audit_log")
        assert config.is_table_monitored("inventory.orders")
