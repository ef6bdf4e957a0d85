"""Configuration management for cartridge-history."""

import re
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..records.filter import DEFAULT_DDL_FILTER

OPTION_PREFIX = "database.history."

# Flat option names accepted by HistoryConfig.from_options
_OPTION_ALIASES = {
    "name": "name",
    "skip.unparseable.ddl": "skip_unparseable_ddl",
    "store.only.monitored.tables.ddl": "store_only_monitored_tables_ddl",
    "ddl.filter": "ddl_filter",
    "table.whitelist": "table_whitelist",
    "table.blacklist": "table_blacklist",
    "assume.monotonic.positions": "assume_monotonic_positions",
}


_UNESCAPED_COMMA = re.compile(r"(?<!\\),")


def _parse_comma_separated_list(value: Any) -> Optional[list[str]]:
    """Parse comma-separated string into list of strings.

    A backslash-escaped comma (``\\,``) is kept as a literal comma, so regular
    expressions such as ``\\d{1\\,3}`` survive.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        items = (
            item.replace("\\,", ",").strip() for item in _UNESCAPED_COMMA.split(value)
        )
        return [item for item in items if item]
    return None


class StorageConfig(BaseModel):
    """History storage backend configuration."""

    type: Literal["memory", "file", "postgresql"] = Field(
        "memory", description="Storage backend type"
    )
    path: Optional[Path] = Field(None, description="History file (file backend)")
    connection_string: Optional[str] = Field(
        None, description="Database connection string (postgresql backend)"
    )
    metadata_schema: str = Field(
        "cartridge_history", description="Schema holding the history table"
    )
    table_name: str = Field("schema_history", description="History table name")

    # Connection pool settings
    min_connections: int = Field(1, ge=1)
    max_connections: int = Field(5, ge=1)
    command_timeout: float = Field(60.0, gt=0)

    initialize_on_start: bool = Field(
        False, description="Provision storage on start instead of failing"
    )

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StorageConfig":
        """Each backend requires its own location setting."""
        if self.type == "file" and self.path is None:
            raise ValueError("storage.path is required for the file backend")
        if self.type == "postgresql" and not self.connection_string:
            raise ValueError(
                "storage.connection_string is required for the postgresql backend"
            )
        return self


class PrometheusConfig(BaseModel):
    """Prometheus monitoring configuration."""

    enabled: bool = False
    port: int = 8080
    path: str = "/metrics"


class MonitoringConfig(BaseModel):
    """Monitoring and observability configuration."""

    prometheus: PrometheusConfig = PrometheusConfig()
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    structured_logging: bool = True


class HistoryConfig(BaseSettings):
    """Main configuration for a schema history instance."""

    name: Optional[str] = Field(None, description="Logical name of this history")

    skip_unparseable_ddl: bool = Field(
        False, description="Skip recorded DDL the parser rejects during recovery"
    )
    store_only_monitored_tables_ddl: bool = Field(
        False, description="Only store DDL that touches a monitored table"
    )
    ddl_filter: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DDL_FILTER),
        description="Regular expressions of DDL statements never recorded",
    )

    # Monitored tables
    table_whitelist: Optional[list[str]] = Field(
        None, description="Tables to monitor (whitelist takes precedence over blacklist)"
    )
    table_blacklist: Optional[list[str]] = Field(
        None, description="Tables to exclude from monitoring"
    )

    assume_monotonic_positions: bool = Field(
        False, description="Storage order matches position order for every source"
    )

    storage: StorageConfig = StorageConfig()
    monitoring: MonitoringConfig = MonitoringConfig()

    model_config = {"env_prefix": "CARTRIDGE_HISTORY_", "case_sensitive": False}

    @field_validator("ddl_filter", mode="before")
    @classmethod
    def parse_ddl_filter(cls, v):
        """Parse comma-separated string for the DDL filter."""
        parsed = _parse_comma_separated_list(v)
        return parsed if parsed is not None else v

    @field_validator("ddl_filter")
    @classmethod
    def validate_ddl_filter(cls, v):
        """Ensure every filter pattern is a valid regular expression."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid ddl.filter pattern {pattern!r}: {e}") from e
        return v

    @field_validator("table_whitelist", mode="before")
    @classmethod
    def parse_table_whitelist(cls, v):
        """Parse comma-separated string for table whitelist."""
        return _parse_comma_separated_list(v)

    @field_validator("table_blacklist", mode="before")
    @classmethod
    def parse_table_blacklist(cls, v):
        """Parse comma-separated string for table blacklist."""
        return _parse_comma_separated_list(v)

    @property
    def history_name(self) -> str:
        return self.name or "default"

    def is_table_monitored(self, identifier: str) -> bool:
        """Check if a table is monitored based on whitelist/blacklist configuration.

        Args:
            identifier: Dotted table identifier; entries match either the
                full identifier or its last (table name) part
        """
        candidates = {identifier, identifier.rsplit(".", 1)[-1]}

        if self.table_whitelist is not None:
            return bool(candidates & set(self.table_whitelist))

        if self.table_blacklist is not None:
            return not candidates & set(self.table_blacklist)

        return True

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "HistoryConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "HistoryConfig":
        """Build configuration from flat, dotted option names.

        Keys may carry the ``database.history.`` prefix. ``storage.*`` and
        ``monitoring.*`` keys populate the nested sections, e.g.
        ``storage.type`` or ``monitoring.prometheus.enabled``.

        Raises:
            ValueError: For unknown options or invalid values
        """
        data: dict[str, Any] = {}
        unknown = []
        for key, value in options.items():
            option = key[len(OPTION_PREFIX):] if key.startswith(OPTION_PREFIX) else key
            section, _, rest = option.partition(".")
            if option in _OPTION_ALIASES:
                data[_OPTION_ALIASES[option]] = value
            elif section in ("storage", "monitoring") and rest:
                target = data.setdefault(section, {})
                *parents, leaf = rest.split(".")
                for parent in parents:
                    target = target.setdefault(parent, {})
                target[leaf] = value
            elif option in cls.model_fields:
                data[option] = value
            else:
                unknown.append(key)

        if unknown:
            raise ValueError(f"Unknown history options: {', '.join(sorted(unknown))}")

        return cls(**data)


__all__ = [
    "OPTION_PREFIX",
    "StorageConfig",
    "PrometheusConfig",
    "MonitoringConfig",
    "HistoryConfig",
]
