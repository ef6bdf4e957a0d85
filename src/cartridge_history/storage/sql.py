"""SQL definitions for the PostgreSQL history table."""


def quote_identifier(name: str) -> str:
    """Quote a PostgreSQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def qualified_table(schema: str, table: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


HISTORY_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id BIGSERIAL PRIMARY KEY,
    history_name VARCHAR(255) NOT NULL,
    source JSONB NOT NULL,           -- source system attributes
    position JSONB NOT NULL,         -- offsets, file/sequence coordinates, etc.
    database_name VARCHAR(255),
    schema_name VARCHAR(255),
    ddl TEXT,
    table_changes JSONB,             -- parsed schema delta, when captured
    recorded_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
)
"""

HISTORY_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS {index} ON {table} (history_name, id)
"""


def get_history_table_sql(schema: str, table: str) -> list[str]:
    """Statements that provision the history table, in execution order.

    All statements are idempotent.
    """
    target = qualified_table(schema, table)
    return [
        f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(schema)}",
        HISTORY_TABLE_SQL.format(table=target),
        HISTORY_INDEX_SQL.format(
            index=quote_identifier(f"idx_{table}_history_name"), table=target
        ),
    ]


def get_storage_exists_sql() -> str:
    return """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = $1 AND table_name = $2
    )
    """


def get_exists_sql(schema: str, table: str) -> str:
    return (
        f"SELECT EXISTS (SELECT 1 FROM {qualified_table(schema, table)} "
        f"WHERE history_name = $1)"
    )


def get_insert_sql(schema: str, table: str) -> str:
    return f"""
    INSERT INTO {qualified_table(schema, table)}
        (history_name, source, position, database_name, schema_name, ddl,
         table_changes, recorded_at)
    VALUES ($1, $2::jsonb, $3::jsonb, $4, $5, $6, $7::jsonb, $8)
    """


def get_snapshot_sql(schema: str, table: str) -> str:
    return (
        f"SELECT COALESCE(MAX(id), 0) FROM {qualified_table(schema, table)} "
        f"WHERE history_name = $1"
    )


def get_page_sql(schema: str, table: str) -> str:
    return f"""
    SELECT id, source, position, database_name, schema_name, ddl,
           table_changes, recorded_at
    FROM {qualified_table(schema, table)}
    WHERE history_name = $1 AND id > $2 AND id <= $3
    ORDER BY id
    LIMIT $4
    """


__all__ = [
    "quote_identifier",
    "qualified_table",
    "get_history_table_sql",
    "get_storage_exists_sql",
    "get_exists_sql",
    "get_insert_sql",
    "get_snapshot_sql",
    "get_page_sql",
]
