"""
PostgreSQL backend for schemasync.

Introspects tables through ``information_schema``/``pg_catalog`` and renders
columns back into the same spec format the field types produce, so an
unchanged field compares equal. Identifiers are always quoted, and table
names given in any casing are resolved to the stored name.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Set, Tuple

import asyncpg

from ..exceptions import BackendError
from ..schema.specs import normalize_index_spec
from .backend import (
    DatabaseBackend,
    ExecutionResult,
    InsertStatement,
    Statement,
    UpdateStatement,
)
from .connection import ConnectionConfig, ConnectionPool
from .query import Query, RecordListQuery


logger = logging.getLogger(__name__)

_CAST_SUFFIX = re.compile(r"^(?P<value>.*?)::[a-z ]+(?:\[\])?$", re.IGNORECASE | re.DOTALL)
_SPEC_TYPE = re.compile(
    r"^\s*(?P<type>.*?)(?=\s+(?:not\s+null|null|default|character\s+set|collate|unique|primary|check|references)\b|\s*$)",
    re.IGNORECASE | re.DOTALL,
)
_SPEC_DEFAULT = re.compile(r"\bdefault\s+('(?:[^']|'')*'|\S+)", re.IGNORECASE)
_SPEC_NOT_NULL = re.compile(r"\bnot\s+null\b", re.IGNORECASE)
# pg_get_indexdef only quotes identifiers that need it; varchar columns get a cast
_COALESCED_COLUMN = re.compile(
    r'COALESCE\(\s*\(?\s*(?:"((?:[^"]|"")+)"|([a-z_][a-z0-9_$]*))', re.IGNORECASE
)
_STATUS_COUNT = re.compile(r"(\d+)\s*$")

_TYPE_NAMES = {
    "integer": "integer",
    "smallint": "smallint",
    "bigint": "bigint",
    "text": "text",
    "boolean": "boolean",
    "date": "date",
    "double precision": "float",
    "real": "real",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
}


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def split_field_spec(spec: str) -> Tuple[str, bool, Optional[str]]:
    """Split a field spec into its type, NOT NULL flag and default."""
    type_match = _SPEC_TYPE.match(spec)
    column_type = type_match.group("type").strip() if type_match else spec.strip()
    default_match = _SPEC_DEFAULT.search(spec)
    default = default_match.group(1) if default_match else None
    return column_type, bool(_SPEC_NOT_NULL.search(spec)), default


def render_column_spec(column: asyncpg.Record) -> str:
    """Render an ``information_schema.columns`` row as a field spec."""
    data_type = column["data_type"]
    if data_type == "character varying":
        spec = f"varchar({column['character_maximum_length']})"
    elif data_type == "character":
        spec = f"char({column['character_maximum_length']})"
    elif data_type == "numeric" and column["numeric_precision"] is not None:
        spec = f"decimal({column['numeric_precision']},{column['numeric_scale']})"
    else:
        spec = _TYPE_NAMES.get(data_type, data_type)

    if column["is_nullable"] == "NO":
        spec += " not null"

    default = column["column_default"]
    if default is not None:
        cast_match = _CAST_SUFFIX.match(default)
        if cast_match:
            default = cast_match.group("value")
        spec += f" default {default}"

    return spec


class PostgresBackend(DatabaseBackend):
    """PostgreSQL implementation of the backend contract on asyncpg."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool
        self.schema = pool.config.schema_name
        self._table_names: Dict[str, str] = {}

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> "PostgresBackend":
        return cls(ConnectionPool(config))

    async def connect(self) -> None:
        await self.pool.initialize()

    async def close(self) -> None:
        await self.pool.close()

    def _resolve(self, table: str) -> str:
        return self._table_names.get(table.lower(), table)

    def _qualified(self, table: str) -> str:
        return f"{quote_identifier(self.schema)}.{quote_identifier(self._resolve(table))}"

    def _index_name(self, table: str, index: str) -> str:
        return f"{self._resolve(table)}_{index}"

    def supports_collations(self) -> bool:
        return False

    async def _fetch(self, sql: str, *args: Any, level: int = logging.ERROR) -> List[asyncpg.Record]:
        try:
            return await self.pool.fetch(sql, *args)
        except BackendError:
            raise
        except Exception as e:
            logger.log(level, f"Query failed: {e}")
            raise BackendError(f"Query failed: {e}", level=level, cause=e) from e

    async def _run_ddl(self, statements: List[str], description: str) -> None:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    for sql in statements:
                        logger.debug(f"DDL: {sql}")
                        await conn.execute(sql)
        except BackendError:
            raise
        except Exception as e:
            logger.error(f"Failed to {description}: {e}")
            raise BackendError(
                f"Failed to {description}: {e}", details={"statements": len(statements)}, cause=e
            ) from e

    # Introspection

    async def list_tables(self) -> Set[str]:
        rows = await self._fetch(
            """
            SELECT table_name FROM information_schema.tables
            WHERE table_schema = $1 AND table_type = 'BASE TABLE'
            """,
            self.schema,
        )
        self._table_names = {row["table_name"].lower(): row["table_name"] for row in rows}
        return set(self._table_names.values())

    async def list_fields(self, table: str) -> Dict[str, str]:
        rows = await self._fetch(
            """
            SELECT column_name, data_type, is_nullable, column_default,
                   character_maximum_length, numeric_precision, numeric_scale
            FROM information_schema.columns
            WHERE table_schema = $1 AND table_name = $2
            ORDER BY ordinal_position
            """,
            self.schema,
            self._resolve(table),
        )
        return {row["column_name"]: render_column_spec(row) for row in rows}

    async def list_indexes(self, table: str) -> Dict[str, str]:
        actual = self._resolve(table)
        rows = await self._fetch(
            """
            SELECT i.relname AS index_name,
                   ix.indisunique AS is_unique,
                   am.amname AS method,
                   pg_get_indexdef(ix.indexrelid) AS definition,
                   array_remove(array_agg(a.attname ORDER BY k.ord), NULL) AS columns
            FROM pg_class t
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN pg_index ix ON ix.indrelid = t.oid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_am am ON am.oid = i.relam
            CROSS JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord)
            LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE n.nspname = $1 AND t.relname = $2 AND NOT ix.indisprimary
            GROUP BY i.relname, ix.indisunique, am.amname, ix.indexrelid
            """,
            self.schema,
            actual,
        )

        indexes = {}
        prefix = f"{actual}_"
        for row in rows:
            name = row["index_name"]
            if name.startswith(prefix):
                name = name[len(prefix):]
            if row["method"] == "gin":
                using = row["definition"].split("USING gin", 1)[-1]
                columns = [
                    quoted.replace('""', '"') if quoted else bare
                    for quoted, bare in _COALESCED_COLUMN.findall(using)
                ]
                indexes[name] = f"fulltext ({','.join(columns)})"
            elif row["is_unique"]:
                indexes[name] = f"unique ({','.join(row['columns'])})"
            else:
                indexes[name] = f"({','.join(row['columns'])})"
        return indexes

    # DDL

    def _index_ddl(self, table: str, index: str, spec: str) -> str:
        parsed = normalize_index_spec(spec)
        if parsed is None:
            raise BackendError(f"Unsupported index spec for {table}.{index}: {spec}")

        name = quote_identifier(self._index_name(table, index))
        if parsed.kind == "fulltext":
            document = " || ' ' || ".join(
                f"coalesce({quote_identifier(column)}, '')" for column in self._index_columns(spec)
            )
            return (
                f"CREATE INDEX {name} ON {self._qualified(table)} "
                f"USING gin (to_tsvector('simple', {document}))"
            )
        unique = "UNIQUE " if parsed.kind == "unique" else ""
        columns = ", ".join(quote_identifier(column) for column in self._index_columns(spec))
        return f"CREATE {unique}INDEX {name} ON {self._qualified(table)} ({columns})"

    @staticmethod
    def _index_columns(spec: str) -> List[str]:
        inner = spec[spec.index("(") + 1 : spec.rindex(")")]
        return [column.strip().strip('"`') for column in inner.split(",")]

    async def create_table(
        self,
        table: str,
        fields: Optional[Dict[str, str]] = None,
        indexes: Optional[Dict[str, str]] = None,
    ) -> None:
        columns = [f'{quote_identifier("ID")} serial PRIMARY KEY']
        columns.extend(
            f"{quote_identifier(name)} {spec}" for name, spec in (fields or {}).items()
        )
        statements = [
            f"CREATE TABLE {quote_identifier(self.schema)}.{quote_identifier(table)} "
            f"({', '.join(columns)})"
        ]
        self._table_names[table.lower()] = table
        statements.extend(
            self._index_ddl(table, name, spec) for name, spec in (indexes or {}).items()
        )
        await self._run_ddl(statements, f"create table {table}")

    def _alter_column_actions(self, field_name: str, spec: str) -> List[str]:
        column = quote_identifier(field_name)
        column_type, not_null, default = split_field_spec(spec)
        actions = [f"ALTER COLUMN {column} TYPE {column_type} USING {column}::{column_type}"]
        actions.append(
            f"ALTER COLUMN {column} SET NOT NULL" if not_null
            else f"ALTER COLUMN {column} DROP NOT NULL"
        )
        actions.append(
            f"ALTER COLUMN {column} SET DEFAULT {default}" if default is not None
            else f"ALTER COLUMN {column} DROP DEFAULT"
        )
        return actions

    async def alter_table(
        self,
        table: str,
        new_fields: Dict[str, str],
        new_indexes: Dict[str, str],
        altered_fields: Dict[str, str],
        altered_indexes: Dict[str, str],
    ) -> None:
        actions = [
            f"ADD COLUMN {quote_identifier(name)} {spec}" for name, spec in new_fields.items()
        ]
        for name, spec in altered_fields.items():
            actions.extend(self._alter_column_actions(name, spec))

        statements = []
        if actions:
            statements.append(f"ALTER TABLE {self._qualified(table)} {', '.join(actions)}")
        for name, spec in altered_indexes.items():
            statements.append(
                f"DROP INDEX IF EXISTS {quote_identifier(self.schema)}."
                f"{quote_identifier(self._index_name(table, name))}"
            )
            statements.append(self._index_ddl(table, name, spec))
        statements.extend(self._index_ddl(table, name, spec) for name, spec in new_indexes.items())

        if statements:
            await self._run_ddl(statements, f"alter table {table}")

    async def rename_table(self, old_table: str, new_table: str) -> None:
        await self._run_ddl(
            [f"ALTER TABLE {self._qualified(old_table)} RENAME TO {quote_identifier(new_table)}"],
            f"rename table {old_table} to {new_table}",
        )
        self._table_names.pop(old_table.lower(), None)
        self._table_names[new_table.lower()] = new_table

    async def create_field(self, table: str, field_name: str, spec: str) -> None:
        await self._run_ddl(
            [f"ALTER TABLE {self._qualified(table)} ADD COLUMN {quote_identifier(field_name)} {spec}"],
            f"create field {table}.{field_name}",
        )

    # Data

    def _render(self, statement: Statement, args: Tuple[Any, ...]) -> Tuple[str, List[Any]]:
        if isinstance(statement, str):
            return statement, list(args)

        params: List[Any] = []

        def placeholder(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if isinstance(statement, InsertStatement):
            names = ", ".join(quote_identifier(name) for name in statement.fields)
            values = ", ".join(placeholder(value) for value in statement.fields.values())
            sql = (
                f"INSERT INTO {self._qualified(statement.table)} ({names}) "
                f"VALUES ({values}) RETURNING {quote_identifier('ID')}"
            )
            return sql, params

        if isinstance(statement, UpdateStatement):
            assignments = ", ".join(
                f"{quote_identifier(name)} = {placeholder(value)}"
                for name, value in statement.fields.items()
            )
            if isinstance(statement.where, str):
                where = statement.where
            else:
                where = " AND ".join(
                    f"{quote_identifier(name)} = {placeholder(value)}"
                    for name, value in statement.where.items()
                )
            sql = f"UPDATE {self._qualified(statement.table)} SET {assignments} WHERE {where}"
            return sql, params

        raise BackendError(f"Unsupported statement: {statement!r}")

    async def execute(
        self, statement: Statement, *args: Any, level: int = logging.ERROR
    ) -> ExecutionResult:
        sql, params = self._render(statement, args)
        try:
            async with self.pool.acquire() as conn:
                prepared = await conn.prepare(sql)
                rows = await prepared.fetch(*params)
                status = prepared.get_statusmsg() or ""
        except BackendError:
            raise
        except Exception as e:
            logger.log(level, f"Statement failed: {e}")
            raise BackendError(f"Statement failed: {e}", level=level, cause=e) from e

        count_match = _STATUS_COUNT.search(status)
        generated_id = None
        if isinstance(statement, InsertStatement) and rows:
            generated_id = rows[0]["ID"]

        return ExecutionResult(
            affected_rows=int(count_match.group(1)) if count_match else 0,
            generated_id=generated_id,
            rows=list(rows),
        )

    async def query(self, sql: str, *args: Any) -> Query:
        return RecordListQuery(await self._fetch(sql, *args))
