"""
Database facade for schemasync.

Binds one backend connection to its schema reconciler, write batcher and
session configuration. This is what applications use day to day.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, List, Mapping, Optional

from ..config import SchemaSyncConfig, SessionConfig, TableDefinition
from ..exceptions import ConfigurationError
from ..manipulation import ManipulationBatcher
from ..schema.notifications import AlterationNotifier, AlterationReporter
from ..schema.reconciler import CommitResult, SchemaReconciler
from .backend import DatabaseBackend
from .query import Query


logger = logging.getLogger(__name__)


class Database:
    """
    One database connection with its schema session and write helpers.

    Only one schema update session can be active per instance.
    """

    def __init__(
        self,
        backend: DatabaseBackend,
        config: Optional[SessionConfig] = None,
        reporters: Optional[List[AlterationReporter]] = None,
    ):
        self.backend = backend
        self.config = config or SessionConfig()
        self.notifier = AlterationNotifier(reporters, quiet=self.config.quiet)
        self.reconciler = SchemaReconciler(backend, self.config, self.notifier)
        self.batcher = ManipulationBatcher(backend)
        self.last_result: Optional[CommitResult] = None

    @classmethod
    def from_config(
        cls,
        config: SchemaSyncConfig,
        reporters: Optional[List[AlterationReporter]] = None,
    ) -> "Database":
        """Build a PostgreSQL-backed database from the main configuration."""
        if config.connection is None:
            raise ConfigurationError("No database connection configured")

        from .postgres import PostgresBackend

        return cls(PostgresBackend.from_config(config.connection), config.session, reporters)

    async def connect(self) -> None:
        connect = getattr(self.backend, "connect", None)
        if connect is not None:
            await connect()

    async def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Schema sessions

    async def begin_schema_update(self) -> None:
        await self.reconciler.begin_schema_update()

    async def end_schema_update(self) -> CommitResult:
        self.last_result = await self.reconciler.end_schema_update()
        return self.last_result

    async def abort_schema_update(self) -> None:
        await self.reconciler.abort_schema_update()

    @asynccontextmanager
    async def schema_update(self) -> AsyncIterator["Database"]:
        """
        Run a schema update session around a block.

        Staged changes are committed when the block exits normally and
        discarded when it raises. The commit result is kept in ``last_result``.
        """
        await self.begin_schema_update()
        try:
            yield self
        except BaseException:
            if self.reconciler.is_active:
                await self.abort_schema_update()
            raise
        await self.end_schema_update()

    async def require_table(self, table: str, field_schema=None, index_schema=None) -> None:
        await self.reconciler.require_table(table, field_schema, index_schema)

    async def require_field(self, table: str, field_name: str, spec: str) -> None:
        await self.reconciler.require_field(table, field_name, spec)

    async def require_index(self, table: str, index: str, spec: Any) -> None:
        await self.reconciler.require_index(table, index, spec)

    async def dont_require_table(self, table: str) -> Optional[str]:
        return await self.reconciler.dont_require_table(table)

    async def sync_tables(self, tables: Iterable[TableDefinition]) -> CommitResult:
        """Reconcile declared table definitions in a single session."""
        async with self.schema_update():
            for table in tables:
                if table.obsolete:
                    await self.dont_require_table(table.name)
                else:
                    await self.require_table(table.name, table.fields, table.indexes)
        return self.last_result

    # Data

    async def manipulate(self, manipulation: Mapping[str, Any]) -> None:
        await self.batcher.manipulate(manipulation)

    async def query(self, sql: str, *args: Any) -> Query:
        return await self.backend.query(sql, *args)
