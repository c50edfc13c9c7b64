"""
Pytest configuration and shared fixtures for schemasync tests.

This module provides an in-memory backend that behaves like a tiny database,
so the reconciler, batcher and facade can be tested without PostgreSQL.
"""

import logging
from typing import Any, Dict, List, Optional, Set

import pytest
import yaml

from schemasync.config import SessionConfig
from schemasync.database.backend import (
    DatabaseBackend,
    ExecutionResult,
    InsertStatement,
    UpdateStatement,
)
from schemasync.database.facade import Database
from schemasync.database.query import Query, RecordListQuery
from schemasync.exceptions import BackendError
from schemasync.schema.notifications import AlterationNotifier, CollectingReporter
from schemasync.schema.reconciler import SchemaReconciler


class FakeBackend(DatabaseBackend):
    """In-memory backend recording every call it receives."""

    def __init__(self, collations: bool = True):
        self.tables: Dict[str, Dict[str, Dict[str, str]]] = {}
        self.rows: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.statements: List[Any] = []
        self.fail_tables: Set[str] = set()
        self.repair_tables: Set[str] = set()
        self.query_rows: List[Dict[str, Any]] = []
        self.collations = collations

    # Helpers for tests

    def add_table(
        self,
        name: str,
        fields: Optional[Dict[str, str]] = None,
        indexes: Optional[Dict[str, str]] = None,
    ) -> None:
        self.tables[name] = {"fields": dict(fields or {}), "indexes": dict(indexes or {})}

    def find(self, table: str) -> Optional[str]:
        for name in self.tables:
            if name.lower() == table.lower():
                return name
        return None

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    def _check_failure(self, table: str) -> None:
        if table.lower() in self.fail_tables:
            raise BackendError(f"Simulated failure on {table}")

    # Backend contract

    async def list_tables(self) -> Set[str]:
        self.calls.append(("list_tables",))
        return set(self.tables)

    async def list_fields(self, table: str) -> Dict[str, str]:
        self.calls.append(("list_fields", table))
        return dict(self.tables[self.find(table)]["fields"])

    async def list_indexes(self, table: str) -> Dict[str, str]:
        self.calls.append(("list_indexes", table))
        return dict(self.tables[self.find(table)]["indexes"])

    async def create_table(self, table, fields=None, indexes=None) -> None:
        self.calls.append(("create_table", table, dict(fields or {}), dict(indexes or {})))
        self._check_failure(table)
        self.add_table(table, {"ID": "integer not null", **(fields or {})}, indexes)

    async def alter_table(self, table, new_fields, new_indexes, altered_fields, altered_indexes) -> None:
        self.calls.append(
            (
                "alter_table",
                table,
                dict(new_fields),
                dict(new_indexes),
                dict(altered_fields),
                dict(altered_indexes),
            )
        )
        self._check_failure(table)
        stored = self.tables[self.find(table)]
        stored["fields"].update(new_fields)
        stored["fields"].update(altered_fields)
        stored["indexes"].update(new_indexes)
        stored["indexes"].update(altered_indexes)

    async def rename_table(self, old_table: str, new_table: str) -> None:
        self.calls.append(("rename_table", old_table, new_table))
        self._check_failure(old_table)
        self.tables[new_table] = self.tables.pop(self.find(old_table))

    async def create_field(self, table: str, field_name: str, spec: str) -> None:
        self.calls.append(("create_field", table, field_name, spec))
        self.tables[self.find(table)]["fields"][field_name] = spec

    async def execute(self, statement, *args, level=logging.ERROR) -> ExecutionResult:
        self.statements.append(statement)
        if isinstance(statement, InsertStatement):
            rows = self.rows.setdefault(statement.table, [])
            row = dict(statement.fields)
            row.setdefault("ID", len(rows) + 1)
            rows.append(row)
            return ExecutionResult(affected_rows=1, generated_id=row["ID"])
        if isinstance(statement, UpdateStatement):
            affected = 0
            for row in self.rows.get(statement.table, []):
                if all(row.get(key) == value for key, value in statement.where.items()):
                    row.update(statement.fields)
                    affected += 1
            return ExecutionResult(affected_rows=affected)
        return ExecutionResult()

    async def query(self, sql: str, *args: Any) -> Query:
        self.calls.append(("query", sql, args))
        return RecordListQuery(self.query_rows)

    def supports_collations(self) -> bool:
        return self.collations

    async def check_and_repair_table(self, table: str) -> bool:
        self.calls.append(("check_and_repair_table", table))
        return table.lower() in self.repair_tables


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def backend() -> FakeBackend:
    """Empty in-memory backend."""
    return FakeBackend()


@pytest.fixture
def reporter() -> CollectingReporter:
    return CollectingReporter()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig()


@pytest.fixture
def reconciler(backend, session_config, reporter) -> SchemaReconciler:
    """Reconciler wired to the fake backend and a collecting reporter."""
    return SchemaReconciler(backend, session_config, AlterationNotifier([reporter]))


@pytest.fixture
def database(backend, reporter) -> Database:
    return Database(backend, SessionConfig(), [reporter])


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Sample configuration data for testing."""
    return {
        "connection": {
            "host": "localhost",
            "port": 5432,
            "database": "app",
            "user": "app",
            "password": "secret",
        },
        "session": {"dry_run": False},
        "tables": [
            {
                "name": "Page",
                "fields": {"Title": "Varchar(255)", "Sort": "Int"},
                "indexes": {"Sort": True, "TitleSearch": {"fields": ["Title"], "type": "fulltext"}},
            },
            {"name": "OldLog", "obsolete": True},
        ],
    }


@pytest.fixture
def config_file(tmp_path, sample_config_data):
    """Sample configuration written to a YAML file."""
    path = tmp_path / "schemasync.yaml"
    path.write_text(yaml.safe_dump(sample_config_data))
    return path
