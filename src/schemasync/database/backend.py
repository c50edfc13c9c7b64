"""
Abstract database backend contract for schemasync.

The reconciliation engine and the manipulation batcher only talk to the
database through this interface. Backends translate it to their own dialect.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from .query import Query


logger = logging.getLogger(__name__)

Where = Union[str, Dict[str, Any]]


@dataclass
class InsertStatement:
    """Insert one row into ``table``."""

    table: str
    fields: Dict[str, Any]


@dataclass
class UpdateStatement:
    """
    Update rows of ``table`` matching ``where``.

    ``where`` is either a mapping of column to value (joined with AND) or a
    backend-specific predicate string.
    """

    table: str
    fields: Dict[str, Any]
    where: Where


Statement = Union[str, InsertStatement, UpdateStatement]


@dataclass
class ExecutionResult:
    """Outcome of a single executed statement."""

    affected_rows: int = 0
    generated_id: Optional[int] = None
    rows: List[Mapping[str, Any]] = field(default_factory=list)


class DatabaseBackend(ABC):
    """
    Interface every database backend must implement.

    All calls may block on database I/O and are awaited one at a time; a
    backend instance is never used by two operations at once.
    """

    @abstractmethod
    async def list_tables(self) -> Set[str]:
        """Return the names of all tables in the database."""
        pass

    @abstractmethod
    async def list_fields(self, table: str) -> Dict[str, str]:
        """Return ``{field name: spec}`` for a table."""
        pass

    @abstractmethod
    async def list_indexes(self, table: str) -> Dict[str, str]:
        """Return ``{index name: spec}`` for a table."""
        pass

    @abstractmethod
    async def create_table(
        self,
        table: str,
        fields: Optional[Dict[str, str]] = None,
        indexes: Optional[Dict[str, str]] = None,
    ) -> None:
        """Create a table with an integer ``ID`` key plus the given fields and indexes."""
        pass

    @abstractmethod
    async def alter_table(
        self,
        table: str,
        new_fields: Dict[str, str],
        new_indexes: Dict[str, str],
        altered_fields: Dict[str, str],
        altered_indexes: Dict[str, str],
    ) -> None:
        """Apply every field and index change for one table in one call."""
        pass

    @abstractmethod
    async def rename_table(self, old_table: str, new_table: str) -> None:
        pass

    @abstractmethod
    async def create_field(self, table: str, field_name: str, spec: str) -> None:
        pass

    @abstractmethod
    async def execute(
        self, statement: Statement, *args: Any, level: int = logging.ERROR
    ) -> ExecutionResult:
        """
        Execute a statement.

        Args:
            statement: Raw SQL or a structured insert/update statement
            *args: Parameters for raw SQL
            level: Logging level a failure is reported at

        Raises:
            BackendError: If the statement fails
        """
        pass

    @abstractmethod
    async def query(self, sql: str, *args: Any) -> Query:
        """Run a query and return its rows as a ``Query``."""
        pass

    @abstractmethod
    def supports_collations(self) -> bool:
        """Whether field specs may carry ``character set``/``collate`` clauses."""
        pass

    async def check_and_repair_table(self, table: str) -> bool:
        """
        Check an existing table's structure, repairing it if necessary.

        Returns:
            True if a repair was made
        """
        return False
