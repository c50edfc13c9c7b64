"""
Staged schema changes for a reconciliation session.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


class ChangeCommand(str, Enum):
    """How a pending table change is applied."""

    CREATE = "create"
    ALTER = "alter"
    RENAME = "rename"


@dataclass
class PendingTableChange:
    """Everything applied to one table in a session.

    Creates and alters wait for commit. Obsolete renames are applied when
    requested and only recorded here so the commit result lists them.
    """

    table: str
    command: ChangeCommand
    new_fields: Dict[str, str] = field(default_factory=dict)
    new_indexes: Dict[str, str] = field(default_factory=dict)
    altered_fields: Dict[str, str] = field(default_factory=dict)
    altered_indexes: Dict[str, str] = field(default_factory=dict)
    renamed_to: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.new_fields or self.new_indexes or self.altered_fields or self.altered_indexes
        )

    def describe(self) -> str:
        if self.command == ChangeCommand.RENAME:
            return f"rename {self.table} to {self.renamed_to}"
        parts = []
        if self.new_fields:
            parts.append(f"{len(self.new_fields)} new field(s)")
        if self.altered_fields:
            parts.append(f"{len(self.altered_fields)} altered field(s)")
        if self.new_indexes:
            parts.append(f"{len(self.new_indexes)} new index(es)")
        if self.altered_indexes:
            parts.append(f"{len(self.altered_indexes)} altered index(es)")
        return f"{self.command.value} {self.table}: " + (", ".join(parts) or "no columns")


class StagedChangeSet:
    """
    Accumulates pending table changes, at most one per table.

    Table names are matched case-insensitively; the casing of the first
    request for a table is what gets sent to the backend.
    """

    def __init__(self):
        self._changes: Dict[str, PendingTableChange] = {}

    @staticmethod
    def _key(table: str) -> str:
        return table.lower()

    def get(self, table: str) -> Optional[PendingTableChange]:
        return self._changes.get(self._key(table))

    def is_new_table(self, table: str) -> bool:
        change = self.get(table)
        return change is not None and change.command == ChangeCommand.CREATE

    def create_table(self, table: str) -> PendingTableChange:
        change = self.get(table)
        if change is None:
            change = PendingTableChange(table=table, command=ChangeCommand.CREATE)
            self._changes[self._key(table)] = change
        return change

    def _init_table(self, table: str) -> PendingTableChange:
        change = self.get(table)
        if change is None:
            change = PendingTableChange(table=table, command=ChangeCommand.ALTER)
            self._changes[self._key(table)] = change
        return change

    def create_field(self, table: str, field_name: str, spec: str) -> None:
        self._init_table(table).new_fields[field_name] = spec

    def create_index(self, table: str, index: str, spec: str) -> None:
        self._init_table(table).new_indexes[index] = spec

    def alter_field(self, table: str, field_name: str, spec: str) -> None:
        self._init_table(table).altered_fields[field_name] = spec

    def alter_index(self, table: str, index: str, spec: str) -> None:
        self._init_table(table).altered_indexes[index] = spec

    def clear(self) -> None:
        self._changes = {}

    def __iter__(self) -> Iterator[PendingTableChange]:
        return iter(list(self._changes.values()))

    def __len__(self) -> int:
        return len(self._changes)

    def tables(self) -> List[str]:
        return [change.table for change in self._changes.values()]
