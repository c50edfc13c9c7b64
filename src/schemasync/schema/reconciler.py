"""
Schema reconciliation core logic for schemasync.

Diffs required tables, fields and indexes against a snapshot of the
database, stages the differences per table, and applies them with one
create-or-alter call per table when the schema update session ends.
"""

import logging
import time
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import SessionConfig
from ..database.backend import DatabaseBackend
from ..exceptions import SchemaCommitError, SessionStateError, StaleSpecWarning
from .changes import ChangeCommand, PendingTableChange, StagedChangeSet
from .field_types import FieldType, FieldTypeFactory
from .notifications import AlterationKind, AlterationNotifier
from .snapshot import SchemaSnapshot
from .specs import IndexSpecInput, SpecComparator, expand_index_spec, strip_collation


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a schema update session."""

    CLOSED = "closed"
    ACTIVE = "active"


class ReconciliationStatus(str, Enum):
    """Status of a committed schema update."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TableOutcome:
    """Result of applying the staged change for one table."""

    table: str
    command: ChangeCommand
    change: PendingTableChange
    applied: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None


@dataclass
class CommitResult:
    """Per-table outcomes of ending a schema update session."""

    outcomes: List[TableOutcome] = field(default_factory=list)
    dry_run: bool = False
    execution_time_ms: float = 0.0

    @property
    def applied(self) -> List[TableOutcome]:
        return [o for o in self.outcomes if o.applied]

    @property
    def failed(self) -> List[TableOutcome]:
        return [o for o in self.outcomes if o.has_error]

    @property
    def status(self) -> ReconciliationStatus:
        if self.dry_run:
            return ReconciliationStatus.SKIPPED
        if not self.failed:
            return ReconciliationStatus.SUCCESS
        if self.applied:
            return ReconciliationStatus.PARTIAL
        return ReconciliationStatus.FAILED

    def raise_for_errors(self) -> None:
        """Raise ``SchemaCommitError`` if any table failed to apply."""
        if self.failed:
            raise SchemaCommitError(self)

    def summary(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "total_tables": len(self.outcomes),
            "applied": len(self.applied),
            "failed": len(self.failed),
            "execution_time_ms": self.execution_time_ms,
            "failed_tables": [
                {"table": o.table, "command": o.command.value, "error": o.error}
                for o in self.failed
            ],
        }


FieldDescriptor = Union[str, FieldType]


class SchemaReconciler:
    """
    Core schema reconciliation engine.

    Usage::

        await reconciler.begin_schema_update()
        await reconciler.require_table("Page", {"Title": "Varchar(255)"}, {"Title": True})
        result = await reconciler.end_schema_update()

    ``require_*`` calls only read the snapshot and stage changes; nothing is
    written to the database until ``end_schema_update``.
    """

    def __init__(
        self,
        backend: DatabaseBackend,
        config: Optional[SessionConfig] = None,
        notifier: Optional[AlterationNotifier] = None,
    ):
        self.backend = backend
        self.config = config or SessionConfig()
        self.notifier = notifier or AlterationNotifier(quiet=self.config.quiet)
        self.snapshot = SchemaSnapshot(backend)
        self.changes = StagedChangeSet()
        self.renames: List[TableOutcome] = []
        self.comparator = SpecComparator(self.config.spec_comparison)
        self.state = SessionState.CLOSED

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def _require_active(self, operation: str) -> None:
        if not self.is_active:
            raise SessionStateError(
                f"{operation}() called without an active schema update; "
                f"call begin_schema_update() first"
            )

    def _emit(self, message: str, kind: AlterationKind) -> None:
        self.notifier.emit(message, kind)

    # Session lifecycle

    async def begin_schema_update(self) -> None:
        """Open a session: reload the snapshot and start with no staged changes."""
        if self.is_active:
            raise SessionStateError("A schema update is already in progress")

        await self.snapshot.load()
        self.changes.clear()
        self.renames = []
        self.state = SessionState.ACTIVE
        logger.debug("Schema update started")

    async def end_schema_update(self) -> CommitResult:
        """
        Apply every staged table change and close the session.

        A failing table does not stop the others; each failure is logged,
        reported as an ``error`` alteration and recorded in the result.
        """
        self._require_active("end_schema_update")

        start_time = time.time()
        result = CommitResult(dry_run=self.config.dry_run, outcomes=list(self.renames))
        try:
            for change in self.changes:
                result.outcomes.append(await self._apply_change(change))
        finally:
            self.changes.clear()
            self.renames = []
            self.state = SessionState.CLOSED

        result.execution_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Schema update finished: {result.status.value} "
            f"({len(result.applied)} applied, {len(result.failed)} failed, "
            f"{result.execution_time_ms:.1f}ms)"
        )
        return result

    async def abort_schema_update(self) -> None:
        """Close the session, discarding staged changes without applying them."""
        self._require_active("abort_schema_update")
        discarded = len(self.changes)
        self.changes.clear()
        self.renames = []
        self.state = SessionState.CLOSED
        logger.info(f"Schema update aborted, {discarded} staged table change(s) discarded")

    async def _apply_change(self, change: PendingTableChange) -> TableOutcome:
        outcome = TableOutcome(table=change.table, command=change.command, change=change)

        if self.config.dry_run:
            outcome.skipped = True
            logger.info(f"DRY RUN: Would {change.describe()}")
            return outcome

        try:
            if change.command == ChangeCommand.CREATE:
                await self.backend.create_table(
                    change.table, change.new_fields, change.new_indexes
                )
            else:
                await self.backend.alter_table(
                    change.table,
                    change.new_fields,
                    change.new_indexes,
                    change.altered_fields,
                    change.altered_indexes,
                )
            outcome.applied = True
            logger.debug(f"Applied {change.describe()}")
        except Exception as e:
            outcome.error = str(e)
            logger.error(f"Failed to {change.command.value} table {change.table}: {e}")
            self._emit(
                f"Table {change.table}: {change.command.value} failed: {e}",
                AlterationKind.ERROR,
            )

        return outcome

    # Staging

    def _is_new_table(self, table: str) -> bool:
        return not self.snapshot.table_exists(table)

    def _stage_new_table(self, table: str) -> None:
        if self.changes.get(table) is None:
            self.changes.create_table(table)
            self._emit(f"Table {table}: created", AlterationKind.CREATED)

    async def require_table(
        self,
        table: str,
        field_schema: Optional[Mapping[str, FieldDescriptor]] = None,
        index_schema: Optional[Mapping[str, IndexSpecInput]] = None,
    ) -> None:
        """
        Require a table with the given fields and indexes.

        Args:
            table: Table name
            field_schema: Field name to descriptor, e.g. ``{"Title": "Varchar(255)"}``
            index_schema: Index name to ``True``, a spec string or an ``IndexDefinition``
        """
        self._require_active("require_table")

        if self._is_new_table(table):
            self._stage_new_table(table)
        elif self.config.dry_run:
            logger.debug(f"DRY RUN: Skipping repair check for {table}")
        elif await self.backend.check_and_repair_table(table):
            self._emit(f"Table {table}: repaired", AlterationKind.REPAIRED)

        for field_name, descriptor in (field_schema or {}).items():
            if isinstance(descriptor, FieldType):
                field_obj = descriptor
            else:
                field_obj = FieldTypeFactory.create(field_name, descriptor)
            await field_obj.require_field(self, table)

        for index_name, index_spec in (index_schema or {}).items():
            await self.require_index(table, index_name, index_spec)

    async def require_field(self, table: str, field_name: str, spec: str) -> None:
        """Stage creation or alteration of a field whose spec doesn't match."""
        self._require_active("require_field")

        if not self.backend.supports_collations():
            spec = strip_collation(spec)

        new_table = self._is_new_table(table)
        if new_table:
            self._stage_new_table(table)
            existing: Dict[str, str] = {}
        else:
            existing = await self.snapshot.fields_of(table)

        if new_table or field_name not in existing:
            self.changes.create_field(table, field_name, spec)
            self._emit(f"Field {table}.{field_name}: created as {spec}", AlterationKind.CREATED)
        elif self.comparator.field_differs(existing[field_name], spec):
            self.changes.alter_field(table, field_name, spec)
            self._emit(
                f"Field {table}.{field_name}: changed to {spec} (from {existing[field_name]})",
                AlterationKind.CHANGED,
            )
        elif self.comparator.is_cosmetic(existing[field_name], spec, "field"):
            warnings.warn(
                f"Field {table}.{field_name}: '{existing[field_name]}' only differs "
                f"from '{spec}' in formatting",
                StaleSpecWarning,
                stacklevel=2,
            )

    async def require_index(self, table: str, index: str, spec: IndexSpecInput) -> None:
        """Stage creation or alteration of an index whose spec doesn't match."""
        self._require_active("require_index")

        spec = expand_index_spec(index, spec)

        new_table = self._is_new_table(table)
        if new_table:
            self._stage_new_table(table)
            existing: Dict[str, str] = {}
        else:
            existing = await self.snapshot.indexes_of(table)

        if new_table or index not in existing:
            self.changes.create_index(table, index, spec)
            self._emit(f"Index {table}.{index}: created as {spec}", AlterationKind.CREATED)
        elif self.comparator.index_differs(existing[index], spec):
            self.changes.alter_index(table, index, spec)
            self._emit(
                f"Index {table}.{index}: changed to {spec} (from {existing[index]})",
                AlterationKind.CHANGED,
            )
        elif self.comparator.is_cosmetic(existing[index], spec, "index"):
            warnings.warn(
                f"Index {table}.{index}: '{existing[index]}' only differs "
                f"from '{spec}' in formatting",
                StaleSpecWarning,
                stacklevel=2,
            )

    async def dont_require_table(self, table: str) -> Optional[str]:
        """
        Move an unwanted table out of the way instead of dropping it.

        The table is renamed to ``_obsolete_<table>``, or to the first free
        ``_obsolete_<table>2``, ``_obsolete_<table>3``, ... name.

        During a session the rename is recorded in the commit result, and a
        failed rename is reported there instead of raising. Outside a
        session failures propagate.

        Returns:
            The new table name, or None if the table doesn't exist or the
            rename failed during a session
        """
        if not self.snapshot.is_loaded:
            await self.snapshot.load()

        if not self.snapshot.table_exists(table):
            return None

        base_name = f"{self.config.obsolete_prefix}{table}"
        new_name = base_name
        suffix = 1
        while self.snapshot.table_exists(new_name):
            suffix += 1
            new_name = f"{base_name}{suffix}"

        change = PendingTableChange(
            table=table, command=ChangeCommand.RENAME, renamed_to=new_name
        )
        outcome = TableOutcome(table=table, command=ChangeCommand.RENAME, change=change)

        if self.config.dry_run:
            outcome.skipped = True
            logger.info(f"DRY RUN: Would rename {table} to {new_name}")
        else:
            try:
                await self.backend.rename_table(table, new_name)
            except Exception as e:
                if not self.is_active:
                    raise
                outcome.error = str(e)
                self.renames.append(outcome)
                logger.error(f"Failed to rename table {table} to {new_name}: {e}")
                self._emit(f"Table {table}: rename failed: {e}", AlterationKind.ERROR)
                return None
            outcome.applied = True

        self.snapshot.mark_renamed(table, new_name)
        if self.is_active:
            self.renames.append(outcome)

        self._emit(f"Table {table}: renamed to {new_name}", AlterationKind.OBSOLETE)
        return new_name
