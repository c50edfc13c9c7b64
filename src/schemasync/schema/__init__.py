"""
Schema management package for schemasync.

This package provides:
- Schema update sessions and change staging
- Cached snapshots of the live schema
- Field types and spec comparison
- Alteration notifications
"""

from .reconciler import (
    SchemaReconciler,
    SessionState,
    CommitResult,
    TableOutcome,
    ReconciliationStatus,
)
from .changes import StagedChangeSet, PendingTableChange, ChangeCommand
from .snapshot import SchemaSnapshot
from .specs import SpecComparator, expand_index_spec, strip_collation
from .field_types import FieldType, FieldTypeFactory
from .notifications import (
    AlterationKind,
    AlterationEvent,
    AlterationNotifier,
    LoggingReporter,
    ConsoleReporter,
    CollectingReporter,
)

__all__ = [
    "SchemaReconciler",
    "SessionState",
    "CommitResult",
    "TableOutcome",
    "ReconciliationStatus",
    "StagedChangeSet",
    "PendingTableChange",
    "ChangeCommand",
    "SchemaSnapshot",
    "SpecComparator",
    "expand_index_spec",
    "strip_collation",
    "FieldType",
    "FieldTypeFactory",
    "AlterationKind",
    "AlterationEvent",
    "AlterationNotifier",
    "LoggingReporter",
    "ConsoleReporter",
    "CollectingReporter",
]
