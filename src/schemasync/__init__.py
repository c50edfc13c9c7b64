"""
schemasync: declarative schema reconciliation for relational databases.

Applications declare the tables, fields and indexes they need; schemasync
compares them with the live database and applies the difference in one
schema update session.
"""

__version__ = "0.1.0"

from .config import SchemaSyncConfig, SessionConfig, TableDefinition, IndexDefinition
from .exceptions import (
    SchemaSyncError,
    ConfigurationError,
    BackendError,
    DatabaseConnectionError,
    SessionStateError,
    SchemaCommitError,
    StaleSpecWarning,
)
from .database.facade import Database

__all__ = [
    "__version__",
    "SchemaSyncConfig",
    "SessionConfig",
    "TableDefinition",
    "IndexDefinition",
    "SchemaSyncError",
    "ConfigurationError",
    "BackendError",
    "DatabaseConnectionError",
    "SessionStateError",
    "SchemaCommitError",
    "StaleSpecWarning",
    "Database",
]
