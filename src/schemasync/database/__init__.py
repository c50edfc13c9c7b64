"""
Database integration package for schemasync.

This package provides:
- The backend interface the schema layer talks to
- Row iteration over query results
- Async PostgreSQL connection pooling
"""

from .backend import DatabaseBackend, ExecutionResult, InsertStatement, UpdateStatement
from .query import Query, RecordListQuery, END_OF_ROWS
from .connection import ConnectionConfig, ConnectionPool

__all__ = [
    "DatabaseBackend",
    "ExecutionResult",
    "InsertStatement",
    "UpdateStatement",
    "Query",
    "RecordListQuery",
    "END_OF_ROWS",
    "ConnectionConfig",
    "ConnectionPool",
]
