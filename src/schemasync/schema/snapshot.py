"""
Lazily populated snapshot of the database's actual schema.
"""

import logging
from typing import Dict, Optional, Set

from ..database.backend import DatabaseBackend


logger = logging.getLogger(__name__)


class SchemaSnapshot:
    """
    Memoized view of existing tables, fields and indexes.

    The table list is fetched by ``load``. Field and index maps are fetched
    the first time a table is asked about and then kept until the next
    ``load``, even if changes to that table are applied in the meantime.
    """

    def __init__(self, backend: DatabaseBackend):
        self.backend = backend
        self._tables: Optional[Set[str]] = None
        self._fields: Dict[str, Dict[str, str]] = {}
        self._indexes: Dict[str, Dict[str, str]] = {}

    @staticmethod
    def _key(table: str) -> str:
        return table.lower()

    @property
    def is_loaded(self) -> bool:
        return self._tables is not None

    async def load(self) -> None:
        """Fetch the table list and forget any cached fields and indexes."""
        tables = await self.backend.list_tables()
        self._tables = {self._key(name) for name in tables}
        self._fields = {}
        self._indexes = {}
        logger.debug(f"Schema snapshot loaded with {len(self._tables)} tables")

    def clear(self) -> None:
        self._tables = None
        self._fields = {}
        self._indexes = {}

    def table_exists(self, table: str) -> bool:
        if self._tables is None:
            return False
        return self._key(table) in self._tables

    async def fields_of(self, table: str) -> Dict[str, str]:
        """Return ``{field: spec}`` for an existing table, fetching it once."""
        if not self.table_exists(table):
            return {}
        key = self._key(table)
        if key not in self._fields:
            self._fields[key] = dict(await self.backend.list_fields(table))
        return self._fields[key]

    async def indexes_of(self, table: str) -> Dict[str, str]:
        """Return ``{index: spec}`` for an existing table, fetching it once."""
        if not self.table_exists(table):
            return {}
        key = self._key(table)
        if key not in self._indexes:
            self._indexes[key] = dict(await self.backend.list_indexes(table))
        return self._indexes[key]

    def mark_renamed(self, old: str, new: str) -> None:
        """Record a rename that was executed against the database."""
        if self._tables is None:
            return
        self._tables.discard(self._key(old))
        self._tables.add(self._key(new))
        for cache in (self._fields, self._indexes):
            if self._key(old) in cache:
                cache[self._key(new)] = cache.pop(self._key(old))
