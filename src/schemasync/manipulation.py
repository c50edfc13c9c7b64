"""
Batched insert/update writes for schemasync.

A manipulation maps table names to write intents::

    await batcher.manipulate({
        "Page": {"command": "update", "id": 12, "fields": {"Title": "Home"}},
        "Page_Log": {"command": "insert", "id": 40, "fields": {"Note": ""}},
    })

Updates that match no rows fall back to an insert carrying the same fields
and the explicit ID. That fallback is not atomic: another writer can insert
or update the row between the UPDATE and the INSERT, which surfaces as a
duplicate-key ``BackendError`` or a lost update.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .database.backend import DatabaseBackend, InsertStatement, UpdateStatement, Where
from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)

NULL = None

ID_FIELD = "ID"


class WriteIntent(BaseModel):
    """A single insert or update request for one table."""

    command: str = Field(..., description="Either 'insert' or 'update'")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Field values to write")
    id: Optional[int] = Field(None, description="Row ID")
    where: Optional[Where] = Field(None, description="Update predicate, defaults to ID = id")


def replace_with_null(value: Any) -> Any:
    """Replace every empty string, at any nesting depth, with NULL."""
    if isinstance(value, str):
        return NULL if value == "" else value
    if isinstance(value, Mapping):
        return {key: replace_with_null(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return type(value)(replace_with_null(item) for item in value)
    return value


class ManipulationBatcher:
    """Turns grouped write intents into insert and update statements."""

    COMMANDS = ("insert", "update")

    def __init__(self, backend: DatabaseBackend):
        self.backend = backend

    @staticmethod
    def _coerce(table: str, intent: Union[WriteIntent, Mapping[str, Any]]) -> WriteIntent:
        if isinstance(intent, WriteIntent):
            return intent
        try:
            return WriteIntent(**intent)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid write for table {table}: {e}") from e

    def _validate(self, manipulation: Mapping[str, Any]) -> Dict[str, WriteIntent]:
        intents = {}
        for table, raw_intent in manipulation.items():
            intent = self._coerce(table, raw_intent)
            if intent.command not in self.COMMANDS:
                raise ConfigurationError(
                    f"Can't recognise command '{intent.command}' for table {table}",
                    {"table": table, "command": intent.command},
                )
            intents[table] = intent
        return intents

    async def manipulate(self, manipulation: Mapping[str, Union[WriteIntent, Mapping[str, Any]]]) -> None:
        """
        Execute every write intent in the batch.

        Raises:
            ConfigurationError: If any intent has an unknown command; nothing is written
            BackendError: If a statement fails
        """
        intents = self._validate(manipulation)

        for table, intent in intents.items():
            if not intent.fields:
                logger.debug(f"Skipping {intent.command} on {table}: no fields")
                continue

            fields = replace_with_null(dict(intent.fields))

            if intent.command == "update":
                await self._update(table, intent, fields)
            else:
                await self._insert(table, intent, fields)

    async def _update(self, table: str, intent: WriteIntent, fields: Dict[str, Any]) -> None:
        where = intent.where
        if where is None and intent.id is not None:
            where = {ID_FIELD: intent.id}
        if where is None:
            raise ConfigurationError(
                f"Update on table {table} needs an id or a where clause",
                {"table": table},
            )

        result = await self.backend.execute(UpdateStatement(table, fields, where))
        if result.affected_rows:
            logger.debug(f"Updated {result.affected_rows} row(s) in {table}")
            return

        logger.debug(f"Update on {table} matched no rows, inserting instead")
        await self._insert(table, intent, fields)

    async def _insert(self, table: str, intent: WriteIntent, fields: Dict[str, Any]) -> None:
        fields = dict(fields)
        if ID_FIELD not in fields and intent.id is not None:
            fields[ID_FIELD] = intent.id
        result = await self.backend.execute(InsertStatement(table, fields))
        logger.debug(f"Inserted into {table} (generated id: {result.generated_id})")
