"""
Query results for schemasync.

``Query`` turns three backend primitives (``next_record``, ``num_records``
and ``seek``) into a rewindable, position-tracked row sequence with a few
extraction helpers. Subclasses only implement the primitives.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union


class _EndOfRows:
    """Marker returned by the row primitives once the result is exhausted."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_ROWS"


END_OF_ROWS = _EndOfRows()

Row = Mapping[str, Any]
RowOrEnd = Union[Row, _EndOfRows]


def _first_value(row: Row) -> Any:
    return next(iter(row.values()), None)


class Query(ABC):
    """
    Abstract query result.

    Iterating with ``for row in query`` rewinds first, so a result can be
    walked more than once. ``key()`` is the zero-based number of the current
    row and starts at -1 before anything was fetched.
    """

    def __init__(self):
        self._current: Optional[RowOrEnd] = None
        self._position = -1

    @abstractmethod
    def next_record(self) -> RowOrEnd:
        """Return the next row, or ``END_OF_ROWS``."""
        pass

    @abstractmethod
    def num_records(self) -> int:
        """Return the total number of rows in the result."""
        pass

    @abstractmethod
    def seek(self, row_number: int) -> RowOrEnd:
        """Move to ``row_number`` and return that row; the next row follows it."""
        pass

    def rewind(self) -> Optional[RowOrEnd]:
        """Go back to the first row. Does nothing for an empty result."""
        if self.num_records() > 0:
            self._current = self.seek(0)
            self._position = 0
            return self._current
        return None

    def current(self) -> RowOrEnd:
        if self._current is None:
            return self.next()
        return self._current

    def next(self) -> RowOrEnd:
        self._current = self.next_record()
        self._position += 1
        return self._current

    def record(self) -> RowOrEnd:
        return self.next()

    def first(self) -> RowOrEnd:
        self.rewind()
        return self.current()

    def key(self) -> int:
        return self._position

    def valid(self) -> bool:
        return self.current() is not END_OF_ROWS

    def __iter__(self) -> Iterator[Row]:
        self.rewind()
        while self.valid():
            yield self.current()
            self.next()

    def column(self) -> List[Any]:
        """All values of the leftmost column, in row order."""
        return [_first_value(row) for row in self]

    def keyed_column(self) -> Dict[Any, Any]:
        """Leftmost column values keyed by themselves."""
        column = {}
        for row in self:
            value = _first_value(row)
            column[value] = value
        return column

    def map(self) -> Dict[Any, Any]:
        """Map of the first column to the second column."""
        mapping = {}
        for row in self:
            values = iter(row.values())
            key = next(values, None)
            mapping[key] = next(values, None)
        return mapping

    def value(self) -> Any:
        """First column of the first row, or None for an empty result."""
        for row in self:
            return _first_value(row)
        return None


class RecordListQuery(Query):
    """Query over rows that were already fetched from the database."""

    def __init__(self, rows: Sequence[Row]):
        super().__init__()
        self._rows = list(rows)
        self._cursor = 0

    def next_record(self) -> RowOrEnd:
        if self._cursor >= len(self._rows):
            return END_OF_ROWS
        row = self._rows[self._cursor]
        self._cursor += 1
        return row

    def num_records(self) -> int:
        return len(self._rows)

    def seek(self, row_number: int) -> RowOrEnd:
        if 0 <= row_number < len(self._rows):
            self._cursor = row_number + 1
            return self._rows[row_number]
        self._cursor = len(self._rows)
        return END_OF_ROWS
