"""Result rows and the row cursor.

A RowCursor is forward-only and read-only unless the query asked for more.
Scrollable cursors buffer the result once and reposition over the buffer.
Updatable cursors write changes back with parameterized statements keyed
by the table's primary key.
"""

import logging
from collections.abc import Mapping
from enum import Enum

import psycopg2
from psycopg2 import sql

from ..errors import CursorError, StatementError
from .metadata import describe_columns, resolve_update_target

logger = logging.getLogger(__name__)


def find_column(columns, name: str) -> int:
    """Index of the first column called `name`; exact match wins over case-insensitive."""
    for i, column in enumerate(columns):
        if column == name:
            return i
    folded = name.casefold()
    for i, column in enumerate(columns):
        if column.casefold() == folded:
            return i
    raise KeyError(name)


class ResultRow(Mapping):
    """One record: column label -> value, in projection order.

    String keys look up by label (first match). Integer keys index by
    0-based position.
    """

    __slots__ = ("_columns", "_values")

    def __init__(self, columns, values):
        if len(columns) != len(values):
            raise ValueError("Column and value counts differ")
        self._columns = tuple(columns)
        self._values = tuple(values)

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._values[key]
        return self._values[find_column(self._columns, key)]

    def __iter__(self):
        return iter(self._columns)

    def __len__(self):
        return len(self._columns)

    def __repr__(self):
        pairs = ", ".join(f"{c}={v!r}" for c, v in zip(self._columns, self._values))
        return f"ResultRow({pairs})"

    @property
    def columns(self) -> tuple:
        return self._columns

    def as_tuple(self) -> tuple:
        return self._values

    def replace(self, changes: dict) -> "ResultRow":
        """Copy of this row with values at the given positions replaced."""
        values = list(self._values)
        for index, value in changes.items():
            values[index] = value
        return ResultRow(self._columns, values)


class CursorState(Enum):
    BEFORE_FIRST = "before_first"
    ITERATING = "iterating"
    AFTER_LAST = "after_last"
    INSERT_ROW = "insert_row"


class RowCursor:
    """Cursor over one query result. Owned by a single thread."""

    def __init__(self, handle, pg_cursor, scrollable=False, updatable=False):
        self._handle = handle
        self._cur = pg_cursor
        self.scrollable = scrollable
        self.updatable = updatable
        self._description = pg_cursor.description
        self._columns = tuple(col.name for col in self._description)
        self._descriptors = None
        self._closed = False

        self._state = CursorState.BEFORE_FIRST
        self._current = None
        self._row_number = 0
        self._on_insert_row = False
        self._staged = {}

        self._rows = None
        self._index = -1
        # Set after delete_row(): positioned in the gap before _rows[_index]
        self._between_rows = False
        if scrollable:
            self._rows = [ResultRow(self._columns, r) for r in self._fetch(pg_cursor.fetchall)]

        self._target = None
        if updatable:
            self._target = resolve_update_target(handle, self.column_metadata())

        handle.register(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __iter__(self):
        while self.next():
            yield self._current

    def __getitem__(self, key):
        return self.row[key]

    # --- State ---

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def columns(self) -> tuple:
        return self._columns

    @property
    def state(self) -> CursorState:
        if self._on_insert_row:
            return CursorState.INSERT_ROW
        return self._state

    @property
    def row(self) -> ResultRow:
        self._check_open()
        if self._on_insert_row or self._current is None:
            raise CursorError("No current row")
        return self._current

    @property
    def row_number(self) -> int:
        """1-based number of the current row, 0 when not on a row."""
        if self._current is None:
            return 0
        return self._row_number

    def column_metadata(self) -> tuple:
        self._check_open()
        if self._descriptors is None:
            self._descriptors = describe_columns(self._handle, self._description)
        return self._descriptors

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._rows = None
        self._current = None
        self._staged.clear()
        try:
            self._cur.close()
        except psycopg2.Error as e:
            logger.debug("Ignoring error while closing cursor: %s", e)

    # --- Navigation ---

    def next(self) -> bool:
        """Advance one row. Returns False once the rows are exhausted."""
        self._check_open()
        self._leave_insert_row()
        if self._rows is not None:
            return self._move_to(self._index if self._between_rows else self._index + 1)

        if self._state is CursorState.AFTER_LAST:
            return False
        record = self._fetch(self._cur.fetchone)
        self._staged.clear()
        if record is None:
            self._state = CursorState.AFTER_LAST
            self._current = None
            return False
        self._state = CursorState.ITERATING
        self._current = ResultRow(self._columns, record)
        self._row_number += 1
        return True

    def previous(self) -> bool:
        self._require_scrollable("previous")
        return self._move_to(self._index - 1)

    def first(self) -> bool:
        self._require_scrollable("first")
        return self._move_to(0)

    def last(self) -> bool:
        self._require_scrollable("last")
        return self._move_to(len(self._rows) - 1)

    def absolute(self, n: int) -> bool:
        """Move to row n (1-based); negative n counts back from the last row."""
        self._require_scrollable("absolute")
        if n > 0:
            return self._move_to(n - 1)
        if n < 0:
            return self._move_to(len(self._rows) + n)
        self._move_to(-1)
        return False

    def relative(self, n: int) -> bool:
        self._require_scrollable("relative")
        if self._between_rows and n > 0:
            n -= 1
        return self._move_to(self._index + n)

    def before_first(self):
        self._require_scrollable("before_first")
        self._move_to(-1)

    def after_last(self):
        self._require_scrollable("after_last")
        self._move_to(len(self._rows))

    def _move_to(self, index: int) -> bool:
        self._leave_insert_row()
        self._staged.clear()
        self._between_rows = False
        size = len(self._rows)
        if index < 0:
            self._index, self._state, self._current = -1, CursorState.BEFORE_FIRST, None
            return False
        if index >= size:
            self._index, self._state, self._current = size, CursorState.AFTER_LAST, None
            return False
        self._index = index
        self._state = CursorState.ITERATING
        self._current = self._rows[index]
        self._row_number = index + 1
        return True

    # --- Updates ---

    def update_column(self, name: str, value):
        """Stage a new value for a column of the current row or the insert row."""
        self._require_updatable("update_column")
        if not self._on_insert_row and self._current is None:
            raise CursorError("No current row to update")
        try:
            index = find_column(self._columns, name)
        except KeyError:
            raise CursorError(f"Unknown column: {name}") from None
        self._staged[index] = value

    def cancel_row_updates(self):
        self._require_updatable("cancel_row_updates")
        self._staged.clear()

    def update_row(self):
        """Write staged changes to the current row."""
        self._require_updatable("update_row")
        if self._on_insert_row:
            raise CursorError("update_row() is not valid on the insert row")
        if self._current is None:
            raise CursorError("No current row to update")
        if not self._staged:
            return

        staged, self._staged = self._staged, {}
        target = self._target
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(target.column_names[i])) for i in staged
        )
        query = sql.SQL("UPDATE {} SET {} WHERE {} RETURNING {}").format(
            target.identifier, assignments, self._key_condition(), self._returning(),
        )
        values = tuple(staged.values()) + self._key_values()

        rowcount, record = self._write(query, values, "update row")
        if rowcount != 1 or record is None:
            raise StatementError(f"Row no longer exists in {target.table_name}")
        self._replace_current(ResultRow(self._columns, record))

    def move_to_insert_row(self):
        self._require_updatable("move_to_insert_row")
        self._staged.clear()
        self._on_insert_row = True

    def move_to_current_row(self):
        self._require_updatable("move_to_current_row")
        self._leave_insert_row()

    def insert_row(self):
        """Insert the staged insert-row values as a new table row."""
        self._require_updatable("insert_row")
        if not self._on_insert_row:
            raise CursorError("insert_row() requires move_to_insert_row() first")
        if not self._staged:
            raise CursorError("No column values staged for insert")

        staged, self._staged = self._staged, {}
        target = self._target
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING {}").format(
            target.identifier,
            sql.SQL(", ").join(sql.Identifier(target.column_names[i]) for i in staged),
            sql.SQL(", ").join([sql.Placeholder()] * len(staged)),
            self._returning(),
        )

        _, record = self._write(query, tuple(staged.values()), "insert row")
        if self._rows is not None and record is not None:
            self._rows.append(ResultRow(self._columns, record))

    def delete_row(self):
        """Delete the current row from the table and the cursor."""
        self._require_updatable("delete_row")
        if self._on_insert_row or self._current is None:
            raise CursorError("No current row to delete")

        self._staged.clear()
        query = sql.SQL("DELETE FROM {} WHERE {}").format(
            self._target.identifier, self._key_condition(),
        )
        rowcount, _ = self._write(query, self._key_values(), "delete row")
        if rowcount != 1:
            raise StatementError(f"Row no longer exists in {self._target.table_name}")

        self._current = None
        if self._rows is not None:
            del self._rows[self._index]
            self._between_rows = True
            if self._index == 0:
                self._index, self._state, self._between_rows = -1, CursorState.BEFORE_FIRST, False
            elif self._index == len(self._rows):
                self._state, self._between_rows = CursorState.AFTER_LAST, False

    # --- Helpers ---

    def _check_open(self):
        if self._closed:
            raise CursorError("Cursor is closed")

    def _require_scrollable(self, operation):
        self._check_open()
        if self._rows is None:
            raise CursorError(f"{operation}() requires a scrollable cursor")

    def _require_updatable(self, operation):
        self._check_open()
        if self._target is None:
            raise CursorError(f"{operation}() requires an updatable cursor")

    def _leave_insert_row(self):
        if self._on_insert_row:
            self._on_insert_row = False
            self._staged.clear()

    def _fetch(self, fetch):
        try:
            return fetch()
        except psycopg2.Error as e:
            raise self._handle.translate(e, "fetch rows") from e

    def _key_condition(self) -> sql.Composed:
        return sql.SQL(" AND ").join(
            sql.SQL("{} = %s").format(sql.Identifier(k)) for k in self._target.key_columns
        )

    def _key_values(self) -> tuple:
        return tuple(self._current[i] for i in self._target.key_indexes)

    def _returning(self) -> sql.Composed:
        return sql.SQL(", ").join(sql.Identifier(c) for c in self._target.column_names)

    def _replace_current(self, row):
        self._current = row
        if self._rows is not None:
            self._rows[self._index] = row

    def _write(self, query, values, action):
        cur = self._handle.cursor()
        try:
            cur.execute(query, values)
            record = cur.fetchone() if cur.description is not None else None
            return cur.rowcount, record
        except psycopg2.Error as e:
            raise self._handle.translate(e, action) from e
        finally:
            cur.close()
