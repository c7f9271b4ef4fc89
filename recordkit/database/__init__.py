"""Database access layer: connection handle, statement runner, row cursor."""

from .connection import ConnectionHandle, connect, open_connection
from .cursor import CursorState, ResultRow, RowCursor
from .metadata import ColumnDescriptor
from .statements import Param, SqlType, StatementRunner, StatementSpec

__all__ = [
    "ConnectionHandle",
    "connect",
    "open_connection",
    "CursorState",
    "ResultRow",
    "RowCursor",
    "ColumnDescriptor",
    "Param",
    "SqlType",
    "StatementRunner",
    "StatementSpec",
]
