"""recordkit - record-oriented access helpers over PostgreSQL.

Basic usage::

    from recordkit import ConnectionConfig, Param, SqlType, StatementRunner, StatementSpec, connect

    with connect(ConnectionConfig.from_env()) as handle:
        runner = StatementRunner(handle)
        spec = StatementSpec.of("SELECT * FROM students WHERE age > %s", Param(SqlType.INTEGER, 18))
        with runner.query(spec) as cursor:
            for row in cursor:
                print(row["name"])
"""

from .config import ConnectionConfig
from .database import (
    ColumnDescriptor,
    ConnectionHandle,
    CursorState,
    Param,
    ResultRow,
    RowCursor,
    SqlType,
    StatementRunner,
    StatementSpec,
    connect,
    open_connection,
)
from .errors import (
    BindingError,
    ConnectionError,
    CursorError,
    RecordAccessError,
    StatementError,
)

__version__ = "0.1.0"

__all__ = [
    "ConnectionConfig",
    "ColumnDescriptor",
    "ConnectionHandle",
    "CursorState",
    "Param",
    "ResultRow",
    "RowCursor",
    "SqlType",
    "StatementRunner",
    "StatementSpec",
    "connect",
    "open_connection",
    "RecordAccessError",
    "ConnectionError",
    "BindingError",
    "StatementError",
    "CursorError",
]
