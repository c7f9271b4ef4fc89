"""Statement specs, typed parameter binding and the statement runner.

Values never become part of the SQL text. A StatementSpec pairs a template
using psycopg2's positional ``%s`` placeholders with typed parameters, and the
driver sends the values separately.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

import psycopg2
from psycopg2 import sql

from ..errors import BindingError, StatementError
from .cursor import RowCursor

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"%%|%s")


class SqlType(Enum):
    """Declared parameter types: (PostgreSQL name, accepted Python types, integer bits)."""

    SMALLINT = ("smallint", (int,), 16)
    INTEGER = ("integer", (int,), 32)
    BIGINT = ("bigint", (int,), 64)
    NUMERIC = ("numeric", (int, Decimal), None)
    REAL = ("real", (int, float), None)
    DOUBLE = ("double precision", (int, float), None)
    VARCHAR = ("character varying", (str,), None)
    TEXT = ("text", (str,), None)
    BOOLEAN = ("boolean", (bool,), None)
    DATE = ("date", (date,), None)
    TIME = ("time without time zone", (time,), None)
    TIMESTAMP = ("timestamp without time zone", (datetime,), None)
    BYTEA = ("bytea", (bytes, bytearray, memoryview), None)

    @property
    def type_name(self) -> str:
        return self.value[0]

    @property
    def python_types(self) -> tuple:
        return self.value[1]

    @property
    def bits(self):
        return self.value[2]


@dataclass(frozen=True)
class Param:
    sql_type: SqlType
    value: Any

    def check(self, position: int):
        """Raise BindingError unless value fits the declared type. None is NULL."""
        value = self.value
        if value is None:
            return

        sql_type = self.sql_type
        accepted = isinstance(value, sql_type.python_types)
        if isinstance(value, bool) and sql_type is not SqlType.BOOLEAN:
            accepted = False
        if sql_type is SqlType.DATE and isinstance(value, datetime):
            accepted = False
        if not accepted:
            raise BindingError(
                f"Parameter {position}: {type(value).__name__} value "
                f"is not valid for {sql_type.name}"
            )

        if sql_type.bits:
            limit = 2 ** (sql_type.bits - 1)
            if not -limit <= value < limit:
                raise BindingError(
                    f"Parameter {position}: {value} is out of range for {sql_type.name}"
                )


def count_placeholders(template: str) -> int:
    return sum(1 for m in _PLACEHOLDER.finditer(template) if m.group() == "%s")


def bind_params(params) -> tuple:
    """Type-check every slot and return the values in slot order."""
    values = []
    for position, param in enumerate(params, start=1):
        if not isinstance(param, Param):
            raise BindingError(
                f"Parameter {position}: expected a typed Param, got {type(param).__name__}"
            )
        param.check(position)
        values.append(param.value)
    return tuple(values)


@dataclass(frozen=True)
class StatementSpec:
    """A SQL template plus its ordered, typed parameter slots.

    Slot positions are 1-based indexes into ``params``. A spec with no
    params is a literal statement.
    """

    sql: str
    params: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "params", tuple(self.params))

    @classmethod
    def of(cls, template: str, *params: Param) -> "StatementSpec":
        return cls(template, params)

    @property
    def slots(self) -> list:
        return [(position, p.sql_type, p.value) for position, p in enumerate(self.params, start=1)]

    def bind(self):
        """Values to hand the driver, or None for a literal statement.

        A literal statement goes to the driver uninterpolated, so a ``%s``
        inside one of its string literals is just text.
        """
        if not self.params:
            return None
        expected = count_placeholders(self.sql)
        if expected != len(self.params):
            raise BindingError(
                f"Statement has {expected} placeholder(s) but {len(self.params)} "
                f"parameter(s) were supplied"
            )
        return bind_params(self.params)


def _as_spec(spec) -> StatementSpec:
    if isinstance(spec, str):
        return StatementSpec(spec)
    return spec


def _routine_identifier(name: str) -> sql.Identifier:
    parts = name.split(".")
    if not all(parts):
        raise BindingError(f"Invalid routine name: {name!r}")
    return sql.Identifier(*parts)


class StatementRunner:
    """Runs literal, parameterized and stored-routine statements on one handle."""

    def __init__(self, handle):
        self.handle = handle

    def query(self, spec, scrollable=False, updatable=False) -> RowCursor:
        """Execute a row-producing statement; the cursor starts before the first row."""
        spec = _as_spec(spec)
        cur = self._execute(spec.sql, spec.bind())
        return self._open_cursor(cur, scrollable, updatable)

    def execute_change(self, spec) -> int:
        """Execute INSERT/UPDATE/DELETE (or DDL) and return the affected row count."""
        spec = _as_spec(spec)
        cur = self._execute(spec.sql, spec.bind())
        try:
            return cur.rowcount
        finally:
            cur.close()

    def call_procedure(self, name: str, params=(), returns_rows=True):
        """Invoke a stored routine by name.

        With ``returns_rows`` the routine is called as a set-returning
        function and a RowCursor is returned. Otherwise it is run with CALL,
        returning a RowCursor when the procedure yields a row (OUT/INOUT
        parameters) and the driver row count when it does not.
        """
        values = bind_params(params)
        placeholders = sql.SQL(", ").join([sql.Placeholder()] * len(values))
        if returns_rows:
            template = sql.SQL("SELECT * FROM {}({})")
        else:
            template = sql.SQL("CALL {}({})")
        query = template.format(_routine_identifier(name), placeholders)

        cur = self._execute(query, values or None, label=f"call {name}")
        if cur.description is None:
            try:
                return cur.rowcount
            finally:
                cur.close()
        return self._open_cursor(cur, False, False)

    def _execute(self, query, values, label=None):
        cur = self.handle.cursor()
        try:
            cur.execute(query, values)
        except psycopg2.Error as e:
            cur.close()
            raise self.handle.translate(e, "execute statement") from e
        logger.debug("Executed %s (rowcount=%s)", label or query, cur.rowcount)
        return cur

    def _open_cursor(self, cur, scrollable, updatable) -> RowCursor:
        if cur.description is None:
            cur.close()
            raise StatementError("Statement did not return a result set")
        try:
            return RowCursor(self.handle, cur, scrollable=scrollable, updatable=updatable)
        except Exception:
            cur.close()
            raise
