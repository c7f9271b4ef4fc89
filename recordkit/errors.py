"""Error taxonomy for record access.

Every error raised by recordkit derives from RecordAccessError. Driver
exceptions are chained (``raise ... from exc``) so the original cause stays
available on ``__cause__``.
"""


class RecordAccessError(Exception):
    """Base class for all recordkit errors."""


class ConnectionError(RecordAccessError):
    """Opening, using or closing the underlying transport failed."""


class BindingError(RecordAccessError):
    """Parameter count or type does not match the statement template."""


class StatementError(RecordAccessError):
    """The database rejected a statement at execution time."""

    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


class CursorError(RecordAccessError):
    """Invalid operation for the cursor's capabilities or position."""
