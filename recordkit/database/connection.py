"""Connection handle: one live psycopg2 session per handle."""

import logging
import weakref
from contextlib import contextmanager

import psycopg2

from ..config import ConnectionConfig
from ..errors import ConnectionError, StatementError

logger = logging.getLogger(__name__)


class ConnectionHandle:
    """Owns exactly one psycopg2 connection until closed.

    Not safe to share between threads. Cursors opened through a handle are
    closed with it.
    """

    def __init__(self, conn, config: ConnectionConfig):
        self._conn = conn
        self.config = config
        # Column descriptors keyed by result shape
        self.column_cache = {}
        self._cursors = weakref.WeakSet()

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<ConnectionHandle {self.config.describe()} {state}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def broken(self) -> bool:
        """True when the driver reports the transport as gone."""
        return self._conn is not None and bool(self._conn.closed)

    def cursor(self):
        """Return a new driver cursor on this connection."""
        if self._conn is None:
            raise ConnectionError("Connection is closed")
        try:
            return self._conn.cursor()
        except psycopg2.Error as e:
            raise ConnectionError(f"Could not open cursor on {self.config.describe()}: {e}") from e

    def register(self, row_cursor):
        self._cursors.add(row_cursor)

    def translate(self, exc: psycopg2.Error, action: str):
        """Map a driver exception to the matching recordkit error."""
        if isinstance(exc, psycopg2.InterfaceError) or self.broken:
            return ConnectionError(f"Connection lost while trying to {action}: {exc}")
        message = (exc.pgerror or str(exc)).strip()
        return StatementError(f"Failed to {action}: {message}", sqlstate=exc.pgcode)

    def close(self):
        """Release the transport. Calling close on a closed handle does nothing."""
        if self._conn is None:
            return

        for row_cursor in list(self._cursors):
            row_cursor.close()

        conn, self._conn = self._conn, None
        self.column_cache.clear()
        try:
            conn.close()
        except psycopg2.Error as e:
            raise ConnectionError(f"Error closing connection to {self.config.describe()}: {e}") from e
        logger.info("Closed connection to %s", self.config.describe())


def open_connection(config: ConnectionConfig) -> ConnectionHandle:
    """Open a connection in autocommit mode."""
    try:
        conn = psycopg2.connect(**config.connect_kwargs())
    except psycopg2.Error as e:
        raise ConnectionError(f"Could not connect to {config.describe()}: {e}") from e

    try:
        conn.autocommit = True
    except psycopg2.Error as e:
        conn.close()
        raise ConnectionError(f"Could not configure connection to {config.describe()}: {e}") from e

    logger.info("Connected to %s", config.describe())
    return ConnectionHandle(conn, config)


@contextmanager
def connect(config: ConnectionConfig):
    """Context manager yielding an open handle, closed on every exit path."""
    handle = open_connection(config)
    try:
        yield handle
    except BaseException:
        # The body's exception wins over a failed close
        try:
            handle.close()
        except ConnectionError as e:
            logger.warning("%s (while handling an earlier error)", e)
        raise
    handle.close()
