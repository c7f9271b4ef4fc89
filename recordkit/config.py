"""Connection configuration supplied by the caller."""

import os
from dataclasses import dataclass, field
from typing import Optional

import psycopg2
from psycopg2.extensions import parse_dsn

DEFAULT_PORT = 5432


@dataclass(frozen=True)
class ConnectionConfig:
    database: str
    user: str
    password: str = field(default="", repr=False)
    host: str = "localhost"
    port: int = DEFAULT_PORT
    connect_timeout: Optional[int] = None

    @classmethod
    def from_dsn(cls, dsn: str) -> "ConnectionConfig":
        """Build a config from a libpq URL or key=value connection string."""
        try:
            parts = parse_dsn(dsn)
        except psycopg2.ProgrammingError as e:
            raise ValueError(f"Invalid connection string: {e}") from e

        if not parts.get("dbname") or not parts.get("user"):
            raise ValueError("Connection string must name a database and a user")

        timeout = parts.get("connect_timeout")
        return cls(
            database=parts["dbname"],
            user=parts["user"],
            password=parts.get("password", ""),
            host=parts.get("host", "localhost"),
            port=int(parts.get("port", DEFAULT_PORT)),
            connect_timeout=int(timeout) if timeout else None,
        )

    @classmethod
    def from_env(cls, var: str = "DATABASE_URL") -> "ConnectionConfig":
        """Create config from a connection URL held in an environment variable."""
        dsn = os.environ.get(var)
        if not dsn:
            raise ValueError(f"{var} must be set")
        return cls.from_dsn(dsn)

    def connect_kwargs(self) -> dict:
        kwargs = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
        }
        if self.connect_timeout is not None:
            kwargs["connect_timeout"] = self.connect_timeout
        return kwargs

    def describe(self) -> str:
        """Loggable target description. Never includes the password."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"
