"""A disposable PostgreSQL database for integration tests."""

from __future__ import annotations

import contextlib
import dataclasses
import socket
import time
from typing import Any, Callable, Optional

from apptoolkit.network import PORT_RANGE_MAX, get_open_port_in_range
from apptoolkit.processes import run_container

PASSWORD = "password"
_POLL_INTERVAL = 0.5
_RESET_QUERY = (
    "DROP SCHEMA public CASCADE;"
    "CREATE SCHEMA public;"
    "GRANT ALL ON SCHEMA public TO postgres;"
    "GRANT ALL ON SCHEMA public TO public;"
)


class DatabaseTimeoutError(TimeoutError):
    """Raised when the database does not answer in time."""

    def __init__(self) -> None:
        super().__init__("testing database error: database connection timed out")


@dataclasses.dataclass
class PostgresDB:
    """Settings of a test database and the operations on it.

    ``connect`` is a DB-API connect function taking a DSN; without it the
    connection check falls back to opening a TCP connection to the port.
    """

    port: int
    name: str = "test-postgres-db"
    user: str = "postgres"
    password: str = PASSWORD
    version: str = "latest"
    timeout: float = 10.0
    migrate_up: Optional[Callable[[Any], None]] = None
    migrate_down: Optional[Callable[[Any], None]] = None
    connect: Optional[Callable[[str], Any]] = None

    def dsn(self) -> str:
        """Return the connection string of the database."""
        return (
            f"host=localhost port={self.port} user={self.user} "
            f"password={self.password} sslmode=disable dbname={self.name}"
        )

    def driver_name(self) -> str:
        """Return the name of the driver the DSN is meant for."""
        return "postgres"

    def reset(self) -> None:
        """Drop every table, then rebuild them with the up migration if set."""
        if self.connect is None:
            raise ValueError("no database driver configured")
        connection = self.connect(self.dsn())
        try:
            if self.migrate_down is not None:
                with contextlib.suppress(Exception):
                    self.migrate_down(connection)
            else:
                cursor = connection.cursor()
                try:
                    cursor.execute(_RESET_QUERY)
                finally:
                    cursor.close()
                connection.commit()
            if self.migrate_up is not None:
                self.migrate_up(connection)
        finally:
            connection.close()

    def run_as_docker_container(self) -> Callable[[], None]:
        """Start the server in a container; the returned callable kills it."""
        cleanup = run_container(
            f"postgres:{self.version}",
            [
                f"--publish={self.port}:5432",
                f"--env=POSTGRES_DB={self.name}",
                f"--env=POSTGRES_PASSWORD={self.password}",
                f"--env=POSTGRES_USER={self.user}",
                "--detach",
                "--rm",
            ],
            [],
        )
        try:
            self.check_connection()
        except Exception:
            cleanup()
            raise
        return cleanup

    def _ping(self) -> bool:
        try:
            if self.connect is not None:
                self.connect(self.dsn()).close()
            else:
                with socket.create_connection(("localhost", self.port), timeout=_POLL_INTERVAL):
                    pass
        except Exception:
            return False
        return True

    def check_connection(self) -> None:
        """Poll the database until it answers or the timeout passes."""
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining < _POLL_INTERVAL:
                time.sleep(max(remaining, 0))
                raise DatabaseTimeoutError()
            time.sleep(_POLL_INTERVAL)
            if self._ping():
                return


def new_test_postgres_db(**kwargs: Any) -> PostgresDB:
    """Create test database settings on a free port from 35000 upwards."""
    if "port" not in kwargs:
        kwargs["port"] = get_open_port_in_range(35000, PORT_RANGE_MAX)
    return PostgresDB(**kwargs)