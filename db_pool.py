"""SQLite connection pool shared by the student record store."""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from queue import Empty, Full, Queue
from typing import Generator

logger = logging.getLogger(__name__)

class SQLiteConnectionPool:
    """Thread-safe SQLite connection pool.

    FastAPI runs synchronous routes in a worker threadpool, so connections are
    opened with ``check_same_thread=False`` and handed to one borrower at a time.
    """

    def __init__(self, database: str, max_connections: int = 5, timeout: float = 5.0):
        self.database = database
        self.max_connections = max_connections
        self.timeout = timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=max_connections)
        self._lock = threading.Lock()
        self._created_connections = 0

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database, timeout=self.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _discard(self, connection: sqlite3.Connection) -> None:
        try:
            connection.close()
        except sqlite3.Error as exc:
            logger.debug("Ignoring error while closing connection: %s", exc)
        with self._lock:
            self._created_connections -= 1

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection, creating one while under ``max_connections``."""
        connection = None
        try:
            connection = self._pool.get(block=False)
        except Empty:
            with self._lock:
                can_create = self._created_connections < self.max_connections
                if can_create:
                    self._created_connections += 1
            if can_create:
                try:
                    connection = self._create_connection()
                except sqlite3.Error:
                    with self._lock:
                        self._created_connections -= 1
                    raise
                logger.debug("Created new connection to %s (total: %d)", self.database, self._created_connections)
            else:
                try:
                    connection = self._pool.get(block=True, timeout=self.timeout)
                except Empty as exc:
                    raise sqlite3.OperationalError(
                        f"No pooled connection available after {self.timeout}s"
                    ) from exc

        try:
            yield connection
        finally:
            try:
                # Uncommitted work never leaks into the next borrower.
                connection.rollback()
                self._pool.put(connection, block=False)
            except (sqlite3.Error, Full) as e:
                logger.error("Error returning connection to pool: %s", e)
                self._discard(connection)

    def close_all(self) -> None:
        """Close every idle connection; borrowed ones are closed on return."""
        closed = 0
        while True:
            try:
                connection = self._pool.get(block=False)
            except Empty:
                break
            self._discard(connection)
            closed += 1
        if closed:
            logger.info("Closed %d pooled connection(s) to %s", closed, self.database)
