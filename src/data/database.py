import logging
import random
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


def connect(
    db_path: Optional[str] = None, read_only: bool = True, max_retries: int = 3
) -> duckdb.DuckDBPyConnection:
    """
    Open a DuckDB connection, retrying while another process holds the lock.

    Args:
        db_path: Path to DuckDB file. If None, uses an in-memory database.
        read_only: Open existing files read-only (avoids write locks)
        max_retries: Maximum number of connection attempts

    Returns:
        DuckDB connection
    """
    path = db_path or IN_MEMORY

    for attempt in range(max_retries):
        try:
            if read_only and path != IN_MEMORY and Path(path).exists():
                conn = duckdb.connect(path, read_only=True)
                logger.debug(f"Opened read-only connection to {path}")
            else:
                conn = duckdb.connect(path)
                logger.debug(f"Opened read-write connection to {path}")
            return conn

        except duckdb.IOException as e:
            if "Conflicting lock" in str(e) and attempt < max_retries - 1:
                # Exponential backoff with jitter
                wait_time = (2**attempt) + random.uniform(0, 1)  # nosec B311
                logger.warning(
                    f"Database locked, retrying in {wait_time:.2f}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(wait_time)
                continue
            logger.error(
                f"Failed to connect to database after {attempt + 1} attempts: {e}"
            )
            raise

    raise duckdb.IOException(
        f"Could not establish database connection after {max_retries} attempts"
    )


class CVRDatabase:
    """
    DuckDB access to normalized cast vote records (the ballots_long table).
    The connection is opened on first use.
    """

    def __init__(self, db_path: Optional[str] = None, read_only: bool = True):
        """
        Initialize database connection manager.

        Args:
            db_path: Path to DuckDB file. If None, uses in-memory database.
            read_only: Whether to open existing files read-only
        """
        self.db_path = db_path or IN_MEMORY
        self.read_only = read_only
        self._conn: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create a database connection on-demand."""
        if self._conn is None:
            self._conn = connect(self.db_path, self.read_only)
        return self._conn

    def query(self, sql: str, params: Optional[list] = None) -> pd.DataFrame:
        """Execute a SQL query and return results as DataFrame."""
        if params is None:
            return self.conn.execute(sql).fetchdf()
        return self.conn.execute(sql, params).fetchdf()

    def table_exists(self, table_name: str) -> bool:
        result = self.conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        ).fetchone()
        return result[0] > 0

    @contextmanager
    def registered(self, name: str, frame: pd.DataFrame):
        """Expose a DataFrame to SQL as a temporary view."""
        self.conn.register(name, frame)
        try:
            yield name
        finally:
            self.conn.unregister(name)

    def close(self):
        """Close database connection."""
        if self._conn:
            try:
                self._conn.close()
                logger.debug(f"Closed database connection to {self.db_path}")
            except duckdb.Error as e:
                logger.warning(f"Error closing database connection: {e}")
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
