"""
Shared pytest configuration and fixtures for the STV tabulator.
"""

import os
import sys
import tempfile
from pathlib import Path

import duckdb
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.database import CVRDatabase  # noqa: E402
from tabulation.ballots import BallotRecord  # noqa: E402
from tabulation.rules import Rules  # noqa: E402


def make_records(*ballots):
    """
    Build ballot records from preference lists.

    Each argument is (ballot_id, [candidate, candidate, ...]) with ranks
    assigned 1, 2, 3, ... in list order.
    """
    records = []
    for ballot_id, preferences in ballots:
        for rank, candidate in enumerate(preferences, 1):
            records.append(BallotRecord(ballot_id, candidate, rank))
    return records


def repeat_ballots(prefix, count, preferences, start=0):
    """Generate `count` identical ballots with ids prefix0, prefix1, ..."""
    return [(f"{prefix}{i + start}", preferences) for i in range(count)]


def create_ballots_long(conn, records):
    """Create and fill a ballots_long table shaped like ingestion output."""
    conn.execute(
        """
        CREATE TABLE ballots_long (
            BallotID TEXT,
            PrecinctID INTEGER,
            BallotStyleID INTEGER,
            candidate_id INTEGER,
            candidate_name TEXT,
            rank_position INTEGER,
            has_vote INTEGER
        )
        """
    )
    names = sorted({record.candidate_name for record in records})
    ids = {name: i for i, name in enumerate(names, 1)}
    rows = [
        (r.ballot_id, 1, 1, ids[r.candidate_name], r.candidate_name, r.rank_position, 1)
        for r in records
    ]
    if rows:
        conn.executemany(
            "INSERT INTO ballots_long VALUES (?, ?, ?, ?, ?, ?, ?)", rows
        )


@pytest.fixture
def default_rules():
    """Two seats, Droop quota, lexicographic tie-break."""
    return Rules(seats=2)


@pytest.fixture
def sample_records():
    """Provide a small mixed election: 6 ballots over 4 candidates."""
    return make_records(
        ("B001", ["Alice", "Bob", "Charlie"]),
        ("B002", ["Bob", "Alice"]),
        ("B003", ["Charlie", "Diana", "Alice"]),
        ("B004", ["Alice"]),
        ("B005", ["Diana", "Charlie"]),
        ("B006", ["Bob"]),
    )


@pytest.fixture
def temp_db():
    """Provide an in-memory CVRDatabase."""
    db = CVRDatabase()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def ballots_db_file(sample_records):
    """Provide a temporary DuckDB file with a populated ballots_long table."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    os.unlink(db_path)  # Let DuckDB create the file

    conn = duckdb.connect(db_path)
    create_ballots_long(conn, sample_records)
    conn.close()

    try:
        yield db_path
    finally:
        if os.path.exists(db_path):
            os.unlink(db_path)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (database required)",
    )
    config.addinivalue_line(
        "markers",
        "golden: marks tests as golden dataset validation (slow, full verification)",
    )
    config.addinivalue_line(
        "markers", "invariant: marks tests as mathematical invariant validation"
    )
    config.addinivalue_line(
        "markers", "smoke: marks tests as smoke tests (basic functionality check)"
    )
