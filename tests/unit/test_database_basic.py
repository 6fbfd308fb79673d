"""
Basic database functionality unit tests.

These tests verify core database operations and ballot loading without
requiring external data files.
"""

import duckdb
import pandas as pd
import pytest

from conftest import create_ballots_long, make_records
from data.ballot_loader import load_ballot_records, records_from_frame
from data.database import CVRDatabase, connect
from tabulation.ballots import BallotRecord


@pytest.mark.unit
def test_database_creation(temp_db):
    """Test that database can be created and closed."""
    assert temp_db is not None
    assert temp_db.conn is not None
    assert temp_db.db_path == ":memory:"


@pytest.mark.unit
def test_basic_query(temp_db):
    """Test basic SQL query execution."""
    result = temp_db.query("SELECT 1 as test_value")
    assert isinstance(result, pd.DataFrame)
    assert len(result) == 1
    assert result.iloc[0]["test_value"] == 1


@pytest.mark.unit
def test_query_with_params(temp_db):
    result = temp_db.query("SELECT ? + ? AS total", [2, 3])
    assert result.iloc[0]["total"] == 5


@pytest.mark.unit
def test_table_exists(temp_db):
    assert not temp_db.table_exists("ballots_long")

    create_ballots_long(temp_db.conn, make_records(("B1", ["Alice"])))

    assert temp_db.table_exists("ballots_long")


@pytest.mark.unit
def test_registered_frame(temp_db):
    frame = pd.DataFrame({"candidate_name": ["Alice", "Bob"], "votes": [3.0, 2.0]})

    with temp_db.registered("tally_df", frame) as name:
        result = temp_db.query(f"SELECT SUM(votes) AS total FROM {name}")
    assert result.iloc[0]["total"] == 5.0

    with pytest.raises(duckdb.Error):
        temp_db.query("SELECT * FROM tally_df")


@pytest.mark.unit
def test_context_manager_closes_connection():
    with CVRDatabase() as db:
        db.query("SELECT 1")
        assert db._conn is not None
    assert db._conn is None


@pytest.mark.unit
def test_read_only_file_connection(ballots_db_file):
    conn = connect(ballots_db_file, read_only=True)
    try:
        count = conn.execute("SELECT COUNT(*) FROM ballots_long").fetchone()[0]
        assert count == 12
        with pytest.raises(duckdb.Error):
            conn.execute("DELETE FROM ballots_long")
    finally:
        conn.close()


@pytest.mark.unit
def test_load_ballot_records(ballots_db_file, sample_records):
    with CVRDatabase(ballots_db_file) as db:
        records = load_ballot_records(db)

    assert len(records) == len(sample_records)
    assert all(isinstance(r, BallotRecord) for r in records)
    assert records[0] == BallotRecord("B001", "Alice", 1)
    assert sorted(records) == sorted(sample_records)


@pytest.mark.unit
def test_load_ballot_records_skips_unmarked_rows(temp_db):
    create_ballots_long(temp_db.conn, make_records(("B1", ["Alice", "Bob"])))
    temp_db.conn.execute("UPDATE ballots_long SET has_vote = 0 WHERE rank_position = 2")

    records = load_ballot_records(temp_db)

    assert records == [BallotRecord("B1", "Alice", 1)]


@pytest.mark.unit
def test_load_ballot_records_missing_table(temp_db):
    with pytest.raises(LookupError, match="ballots_long"):
        load_ballot_records(temp_db)


@pytest.mark.unit
def test_records_from_frame_requires_columns():
    frame = pd.DataFrame({"BallotID": ["B1"], "candidate_name": ["Alice"]})

    with pytest.raises(KeyError, match="rank_position"):
        records_from_frame(frame)
