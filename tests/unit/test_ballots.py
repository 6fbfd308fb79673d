"""
Unit tests for ballot construction and the ballot pool.
"""

from decimal import Decimal

import numpy as np
import pytest

from conftest import make_records
from tabulation.ballots import (
    EXHAUSTED,
    Ballot,
    BallotPool,
    BallotRecord,
    build_ballots,
)
from tabulation.errors import ConfigurationError


@pytest.mark.unit
def test_build_ballots_groups_and_orders(sample_records):
    ballots = build_ballots(sample_records)

    assert [b.ballot_id for b in ballots] == [
        "B001",
        "B002",
        "B003",
        "B004",
        "B005",
        "B006",
    ]
    assert ballots[0].preferences == ("Alice", "Bob", "Charlie")
    assert all(b.weight == Decimal(1) for b in ballots)
    assert all(b.position == 0 for b in ballots)


@pytest.mark.unit
def test_build_ballots_accepts_rows_in_any_order():
    records = [
        ("B1", "Charlie", 3),
        {"BallotID": "B1", "candidate_name": "Alice", "rank_position": 1},
        BallotRecord("B1", "Bob", 2),
    ]

    (ballot,) = build_ballots(records)

    assert ballot.preferences == ("Alice", "Bob", "Charlie")


@pytest.mark.unit
def test_rank_gaps_are_skipped():
    (ballot,) = build_ballots([("B1", "Alice", 1), ("B1", "Bob", 4)])

    assert ballot.preferences == ("Alice", "Bob")


@pytest.mark.unit
def test_numpy_ranks_accepted():
    records = [("B1", "Alice", np.int64(1)), ("B1", "Bob", np.int32(2))]

    (ballot,) = build_ballots(records)

    assert ballot.preferences == ("Alice", "Bob")


@pytest.mark.unit
@pytest.mark.parametrize(
    "records,message",
    [
        ([], "No ballots"),
        ([("B1", "Alice", 0)], "rank_position"),
        ([("B1", "Alice", 1.5)], "rank_position"),
        ([("B1", "Alice", True)], "rank_position"),
        ([("B1", "", 1)], "candidate_name"),
        ([("B1", None, 1)], "candidate_name"),
        ([("B1", "Alice", 1), ("B1", "Bob", 1)], "duplicate rank"),
        ([("B1", "Alice", 1), ("B1", "Alice", 2)], "more than once"),
        ([("B1", "Alice")], "Malformed"),
        ([{"BallotID": "B1", "candidate_name": "Alice"}], "missing column"),
    ],
)
def test_build_ballots_rejects_malformed_input(records, message):
    with pytest.raises(ConfigurationError, match=message):
        build_ballots(records)


@pytest.mark.unit
def test_ballot_state():
    ballot = Ballot("B1", ("Alice", "Bob"))

    assert ballot.current_candidate == "Alice"
    assert not ballot.is_exhausted

    ballot.position = None
    assert ballot.current_candidate is None
    assert ballot.is_exhausted


@pytest.mark.unit
def test_pool_candidates_and_tally(sample_records):
    pool = BallotPool(build_ballots(sample_records))

    assert len(pool) == 6
    assert pool.candidates == ["Alice", "Bob", "Charlie", "Diana"]
    assert pool.tally() == {
        "Alice": Decimal(2),
        "Bob": Decimal(2),
        "Charlie": Decimal(1),
        "Diana": Decimal(1),
    }
    assert pool.tally(["Zed"])["Zed"] == Decimal(0)
    assert pool.exhausted_total() == Decimal(0)


@pytest.mark.unit
def test_advance_past_at_full_weight(sample_records):
    pool = BallotPool(build_ballots(sample_records))

    transfers = pool.advance_past("Charlie", Decimal(1), {"Alice", "Bob", "Diana"})

    assert transfers == {"Diana": Decimal(1)}
    assert pool.tally()["Diana"] == Decimal(2)
    assert "Charlie" not in pool.tally()


@pytest.mark.unit
def test_advance_past_skips_decided_candidates():
    pool = BallotPool(build_ballots(make_records(("B1", ["Alice", "Bob", "Charlie"]))))

    transfers = pool.advance_past("Alice", Decimal(1), {"Charlie"})

    assert transfers == {"Charlie": Decimal(1)}
    assert pool.ballots[0].position == 2


@pytest.mark.unit
def test_advance_past_applies_multiplier_and_exhausts():
    pool = BallotPool(
        build_ballots(
            make_records(
                ("B1", ["Alice", "Bob"]),
                ("B2", ["Alice"]),
                ("B3", ["Bob"]),
            )
        )
    )

    transfers = pool.advance_past("Alice", Decimal("0.25"), {"Bob"})

    assert transfers == {"Bob": Decimal("0.25"), EXHAUSTED: Decimal("0.25")}
    assert pool.tally() == {"Bob": Decimal("1.25")}
    assert pool.exhausted_total() == Decimal("0.25")
    # Weight that stayed with Alice is no longer in the pool
    assert sum(pool.tally().values()) + pool.exhausted_total() == Decimal("1.5")
