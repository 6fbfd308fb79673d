import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import (
    Any,
    Collection,
    Dict,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
)

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ONE = Decimal(1)
ZERO = Decimal(0)

# Key used in transfer maps for weight that leaves the count
EXHAUSTED = "exhausted"


class BallotRecord(NamedTuple):
    """One ballot-preference row as produced by ingestion (ballots_long)."""

    ballot_id: str
    candidate_name: str
    rank_position: int


@dataclass
class Ballot:
    """
    A ballot in the count.

    ``preferences`` never changes. ``weight`` and ``position`` are the
    per-round state: the transferable value still carried by the ballot and
    the index of the preference it currently counts for (None once
    exhausted).
    """

    ballot_id: str
    preferences: Tuple[str, ...]
    weight: Decimal = ONE
    position: Optional[int] = 0

    @property
    def is_exhausted(self) -> bool:
        return self.position is None

    @property
    def current_candidate(self) -> Optional[str]:
        if self.position is None:
            return None
        return self.preferences[self.position]


def _coerce_record(record: Any) -> BallotRecord:
    if isinstance(record, BallotRecord):
        return record
    if isinstance(record, Mapping):
        try:
            return BallotRecord(
                record["BallotID"], record["candidate_name"], record["rank_position"]
            )
        except KeyError as e:
            raise ConfigurationError(f"Ballot record missing column {e}") from e
    try:
        ballot_id, candidate_name, rank_position = record
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed ballot record: {record!r}") from e
    return BallotRecord(ballot_id, candidate_name, rank_position)


def _validate_rank(record: BallotRecord) -> int:
    rank = record.rank_position
    # Database integer columns arrive as numpy integers
    if hasattr(rank, "item") and not isinstance(rank, bool):
        rank = rank.item()
    if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
        raise ConfigurationError(
            f"Ballot {record.ballot_id}: rank_position must be a positive integer, "
            f"got {record.rank_position!r}"
        )
    return rank


def build_ballots(records: Iterable[Any]) -> List[Ballot]:
    """
    Group ballot-preference rows into ballots.

    Rows are grouped by ballot id in order of first appearance and each
    ballot's preferences are ordered by rank. Gaps in rank positions are
    tolerated (the next listed rank is the next preference).

    Args:
        records: BallotRecords, (ballot_id, candidate_name, rank_position)
            tuples, or mappings with BallotID/candidate_name/rank_position keys

    Returns:
        List of Ballot objects at full weight

    Raises:
        ConfigurationError: On an empty input, a bad rank, or a ballot that
            repeats a rank or a candidate
    """
    grouped: Dict[str, Dict[int, str]] = {}

    for raw in records:
        record = _coerce_record(raw)
        rank = _validate_rank(record)
        ballot_id = str(record.ballot_id)
        candidate = record.candidate_name

        if not isinstance(candidate, str) or not candidate.strip():
            raise ConfigurationError(
                f"Ballot {ballot_id}: candidate_name must be a non-empty string"
            )

        ranks = grouped.setdefault(ballot_id, {})
        if rank in ranks:
            raise ConfigurationError(
                f"Ballot {ballot_id}: duplicate rank {rank} "
                f"({ranks[rank]!r} and {candidate!r})"
            )
        if candidate in ranks.values():
            raise ConfigurationError(
                f"Ballot {ballot_id}: candidate {candidate!r} ranked more than once"
            )
        ranks[rank] = candidate

    if not grouped:
        raise ConfigurationError("No ballots to tabulate")

    ballots = [
        Ballot(ballot_id, tuple(ranks[rank] for rank in sorted(ranks)))
        for ballot_id, ranks in grouped.items()
    ]
    logger.info(f"Built {len(ballots)} ballots")
    return ballots


class BallotPool:
    """
    The working set of ballots for one count.

    Each ballot counts its full current weight for the candidate at its
    current position. Ballots are only moved by ``advance_past``; a ballot
    whose current candidate is elected without a surplus transfer stays with
    that candidate for the rest of the count.
    """

    def __init__(self, ballots: List[Ballot]):
        self.ballots = ballots
        self.candidates: List[str] = sorted(
            {name for ballot in ballots for name in ballot.preferences}
        )

    def __len__(self) -> int:
        return len(self.ballots)

    def tally(self, candidates: Iterable[str] = ()) -> Dict[str, Decimal]:
        """
        Sum current ballot weights by the candidate each ballot counts for.

        Args:
            candidates: Names to include with a zero total if they hold no ballots

        Returns:
            Mapping of candidate name to vote total
        """
        totals: Dict[str, Decimal] = {name: ZERO for name in candidates}
        for ballot in self.ballots:
            candidate = ballot.current_candidate
            if candidate is not None:
                totals[candidate] = totals.get(candidate, ZERO) + ballot.weight
        return totals

    def exhausted_total(self) -> Decimal:
        """Total weight carried by ballots that no longer count for anyone."""
        return sum(
            (ballot.weight for ballot in self.ballots if ballot.is_exhausted), ZERO
        )

    def advance_past(
        self,
        candidate: str,
        weight_multiplier: Decimal,
        standing: Collection[str],
    ) -> Dict[str, Decimal]:
        """
        Move every ballot held by a decided candidate to its next preference.

        Args:
            candidate: Candidate just elected (surplus transfer) or eliminated
            weight_multiplier: Fraction of each ballot's weight that moves on
                (surplus / votes for an election, 1 for an elimination)
            standing: Candidates still able to receive ballots

        Returns:
            Weight transferred to each recipient, with exhausted weight under
            the EXHAUSTED key
        """
        transfers: Dict[str, Decimal] = {}

        for ballot in self.ballots:
            if ballot.current_candidate != candidate:
                continue

            ballot.weight = ballot.weight * weight_multiplier
            ballot.position = self._next_standing(ballot, standing)

            recipient = ballot.current_candidate or EXHAUSTED
            transfers[recipient] = transfers.get(recipient, ZERO) + ballot.weight

        return transfers

    @staticmethod
    def _next_standing(ballot: Ballot, standing: Collection[str]) -> Optional[int]:
        for index in range(ballot.position + 1, len(ballot.preferences)):
            if ballot.preferences[index] in standing:
                return index
        return None
