import logging
from typing import Any, Dict, Iterable, List, Optional

from pyrankvote import Ballot, Candidate, single_transferable_vote

from .ballots import build_ballots

logger = logging.getLogger(__name__)


class PyRankVoteSTVTabulator:
    """
    Winner-set cross-check using the PyRankVote library.

    PyRankVote does not expose round-by-round totals, so this only reports
    winners. It is used to compare against STVTabulator, not to replace it.
    """

    def __init__(self, ballots: Iterable[Any], seats: int):
        """
        Initialize cross-check tabulator.

        Args:
            ballots: Ballot-preference records (see build_ballots)
            seats: Number of seats to fill
        """
        self.seats = seats
        self.ballots = build_ballots(ballots)
        self.candidates_map: Dict[str, Candidate] = {}
        self.ballots_data: List[Ballot] = []
        self.pyrankvote_result = None
        self.winners: List[str] = []

    def _prepare_pyrankvote_data(self):
        """Convert ballots to PyRankVote format."""
        names = sorted({name for ballot in self.ballots for name in ballot.preferences})
        self.candidates_map = {name: Candidate(name) for name in names}
        self.ballots_data = [
            Ballot(ranked_candidates=[self.candidates_map[n] for n in b.preferences])
            for b in self.ballots
        ]
        logger.info(
            f"Prepared {len(self.candidates_map)} candidates and "
            f"{len(self.ballots_data)} ballots for PyRankVote"
        )

    def run(self) -> List[str]:
        """
        Compute the winner set.

        Returns:
            Winner names as reported by PyRankVote
        """
        self._prepare_pyrankvote_data()

        if self.seats >= len(self.candidates_map):
            logger.warning(
                f"Seats ({self.seats}) >= candidates ({len(self.candidates_map)}), "
                "electing all candidates"
            )
            self.winners = list(self.candidates_map)
            return self.winners

        self.pyrankvote_result = single_transferable_vote(
            candidates=list(self.candidates_map.values()),
            ballots=self.ballots_data,
            number_of_seats=self.seats,
        )
        self.winners = [winner.name for winner in self.pyrankvote_result.get_winners()]
        logger.info(f"PyRankVote winners: {self.winners}")
        return self.winners

    def get_pyrankvote_detailed_results(self) -> Optional[str]:
        if self.pyrankvote_result:
            return str(self.pyrankvote_result)
        return None


def compare_winners(ours: Iterable[str], reference: Iterable[str]) -> Dict[str, Any]:
    """Compare two winner lists as sets."""
    ours_set, reference_set = set(ours), set(reference)
    return {
        "winners_match": ours_set == reference_set,
        "only_ours": sorted(ours_set - reference_set),
        "only_reference": sorted(reference_set - ours_set),
    }
