import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any, Dict, Iterable, List

from .ballots import ONE, ZERO, BallotPool, build_ballots
from .errors import InvariantViolation
from .results import ResultAssembler, TabulationResult
from .rules import Rules
from .tiebreak import TiePurpose, break_tie, order_candidates

logger = logging.getLogger(__name__)

# Digits carried by every Decimal operation during a count
DECIMAL_PRECISION = 40


class CandidateStatus(str, Enum):
    STANDING = "standing"
    ELECTED = "elected"
    ELIMINATED = "eliminated"


@dataclass
class STVRound:
    """
    Represents one round of STV tabulation.

    Totals, statuses and the exhausted figure are taken after the round's
    transfers have been applied.
    """

    round_number: int
    continuing_candidates: List[str]
    vote_totals: Dict[str, Decimal]
    statuses: Dict[str, CandidateStatus]
    quota: Decimal
    winners_this_round: List[str]
    eliminated_this_round: List[str]
    transfers: Dict[str, Dict[str, Decimal]]  # from_candidate -> {to_candidate: weight}
    exhausted_votes: Decimal
    total_continuing_votes: Decimal = field(default=ZERO)


def calculate_droop_quota(total_ballots: int, seats: int) -> Decimal:
    """
    Calculate Droop quota: floor(total_ballots / (seats + 1)) + 1

    Args:
        total_ballots: Number of ballots with at least one valid preference
        seats: Number of seats to fill

    Returns:
        Droop quota
    """
    return Decimal(total_ballots // (seats + 1) + 1)


class STVTabulator:
    """
    Single Transferable Vote tabulation engine.

    Droop quota, fixed for the whole count, with a one-shot fractional
    (Gregory) transfer of each winner's surplus. Each instance owns its own
    ballot pool, so separate contests can be counted in parallel.
    """

    def __init__(self, ballots: Iterable[Any], rules: Rules):
        """
        Initialize STV tabulator.

        Args:
            ballots: Ballot-preference records (see build_ballots)
            rules: Counting rules

        Raises:
            ConfigurationError: If the ballots are empty or malformed
        """
        self.rules = rules
        self.pool = BallotPool(build_ballots(ballots))
        self.candidates: List[str] = list(self.pool.candidates)
        self.total_ballots = len(self.pool)

        self.status: Dict[str, CandidateStatus] = {
            name: CandidateStatus.STANDING for name in self.candidates
        }
        # Votes kept by winners whose surplus has been transferred
        self.retained: Dict[str, Decimal] = {}

        self.quota: Decimal = calculate_droop_quota(self.total_ballots, rules.seats)
        self.rounds: List[STVRound] = []
        self.winners: List[str] = []
        self.eliminated: List[str] = []
        self._assembler = ResultAssembler(rules)
        self._finished = False

    @property
    def max_rounds(self) -> int:
        return 2 * len(self.candidates) + 1

    def standing(self) -> List[str]:
        return [
            name
            for name in self.candidates
            if self.status[name] is CandidateStatus.STANDING
        ]

    def run_stv_tabulation(self) -> List[STVRound]:
        """
        Run complete STV tabulation.

        Returns:
            List of STVRound objects representing each round

        Raises:
            InvariantViolation: If vote conservation fails or the count does
                not terminate within the round bound
        """
        if self._finished:
            return self.rounds

        logger.info("Starting STV tabulation")
        logger.info(f"Total valid ballots: {self.total_ballots}")
        logger.info(f"Droop quota: {self.quota}")
        logger.info(f"Seats to fill: {self.rules.seats}")

        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            ctx.rounding = ROUND_HALF_UP

            round_num = 1
            while True:
                if round_num > self.max_rounds:
                    raise InvariantViolation(
                        f"STV count exceeded {self.max_rounds} rounds "
                        f"for {len(self.candidates)} candidates"
                    )

                logger.info(f"=== Round {round_num} ===")
                terminal = self._count_round(round_num)
                if terminal:
                    break
                round_num += 1

        self._finished = True
        logger.info("STV tabulation complete:")
        logger.info(f"Winners: {self.winners}")
        logger.info(f"Total rounds: {len(self.rounds)}")

        return self.rounds

    def _count_round(self, round_num: int) -> bool:
        precision = self.rules.precision
        seats = self.rules.seats
        transfers: Dict[str, Dict[str, Decimal]] = {}
        round_winners: List[str] = []
        round_eliminated: List[str] = []

        standing = self.standing()
        tally = self.pool.tally(standing)

        # Election: everyone at or over quota, highest total first
        reached = [c for c in standing if tally[c] >= self.quota - precision]
        if reached:
            ordered = order_candidates(reached, tally, self.rules, TiePurpose.ELECT)
            round_winners = ordered[: seats - len(self.winners)]
            for candidate in round_winners:
                self._elect(candidate)
                logger.info(f"{candidate} elected with {tally[candidate]:.4f} votes")

            for candidate in round_winners:
                surplus = tally[candidate] - self.quota
                if surplus > precision:
                    transfers[candidate] = self._transfer_surplus(
                        candidate, tally[candidate], surplus
                    )

        terminal = len(self.winners) >= seats

        if not terminal:
            remaining = self.standing()
            open_seats = seats - len(self.winners)
            if len(remaining) <= open_seats:
                # Not enough candidates left to contest the open seats
                current = self.pool.tally(remaining)
                for candidate in order_candidates(
                    remaining, current, self.rules, TiePurpose.ELECT
                ):
                    self._elect(candidate)
                    round_winners.append(candidate)
                    logger.info(
                        f"{candidate} elected without reaching quota "
                        f"({len(remaining)} standing for {open_seats} seats)"
                    )
                terminal = True
            elif not reached:
                loser = self._select_lowest(remaining, tally)
                round_eliminated.append(loser)
                transfers[loser] = self._eliminate(loser, tally[loser])

        self._record_round(round_num, round_winners, round_eliminated, transfers)
        return terminal

    def _elect(self, candidate: str) -> None:
        self.status[candidate] = CandidateStatus.ELECTED
        self.winners.append(candidate)

    def _transfer_surplus(
        self, candidate: str, votes: Decimal, surplus: Decimal
    ) -> Dict[str, Decimal]:
        transfer_value = surplus / votes
        logger.info(
            f"Transferring surplus from {candidate}: {surplus:.4f} votes "
            f"at value {transfer_value:.6f}"
        )

        moved = self.pool.advance_past(candidate, transfer_value, set(self.standing()))
        self.retained[candidate] = self.quota
        for to_candidate, amount in moved.items():
            logger.info(f"  -> {amount:.4f} votes to {to_candidate}")
        return moved

    def _select_lowest(self, standing: List[str], tally: Dict[str, Decimal]) -> str:
        min_votes = min(tally[c] for c in standing)
        lowest = [c for c in standing if tally[c] - min_votes <= self.rules.precision]
        if len(lowest) == 1:
            return lowest[0]

        choice = break_tie(lowest, TiePurpose.ELIMINATE, self.rules)
        logger.info(
            f"Tie for fewest votes among {sorted(lowest)}; eliminating {choice}"
        )
        return choice

    def _eliminate(self, candidate: str, votes: Decimal) -> Dict[str, Decimal]:
        self.status[candidate] = CandidateStatus.ELIMINATED
        self.eliminated.append(candidate)
        logger.info(f"Eliminating {candidate} with {votes:.4f} votes")

        moved = self.pool.advance_past(candidate, ONE, set(self.standing()))
        for to_candidate, amount in moved.items():
            logger.info(f"  -> {amount:.4f} votes to {to_candidate}")
        return moved

    def _record_round(
        self,
        round_num: int,
        round_winners: List[str],
        round_eliminated: List[str],
        transfers: Dict[str, Dict[str, Decimal]],
    ) -> None:
        held = self.pool.tally(self.candidates)
        vote_totals: Dict[str, Decimal] = {}
        for candidate in self.candidates:
            status = self.status[candidate]
            if status is CandidateStatus.ELIMINATED:
                vote_totals[candidate] = ZERO
            else:
                vote_totals[candidate] = self.retained.get(candidate, held[candidate])

        exhausted = self.pool.exhausted_total()
        continuing = self.standing()
        total_continuing = sum((vote_totals[c] for c in continuing), ZERO)

        self._check_conservation(round_num, vote_totals, exhausted)

        round_record = STVRound(
            round_number=round_num,
            continuing_candidates=continuing,
            vote_totals=vote_totals,
            statuses=dict(self.status),
            quota=self.quota,
            winners_this_round=list(round_winners),
            eliminated_this_round=list(round_eliminated),
            transfers=transfers,
            exhausted_votes=exhausted,
            total_continuing_votes=total_continuing,
        )
        self.rounds.append(round_record)
        self._assembler.add_round(round_record)

    def _check_conservation(
        self, round_num: int, vote_totals: Dict[str, Decimal], exhausted: Decimal
    ) -> None:
        counted = sum(vote_totals.values(), ZERO) + exhausted
        drift = abs(counted - self.total_ballots)
        if drift > self.rules.precision:
            raise InvariantViolation(
                f"Vote conservation failed in round {round_num}: "
                f"{counted} counted for {self.total_ballots} ballots"
            )

    def result(self) -> TabulationResult:
        """Run the count if needed and return the assembled result."""
        self.run_stv_tabulation()
        return self._assembler.finalize(
            self.winners, self.candidates, self.total_ballots
        )


def run_stv(ballots: Iterable[Any], rules: Rules) -> TabulationResult:
    """Tabulate one contest: (ballots, rules) -> TabulationResult."""
    return STVTabulator(ballots, rules).result()
