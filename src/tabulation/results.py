import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import pandas as pd

from .rules import Rules

if TYPE_CHECKING:
    from .stv import STVRound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundRow:
    """Vote total and status of one candidate in one round."""

    round: int
    candidate_name: str
    votes: Decimal
    status: str


@dataclass(frozen=True)
class RoundMeta:
    """Round-level information: quota, exhausted weight, who was decided."""

    round: int
    quota: Decimal
    exhausted: Decimal
    elected_this_round: Optional[List[str]] = None
    eliminated_this_round: Optional[List[str]] = None


@dataclass(frozen=True)
class TabulationSummary:
    number_of_rounds: int
    winners: List[str]
    seats: int
    first_round_quota: Decimal
    precision: Decimal


@dataclass
class TabulationResult:
    """
    Complete output of one count.

    Attributes:
        rounds: Round snapshots in counting order
        round_rows: One row per candidate per round
        meta: One row per round
        winners: Winners in the order they were elected
        summary: Scalar summary of the count
        rules: Rules the count was run with
    """

    rounds: List["STVRound"]
    round_rows: List[RoundRow]
    meta: List[RoundMeta]
    winners: List[str]
    summary: TabulationSummary
    rules: Rules
    candidates: List[str] = field(default_factory=list)
    total_ballots: int = 0

    def rounds_frame(self) -> pd.DataFrame:
        """Round-by-candidate table with float vote totals."""
        if not self.round_rows:
            return pd.DataFrame(columns=["round", "candidate_name", "votes", "status"])

        return pd.DataFrame(
            [
                {
                    "round": row.round,
                    "candidate_name": row.candidate_name,
                    "votes": float(row.votes),
                    "status": row.status,
                }
                for row in self.round_rows
            ]
        )

    def meta_frame(self) -> pd.DataFrame:
        """Round metadata table with float quota and exhausted totals."""
        columns = [
            "round",
            "quota",
            "exhausted",
            "elected_this_round",
            "eliminated_this_round",
        ]
        if not self.meta:
            return pd.DataFrame(columns=columns)

        return pd.DataFrame(
            [
                {
                    "round": meta.round,
                    "quota": float(meta.quota),
                    "exhausted": float(meta.exhausted),
                    "elected_this_round": meta.elected_this_round,
                    "eliminated_this_round": meta.eliminated_this_round,
                }
                for meta in self.meta
            ],
            columns=columns,
        )

    def stats(self) -> Dict[str, Any]:
        return {
            "number_of_rounds": self.summary.number_of_rounds,
            "winners": list(self.summary.winners),
            "seats": self.summary.seats,
            "first_round_quota": float(self.summary.first_round_quota),
            "precision": float(self.summary.precision),
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation (Decimals become floats)."""
        return {
            "rounds": self.rounds_frame().to_dict("records"),
            "meta": [
                {
                    "round": meta.round,
                    "quota": float(meta.quota),
                    "exhausted": float(meta.exhausted),
                    "elected_this_round": meta.elected_this_round,
                    "eliminated_this_round": meta.eliminated_this_round,
                }
                for meta in self.meta
            ],
            "winners": list(self.winners),
            "summary": self.stats(),
        }


class ResultAssembler:
    """Turns round snapshots into the rounds and meta tables."""

    def __init__(self, rules: Rules):
        self.rules = rules
        self.rounds: List["STVRound"] = []
        self.round_rows: List[RoundRow] = []
        self.meta: List[RoundMeta] = []

    def add_round(self, round_obj: "STVRound") -> None:
        self.rounds.append(round_obj)

        for candidate in sorted(round_obj.vote_totals):
            self.round_rows.append(
                RoundRow(
                    round=round_obj.round_number,
                    candidate_name=candidate,
                    votes=round_obj.vote_totals[candidate],
                    status=round_obj.statuses[candidate].value,
                )
            )

        self.meta.append(
            RoundMeta(
                round=round_obj.round_number,
                quota=round_obj.quota,
                exhausted=round_obj.exhausted_votes,
                elected_this_round=list(round_obj.winners_this_round) or None,
                eliminated_this_round=list(round_obj.eliminated_this_round) or None,
            )
        )

    def finalize(
        self, winners: List[str], candidates: List[str], total_ballots: int
    ) -> TabulationResult:
        first_round_quota = self.rounds[0].quota if self.rounds else Decimal(0)
        summary = TabulationSummary(
            number_of_rounds=len(self.rounds),
            winners=list(winners),
            seats=self.rules.seats,
            first_round_quota=first_round_quota,
            precision=self.rules.precision,
        )
        logger.debug(f"Assembled {len(self.rounds)} rounds, winners {winners}")

        return TabulationResult(
            rounds=list(self.rounds),
            round_rows=list(self.round_rows),
            meta=list(self.meta),
            winners=list(winners),
            summary=summary,
            rules=self.rules,
            candidates=list(candidates),
            total_ballots=total_ballots,
        )
