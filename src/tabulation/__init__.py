"""
STV tabulation for multi-winner ranked-choice contests.

- STVTabulator / run_stv: Droop quota, fractional (Gregory) surplus transfer
- Rules / load_rules: counting rules passed explicitly to every count
- ResultsVerifier: consistency checks and official-results comparison
- PyRankVoteSTVTabulator: winner-set cross-check with the PyRankVote library
"""

from .ballots import Ballot, BallotPool, BallotRecord, build_ballots
from .errors import ConfigurationError, InvariantViolation, TabulationError
from .results import RoundMeta, RoundRow, TabulationResult, TabulationSummary
from .rules import Rules, TieBreak, load_rules
from .stv import (
    CandidateStatus,
    STVRound,
    STVTabulator,
    calculate_droop_quota,
    run_stv,
)
from .stv_pyrankvote import PyRankVoteSTVTabulator
from .tiebreak import TiePurpose, break_tie
from .verification import ResultsVerifier

__all__ = [
    "Ballot",
    "BallotPool",
    "BallotRecord",
    "build_ballots",
    "CandidateStatus",
    "ConfigurationError",
    "InvariantViolation",
    "TabulationError",
    "PyRankVoteSTVTabulator",
    "ResultsVerifier",
    "RoundMeta",
    "RoundRow",
    "Rules",
    "STVRound",
    "STVTabulator",
    "TabulationResult",
    "TabulationSummary",
    "TieBreak",
    "TiePurpose",
    "break_tie",
    "calculate_droop_quota",
    "load_rules",
    "run_stv",
]
