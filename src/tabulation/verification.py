import json
import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from .results import TabulationResult

logger = logging.getLogger(__name__)


def normalize_candidate_name(name: str) -> str:
    """
    Normalize candidate name for comparison.

    Args:
        name: Raw candidate name

    Returns:
        Normalized name
    """
    if not name:
        return ""

    # Strip whitespace and convert to lowercase for comparison
    normalized = name.strip().lower()

    # Remove extra whitespace between words
    normalized = re.sub(r"\s+", " ", normalized)

    # Remove parentheses content like "(Mike)"
    normalized = re.sub(r"\s*\([^)]*\)\s*", " ", normalized)

    # Normalize spacing around hyphens
    normalized = re.sub(r"\s*-\s*", "-", normalized)

    return normalized.strip()


class OfficialResultsParser:
    """
    Parses an official round-by-round results summary (JSON) for verification.

    Expected layout::

        {"config": {"threshold": "25000"},
         "results": [{"round": 1,
                      "tally": {"Name": "123.5", ...},
                      "tallyResults": [{"elected": "Name"}, {"eliminated": "Other"}]}]}
    """

    def __init__(self, json_path: Union[str, Path]):
        """
        Initialize parser with official results JSON file.

        Args:
            json_path: Path to official results summary file
        """
        self.json_path = Path(json_path)
        self.raw_data: Optional[Dict] = None
        self.threshold: Optional[Decimal] = None
        self.winners: List[str] = []
        self.round_data: Optional[pd.DataFrame] = None

    def parse_results(self) -> Dict:
        """
        Parse the official results file.

        Returns:
            Dictionary with threshold, winners (in election order),
            eliminated candidates and a per-round tally DataFrame
        """
        logger.info(f"Parsing official results from: {self.json_path}")

        if not self.json_path.exists():
            raise FileNotFoundError(f"Official results not found: {self.json_path}")

        with open(self.json_path, "r") as f:
            self.raw_data = json.load(f)

        return self.parse_data(self.raw_data)

    def parse_data(self, data: Dict) -> Dict:
        threshold = data.get("config", {}).get("threshold")
        self.threshold = Decimal(str(threshold)) if threshold is not None else None

        winners: List[str] = []
        eliminated: List[str] = []
        tally_rows = []

        for round_entry in data.get("results", []):
            round_num = int(round_entry["round"])
            for name, votes in round_entry.get("tally", {}).items():
                tally_rows.append(
                    {
                        "round": round_num,
                        "candidate_name": name,
                        "votes": float(votes),
                    }
                )
            for outcome in round_entry.get("tallyResults", []) or []:
                if outcome.get("elected"):
                    winners.append(outcome["elected"])
                if outcome.get("eliminated"):
                    eliminated.append(outcome["eliminated"])

        self.winners = winners
        self.round_data = pd.DataFrame(
            tally_rows, columns=["round", "candidate_name", "votes"]
        )

        logger.info(
            f"Official results: {len(winners)} winners, "
            f"{self.round_data['round'].nunique()} rounds"
        )

        return {
            "threshold": self.threshold,
            "winners": winners,
            "eliminated": eliminated,
            "round_data": self.round_data,
        }


class ResultsVerifier:
    """
    Checks a tabulation result for internal consistency and, optionally,
    against official results.
    """

    def __init__(self, result: TabulationResult):
        self.result = result
        self.precision = result.rules.precision

    def check_structure(self) -> List[str]:
        errors = []
        meta_rounds = [m.round for m in self.result.meta]
        row_rounds = sorted({row.round for row in self.result.round_rows})

        if meta_rounds != list(range(1, len(meta_rounds) + 1)):
            errors.append(f"Meta rounds are not sequential from 1: {meta_rounds}")
        if row_rounds != sorted(set(meta_rounds)):
            errors.append(
                f"Mismatch: {len(set(meta_rounds))} meta rounds vs "
                f"{len(row_rounds)} data rounds"
            )

        candidates = set(self.result.candidates)
        for round_num in row_rounds:
            named = {
                row.candidate_name
                for row in self.result.round_rows
                if row.round == round_num
            }
            if named != candidates:
                errors.append(f"Round {round_num} does not list every candidate")
        return errors

    def check_vote_conservation(self) -> List[str]:
        errors = []
        total_ballots = self.result.total_ballots

        for meta in self.result.meta:
            counted = sum(
                (
                    row.votes
                    for row in self.result.round_rows
                    if row.round == meta.round
                ),
                Decimal(0),
            )
            total = counted + meta.exhausted
            if abs(total - total_ballots) > self.precision:
                errors.append(
                    f"Round {meta.round}: votes plus exhausted is {total}, "
                    f"expected {total_ballots}"
                )
        return errors

    def check_quota(self) -> List[str]:
        quotas = {meta.quota for meta in self.result.meta}
        if len(quotas) > 1:
            return [f"Quota changed between rounds: {sorted(quotas)}"]
        return []

    def check_monotonic_status(self) -> List[str]:
        errors = []
        decided: Dict[str, str] = {}
        for row in sorted(self.result.round_rows, key=lambda r: r.round):
            previous = decided.get(row.candidate_name)
            if previous is not None and row.status != previous:
                errors.append(
                    f"{row.candidate_name} went from {previous} to {row.status} "
                    f"in round {row.round}"
                )
            if row.status != "standing":
                decided[row.candidate_name] = row.status
        return errors

    def check_winners(self) -> List[str]:
        errors = []
        winners = self.result.winners
        expected = min(self.result.rules.seats, len(self.result.candidates))

        if len(winners) != expected:
            errors.append(f"Expected {expected} winners, got {len(winners)}")
        if len(set(winners)) != len(winners):
            errors.append(f"Duplicate winners: {winners}")

        elected_in_meta = [
            name for meta in self.result.meta for name in meta.elected_this_round or []
        ]
        if elected_in_meta != winners:
            errors.append(
                f"Winners {winners} do not match per-round elections {elected_in_meta}"
            )

        if self.result.round_rows:
            final_round = max(row.round for row in self.result.round_rows)
            final_elected = {
                row.candidate_name
                for row in self.result.round_rows
                if row.round == final_round and row.status == "elected"
            }
            if final_elected != set(winners):
                errors.append("Final round elected statuses do not match winners")
        return errors

    def verify(self) -> Dict:
        """
        Run every internal consistency check.

        Returns:
            Dictionary with per-check error lists and overall pass flag
        """
        checks = {
            "structure": self.check_structure(),
            "vote_conservation": self.check_vote_conservation(),
            "quota": self.check_quota(),
            "monotonic_status": self.check_monotonic_status(),
            "winners": self.check_winners(),
        }
        passed = not any(checks.values())
        if passed:
            logger.info("All STV validations passed")
        else:
            for name, errors in checks.items():
                for error in errors:
                    logger.warning(f"{name}: {error}")

        return {"checks": checks, "verification_passed": passed}

    def verify_against_official(self, official: Dict) -> Dict:
        """
        Compare against parsed official results.

        Args:
            official: Output of OfficialResultsParser.parse_results()

        Returns:
            Dictionary with winners comparison, threshold comparison and
            per-round vote differences
        """
        logger.info("Verifying results against official data")

        official_winners = {normalize_candidate_name(n) for n in official["winners"]}
        our_winners = {normalize_candidate_name(n) for n in self.result.winners}
        winners_match = official_winners == our_winners

        threshold = official.get("threshold")
        quota = self.result.summary.first_round_quota
        threshold_match = threshold is None or abs(threshold - quota) <= self.precision

        ours = self.result.rounds_frame()
        ours["name_key"] = ours["candidate_name"].map(normalize_candidate_name)
        theirs = official["round_data"].copy()
        theirs["name_key"] = theirs["candidate_name"].map(normalize_candidate_name)

        comparison = theirs.merge(
            ours[["round", "name_key", "votes"]],
            on=["round", "name_key"],
            how="left",
            suffixes=("_official", "_ours"),
        )
        comparison["votes_ours"] = comparison["votes_ours"].fillna(0.0)
        comparison["difference"] = (
            comparison["votes_ours"] - comparison["votes_official"]
        )

        tolerance = float(self.precision)
        mismatched = comparison[comparison["difference"].abs() > tolerance]

        return {
            "winners_match": winners_match,
            "official_winners": list(official["winners"]),
            "our_winners": list(self.result.winners),
            "missing_winners": [
                n for n in official["winners"]
                if normalize_candidate_name(n) not in our_winners
            ],
            "extra_winners": [
                n for n in self.result.winners
                if normalize_candidate_name(n) not in official_winners
            ],
            "threshold_match": threshold_match,
            "official_threshold": threshold,
            "our_quota": quota,
            "vote_comparisons": comparison.drop(columns=["name_key"]),
            "rounds_with_differences": sorted(mismatched["round"].unique().tolist()),
            "verification_passed": winners_match
            and threshold_match
            and mismatched.empty,
        }


def generate_verification_report(
    verification: Dict, official_comparison: Optional[Dict] = None
) -> str:
    """
    Generate a human-readable verification report.

    Args:
        verification: Results from ResultsVerifier.verify()
        official_comparison: Results from ResultsVerifier.verify_against_official()

    Returns:
        Formatted verification report string
    """
    report = []
    report.append("=" * 60)
    report.append("STV TABULATION VERIFICATION REPORT")
    report.append("=" * 60)

    if verification["verification_passed"]:
        report.append("✅ Internal consistency checks passed")
    else:
        report.append("❌ Internal consistency checks failed")
    for name, errors in verification["checks"].items():
        status = "ok" if not errors else f"{len(errors)} problem(s)"
        report.append(f"  {name.replace('_', ' ')}: {status}")
        for error in errors:
            report.append(f"    - {error}")

    if official_comparison is not None:
        report.append("")
        report.append("OFFICIAL RESULTS COMPARISON:")
        if official_comparison["winners_match"]:
            report.append("✅ Winners match official results")
        else:
            report.append("❌ Winners do not match official results")
        report.append(
            f"Official winners: {', '.join(official_comparison['official_winners'])}"
        )
        report.append(f"Our winners: {', '.join(official_comparison['our_winners'])}")
        if official_comparison["missing_winners"]:
            report.append(
                f"Missing winners: {', '.join(official_comparison['missing_winners'])}"
            )
        if official_comparison["extra_winners"]:
            report.append(
                f"Extra winners: {', '.join(official_comparison['extra_winners'])}"
            )
        report.append(
            f"Threshold: official={official_comparison['official_threshold']}, "
            f"ours={official_comparison['our_quota']}"
        )
        rounds = official_comparison["rounds_with_differences"]
        if rounds:
            report.append(f"Rounds with tally differences: {rounds}")
        else:
            report.append("Round tallies match")

    return "\n".join(report)
