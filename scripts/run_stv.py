#!/usr/bin/env python3
"""
Run STV tabulation on processed CVR data.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.artifacts import export_artifacts  # noqa: E402
from data.ballot_loader import load_ballot_records  # noqa: E402
from data.database import CVRDatabase  # noqa: E402
from tabulation.errors import TabulationError  # noqa: E402
from tabulation.rules import Rules, load_rules  # noqa: E402
from tabulation.stv import run_stv  # noqa: E402
from tabulation.verification import (  # noqa: E402
    OfficialResultsParser,
    ResultsVerifier,
    generate_verification_report,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

STATUS_SYMBOLS = {
    "elected": "✓ ",
    "eliminated": "- ",
    "standing": "  ",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run STV tabulation")
    parser.add_argument("--db", help="Path to DuckDB database file with processed data")
    parser.add_argument("--rules", help="Path to a rules.yaml file")
    parser.add_argument(
        "--seats", type=int, help="Number of seats to fill (default: 3)"
    )
    parser.add_argument(
        "--tie-break",
        choices=["lexicographic", "random"],
        help="Tie-break method (default: lexicographic)",
    )
    parser.add_argument("--seed", type=int, help="Seed for the random tie-break")
    parser.add_argument("--precision", help="Comparison epsilon (default: 1e-6)")
    parser.add_argument("--export", help="Export round tables to CSV files")
    parser.add_argument("--artifacts", help="Directory for parquet artifacts")
    parser.add_argument(
        "--verify",
        nargs="?",
        const="",
        metavar="OFFICIAL_JSON",
        help="Run consistency checks, optionally against official results JSON",
    )
    return parser


def resolve_rules(args: argparse.Namespace) -> Rules:
    overrides = {
        "seats": args.seats,
        "tie_break": args.tie_break,
        "random_seed": args.seed,
        "precision": args.precision,
    }
    if args.rules:
        return load_rules(args.rules, **overrides)

    values = {key: value for key, value in overrides.items() if value is not None}
    values.setdefault("seats", 3)
    return Rules(**values)


def print_rounds(result) -> None:
    print("\n=== Round-by-Round Results ===")
    rounds = result.rounds_frame()
    meta = result.meta_frame().set_index("round")

    for round_num in sorted(rounds["round"].unique()):
        round_data = rounds[rounds["round"] == round_num]
        round_meta = meta.loc[round_num]
        print(f"\nRound {round_num}:")
        print(f"Quota: {round_meta['quota']:.1f}")

        for _, row in round_data.sort_values("votes", ascending=False).iterrows():
            symbol = STATUS_SYMBOLS.get(row["status"], "  ")
            print(f"  {symbol} {row['candidate_name']:25s}: {row['votes']:10.4f} votes")

        if round_meta["exhausted"] > 0:
            print(f"     {'Exhausted':25s}: {round_meta['exhausted']:10.4f} votes")
        if round_meta["elected_this_round"] is not None:
            print(f"     Elected: {', '.join(round_meta['elected_this_round'])}")
        if round_meta["eliminated_this_round"] is not None:
            print(f"     Eliminated: {', '.join(round_meta['eliminated_this_round'])}")


def main():
    args = build_parser().parse_args()

    if not args.db or not Path(args.db).exists():
        logger.error(
            "Database file with a ballots_long table is required and must exist."
        )
        sys.exit(1)

    try:
        rules = resolve_rules(args)
        with CVRDatabase(args.db) as db:
            if not db.table_exists("ballots_long"):
                logger.error("Required table 'ballots_long' not found.")
                sys.exit(1)
            records = load_ballot_records(db)

        logger.info(f"=== STV Tabulation ({rules.seats} seats) ===")
        result = run_stv(records, rules)
        print_rounds(result)

        print("\n=== Final Results ===")
        print(f"\nElected ({len(result.winners)} of {rules.seats} seats):")
        for i, winner in enumerate(result.winners, 1):
            elected_round = next(
                m.round for m in result.meta if winner in (m.elected_this_round or [])
            )
            print(f"  {i}. {winner:30s} (Round {elected_round})")

        if args.export:
            export_path = Path(args.export)
            rounds_path = export_path.with_suffix(".csv")
            meta_path = export_path.with_stem(export_path.stem + "_meta").with_suffix(
                ".csv"
            )
            result.rounds_frame().to_csv(rounds_path, index=False)
            result.meta_frame().to_csv(meta_path, index=False)
            print(f"\n✓ Round results exported to: {rounds_path}")
            print(f"✓ Round metadata exported to: {meta_path}")

        if args.artifacts:
            paths = export_artifacts(result, args.artifacts)
            print(f"✓ Artifacts written to: {paths['rounds'].parent}")

        if args.verify is not None:
            verifier = ResultsVerifier(result)
            verification = verifier.verify()
            official = None
            if args.verify:
                parsed = OfficialResultsParser(args.verify).parse_results()
                official = verifier.verify_against_official(parsed)
            print("\n" + generate_verification_report(verification, official))
            if not verification["verification_passed"]:
                sys.exit(1)

        print("\n✓ STV tabulation completed successfully")

    except (TabulationError, FileNotFoundError, LookupError) as e:
        logger.error(f"Error running STV tabulation: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
