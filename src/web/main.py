import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException

try:
    from ..data.ballot_loader import load_ballot_records
    from ..data.database import CVRDatabase
    from ..tabulation.errors import ConfigurationError, TabulationError
    from ..tabulation.rules import Rules
    from ..tabulation.stv import run_stv
    from ..tabulation.verification import ResultsVerifier
except ImportError:
    from data.ballot_loader import load_ballot_records
    from data.database import CVRDatabase
    from tabulation.errors import ConfigurationError, TabulationError
    from tabulation.rules import Rules
    from tabulation.stv import run_stv
    from tabulation.verification import ResultsVerifier

logger = logging.getLogger(__name__)

DATABASE_ENV_VAR = "RVA_DATABASE_PATH"

app = FastAPI(
    title="Ranked Elections Tabulator",
    description="STV round-by-round tabulation API",
)

# Global database path - connections are opened per request
db_path: Optional[str] = None


def get_database() -> CVRDatabase:
    """
    Get a read-only database handle for the configured path, falling back
    to the RVA_DATABASE_PATH environment variable.
    """
    path = db_path or os.environ.get(DATABASE_ENV_VAR)
    if not path:
        raise HTTPException(status_code=500, detail="Database not configured")
    return CVRDatabase(path, read_only=True)


def set_database_path(path: str):
    """Set the database path for the application."""
    global db_path
    db_path = path
    os.environ[DATABASE_ENV_VAR] = path
    logger.info(f"Database path set to: {path}")

    # Test connection to ensure database is accessible
    with CVRDatabase(path, read_only=True) as test_db:
        test_db.table_exists("ballots_long")
    logger.info("Database connection test successful")


def _tabulate(
    seats: int, tie_break: str, seed: Optional[int], precision: Optional[float]
):
    try:
        rules = Rules(
            seats=seats,
            tie_break=tie_break,
            random_seed=seed,
            **({"precision": precision} if precision is not None else {}),
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    with get_database() as database:
        if not database.table_exists("ballots_long"):
            raise HTTPException(status_code=400, detail="No data loaded")
        records = load_ballot_records(database)

    try:
        return run_stv(records, rules)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TabulationError as e:
        logger.error(f"Error running STV: {e}")
        raise HTTPException(status_code=500, detail=f"STV calculation failed: {e}")


@app.get("/api/stv-results")
async def get_stv_results(
    seats: int = 3,
    tie_break: str = "lexicographic",
    seed: Optional[int] = None,
    precision: Optional[float] = None,
):
    """Run STV tabulation and return rounds, meta, winners and summary."""
    result = _tabulate(seats, tie_break, seed, precision)
    return result.to_dict()


@app.get("/api/stv-rounds/{round_number}")
async def get_stv_round(
    round_number: int,
    seats: int = 3,
    tie_break: str = "lexicographic",
    seed: Optional[int] = None,
):
    """Candidate totals and round metadata for a single round."""
    result = _tabulate(seats, tie_break, seed, None)
    data = result.to_dict()

    meta = next((m for m in data["meta"] if m["round"] == round_number), None)
    if meta is None:
        raise HTTPException(
            status_code=404,
            detail=f"Round {round_number} not found; count has "
            f"{result.summary.number_of_rounds} rounds",
        )

    return {
        "meta": meta,
        "candidates": [row for row in data["rounds"] if row["round"] == round_number],
    }


@app.get("/api/verify-results")
async def verify_results(seats: int = 3):
    """Run the count and its internal consistency checks."""
    result = _tabulate(seats, "lexicographic", None, None)
    verification = ResultsVerifier(result).verify()
    return {
        "verification_passed": verification["verification_passed"],
        "checks": verification["checks"],
        "winners": result.winners,
    }
