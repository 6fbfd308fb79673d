import logging
from typing import List

import pandas as pd

try:
    from ..tabulation.ballots import BallotRecord
    from .database import CVRDatabase
except ImportError:
    from data.database import CVRDatabase
    from tabulation.ballots import BallotRecord

logger = logging.getLogger(__name__)

BALLOT_COLUMNS = ["BallotID", "candidate_name", "rank_position"]

BALLOTS_QUERY = """
    SELECT
        BallotID,
        candidate_name,
        rank_position
    FROM ballots_long
    WHERE has_vote = 1
    ORDER BY BallotID, rank_position
"""


def records_from_frame(frame: pd.DataFrame) -> List[BallotRecord]:
    """
    Convert a ballots_long-shaped DataFrame to ballot records.

    Args:
        frame: DataFrame with BallotID, candidate_name and rank_position columns

    Returns:
        List of BallotRecord in frame order
    """
    missing = [column for column in BALLOT_COLUMNS if column not in frame.columns]
    if missing:
        raise KeyError(f"Ballot data missing columns: {', '.join(missing)}")

    return [
        BallotRecord(str(ballot_id), str(candidate), int(rank))
        for ballot_id, candidate, rank in frame[BALLOT_COLUMNS].itertuples(
            index=False, name=None
        )
    ]


def load_ballot_records(db: CVRDatabase) -> List[BallotRecord]:
    """
    Load ballot-preference rows from the ballots_long table.

    Args:
        db: Database with normalized ballot data

    Returns:
        List of BallotRecord ordered by ballot and rank
    """
    if not db.table_exists("ballots_long"):
        raise LookupError("Required table 'ballots_long' not found")

    frame = db.query(BALLOTS_QUERY)
    logger.info(
        f"Loaded {len(frame)} ballot records "
        f"({frame['BallotID'].nunique() if not frame.empty else 0} ballots)"
    )
    return records_from_frame(frame)
