import json
import logging
from pathlib import Path
from typing import Dict, Union

try:
    from ..tabulation.results import TabulationResult
    from .database import CVRDatabase
except ImportError:
    from data.database import CVRDatabase
    from tabulation.results import TabulationResult

logger = logging.getLogger(__name__)

ROUNDS_FILE = "rounds.parquet"
META_FILE = "meta.parquet"
STATS_FILE = "stats.json"


def _sql_path(path: Path) -> str:
    return str(path).replace("'", "''")


def export_artifacts(
    result: TabulationResult, output_dir: Union[str, Path]
) -> Dict[str, Path]:
    """
    Write the rounds and meta tables as parquet plus a stats.json summary.

    Args:
        result: Completed tabulation
        output_dir: Directory to write into (created if missing)

    Returns:
        Mapping of artifact name to written path
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    paths = {
        "rounds": out / ROUNDS_FILE,
        "meta": out / META_FILE,
        "stats": out / STATS_FILE,
    }

    rounds = result.rounds_frame()
    meta = result.meta_frame()

    with CVRDatabase() as db:
        db.conn.execute(
            """
            CREATE TABLE stv_rounds (
                round INTEGER,
                candidate_name VARCHAR,
                votes DOUBLE,
                status VARCHAR
            )
            """
        )
        db.conn.execute(
            """
            CREATE TABLE stv_meta (
                round INTEGER,
                quota DOUBLE,
                exhausted DOUBLE,
                elected_this_round VARCHAR[],
                eliminated_this_round VARCHAR[]
            )
            """
        )
        with db.registered("rounds_df", rounds):
            db.conn.execute("INSERT INTO stv_rounds SELECT * FROM rounds_df")
        db.conn.executemany(
            "INSERT INTO stv_meta VALUES (?, ?, ?, ?, ?)",
            [
                [
                    int(row["round"]),
                    float(row["quota"]),
                    float(row["exhausted"]),
                    row["elected_this_round"],
                    row["eliminated_this_round"],
                ]
                for row in meta.to_dict("records")
            ],
        )

        db.conn.execute(
            f"COPY stv_rounds TO '{_sql_path(paths['rounds'])}' (FORMAT 'parquet')"
        )
        db.conn.execute(
            f"COPY stv_meta TO '{_sql_path(paths['meta'])}' (FORMAT 'parquet')"
        )

    with open(paths["stats"], "w") as f:
        json.dump(
            {"stats": result.stats(), "rules": result.rules.to_dict()}, f, indent=2
        )

    logger.info(f"Exported STV rounds to: {paths['rounds']}")
    logger.info(f"Exported STV meta to: {paths['meta']}")
    return paths
