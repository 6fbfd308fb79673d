"""
Tie-break policy.

Used whenever vote totals alone do not decide who is eliminated or the order
in which simultaneous winners are listed.
"""

from decimal import Decimal
from enum import Enum
from typing import Collection, Dict, List

import numpy as np

from .rules import Rules, TieBreak


class TiePurpose(str, Enum):
    ELECT = "elect"
    ELIMINATE = "eliminate"


def break_tie(candidates: Collection[str], purpose: TiePurpose, rules: Rules) -> str:
    """
    Pick one candidate out of a tied group.

    Lexicographic picks the name that sorts first, whatever the purpose.
    Random draws from a permutation seeded by ``rules.random_seed`` over the
    sorted names, so the same seed and group always give the same answer.

    Args:
        candidates: The tied candidate names
        purpose: Whether the pick is for elimination or election order
        rules: Rules carrying the tie-break method and seed

    Returns:
        The chosen candidate name
    """
    names = sorted(set(candidates))
    if not names:
        raise ValueError(f"Cannot break a tie to {purpose.value} among no candidates")
    if len(names) == 1 or rules.tie_break is TieBreak.LEXICOGRAPHIC:
        return names[0]

    rng = np.random.default_rng(rules.random_seed)
    return names[int(rng.permutation(len(names))[0])]


def order_candidates(
    candidates: Collection[str],
    votes: Dict[str, Decimal],
    rules: Rules,
    purpose: TiePurpose = TiePurpose.ELECT,
) -> List[str]:
    """Order candidates by descending votes, resolving equal totals with break_tie."""
    remaining = set(candidates)
    ordered: List[str] = []

    while remaining:
        top = max(votes[name] for name in remaining)
        tied = {name for name in remaining if top - votes[name] <= rules.precision}
        while tied:
            choice = break_tie(tied, purpose, rules)
            ordered.append(choice)
            tied.discard(choice)
            remaining.discard(choice)

    return ordered
