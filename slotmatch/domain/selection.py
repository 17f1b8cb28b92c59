"""
Deterministic provider selection.

Commitment count is the quality signal; provider id breaks ties so equal
counts (including brand-new providers at zero) always resolve the same way.
"""

from enum import Enum
from typing import Dict, List, Sequence

from .models import Candidate


class SelectionMode(str, Enum):
    MOST = "most"
    LEAST = "least"


def rank_candidates(
    candidates: Sequence[Candidate],
    counts: Dict[str, int],
    mode: SelectionMode = SelectionMode.MOST,
) -> List[Candidate]:
    """
    Order candidates best first.

    ``most`` sorts by descending count, ``least`` by ascending count; both
    then by ascending provider id. Providers missing from ``counts`` have
    zero commitments.
    """
    if mode is SelectionMode.MOST:
        def key(candidate: Candidate):
            return (-counts.get(candidate.provider_id, 0), candidate.provider_id)
    else:
        def key(candidate: Candidate):
            return (counts.get(candidate.provider_id, 0), candidate.provider_id)

    return sorted(candidates, key=key)


def pick_candidate(
    candidates: Sequence[Candidate],
    counts: Dict[str, int],
    mode: SelectionMode = SelectionMode.MOST,
) -> Candidate:
    """Return the single best candidate; ``candidates`` must not be empty."""
    if not candidates:
        raise ValueError("Cannot select a provider from an empty candidate list")
    return rank_candidates(candidates, counts, mode)[0]
