"""
Selection strategy backed by confirmed commitment counts.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..domain.models import Candidate
from ..domain.selection import SelectionMode, pick_candidate
from .protocols import CommitmentLookup

logger = logging.getLogger(__name__)


class SelectionStrategy:
    """
    Picks one provider out of the matcher's candidates.

    Counts for all candidates are fetched in one grouped lookup. A lone
    candidate wins without asking the store at all.
    """

    def __init__(
        self,
        commitment_lookup: CommitmentLookup,
        mode: SelectionMode = SelectionMode.MOST,
    ) -> None:
        self._commitments = commitment_lookup
        self.mode = SelectionMode(mode)

    async def select(self, candidates: Sequence[Candidate]) -> Candidate:
        if not candidates:
            raise ValueError("Cannot select a provider from an empty candidate list")

        if len(candidates) == 1:
            return candidates[0]

        counts = await self._commitments.count_by_provider(
            [candidate.provider_id for candidate in candidates]
        )
        selected = pick_candidate(candidates, counts, self.mode)

        logger.debug(
            "Selected %s (%d commitments) from %d candidates using '%s'",
            selected.provider_id,
            counts.get(selected.provider_id, 0),
            len(candidates),
            self.mode.value,
        )
        return selected
