"""
Protocols describing the storage collaborator the engine relies on.

Every method is a coroutine: fetching and persisting are the only places a
booking request may wait. Implementations raise ``LookupFailure`` when the
backing store cannot answer.
"""

from __future__ import annotations

from typing import Dict, List, Protocol, Sequence

from ..domain.models import AvailabilityWindow, Commitment, TimeRange


class AvailabilityLookup(Protocol):
    """Read access to declared provider availability."""

    async def find_covering(self, time_range: TimeRange) -> List[AvailabilityWindow]:
        """Return windows that fully contain ``time_range``."""

    async def find_starting_within(self, time_range: TimeRange) -> List[AvailabilityWindow]:
        """Return windows whose start falls inside ``time_range``."""


class CommitmentLookup(Protocol):
    """Read access to confirmed commitments, always batched over provider ids."""

    async def find_conflicting(
        self,
        provider_ids: Sequence[str],
        time_range: TimeRange,
    ) -> List[Commitment]:
        """Return confirmed commitments of the providers overlapping ``time_range``."""

    async def find_within(
        self,
        provider_ids: Sequence[str],
        time_range: TimeRange,
    ) -> List[Commitment]:
        """Return confirmed commitments of the providers touching ``time_range``."""

    async def count_by_provider(self, provider_ids: Sequence[str]) -> Dict[str, int]:
        """Return confirmed commitment counts; providers without any may be absent."""


class CommitmentStore(Protocol):
    """Write access for new commitments."""

    async def create(
        self,
        requester_id: str,
        provider_id: str,
        time_range: TimeRange,
    ) -> Commitment:
        """Persist a confirmed commitment or raise ``ConflictOnCreate``."""
