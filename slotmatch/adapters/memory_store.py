"""
In-memory storage adapter with optional JSON persistence.

Implements the availability and commitment protocols the booking service
needs, plus the bookkeeping a provider or requester dashboard relies on.
The overlap check in ``create`` runs under a lock, so two concurrent requests
can never both commit the same provider for overlapping ranges.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, List, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    ConflictOnCreate,
    InvalidTimeRange,
    LookupFailure,
    OverlappingAvailability,
)
from ..domain.intervals import contains, overlaps
from ..domain.models import AvailabilityWindow, Commitment, CommitmentStatus, TimeRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityPage:
    """One page of a provider's windows with the commitments inside each."""
    items: List[tuple[AvailabilityWindow, List[Commitment]]]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.total else 0


class InMemoryBookingStore:
    """
    Dictionary-backed store for providers, availability and commitments.

    Every lookup returns fresh lists; stored records are immutable dataclasses
    so callers can never alter the store through a returned value.
    """

    def __init__(self, clock: Callable[[], DateTime] = pendulum.now):
        self._clock = clock
        self._providers: Dict[str, str] = {}
        self._availability: List[AvailabilityWindow] = []
        self._commitments: Dict[str, Commitment] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Providers and availability
    # ------------------------------------------------------------------

    def add_provider(self, provider_id: str, name: str) -> None:
        self._providers[provider_id] = name

    def provider_name(self, provider_id: str) -> str:
        return self._providers.get(provider_id, "")

    def add_availability(
        self,
        provider_id: str,
        time_range: TimeRange,
        *,
        window_id: str | None = None,
        require_future: bool = True,
    ) -> AvailabilityWindow:
        """
        Declare a new availability window for a provider.

        Raises:
            KeyError: If the provider is unknown
            InvalidTimeRange: If the window does not start in the future
            OverlappingAvailability: If it overlaps one of the provider's windows
        """
        if provider_id not in self._providers:
            raise KeyError(f"Unknown provider: {provider_id}")

        if require_future and time_range.start <= self._clock():
            raise InvalidTimeRange("Start time must be in the future")

        for existing in self._availability:
            if existing.provider_id == provider_id and overlaps(existing.range, time_range):
                raise OverlappingAvailability(
                    "This time slot overlaps with existing availability"
                )

        window = AvailabilityWindow(
            provider_id=provider_id,
            range=time_range,
            provider_name=self._providers[provider_id],
            id=window_id or str(uuid.uuid4()),
        )
        self._availability.append(window)
        return window

    async def find_covering(self, time_range: TimeRange) -> List[AvailabilityWindow]:
        return [w for w in self._availability if contains(w.range, time_range)]

    async def find_starting_within(self, time_range: TimeRange) -> List[AvailabilityWindow]:
        return [
            w for w in self._availability
            if time_range.start <= w.range.start < time_range.end
        ]

    async def availability_for_provider(
        self,
        provider_id: str,
        page: int = 1,
        limit: int = 5,
    ) -> AvailabilityPage:
        """
        Page through a provider's windows, newest first, with their commitments.

        Commitments for the whole page are collected with one scan over the
        page's bounding range and then grouped per window.
        """
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")

        windows = sorted(
            (w for w in self._availability if w.provider_id == provider_id),
            key=lambda w: w.range.start,
            reverse=True,
        )
        offset = (page - 1) * limit
        page_windows = windows[offset:offset + limit]

        if not page_windows:
            return AvailabilityPage(items=[], total=len(windows), page=page, limit=limit)

        bounds = TimeRange(
            start=min(w.range.start for w in page_windows),
            end=max(w.range.end for w in page_windows),
        )
        in_bounds = sorted(
            (
                c for c in self._commitments.values()
                if c.provider_id == provider_id and overlaps(c.range, bounds)
            ),
            key=lambda c: c.range.start,
        )

        items = [
            (window, [c for c in in_bounds if overlaps(c.range, window.range)])
            for window in page_windows
        ]
        return AvailabilityPage(items=items, total=len(windows), page=page, limit=limit)

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------

    def add_commitment(self, commitment: Commitment) -> None:
        """Insert an existing commitment as-is (seeding, imports)."""
        self._commitments[commitment.id] = commitment

    def _confirmed(self, provider_ids: Sequence[str]) -> List[Commitment]:
        wanted = set(provider_ids)
        return [
            c for c in self._commitments.values()
            if c.is_confirmed and c.provider_id in wanted
        ]

    async def find_conflicting(
        self,
        provider_ids: Sequence[str],
        time_range: TimeRange,
    ) -> List[Commitment]:
        return [c for c in self._confirmed(provider_ids) if overlaps(c.range, time_range)]

    async def find_within(
        self,
        provider_ids: Sequence[str],
        time_range: TimeRange,
    ) -> List[Commitment]:
        return [c for c in self._confirmed(provider_ids) if overlaps(c.range, time_range)]

    async def count_by_provider(self, provider_ids: Sequence[str]) -> Dict[str, int]:
        return dict(Counter(c.provider_id for c in self._confirmed(provider_ids)))

    async def create(
        self,
        requester_id: str,
        provider_id: str,
        time_range: TimeRange,
    ) -> Commitment:
        """
        Persist a confirmed commitment.

        Raises:
            ConflictOnCreate: If the provider already holds an overlapping
                confirmed commitment
        """
        async with self._lock:
            for existing in self._confirmed([provider_id]):
                if overlaps(existing.range, time_range):
                    raise ConflictOnCreate(
                        f"Provider {provider_id} is already booked for {existing.range}"
                    )

            commitment = Commitment(
                id=str(uuid.uuid4()),
                requester_id=requester_id,
                provider_id=provider_id,
                range=time_range,
                status=CommitmentStatus.CONFIRMED,
                created_at=self._clock(),
            )
            self._commitments[commitment.id] = commitment

        logger.debug("Stored commitment %s for provider %s", commitment.id, provider_id)
        return commitment

    async def bookings_for_requester(self, requester_id: str) -> List[Commitment]:
        """All of a requester's commitments, latest start first."""
        return sorted(
            (c for c in self._commitments.values() if c.requester_id == requester_id),
            key=lambda c: c.range.start,
            reverse=True,
        )

    async def bookings_for_provider(self, provider_id: str) -> List[Commitment]:
        """All commitments assigned to a provider, latest start first."""
        return sorted(
            (c for c in self._commitments.values() if c.provider_id == provider_id),
            key=lambda c: c.range.start,
            reverse=True,
        )

    async def complete(self, commitment_id: str) -> Commitment:
        return await self._transition(commitment_id, CommitmentStatus.COMPLETED)

    async def cancel(self, commitment_id: str) -> Commitment:
        return await self._transition(commitment_id, CommitmentStatus.CANCELLED)

    async def _transition(self, commitment_id: str, status: CommitmentStatus) -> Commitment:
        async with self._lock:
            current = self._commitments.get(commitment_id)
            if current is None:
                raise KeyError(f"Unknown commitment: {commitment_id}")
            if not current.is_confirmed:
                raise ValueError(
                    f"Commitment {commitment_id} is {current.status.value}; "
                    f"only confirmed commitments can become {status.value}"
                )
            updated = replace(current, status=status)
            self._commitments[commitment_id] = updated
        return updated

    # ------------------------------------------------------------------
    # JSON persistence
    # ------------------------------------------------------------------

    @classmethod
    def load_json(
        cls,
        path: Path,
        timezone: str = "UTC",
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> "InMemoryBookingStore":
        """
        Load providers, availability and commitments from a JSON file.

        A missing file yields an empty store.

        Raises:
            LookupFailure: If the file cannot be read or parsed
        """
        store = cls(clock=clock)
        if not path.exists():
            return store

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            for provider in data.get("providers", []):
                store.add_provider(provider["id"], provider["name"])

            for item in data.get("availability", []):
                store.add_availability(
                    item["providerId"],
                    _parse_range(item, timezone),
                    window_id=item.get("id"),
                    require_future=False,
                )

            for item in data.get("commitments", []):
                created_at = item.get("createdAt")
                store.add_commitment(
                    Commitment(
                        id=item["id"],
                        requester_id=item["requesterId"],
                        provider_id=item["providerId"],
                        range=_parse_range(item, timezone),
                        status=CommitmentStatus(item.get("status", "confirmed")),
                        created_at=pendulum.parse(created_at, tz=timezone) if created_at else None,
                    )
                )
        except (OSError, json.JSONDecodeError) as exc:
            raise LookupFailure(f"Could not read booking data from {path}: {exc}") from exc
        except (KeyError, TypeError, ValueError, AttributeError, OverlappingAvailability) as exc:
            raise LookupFailure(f"Invalid booking data in {path}: {exc}") from exc

        return store

    def save_json(self, path: Path) -> None:
        """
        Write the store to a JSON file.

        Raises:
            LookupFailure: If the file cannot be written
        """
        data = {
            "providers": [
                {"id": provider_id, "name": name}
                for provider_id, name in self._providers.items()
            ],
            "availability": [
                {
                    "id": w.id,
                    "providerId": w.provider_id,
                    "startTime": w.range.start.to_iso8601_string(),
                    "endTime": w.range.end.to_iso8601_string(),
                }
                for w in self._availability
            ],
            "commitments": [
                {
                    "id": c.id,
                    "requesterId": c.requester_id,
                    "providerId": c.provider_id,
                    "startTime": c.range.start.to_iso8601_string(),
                    "endTime": c.range.end.to_iso8601_string(),
                    "status": c.status.value,
                    "createdAt": c.created_at.to_iso8601_string() if c.created_at else None,
                }
                for c in self._commitments.values()
            ],
        }

        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as exc:
            raise LookupFailure(f"Could not write booking data to {path}: {exc}") from exc


def _parse_range(item: dict, timezone: str) -> TimeRange:
    start = pendulum.parse(item["startTime"], tz=timezone)
    end = pendulum.parse(item["endTime"], tz=timezone)
    if not isinstance(start, DateTime) or not isinstance(end, DateTime):
        raise ValueError(f"Could not parse datetime range: {item}")
    return TimeRange(start=start, end=end)
