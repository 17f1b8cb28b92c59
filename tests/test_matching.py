"""
Tests for the conflict detector and availability matcher.
"""

import asyncio
from typing import Dict, List

import pendulum

from slotmatch.domain.intervals import contains, overlaps
from slotmatch.domain.models import (
    AvailabilityWindow,
    Candidate,
    Commitment,
    CommitmentStatus,
    TimeRange,
)
from slotmatch.services.matching import AvailabilityMatcher, ConflictDetector


def _range(start: str, end: str) -> TimeRange:
    return TimeRange(
        start=pendulum.parse(start, tz="Europe/Berlin"),
        end=pendulum.parse(end, tz="Europe/Berlin"),
    )


def _window(provider_id: str, start: str, end: str) -> AvailabilityWindow:
    return AvailabilityWindow(
        provider_id=provider_id,
        range=_range(start, end),
        provider_name=f"Painter {provider_id}",
    )


def _commitment(provider_id: str, start: str, end: str, status=CommitmentStatus.CONFIRMED) -> Commitment:
    return Commitment(
        id=f"{provider_id}-{start}",
        requester_id="customer",
        provider_id=provider_id,
        range=_range(start, end),
        status=status,
    )


class StubLookup:
    """Minimal stub matching the availability and commitment lookups."""

    def __init__(self, windows: List[AvailabilityWindow], commitments: List[Commitment]):
        self._windows = windows
        self._commitments = commitments
        self.calls: List[Dict[str, object]] = []

    async def find_covering(self, time_range):
        self.calls.append({"method": "find_covering"})
        return [w for w in self._windows if contains(w.range, time_range)]

    async def find_conflicting(self, provider_ids, time_range):
        self.calls.append({"method": "find_conflicting", "ids": tuple(provider_ids)})
        # Deliberately loose: returns every commitment of the providers
        return [c for c in self._commitments if c.provider_id in provider_ids]


class TestConflictDetector:
    """Tests for ConflictDetector."""

    def test_flags_only_overlapping_confirmed_commitments(self):
        lookup = StubLookup(
            windows=[],
            commitments=[
                _commitment("p1", "2030-06-03 10:00", "2030-06-03 12:00"),
                _commitment("p2", "2030-06-03 12:00", "2030-06-03 13:00"),
                _commitment("p3", "2030-06-03 10:00", "2030-06-03 12:00", CommitmentStatus.CANCELLED),
            ],
        )
        detector = ConflictDetector(lookup)

        busy = asyncio.run(
            detector.find_conflicting(["p1", "p2", "p3"], _range("2030-06-03 11:00", "2030-06-03 12:00"))
        )

        assert busy == {"p1"}

    def test_uses_one_batched_lookup(self):
        lookup = StubLookup(windows=[], commitments=[])
        detector = ConflictDetector(lookup)

        asyncio.run(
            detector.find_conflicting(
                ["p1", "p2", "p1", "p3"],
                _range("2030-06-03 11:00", "2030-06-03 12:00"),
            )
        )

        assert lookup.calls == [{"method": "find_conflicting", "ids": ("p1", "p2", "p3")}]

    def test_empty_id_set_skips_lookup(self):
        lookup = StubLookup(windows=[], commitments=[])
        detector = ConflictDetector(lookup)

        busy = asyncio.run(detector.find_conflicting([], _range("2030-06-03 11:00", "2030-06-03 12:00")))

        assert busy == set()
        assert lookup.calls == []


class TestAvailabilityMatcher:
    """Tests for AvailabilityMatcher."""

    def _matcher(self, windows, commitments):
        lookup = StubLookup(windows=windows, commitments=commitments)
        return AvailabilityMatcher(lookup, ConflictDetector(lookup)), lookup

    def test_returns_free_covering_providers_in_discovery_order(self):
        matcher, _ = self._matcher(
            windows=[
                _window("p2", "2030-06-03 09:00", "2030-06-03 17:00"),
                _window("p1", "2030-06-03 08:00", "2030-06-03 18:00"),
                _window("p3", "2030-06-03 11:00", "2030-06-03 17:00"),
            ],
            commitments=[],
        )

        candidates = asyncio.run(matcher.find_candidates(_range("2030-06-03 10:00", "2030-06-03 12:00")))

        assert candidates == [
            Candidate(provider_id="p2", display_name="Painter p2"),
            Candidate(provider_id="p1", display_name="Painter p1"),
        ]

    def test_excludes_providers_with_conflicts(self):
        matcher, _ = self._matcher(
            windows=[
                _window("p1", "2030-06-03 09:00", "2030-06-03 17:00"),
                _window("p2", "2030-06-03 09:00", "2030-06-03 17:00"),
            ],
            commitments=[_commitment("p1", "2030-06-03 10:00", "2030-06-03 12:00")],
        )

        candidates = asyncio.run(matcher.find_candidates(_range("2030-06-03 11:00", "2030-06-03 13:00")))

        assert [c.provider_id for c in candidates] == ["p2"]

    def test_adjacent_commitment_is_not_a_conflict(self):
        matcher, _ = self._matcher(
            windows=[_window("p1", "2030-06-03 09:00", "2030-06-03 17:00")],
            commitments=[_commitment("p1", "2030-06-03 10:00", "2030-06-03 12:00")],
        )

        candidates = asyncio.run(matcher.find_candidates(_range("2030-06-03 12:00", "2030-06-03 13:00")))

        assert [c.provider_id for c in candidates] == ["p1"]

    def test_no_covering_window_returns_empty_without_conflict_lookup(self):
        matcher, lookup = self._matcher(
            windows=[_window("p1", "2030-06-03 09:00", "2030-06-03 12:00")],
            commitments=[],
        )

        candidates = asyncio.run(matcher.find_candidates(_range("2030-06-03 11:00", "2030-06-03 13:00")))

        assert candidates == []
        assert [call["method"] for call in lookup.calls] == ["find_covering"]

    def test_every_candidate_is_covered_and_conflict_free(self):
        windows = [
            _window("p1", "2030-06-03 09:00", "2030-06-03 17:00"),
            _window("p2", "2030-06-03 09:00", "2030-06-03 11:30"),
            _window("p3", "2030-06-03 10:00", "2030-06-03 14:00"),
            _window("p4", "2030-06-03 06:00", "2030-06-03 20:00"),
        ]
        commitments = [
            _commitment("p1", "2030-06-03 09:00", "2030-06-03 10:30"),
            _commitment("p3", "2030-06-03 13:00", "2030-06-03 14:00"),
            _commitment("p4", "2030-06-03 11:59", "2030-06-03 12:30"),
        ]
        matcher, _ = self._matcher(windows, commitments)

        for start, end in [("10:00", "11:00"), ("10:30", "12:00"), ("12:00", "13:00"), ("09:00", "09:30")]:
            request = _range(f"2030-06-03 {start}", f"2030-06-03 {end}")
            candidates = asyncio.run(matcher.find_candidates(request))

            for candidate in candidates:
                assert any(
                    w.provider_id == candidate.provider_id and contains(w.range, request)
                    for w in windows
                )
                assert not any(
                    c.provider_id == candidate.provider_id and overlaps(c.range, request)
                    for c in commitments
                )

    def test_repeated_calls_are_identical(self):
        matcher, _ = self._matcher(
            windows=[
                _window("p1", "2030-06-03 09:00", "2030-06-03 17:00"),
                _window("p2", "2030-06-03 09:00", "2030-06-03 17:00"),
            ],
            commitments=[],
        )
        request = _range("2030-06-03 10:00", "2030-06-03 11:00")

        first = asyncio.run(matcher.find_candidates(request))
        second = asyncio.run(matcher.find_candidates(request))

        assert first == second
