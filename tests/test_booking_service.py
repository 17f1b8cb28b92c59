"""
Tests for the BookingService orchestration layer.
"""

import asyncio

import pendulum
import pytest

from slotmatch.adapters.memory_store import InMemoryBookingStore
from slotmatch.config import MatchingConfig
from slotmatch.domain.exceptions import (
    ConflictOnCreate,
    InvalidTimeRange,
    LookupFailure,
    NoProviderAvailable,
)
from slotmatch.domain.models import Candidate, Commitment, CommitmentStatus, TimeRange
from slotmatch.domain.selection import SelectionMode
from slotmatch.services.booking_service import BookingService
from slotmatch.services.outcomes import Assigned, Invalid, NoMatch, raise_for_outcome

NOW = pendulum.parse("2030-06-01 00:00", tz="UTC")


def _range(start: str, end: str) -> TimeRange:
    return TimeRange(start=pendulum.parse(start, tz="UTC"), end=pendulum.parse(end, tz="UTC"))


def _store(**providers: str) -> InMemoryBookingStore:
    store = InMemoryBookingStore(clock=lambda: NOW)
    for provider_id, name in providers.items():
        store.add_provider(provider_id, name)
    return store


def _service(store, strategy: SelectionMode = SelectionMode.MOST) -> BookingService:
    config = MatchingConfig(selection_strategy=strategy)
    return BookingService.from_store(store, config, clock=lambda: NOW)


def _past_commitments(store: InMemoryBookingStore, provider_id: str, count: int) -> None:
    for day in range(1, count + 1):
        store.add_commitment(
            Commitment(
                id=f"{provider_id}-old-{day}",
                requester_id="someone",
                provider_id=provider_id,
                range=_range(f"2030-05-{day:02d} 09:00", f"2030-05-{day:02d} 10:00"),
            )
        )


class ExplodingStore:
    """Fails the test if any lookup is made."""

    def __getattr__(self, name):
        raise AssertionError(f"Unexpected store call: {name}")


class TestBookingScenarios:
    """End-to-end booking scenarios against the in-memory store."""

    def test_single_available_provider_is_booked(self):
        store = _store(p="Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))

        outcome = asyncio.run(
            _service(store).request_booking(
                "customer-1",
                pendulum.parse("2030-06-03 10:00", tz="UTC"),
                pendulum.parse("2030-06-03 12:00", tz="UTC"),
            )
        )

        assert isinstance(outcome, Assigned)
        assert outcome.provider.provider_id == "p"
        assert outcome.commitment.range == _range("2030-06-03 10:00", "2030-06-03 12:00")
        assert outcome.commitment.status is CommitmentStatus.CONFIRMED
        assert asyncio.run(store.bookings_for_requester("customer-1")) == [outcome.commitment]

    def test_most_booked_provider_wins(self):
        store = _store(p1="Alex", p2="Blake")
        for provider_id in ("p1", "p2"):
            store.add_availability(provider_id, _range("2030-06-03 09:00", "2030-06-03 17:00"))
        _past_commitments(store, "p1", 3)
        _past_commitments(store, "p2", 1)

        outcome = asyncio.run(_service(store).book("customer-1", _range("2030-06-03 13:00", "2030-06-03 14:00")))

        assert isinstance(outcome, Assigned)
        assert outcome.provider.provider_id == "p1"

    def test_least_strategy_spreads_work(self):
        store = _store(p1="Alex", p2="Blake")
        for provider_id in ("p1", "p2"):
            store.add_availability(provider_id, _range("2030-06-03 09:00", "2030-06-03 17:00"))
        _past_commitments(store, "p1", 3)
        _past_commitments(store, "p2", 1)

        outcome = asyncio.run(
            _service(store, SelectionMode.LEAST).book("customer-1", _range("2030-06-03 13:00", "2030-06-03 14:00"))
        )

        assert outcome.provider.provider_id == "p2"

    def test_conflict_yields_recommendations(self):
        store = _store(p="Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))
        asyncio.run(store.create("customer-0", "p", _range("2030-06-03 10:00", "2030-06-03 12:00")))

        outcome = asyncio.run(_service(store).book("customer-1", _range("2030-06-03 11:00", "2030-06-03 13:00")))

        assert isinstance(outcome, NoMatch)
        first = outcome.recommendations[0]
        assert first.range == _range("2030-06-03 12:00", "2030-06-03 17:00")
        assert first.distance.total_seconds() == 0

    def test_empty_range_is_rejected_before_any_lookup(self):
        service = BookingService(ExplodingStore(), ExplodingStore(), ExplodingStore(), clock=lambda: NOW)
        instant = pendulum.parse("2030-06-03 10:00", tz="UTC")

        outcome = asyncio.run(service.request_booking("customer-1", instant, instant))

        assert isinstance(outcome, Invalid)
        assert outcome.to_payload() == {"message": "Start time must be before end time", "statusCode": 400}

    def test_no_availability_at_all(self):
        store = _store()

        outcome = asyncio.run(_service(store).book("customer-1", _range("2030-06-03 10:00", "2030-06-03 12:00")))

        assert isinstance(outcome, NoMatch)
        assert outcome.recommendations == ()
        assert outcome.to_payload() == {
            "error": "No providers are available for the requested time slot.",
            "recommendations": [],
        }


class RacingStore(InMemoryBookingStore):
    """Store whose first ``failures`` creates lose a race."""

    def __init__(self, failures: int):
        super().__init__(clock=lambda: NOW)
        self.failures = failures
        self.create_calls = 0

    async def create(self, requester_id, provider_id, time_range):
        self.create_calls += 1
        if self.create_calls <= self.failures:
            raise ConflictOnCreate("lost the race")
        return await super().create(requester_id, provider_id, time_range)


class YieldingStore(InMemoryBookingStore):
    """Yields to the event loop during conflict checks so requests interleave."""

    async def find_conflicting(self, provider_ids, time_range):
        await asyncio.sleep(0)
        return await super().find_conflicting(provider_ids, time_range)


class FailingStore(InMemoryBookingStore):
    async def find_covering(self, time_range):
        raise LookupFailure("database unreachable")


class TestConflictHandling:
    """Tests for races lost at persistence time."""

    def test_single_conflict_is_retried(self):
        store = RacingStore(failures=1)
        store.add_provider("p", "Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))

        outcome = asyncio.run(_service(store).book("customer-1", _range("2030-06-03 10:00", "2030-06-03 12:00")))

        assert isinstance(outcome, Assigned)
        assert store.create_calls == 2

    def test_second_conflict_gives_up_with_recommendations(self):
        store = RacingStore(failures=2)
        store.add_provider("p", "Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))

        outcome = asyncio.run(_service(store).book("customer-1", _range("2030-06-03 10:00", "2030-06-03 12:00")))

        assert isinstance(outcome, NoMatch)
        assert store.create_calls == 2
        assert outcome.recommendations

    def test_concurrent_requests_never_double_book(self):
        store = YieldingStore(clock=lambda: NOW)
        store.add_provider("p", "Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))
        service = _service(store)
        request = _range("2030-06-03 10:00", "2030-06-03 12:00")

        async def race():
            return await asyncio.gather(
                service.book("customer-1", request),
                service.book("customer-2", request),
            )

        outcomes = asyncio.run(race())

        assert sorted(type(o).__name__ for o in outcomes) == ["Assigned", "NoMatch"]
        assert len(asyncio.run(store.bookings_for_provider("p"))) == 1

    def test_lookup_failure_propagates(self):
        store = FailingStore(clock=lambda: NOW)

        with pytest.raises(LookupFailure):
            asyncio.run(_service(store).book("customer-1", _range("2030-06-03 10:00", "2030-06-03 12:00")))


class TestWireRequests:
    """Tests for JSON-shaped requests and responses."""

    def test_successful_payload(self):
        store = _store(p="Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))

        outcome = asyncio.run(
            _service(store).handle_request(
                "customer-1",
                {"startTime": "2030-06-03T10:00:00Z", "endTime": "2030-06-03T12:00:00Z"},
            )
        )
        payload = outcome.to_payload()

        assert payload["bookingId"] == outcome.commitment.id
        assert payload["provider"] == {"id": "p", "name": "Pat"}
        assert payload["status"] == "confirmed"
        assert pendulum.parse(payload["startTime"]) == pendulum.parse("2030-06-03 10:00", tz="UTC")
        assert pendulum.parse(payload["endTime"]) == pendulum.parse("2030-06-03 12:00", tz="UTC")

    def test_no_match_payload_lists_recommendations(self):
        store = _store(p="Pat")
        store.add_availability("p", _range("2030-06-03 09:00", "2030-06-03 17:00"))

        outcome = asyncio.run(
            _service(store).handle_request(
                "customer-1",
                {"startTime": "2030-06-03T18:00:00Z", "endTime": "2030-06-03T19:00:00Z"},
            )
        )
        payload = outcome.to_payload()

        assert payload["error"] == "No providers are available for the requested time slot."
        assert payload["recommendations"][0]["providerId"] == "p"
        assert payload["recommendations"][0]["providerName"] == "Pat"
        assert set(payload["recommendations"][0]) == {"providerId", "providerName", "startTime", "endTime"}

    def test_inverted_range_is_invalid(self):
        service = BookingService(ExplodingStore(), ExplodingStore(), ExplodingStore(), clock=lambda: NOW)

        outcome = asyncio.run(
            service.handle_request(
                "customer-1",
                {"startTime": "2030-06-03T12:00:00Z", "endTime": "2030-06-03T10:00:00Z"},
            )
        )

        assert outcome == Invalid(reason="Start time must be before end time")

    def test_malformed_timestamps_are_invalid(self):
        service = BookingService(ExplodingStore(), ExplodingStore(), ExplodingStore(), clock=lambda: NOW)

        outcome = asyncio.run(service.handle_request("customer-1", {"startTime": "tomorrow-ish"}))

        assert isinstance(outcome, Invalid)
        assert "startTime" in outcome.reason
        assert "endTime" in outcome.reason
        assert outcome.to_payload()["statusCode"] == 400

    @pytest.mark.parametrize("payload", [["2030-06-03T10:00:00Z", "2030-06-03T12:00:00Z"], "not a mapping", None])
    def test_non_mapping_payload_is_invalid(self, payload):
        service = BookingService(ExplodingStore(), ExplodingStore(), ExplodingStore(), clock=lambda: NOW)

        outcome = asyncio.run(service.handle_request("customer-1", payload))

        assert isinstance(outcome, Invalid)
        assert outcome.reason.startswith("Invalid booking request: ")


class TestRaiseForOutcome:
    """Tests for converting outcomes into exceptions."""

    def test_assigned_is_returned(self):
        commitment = Commitment(
            id="b1", requester_id="c", provider_id="p", range=_range("2030-06-03 10:00", "2030-06-03 11:00")
        )
        outcome = Assigned(commitment=commitment, provider=Candidate("p", "Pat"))

        assert raise_for_outcome(outcome) is outcome

    def test_no_match_raises_with_recommendations(self):
        with pytest.raises(NoProviderAvailable) as excinfo:
            raise_for_outcome(NoMatch())

        assert excinfo.value.recommendations == []

    def test_invalid_raises(self):
        with pytest.raises(InvalidTimeRange):
            raise_for_outcome(Invalid())
