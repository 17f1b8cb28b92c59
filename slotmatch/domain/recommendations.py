"""
Core logic for suggesting alternative free ranges when no provider matches.

Pure domain logic: the caller fetches availability and commitments, this
module turns them into a ranked list of ``Recommendation`` values.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Sequence

from pendulum import DateTime

from .intervals import subtract
from .models import AvailabilityWindow, Commitment, Recommendation, TimeRange, elapsed


@dataclass(frozen=True)
class RecommendationPolicy:
    """
    Tuning knobs for the recommendation search.

    The effective minimum length of a suggested range is
    ``max(min_duration_minutes, requested * min_duration_percent / 100)``.
    """
    window_days: int = 7
    min_duration_percent: int = 50
    min_duration_minutes: int = 30
    max_results: int = 10
    buffer_minutes: int = 0

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)


class RecommendationCalculator:
    """
    Ranks free ranges around a request.

    Algorithm:
    1. Bound the search to ``window_days`` on either side of the request start
    2. Group confirmed commitments by provider in one pass
    3. Subtract each provider's commitments from each of their windows
    4. Drop ranges shorter than the effective minimum
    5. Sort by distance, then duration fit, then length
    """

    def __init__(self, policy: RecommendationPolicy):
        self.policy = policy

    def search_window(self, request: TimeRange, now: DateTime) -> TimeRange | None:
        """
        Return the range whose availability is worth scanning.

        Returns None when the window would be empty, e.g. for a request
        lying entirely in the past.
        """
        horizon = timedelta(days=self.policy.window_days)
        start = max(now, request.start - horizon)
        end = request.start + horizon
        if start >= end:
            return None
        return TimeRange(start=start, end=end)

    @staticmethod
    def fetch_range(search: TimeRange, windows: Sequence[AvailabilityWindow]) -> TimeRange:
        """
        Widen the search window to cover every fetched availability window.

        Windows only need to start inside the search window, so their ends may
        reach past it; commitments there still have to be subtracted.
        """
        start = min([search.start] + [w.range.start for w in windows])
        end = max([search.end] + [w.range.end for w in windows])
        return TimeRange(start=start, end=end)

    def minimum_duration(self, request: TimeRange) -> timedelta:
        """Effective minimum length for a recommended range."""
        relative = request.duration() * self.policy.min_duration_percent / 100
        return max(timedelta(minutes=self.policy.min_duration_minutes), relative)

    @staticmethod
    def distance(free: TimeRange, request: TimeRange) -> timedelta:
        """Gap between a free range and the requested one; zero when they overlap."""
        if free.end <= request.start:
            return elapsed(free.end, request.start)
        if free.start >= request.end:
            return elapsed(request.end, free.start)
        return timedelta(0)

    def find_recommendations(
        self,
        request: TimeRange,
        windows: Iterable[AvailabilityWindow],
        commitments: Iterable[Commitment],
    ) -> List[Recommendation]:
        """
        Compute ranked alternatives for ``request``.

        Args:
            request: The range nobody could take
            windows: Availability windows inside the search window
            commitments: Commitments of the providers owning ``windows``

        Returns:
            At most ``max_results`` recommendations, closest first
        """
        busy_by_provider = self._group_by_provider(commitments)
        minimum = self.minimum_duration(request)
        requested = request.duration()

        recommendations: List[Recommendation] = []

        for window in windows:
            free_ranges = subtract(
                window.range,
                busy_by_provider.get(window.provider_id, []),
                buffer=self.policy.buffer,
            )

            for free in free_ranges:
                duration = free.duration()
                if duration < minimum:
                    continue

                recommendations.append(
                    Recommendation(
                        provider_id=window.provider_id,
                        display_name=window.provider_name,
                        range=free,
                        duration=duration,
                        distance=self.distance(free, request),
                    )
                )

        recommendations.sort(
            key=lambda r: (
                r.distance,
                r.duration < requested,
                -r.duration,
                r.range.start,
                r.provider_id,
            )
        )

        return recommendations[: self.policy.max_results]

    @staticmethod
    def _group_by_provider(commitments: Iterable[Commitment]) -> Dict[str, List[TimeRange]]:
        grouped: Dict[str, List[TimeRange]] = defaultdict(list)
        for commitment in commitments:
            if commitment.is_confirmed:
                grouped[commitment.provider_id].append(commitment.range)
        return grouped
