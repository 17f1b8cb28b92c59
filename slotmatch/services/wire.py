"""
JSON-facing request and response shapes.

Field names follow the wire format (camelCase) so ``model_dump()`` yields the
exact payload callers receive.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

import pendulum
from pydantic import BaseModel, Field

from ..domain.exceptions import InvalidTimeRange
from ..domain.models import TimeRange

NO_PROVIDER_MESSAGE = "No providers are available for the requested time slot."
INVALID_RANGE_MESSAGE = "Start time must be before end time"


class BookingRequest(BaseModel):
    """Incoming booking request with ISO 8601 timestamps."""
    startTime: datetime
    endTime: datetime

    def to_time_range(self, timezone: str = "UTC") -> TimeRange:
        """
        Convert to a domain range.

        Naive timestamps are interpreted in ``timezone``.

        Raises:
            InvalidTimeRange: If start is not strictly before end
        """
        start = pendulum.instance(self.startTime, tz=timezone)
        end = pendulum.instance(self.endTime, tz=timezone)
        if start >= end:
            raise InvalidTimeRange(INVALID_RANGE_MESSAGE)
        return TimeRange(start=start, end=end)


class ProviderSummary(BaseModel):
    id: str
    name: str


class BookingConfirmation(BaseModel):
    bookingId: str
    provider: ProviderSummary
    startTime: str
    endTime: str
    status: str = "confirmed"


class RecommendationPayload(BaseModel):
    providerId: str
    providerName: str
    startTime: str
    endTime: str


class NoMatchPayload(BaseModel):
    error: str = NO_PROVIDER_MESSAGE
    recommendations: List[RecommendationPayload] = Field(default_factory=list)


class ValidationErrorPayload(BaseModel):
    message: str = INVALID_RANGE_MESSAGE
    statusCode: int = 400
