"""
Availability loading keyed by the inputs that triggered it.

Slots are refetched whenever the barber, the date or the service duration
changes. Two requests can be in flight at once (the client clicks through
dates quickly), and the slower, older one must not overwrite the newer
result. Every load records its key; a response whose key is no longer the
latest is dropped.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .exceptions import SalonApiError
from .salon_api import SalonApiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityKey:
    barber_id: str
    booking_date: date
    service_duration: int


class AvailabilityLoader:
    def __init__(self, api: SalonApiClient):
        self._api = api
        self._latest: Optional[AvailabilityKey] = None

    @property
    def latest_key(self) -> Optional[AvailabilityKey]:
        return self._latest

    def invalidate(self) -> None:
        """Forget the in-flight request, so its answer is discarded when it lands."""
        self._latest = None

    async def load(self, key: AvailabilityKey) -> Optional[list[str]]:
        """
        Fetch slots for key.

        Returns None when a newer load (or invalidate()) superseded this one
        while it was waiting. API failures yield an empty list.
        """
        self._latest = key
        try:
            times = await self._api.get_available_times(
                key.barber_id,
                key.booking_date,
                key.service_duration,
            )
        except SalonApiError as e:
            logger.warning(
                f"Could not load availability for barber {key.barber_id} on {key.booking_date}: {e.message}"
            )
            times = []

        if self._latest != key:
            logger.debug(f"Discarding stale availability for {key}")
            return None
        return times
