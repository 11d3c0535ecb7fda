"""
Tests for AvailabilityLoader: stale responses are discarded.
"""
import asyncio
from datetime import date

import pytest

from reservar.availability import AvailabilityKey, AvailabilityLoader
from reservar.exceptions import SalonApiError


class GatedApi:
    """get_available_times blocks until the test releases that date."""

    def __init__(self):
        self.gates: dict[date, asyncio.Event] = {}
        self.fail = False

    def gate(self, booking_date: date) -> asyncio.Event:
        return self.gates.setdefault(booking_date, asyncio.Event())

    async def get_available_times(self, barber_id, booking_date, service_duration):
        await self.gate(booking_date).wait()
        if self.fail:
            raise SalonApiError("Booking service returned HTTP 500", status_code=500)
        return [f"{booking_date.day}:00 AM"]


MONDAY = AvailabilityKey("barber-jose", date(2026, 3, 2), 30)
TUESDAY = AvailabilityKey("barber-jose", date(2026, 3, 3), 30)


class TestAvailabilityLoader:

    @pytest.mark.asyncio
    async def test_single_load(self):
        api = GatedApi()
        loader = AvailabilityLoader(api)
        api.gate(MONDAY.booking_date).set()

        assert await loader.load(MONDAY) == ["2:00 AM"]
        assert loader.latest_key == MONDAY

    @pytest.mark.asyncio
    async def test_older_response_arriving_last_is_discarded(self):
        api = GatedApi()
        loader = AvailabilityLoader(api)

        first = asyncio.create_task(loader.load(MONDAY))
        await asyncio.sleep(0)
        second = asyncio.create_task(loader.load(TUESDAY))
        await asyncio.sleep(0)

        api.gate(TUESDAY.booking_date).set()
        assert await second == ["3:00 AM"]

        api.gate(MONDAY.booking_date).set()
        assert await first is None

    @pytest.mark.asyncio
    async def test_invalidate_discards_in_flight_load(self):
        api = GatedApi()
        loader = AvailabilityLoader(api)

        pending = asyncio.create_task(loader.load(MONDAY))
        await asyncio.sleep(0)
        loader.invalidate()
        api.gate(MONDAY.booking_date).set()

        assert await pending is None
        assert loader.latest_key is None

    @pytest.mark.asyncio
    async def test_api_failure_yields_empty_list(self):
        api = GatedApi()
        api.fail = True
        loader = AvailabilityLoader(api)
        api.gate(MONDAY.booking_date).set()

        assert await loader.load(MONDAY) == []
