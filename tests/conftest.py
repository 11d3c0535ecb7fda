"""
Pytest configuration and fixtures.

The salon REST API is replaced by FakeSalon, an httpx.MockTransport
handler backed by plain dicts, so every test runs offline and can
inspect exactly which requests were made.
"""
import asyncio
from datetime import datetime, timedelta

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from reservar.models import DirectLink, UserSession
from reservar.salon_api import SalonApiClient
from reservar.wizard import BookingWizard


SALON_BASE_URL = "http://salon.test"


def make_service(**overrides) -> dict:
    data = {
        "id": "svc-1",
        "name": "Haircut",
        "description": None,
        "duration": 30,
        "price": 25,
        "image": None,
        "gender": "MALE",
        "barberId": "barber-jose",
    }
    data.update(overrides)
    return data


def make_barber(**overrides) -> dict:
    barber_id = overrides.pop("id", "barber-jose")
    name = overrides.pop("name", "Jose")
    data = {
        "id": barber_id,
        "userId": f"user-{barber_id}",
        "bio": None,
        "gender": "MALE",
        "zelleEmail": None,
        "zellePhone": None,
        "cashappTag": None,
        "user": {"id": f"user-{barber_id}", "name": name, "image": None},
    }
    data.update(overrides)
    return data


class FakeSalon:
    """In-memory stand-in for the salon REST API."""

    def __init__(self):
        self.settings = {"maleGenderImage": "/img/male.png", "femaleGenderImage": "/img/female.png"}
        self.barbers = [
            make_barber(id="barber-jose", name="Jose", gender="MALE", zelleEmail="jose@example.com"),
            make_barber(id="barber-sandra", name="Sandra", gender="FEMALE", cashappTag="$sandra"),
            make_barber(id="barber-alex", name="Alex", gender="BOTH"),
        ]
        self.services = [
            make_service(id="svc-cut-jose", name="Haircut", barberId="barber-jose"),
            make_service(id="svc-cut-alex", name=" haircut ", barberId="barber-alex"),
            make_service(id="svc-beard-jose", name="Beard Trim", duration=20, price=15, barberId="barber-jose"),
            make_service(id="svc-color-sandra", name="Color", duration=90, price=80,
                         gender="FEMALE", barberId="barber-sandra"),
            make_service(id="svc-cut-alex-f", name="Haircut", duration=45, price=40,
                         gender="FEMALE", barberId="barber-alex"),
        ]
        self.media = {
            "barber-jose": [
                {"id": "m1", "mediaType": "PHOTO", "mediaUrl": "/jose/1.jpg", "title": "Fade"},
                {"id": "m2", "mediaType": "VIDEO", "mediaUrl": "/jose/2.mp4", "title": None},
            ],
        }
        self.broken_media: set[str] = set()
        self.available_times: dict[tuple[str, str], list[str]] = {}
        self.default_times = ["9:00 AM", "10:30 AM", "2:00 PM", "5:30 PM"]
        self.availability_status = 200
        self.barbers_status = 200
        self.services_status = 200
        self.appointment_status = 201
        self.appointment_body: dict = {"id": "appt-1", "status": "PENDING"}
        self.reschedule_status = 200
        self.reschedule_body: dict = {"id": "appt-9", "status": "CONFIRMED"}
        self.requests: list[httpx.Request] = []

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path == "/api/settings":
            return httpx.Response(200, json=self.settings)

        if path == "/api/services":
            if self.services_status != 200:
                return httpx.Response(self.services_status, json={"error": "services down"})
            rows = self.services
            if params.get("gender"):
                rows = [s for s in rows if s.get("gender") == params["gender"]]
            if params.get("barberId"):
                rows = [s for s in rows if s.get("barberId") in (params["barberId"], None)]
            return httpx.Response(200, json={"services": rows})

        if path == "/api/barbers":
            if self.barbers_status != 200:
                return httpx.Response(self.barbers_status, json={"error": "barbers down"})
            rows = self.barbers
            if params.get("gender"):
                rows = [b for b in rows if b.get("gender") in (params["gender"], "BOTH")]
            return httpx.Response(200, json=rows)

        if path == "/api/barber/media":
            barber_id = params["barberId"]
            if barber_id in self.broken_media:
                return httpx.Response(500, json={"error": "media store unavailable"})
            return httpx.Response(200, json={"media": self.media.get(barber_id, [])})

        if path == "/api/availability":
            if self.availability_status != 200:
                return httpx.Response(self.availability_status, json={"error": "availability down"})
            key = (params["barberId"], params["date"])
            return httpx.Response(200, json={"availableTimes": self.available_times.get(key, self.default_times)})

        if path == "/api/appointments" and request.method == "POST":
            return httpx.Response(self.appointment_status, json=self.appointment_body)

        if path.startswith("/api/appointments/") and path.endswith("/reschedule"):
            return httpx.Response(self.reschedule_status, json=self.reschedule_body)

        return httpx.Response(404, json={"error": "not found"})


class ServicesGate:
    """
    Wraps FakeSalon and, once armed, holds GET /api/services until released.

    Lets a test act on the wizard while a confirm is waiting on the network.
    """

    def __init__(self, salon: FakeSalon):
        self.salon = salon
        self.armed = False
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.armed and request.url.path == "/api/services":
            self.reached.set()
            await self.release.wait()
        return self.salon.handler(request)


class FakeClock:
    """Callable returning a controllable 'now'."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now = self.now + timedelta(minutes=minutes)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def salon() -> FakeSalon:
    return FakeSalon()


@pytest.fixture
def clock() -> FakeClock:
    # Monday 2026-03-02, 10:15 local time
    return FakeClock(datetime(2026, 3, 2, 10, 15))


@pytest.fixture
async def salon_http(salon):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(salon.handler),
        base_url=SALON_BASE_URL,
    ) as client:
        yield client


@pytest.fixture
def services_gate(salon) -> ServicesGate:
    return ServicesGate(salon)


@pytest.fixture
async def gated_api(services_gate):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(services_gate.handler),
        base_url=SALON_BASE_URL,
    ) as client:
        yield SalonApiClient(client)


@pytest.fixture
def api(salon_http) -> SalonApiClient:
    return SalonApiClient(salon_http)


@pytest.fixture
def user() -> UserSession:
    return UserSession(id="user-1", name="Maria", email="maria@example.com", role="CLIENT")


@pytest.fixture
def navigations() -> list[str]:
    return []


@pytest.fixture
def make_wizard(api, clock, user, navigations):
    """Build wizards wired to the fake salon; their clocks are stopped after the test."""
    created: list[BookingWizard] = []

    def factory(link: DirectLink | None = None, session: UserSession | None = user) -> BookingWizard:
        wizard = BookingWizard(
            api,
            session=session,
            navigate=navigations.append,
            link=link or DirectLink(),
            now_fn=clock,
        )
        created.append(wizard)
        return wizard

    yield factory

    for wizard in created:
        wizard.close()


@pytest.fixture
async def client(salon_http, clock):
    """
    FastAPI AsyncClient with the salon HTTP client and the clock overridden.
    """
    from reservar.main import app, get_clock, get_http_client

    app.dependency_overrides[get_http_client] = lambda: salon_http
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.sessions.clear()
