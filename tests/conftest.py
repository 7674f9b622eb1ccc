import json
import pathlib
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from agenda_service.availability import AvailabilityStore, create_schema
from agenda_service.scheduling import Scheduler
from agenda_service.api import app

FIX = pathlib.Path(__file__).parent / "fixtures"

PACIENTES = "http://pacientes:8000/pacientes"
DOCTORES = "http://doctores:3000/doctors"
CITAS = "http://historiamedica:8080/citas"


def load_fixture(name: str):
    return json.loads((FIX / name).read_text(encoding="utf-8"))


@pytest_asyncio.fixture
async def engine():
    # in-memory stand-in for the PostgreSQL availability table
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def store(engine):
    return AvailabilityStore(engine)


@pytest.fixture
def scheduler(store):
    return Scheduler(store)


@pytest_asyncio.fixture
async def api(scheduler):
    """ASGI client bound to the app, with the test scheduler in place of the lifespan one."""
    app.state.scheduler = scheduler
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://agenda") as client:
        yield client
