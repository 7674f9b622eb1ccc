import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from agenda_service.availability import AvailabilityStore, check_connection, get_database_url
from agenda_service.errors import UpstreamError
from agenda_service.models import Slot

LUNES = Slot(dia="Lunes", hora="09:00:00")
MARTES = Slot(dia="Martes", hora="10:00:00")


@pytest.mark.asyncio
async def test_add_and_list(store):
    assert await store.add_slot("456", LUNES)
    assert await store.add_slot("456", MARTES)
    assert await store.add_slot("789", LUNES)

    slots = await store.list_slots("456")
    assert sorted(s.dia for s in slots) == ["Lunes", "Martes"]
    assert await store.has_slot("789", LUNES)
    assert not await store.has_slot("789", MARTES)

@pytest.mark.asyncio
async def test_add_existing_slot_keeps_a_single_row(store):
    assert await store.add_slot("456", LUNES)
    assert not await store.add_slot("456", LUNES)
    assert await store.list_slots("456") == [LUNES]

@pytest.mark.asyncio
async def test_remove_slot(store):
    await store.add_slot("456", LUNES)
    await store.add_slot("456", MARTES)

    assert await store.remove_slot("456", LUNES)
    assert await store.list_slots("456") == [MARTES]
    # second removal matches nothing
    assert not await store.remove_slot("456", LUNES)

@pytest.mark.asyncio
async def test_database_failure_is_upstream(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/missing/agenda.db")
    store = AvailabilityStore(engine)
    try:
        with pytest.raises(UpstreamError):
            await store.list_slots("456")
        with pytest.raises(UpstreamError):
            await store.remove_slot("456", LUNES)
    finally:
        await engine.dispose()

@pytest.mark.asyncio
async def test_check_connection(engine, tmp_path, caplog):
    assert await check_connection(engine)

    broken = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/missing/agenda.db")
    try:
        assert not await check_connection(broken)
    finally:
        await broken.dispose()
    assert "Error al conectar a la base de datos" in caplog.text

def test_database_url_from_pg_variables(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("PG_USER", "agenda")
    monkeypatch.setenv("PG_PASSWORD", "p@ss")
    monkeypatch.setenv("HOST", "db")
    monkeypatch.setenv("PG_PORT", "5433")
    monkeypatch.setenv("PG_DB", "doctores")

    assert get_database_url() == "postgresql+asyncpg://agenda:p%40ss@db:5433/doctores"

def test_database_url_override(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///agenda.db")
    assert get_database_url() == "sqlite+aiosqlite:///agenda.db"
