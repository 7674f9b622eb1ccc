"""Doctor availability stored in the relational ``disponibilidad`` table."""
from __future__ import annotations
import logging
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv
from sqlalchemy import Column, MetaData, String, Table, UniqueConstraint, and_, delete, insert, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .errors import UpstreamError
from .models import Slot

load_dotenv()

logger = logging.getLogger(__name__)

metadata = MetaData()

disponibilidad = Table(
    "disponibilidad",
    metadata,
    Column("dia", String(20), nullable=False),
    Column("hora", String(8), nullable=False),
    Column("dni_doctor", String(20), nullable=False, index=True),
    UniqueConstraint("dni_doctor", "dia", "hora", name="uq_disponibilidad_slot"),
)


def get_database_url() -> str:
    """Build the async database URL from the environment."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    user = os.getenv("PG_USER") or "postgres"
    password = os.getenv("PG_PASSWORD")
    host = os.getenv("HOST") or "localhost"
    port = os.getenv("PG_PORT") or "5432"
    database = os.getenv("PG_DB")
    if not database:
        raise ValueError("Database name is required (PG_DB)")

    if password:
        return f"postgresql+asyncpg://{quote_plus(user)}:{quote_plus(password)}@{host}:{port}/{database}"
    return f"postgresql+asyncpg://{quote_plus(user)}@{host}:{port}/{database}"


def create_engine_from_env() -> AsyncEngine:
    """Create the pooled engine shared by all requests of the process."""
    url = get_database_url()
    kwargs = {"pool_pre_ping": True}
    if url.startswith("postgresql"):
        kwargs.update(
            pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
        )
    logger.info("Conectando a la base de datos en: %s", url.rsplit("@", 1)[-1])
    return create_async_engine(url, **kwargs)


async def check_connection(engine: AsyncEngine) -> bool:
    """Run a trivial query so a bad database configuration shows up at startup."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Error al conectar a la base de datos: %s", exc)
        return False
    logger.info("Conexión exitosa con la base de datos")
    return True


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


def _matches(dni: str, slot: Slot):
    return and_(
        disponibilidad.c.dni_doctor == dni,
        disponibilidad.c.dia == slot.dia,
        disponibilidad.c.hora == slot.hora,
    )


class AvailabilityStore:
    """Read, insert and delete availability slots through an explicit engine.

    Database failures surface as ``UpstreamError``.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def list_slots(self, dni: str) -> list[Slot]:
        query = select(disponibilidad.c.dia, disponibilidad.c.hora).where(disponibilidad.c.dni_doctor == dni)
        try:
            async with self.engine.connect() as conn:
                rows = (await conn.execute(query)).all()
        except SQLAlchemyError as exc:
            logger.error("Error al obtener la disponibilidad del doctor %s: %s", dni, exc)
            raise UpstreamError("Error al obtener la disponibilidad del doctor") from exc
        return [Slot(dia=row.dia, hora=row.hora) for row in rows]

    async def has_slot(self, dni: str, slot: Slot) -> bool:
        return any(s == slot for s in await self.list_slots(dni))

    async def add_slot(self, dni: str, slot: Slot) -> bool:
        """Insert a slot. Returns False when the slot was already present."""
        try:
            async with self.engine.begin() as conn:
                existing = await conn.execute(select(disponibilidad.c.dni_doctor).where(_matches(dni, slot)))
                if existing.first() is not None:
                    return False
                await conn.execute(insert(disponibilidad).values(dia=slot.dia, hora=slot.hora, dni_doctor=dni))
        except IntegrityError:
            # concurrent insert of the same slot
            return False
        except SQLAlchemyError as exc:
            logger.error("Error al agregar la disponibilidad del doctor %s: %s", dni, exc)
            raise UpstreamError("Error al agregar la disponibilidad") from exc
        return True

    async def remove_slot(self, dni: str, slot: Slot) -> bool:
        """Delete a slot. Returns False when no row matched."""
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(delete(disponibilidad).where(_matches(dni, slot)))
        except SQLAlchemyError as exc:
            logger.error("Error al eliminar la disponibilidad del doctor %s: %s", dni, exc)
            raise UpstreamError("Error al eliminar la disponibilidad") from exc
        return result.rowcount > 0
