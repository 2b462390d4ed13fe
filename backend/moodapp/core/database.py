import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from moodapp.core.config import settings

logger = logging.getLogger(__name__)


def engine_options(database_url: str) -> dict:
    """Engine-Argumente je nach Treiber; SQLite braucht check_same_thread=False."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

# Moods werden nach dem Commit noch gebroadcastet → Attribute nicht verfallen lassen
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db():
    """Eine Session pro Request; offene Transaktionen werden bei Fehlern verworfen."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables(bind=None):
    """Legt moods und push_subscriptions an, falls sie fehlen."""
    import moodapp.models  # noqa – registriert die Models an Base.metadata
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tabellen angelegt: %s", ", ".join(sorted(Base.metadata.tables)))
