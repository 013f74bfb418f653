from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from collections.abc import AsyncGenerator
import logging
from slotpoll.config import settings

logger = logging.getLogger(__name__)

SYNC_DRIVERS = {
    "sqlite+aiosqlite:": "sqlite:",
    "postgresql+asyncpg:": "postgresql+psycopg2:",
}

_engine_options: dict[str, object] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
if not settings.DATABASE_URL.startswith("sqlite"):
    _engine_options.update(pool_size=10, max_overflow=20)

engine = create_async_engine(settings.DATABASE_URL, **_engine_options)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


def sync_database_url(url: str) -> str:
    """Swap an async driver for its blocking counterpart, for alembic."""
    for async_prefix, sync_prefix in SYNC_DRIVERS.items():
        if url.startswith(async_prefix):
            logger.info(f"Using {sync_prefix.rstrip(':')} driver for migrations")
            return sync_prefix + url[len(async_prefix):]
    return url


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
