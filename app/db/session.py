import logging

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.errors import PersistenceError

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    str(settings.SQLALCHEMY_DATABASE_URI),
    echo=False,
    future=True,
    pool_pre_ping=True,
)

# Create async session factory
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# Create a context manager for async database sessions
@asynccontextmanager
async def get_async_session() -> AsyncSession:
    """Yield an async database session for Celery tasks and in-process background work."""
    async_session = AsyncSessionLocal()
    try:
        yield async_session
        await async_session.commit()
    except (OperationalError, InterfaceError) as e:
        await async_session.rollback()
        logger.error(f"Database unavailable: {e}")
        raise PersistenceError(f"Database unavailable: {e}") from e
    except Exception:
        await async_session.rollback()
        raise
    finally:
        await async_session.close()

