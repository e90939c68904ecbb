import asyncio
import logging
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.core.exceptions import CountingTransientError, TransactionTimeoutError


logger = logging.getLogger(__name__)

T = TypeVar("T")


# SQLite doesn't support pool settings, check database type
is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# Convert database URL for proper driver
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql+asyncpg://"):
    # Switch to psycopg for async PostgreSQL
    database_url = database_url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
elif database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+psycopg://")

# Create async engine with appropriate settings
if is_sqlite:
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        future=True,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_async_engine(
        database_url,
        echo=settings.DEBUG,
        future=True,
        pool_pre_ping=True,  # Check connection health before use
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args={
            "connect_timeout": 30,  # Connection timeout in seconds
        },
    )

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    timeout: Optional[float] = None,
) -> T:
    """
    Run ``work`` as one unit of work on ``db``.

    Commits when ``work`` returns, rolls back and re-raises on any error. The
    whole unit (work + commit) is bounded by ``timeout`` seconds
    (DB_TRANSACTION_TIMEOUT by default); a timeout is rolled back and raised
    as TransactionTimeoutError. Connectivity failures from the driver are
    raised as CountingTransientError.

    Usage:
        async def _work():
            ...
            return result

        result = await run_in_transaction(db, _work)
    """
    limit = timeout if timeout is not None else settings.DB_TRANSACTION_TIMEOUT

    async def _unit() -> T:
        result = await work()
        await db.commit()
        return result

    try:
        return await asyncio.wait_for(_unit(), timeout=limit)
    except asyncio.TimeoutError as e:
        await db.rollback()
        logger.warning(f"Transaction exceeded {limit}s, rolled back")
        raise TransactionTimeoutError(limit) from e
    except (OperationalError, InterfaceError) as e:
        await db.rollback()
        logger.warning(f"Store unavailable, transaction rolled back: {e}")
        raise CountingTransientError("Database is temporarily unavailable") from e
    except Exception:
        await db.rollback()
        raise


async def init_db() -> None:
    """Initialize database tables."""
    # Import all models to register them with Base.metadata
    from app.models import user, asset, counting  # noqa: F401

    logger.info(f"Registered {len(Base.metadata.tables)} tables")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")
