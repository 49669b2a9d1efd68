import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from focusroom.config import get_settings
from focusroom.core.errors import FocusRoomError, StoreUnavailable
from focusroom.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def normalize_url(url: str) -> tuple[str, dict]:
    """
    Normalize a connection URL for the async drivers.

    Hosted Postgres URLs carry libpq params (sslmode, channel_binding) that
    asyncpg rejects. They are stripped and SSL is configured via connect_args.

    - SQLite: used as-is
    - Local Postgres (localhost/127.0.0.1/db): No SSL
    - Remote Postgres: SSL with default context
    """
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)
    for param in ["sslmode", "channel_binding", "options"]:
        params.pop(param, None)

    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    hostname = parsed.hostname or ""
    if hostname in ("localhost", "127.0.0.1", "db"):
        return clean_url, {}

    return clean_url, {"ssl": ssl.create_default_context()}


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 280,
    }


clean_url, connect_args = normalize_url(settings.database_url)

engine = create_async_engine(
    clean_url,
    echo=settings.debug,
    connect_args=connect_args,
    **_engine_options(clean_url),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except FocusRoomError:
            await session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise StoreUnavailable(str(e)) from e
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise


def dialect_insert(db: AsyncSession, table: Any) -> Any:
    """Build an INSERT that supports ``ON CONFLICT`` for the session's dialect.

    PostgreSQL and SQLite both expose ``on_conflict_do_nothing`` and
    ``on_conflict_do_update`` with the same signature, so callers stay
    dialect-agnostic.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported on {dialect}")


@asynccontextmanager
async def unit_of_work(db: AsyncSession, operation: str) -> AsyncGenerator[None, None]:
    """Commit the enclosed writes together or roll all of them back.

    Application errors roll back and propagate unchanged; driver and
    connection errors are logged and surface as StoreUnavailable.
    """
    try:
        yield
        await db.commit()
    except FocusRoomError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.bind(operation=operation, error=str(e)).error("store_operation_failed")
        raise StoreUnavailable(f"{operation} failed: {e}") from e
