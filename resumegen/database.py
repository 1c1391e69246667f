from pathlib import Path
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from resumegen.utils.logger import logger

# Base class for models
Base = declarative_base()


class Database:
    """Owns the async engine and session factory for one process.

    Built once at startup (API or worker) and handed to whoever needs a
    session, instead of binding an engine at import time.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_recycle"] = 300  # Recycle connections every 5 minutes
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def init_models(self) -> None:
        """Create all tables (idempotent)"""
        # Import models to register them with Base
        from resumegen import models  # noqa: F401

        url = make_url(self.url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.ready", extra={"path": url.render_as_string(hide_password=True)})

    async def dispose(self) -> None:
        await self.engine.dispose()


# Dependency for FastAPI routes
async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
