"""Database engine and session maker for worker tasks."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config.settings import settings


def create_task_engine():
    """Create an engine bound to the calling task's event loop."""
    return create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
    )


def create_task_session_maker(engine=None):
    """Create a session maker for worker tasks."""
    if engine is None:
        engine = create_task_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
