"""
Database layer for Tasker.

Provides SQLAlchemy ORM models, async engine/session management, and database
initialization for SQLite persistence.

Tasks are stored flat; the indexed parent_id column links subtasks to their
parent, and tag ids are kept in order in a JSON column.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Integer, String, Text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tasker.config import DEFAULT_DATABASE_URL
from tasker.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class TaskListORM(Base):
    """
    SQLAlchemy ORM model for task lists.

    Corresponds to the TaskList Pydantic model.
    """
    __tablename__ = "task_lists"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<TaskListORM(id={self.id}, name={self.name})>"


class TagORM(Base):
    """SQLAlchemy ORM model for tags."""
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<TagORM(id={self.id}, name={self.name})>"


class TaskORM(Base):
    """
    SQLAlchemy ORM model for tasks.

    Corresponds to the Task Pydantic model. list_id is a plain column rather
    than a foreign key: deleting a list re-homes its tasks instead of
    cascading.
    """
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="none")
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    list_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    order: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<TaskORM(id={self.id}, title={self.title}, parent_id={self.parent_id})>"


class AppStateORM(Base):
    """Single-row table holding the persisted view state."""
    __tablename__ = "app_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    selected_list_id: Mapped[str] = mapped_column(String(64), nullable=False)
    filter: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    sort_field: Mapped[str] = mapped_column(String(20), nullable=False)
    sort_direction: Mapped[str] = mapped_column(String(4), nullable=False)
    theme: Mapped[str] = mapped_column(String(10), nullable=False)


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Handles async engine creation, session management, and database
    initialization for both production and testing scenarios.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        """
        Initialize database manager with connection URL.

        Args:
            database_url: SQLAlchemy database URL (default: ~/.tasker/tasker.db)
        """
        self.database_url = database_url
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    async def initialize(self) -> None:
        """
        Initialize the database engine and create tables.

        Creates the parent directory of a file-backed SQLite database,
        the async engine, the session maker, and all tables.
        """
        try:
            logger.info(f"Initializing database: {self.database_url}")
            self._ensure_sqlite_directory()
            self.engine = create_async_engine(
                self.database_url,
                echo=False,  # Set to True for SQL query logging
            )

            self.session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    def _ensure_sqlite_directory(self) -> None:
        url = make_url(self.database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    async def close(self) -> None:
        """Close the database engine and cleanup resources."""
        if self.engine:
            logger.info("Closing database connection")
            try:
                await self.engine.dispose()
                self.engine = None
                self.session_maker = None
                logger.info("Database connection closed successfully")
            except Exception as e:
                logger.error(f"Error closing database connection: {e}", exc_info=True)
                raise

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session with automatic transaction management.

        Yields:
            AsyncSession for database operations

        Example:
            async with db_manager.get_session() as session:
                result = await session.execute(select(TaskORM))
                tasks = result.scalars().all()
        """
        if not self.session_maker:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                logger.error(f"Database session error, rolling back: {e}", exc_info=True)
                await session.rollback()
                raise


async def init_database(database_url: str = DEFAULT_DATABASE_URL) -> DatabaseManager:
    """
    Initialize the database and return the manager instance.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Initialized DatabaseManager instance
    """
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()
    return db_manager
