"""
Pytest configuration and fixtures for Tasker tests.

Provides database fixtures, a fixed reference time, and test data factories.
"""

from datetime import datetime

import pytest
import pytest_asyncio

from tasker.database import DatabaseManager
from tasker.models import Priority, Tag, Task, TaskList


@pytest_asyncio.fixture
async def db_manager():
    """
    Create an in-memory SQLite database for testing.

    Yields:
        DatabaseManager instance with in-memory database
    """
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager):
    """
    Provide a database session for tests.

    Example:
        async def test_something(db_session):
            result = await db_session.execute(select(TaskORM))
    """
    async with db_manager.get_session() as session:
        yield session


@pytest.fixture
def now():
    """A fixed reference time: Friday 2024-03-15 10:30 local."""
    return datetime(2024, 3, 15, 10, 30)


@pytest.fixture
def make_task():
    """
    Factory fixture for creating Task models.

    Example:
        def test_something(make_task):
            task = make_task(title="Custom Task", list_id="work")
    """
    def _make_task(
        title: str = "Test Task",
        list_id: str = "inbox",
        priority: Priority = Priority.NONE,
        due_date: datetime = None,
        is_completed: bool = False,
        parent_id: str = None,
        tags: list = None,
        description: str = None,
        **extra,
    ) -> Task:
        return Task(
            title=title,
            list_id=list_id,
            priority=priority,
            due_date=due_date,
            is_completed=is_completed,
            parent_id=parent_id,
            tags=tags or [],
            description=description,
            **extra,
        )
    return _make_task


@pytest.fixture
def make_task_list():
    """Factory fixture for creating TaskList models."""
    def _make_task_list(id: str, name: str, **extra) -> TaskList:
        return TaskList(id=id, name=name, **extra)
    return _make_task_list


@pytest.fixture
def make_tag():
    """Factory fixture for creating Tag models."""
    def _make_tag(id: str, name: str, **extra) -> Tag:
        return Tag(id=id, name=name, **extra)
    return _make_tag
