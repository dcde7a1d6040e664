"""
List service for Tasker.

Provides CRUD operations for task lists, including creation of the
built-in Inbox/Today/Upcoming lists and re-homing of tasks to the inbox
when a list is deleted.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasker.database import TaskListORM
from tasker.logging_config import get_logger
from tasker.models import INBOX_LIST_ID, RESERVED_LIST_IDS, TaskList

logger = get_logger(__name__)


class ListService:
    """
    Service layer for task list management.

    Handles creation, retrieval, updating, and deletion of task lists,
    as well as initialization of the built-in lists on first run.
    """

    # Built-in lists; today and upcoming are smart lists
    DEFAULT_LISTS = [
        {"id": "inbox", "name": "Inbox", "color": "#0ea5e9", "icon": "📥"},
        {"id": "today", "name": "Today", "color": "#10b981", "icon": "📅"},
        {"id": "upcoming", "name": "Upcoming", "color": "#f59e0b", "icon": "📆"},
    ]

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize the list service.

        Args:
            session: Active database session for operations
        """
        self.session = session

    @staticmethod
    def _orm_to_pydantic(list_orm: TaskListORM) -> TaskList:
        return TaskList(
            id=list_orm.id,
            name=list_orm.name,
            color=list_orm.color,
            icon=list_orm.icon,
            created_at=list_orm.created_at,
            updated_at=list_orm.updated_at,
        )

    async def _get_orm(self, list_id: str) -> Optional[TaskListORM]:
        result = await self.session.execute(
            select(TaskListORM).where(TaskListORM.id == list_id)
        )
        return result.scalar_one_or_none()

    async def create_list(
        self,
        name: str,
        color: str = "#0ea5e9",
        icon: Optional[str] = None,
        list_id: Optional[str] = None,
    ) -> TaskList:
        """
        Create a new task list.

        Args:
            name: Name of the list to create
            color: Display color
            icon: Optional icon
            list_id: Optional id (generated if not provided)

        Returns:
            Created TaskList model

        Raises:
            ValueError: If a list with the same name or id already exists
        """
        try:
            logger.debug(f"Creating list: name='{name}', list_id={list_id}")

            fields = {"name": name, "color": color, "icon": icon}
            if list_id is not None:
                fields["id"] = list_id
            task_list = TaskList(**fields)

            existing = await self.get_list_by_name(task_list.name)
            if existing:
                logger.warning(f"List creation failed - name already exists: '{task_list.name}'")
                raise ValueError(f"List with name '{task_list.name}' already exists")

            if await self._get_orm(task_list.id) is not None:
                logger.warning(f"List creation failed - id already exists: {task_list.id}")
                raise ValueError(f"List with id '{task_list.id}' already exists")

            self.session.add(TaskListORM(
                id=task_list.id,
                name=task_list.name,
                color=task_list.color,
                icon=task_list.icon,
                created_at=task_list.created_at,
                updated_at=task_list.updated_at,
            ))
            await self.session.flush()

            logger.info(f"Created list: id={task_list.id}, name='{task_list.name}'")
            return task_list
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Failed to create list: {e}", exc_info=True)
            raise

    async def get_all_lists(self) -> List[TaskList]:
        """
        Retrieve all task lists ordered by creation date.

        Returns:
            List of TaskList models
        """
        result = await self.session.execute(
            select(TaskListORM).order_by(TaskListORM.created_at)
        )
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get_list_by_id(self, list_id: str) -> Optional[TaskList]:
        """
        Retrieve a specific task list by id.

        Returns:
            TaskList model if found, None otherwise
        """
        list_orm = await self._get_orm(list_id)
        return self._orm_to_pydantic(list_orm) if list_orm else None

    async def get_list_by_name(self, name: str) -> Optional[TaskList]:
        """
        Retrieve a task list by name (case-insensitive).

        Returns:
            TaskList model if found, None otherwise
        """
        result = await self.session.execute(
            select(TaskListORM).where(func.lower(TaskListORM.name) == name.strip().lower())
        )
        list_orm = result.scalars().first()
        return self._orm_to_pydantic(list_orm) if list_orm else None

    async def update_list(
        self,
        list_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Optional[TaskList]:
        """
        Update a task list's name, color or icon.

        Returns:
            Updated TaskList model if found, None otherwise

        Raises:
            ValueError: If a different list with the same name already exists
        """
        try:
            logger.debug(f"Updating list {list_id}: name={name!r}, color={color!r}, icon={icon!r}")

            list_orm = await self._get_orm(list_id)
            if not list_orm:
                logger.warning(f"Update failed - list not found: {list_id}")
                return None

            updated = TaskList(
                id=list_id,
                name=name if name is not None else list_orm.name,
                color=color if color is not None else list_orm.color,
                icon=icon if icon is not None else list_orm.icon,
                created_at=list_orm.created_at,
                updated_at=datetime.now(),
            )

            existing = await self.get_list_by_name(updated.name)
            if existing and existing.id != list_id:
                logger.warning(f"Update failed - name already exists: '{updated.name}'")
                raise ValueError(f"List with name '{updated.name}' already exists")

            list_orm.name = updated.name
            list_orm.color = updated.color
            list_orm.icon = updated.icon
            list_orm.updated_at = updated.updated_at
            await self.session.flush()

            logger.info(f"Updated list: id={list_id}, name='{updated.name}'")
            return updated
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Failed to update list {list_id}: {e}", exc_info=True)
            raise

    async def delete_list(self, list_id: str) -> bool:
        """
        Delete a task list, moving its tasks to the inbox.

        Tasks are never deleted with their list. The selected list in the
        stored app state falls back to the inbox if it pointed here.

        Args:
            list_id: Id of the list to delete

        Returns:
            True if the list was deleted, False if not found

        Raises:
            ValueError: If list_id is one of the built-in lists
        """
        if list_id in RESERVED_LIST_IDS:
            logger.warning(f"Delete refused - built-in list: {list_id}")
            raise ValueError(f"Built-in list '{list_id}' cannot be deleted")

        try:
            logger.debug(f"Deleting list {list_id}")

            list_orm = await self._get_orm(list_id)
            if not list_orm:
                logger.warning(f"Delete failed - list not found: {list_id}")
                return False

            from tasker.services.app_state_service import AppStateService
            from tasker.services.task_service import TaskService

            moved = await TaskService(self.session).bulk_migrate_tasks(list_id, INBOX_LIST_ID)
            await AppStateService(self.session).forget_list(list_id)

            list_name = list_orm.name
            await self.session.delete(list_orm)
            await self.session.flush()

            logger.info(f"Deleted list: id={list_id}, name='{list_name}', moved {moved} tasks to inbox")
            return True
        except Exception as e:
            logger.error(f"Failed to delete list {list_id}: {e}", exc_info=True)
            raise

    async def ensure_default_lists(self) -> List[TaskList]:
        """
        Ensure the built-in lists (Inbox, Today, Upcoming) exist.

        Returns:
            List of all task lists after ensuring defaults exist
        """
        try:
            logger.debug("Ensuring default lists exist")

            created = []
            for default in self.DEFAULT_LISTS:
                if await self._get_orm(default["id"]) is None:
                    await self.create_list(
                        name=default["name"],
                        color=default["color"],
                        icon=default["icon"],
                        list_id=default["id"],
                    )
                    created.append(default["name"])

            if created:
                logger.info(f"Created default lists: {created}")
            else:
                logger.debug("All default lists already exist")

            return await self.get_all_lists()
        except Exception as e:
            logger.error(f"Failed to ensure default lists: {e}", exc_info=True)
            raise
