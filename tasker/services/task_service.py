"""
Task service for Tasker.

Implements task CRUD with database persistence: subtask creation, list
propagation from parents to subtasks, cascading deletes, bulk list
migration, tag removal, and quick-add from raw input text.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tasker.database import TaskListORM, TaskORM
from tasker.logging_config import get_logger
from tasker.models import ALL_LISTS, INBOX_LIST_ID, Priority, Task, TaskList
from tasker.services.input_parser import parse

logger = get_logger(__name__)


class TaskServiceError(Exception):
    """Base exception for task service errors."""
    pass


class NestingLimitError(TaskServiceError):
    """Raised when a subtask would be nested under another subtask."""
    pass


class TaskNotFoundError(TaskServiceError):
    """Raised when a task is not found."""
    pass


# Fields update_task() accepts
UPDATABLE_FIELDS = frozenset({
    "title", "description", "is_completed", "priority", "due_date", "list_id", "tags",
})


class TaskService:
    """
    Service layer for task operations.

    Handles CRUD operations for tasks and keeps the one-level hierarchy
    consistent: subtasks share their parent's list and are removed with it.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize task service with database session.

        Args:
            session: Active async database session
        """
        self.session = session

    # ==============================================================================
    # CONVERSION HELPERS
    # ==============================================================================

    @staticmethod
    def _orm_to_pydantic(task_orm: TaskORM) -> Task:
        """
        Convert TaskORM to Pydantic Task model.

        Args:
            task_orm: SQLAlchemy ORM task instance

        Returns:
            Pydantic Task instance without subtasks populated
        """
        return Task(
            id=task_orm.id,
            title=task_orm.title,
            description=task_orm.description,
            is_completed=task_orm.is_completed,
            priority=Priority(task_orm.priority),
            due_date=task_orm.due_date,
            list_id=task_orm.list_id,
            parent_id=task_orm.parent_id,
            tags=list(task_orm.tags or []),
            order=task_orm.order,
            created_at=task_orm.created_at,
            updated_at=task_orm.updated_at,
        )

    @staticmethod
    def _pydantic_to_orm(task: Task) -> TaskORM:
        """
        Convert Pydantic Task to TaskORM model.

        Args:
            task: Pydantic Task instance

        Returns:
            SQLAlchemy ORM task instance
        """
        return TaskORM(
            id=task.id,
            title=task.title,
            description=task.description,
            is_completed=task.is_completed,
            priority=task.priority.value,
            due_date=task.due_date,
            list_id=task.list_id,
            parent_id=task.parent_id,
            tags=list(task.tags),
            order=task.order,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )

    async def _get_task_or_raise(self, task_id: str) -> TaskORM:
        """
        Fetch a task ORM row or raise.

        Raises:
            TaskNotFoundError: If no task has this id
        """
        result = await self.session.execute(select(TaskORM).where(TaskORM.id == task_id))
        task_orm = result.scalar_one_or_none()
        if task_orm is None:
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        return task_orm

    async def _get_children_orms(self, parent_id: str) -> List[TaskORM]:
        result = await self.session.execute(
            select(TaskORM).where(TaskORM.parent_id == parent_id).order_by(TaskORM.order)
        )
        return list(result.scalars().all())

    # ==============================================================================
    # CREATE
    # ==============================================================================

    async def create_task(
        self,
        title: str,
        list_id: str = INBOX_LIST_ID,
        parent_id: Optional[str] = None,
        priority: Priority = Priority.NONE,
        due_date: Optional[datetime] = None,
        tags: Optional[Sequence[str]] = None,
        description: Optional[str] = None,
    ) -> Task:
        """
        Create a new task or subtask.

        A subtask always takes its parent's list, whatever list_id says.

        Args:
            title: Task title (must not be blank)
            list_id: Owning list id
            parent_id: Parent task id for a subtask
            priority: Task priority
            due_date: Optional due instant
            tags: Ordered tag ids
            description: Optional notes

        Returns:
            Created Task

        Raises:
            TaskNotFoundError: If parent_id does not exist
            NestingLimitError: If the parent is itself a subtask
            ValidationError: If a field value is invalid (e.g. blank title)
        """
        try:
            logger.debug(f"Creating task: title='{title}', list_id={list_id}, parent_id={parent_id}")

            if parent_id is not None:
                parent = await self._get_task_or_raise(parent_id)
                if parent.parent_id is not None:
                    logger.warning(f"Cannot nest under subtask {parent_id}")
                    raise NestingLimitError("Subtasks cannot have their own subtasks")
                list_id = parent.list_id
                parent.updated_at = datetime.now()

            task = Task(
                title=title,
                description=description,
                priority=priority,
                due_date=due_date,
                list_id=list_id,
                parent_id=parent_id,
                tags=list(tags or []),
            )

            self.session.add(self._pydantic_to_orm(task))
            await self.session.flush()

            logger.info(f"Created task: id={task.id}, title='{task.title}', list_id={task.list_id}")
            return task
        except (TaskServiceError, ValueError):
            raise
        except Exception as e:
            logger.error(f"Failed to create task: {e}", exc_info=True)
            raise

    async def create_subtask(self, parent_id: str, title: str) -> Task:
        """Create a subtask under parent_id in the parent's list."""
        return await self.create_task(title=title, parent_id=parent_id)

    async def create_task_from_input(self, text: str, selected_list_id: str = INBOX_LIST_ID) -> Task:
        """
        Create a task from one line of quick-add text.

        Tag names are resolved to ids, creating tags that don't exist yet.
        The task goes to the list named by a '~' token, or else to the
        selected list. With every list selected it goes to the inbox.

        Args:
            text: Raw input line, e.g. "Pay rent @tomorrow !high #bills ~home"
            selected_list_id: List currently shown to the user

        Returns:
            Created Task

        Raises:
            ValueError: If nothing is left of the title after removing tokens
        """
        from tasker.services.tag_service import TagService

        result = await self.session.execute(select(TaskListORM).order_by(TaskListORM.created_at))
        known_lists = [
            TaskList(id=row.id, name=row.name, color=row.color, icon=row.icon,
                     created_at=row.created_at, updated_at=row.updated_at)
            for row in result.scalars().all()
        ]

        parsed = parse(text, known_lists)
        if not parsed.title:
            logger.warning(f"Quick-add rejected, empty title: '{text}'")
            raise ValueError("Task title cannot be empty")

        tag_ids: List[str] = []
        if parsed.tags:
            tag_ids = await TagService(self.session).resolve_tag_names(parsed.tags)

        list_id = parsed.list_id or selected_list_id
        if not list_id or list_id == ALL_LISTS:
            list_id = INBOX_LIST_ID

        return await self.create_task(
            title=parsed.title,
            list_id=list_id,
            priority=parsed.priority or Priority.NONE,
            due_date=parsed.due_date,
            tags=tag_ids,
        )

    # ==============================================================================
    # READ
    # ==============================================================================

    async def get_task_by_id(self, task_id: str) -> Optional[Task]:
        """
        Retrieve a task by id, with subtasks populated for top-level tasks.

        Returns:
            Task if found, None otherwise
        """
        result = await self.session.execute(select(TaskORM).where(TaskORM.id == task_id))
        task_orm = result.scalar_one_or_none()
        if task_orm is None:
            return None

        task = self._orm_to_pydantic(task_orm)
        if task.parent_id is None:
            task.subtasks = [self._orm_to_pydantic(child) for child in await self._get_children_orms(task.id)]
        return task

    async def get_all_tasks(self) -> List[Task]:
        """
        Retrieve every task as a flat list ordered by manual order.

        Top-level tasks carry their subtasks; the subtasks also appear in
        the flat list on their own.

        Returns:
            All tasks
        """
        result = await self.session.execute(select(TaskORM).order_by(TaskORM.order))
        tasks = [self._orm_to_pydantic(row) for row in result.scalars().all()]

        children: Dict[str, List[Task]] = {}
        for task in tasks:
            if task.parent_id is not None:
                children.setdefault(task.parent_id, []).append(task)

        for task in tasks:
            if task.parent_id is None:
                task.subtasks = children.get(task.id, [])

        return tasks

    async def get_subtasks(self, parent_id: str) -> List[Task]:
        """Retrieve the subtasks of parent_id in manual order."""
        return [self._orm_to_pydantic(row) for row in await self._get_children_orms(parent_id)]

    # ==============================================================================
    # UPDATE
    # ==============================================================================

    async def update_task(self, task_id: str, **changes: Any) -> Task:
        """
        Update task fields.

        Changing a parent's list_id moves all its subtasks along. Updating a
        subtask bumps its parent's updated_at. A subtask's list_id cannot be
        changed on its own.

        Args:
            task_id: Task to update
            **changes: New values for any of UPDATABLE_FIELDS

        Returns:
            Updated Task

        Raises:
            TaskNotFoundError: If the task does not exist
            ValueError: If an unknown field is given
            ValidationError: If a new value is invalid
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        try:
            logger.debug(f"Updating task {task_id}: {sorted(changes)}")
            task_orm = await self._get_task_or_raise(task_id)

            if task_orm.parent_id is not None:
                changes.pop("list_id", None)

            current = self._orm_to_pydantic(task_orm)
            now = datetime.now()
            updated = Task.model_validate({
                **current.model_dump(exclude={"subtasks", "is_subtask", "progress_string"}),
                **changes,
                "updated_at": now,
            })

            task_orm.title = updated.title
            task_orm.description = updated.description
            task_orm.is_completed = updated.is_completed
            task_orm.priority = updated.priority.value
            task_orm.due_date = updated.due_date
            task_orm.list_id = updated.list_id
            task_orm.tags = list(updated.tags)
            task_orm.updated_at = now

            if task_orm.parent_id is None:
                await self.session.execute(
                    update(TaskORM)
                    .where(TaskORM.parent_id == task_id)
                    .values(list_id=updated.list_id)
                )
            else:
                parent = await self._get_task_or_raise(task_orm.parent_id)
                parent.updated_at = now

            await self.session.flush()

            logger.info(f"Updated task: id={task_id}")
            return await self.get_task_by_id(task_id)
        except (TaskServiceError, ValueError):
            raise
        except Exception as e:
            logger.error(f"Failed to update task {task_id}: {e}", exc_info=True)
            raise

    async def toggle_completion(self, task_id: str) -> Task:
        """
        Flip a task's completion flag.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task_orm = await self._get_task_or_raise(task_id)
        return await self.update_task(task_id, is_completed=not task_orm.is_completed)

    # ==============================================================================
    # DELETE
    # ==============================================================================

    async def delete_task(self, task_id: str) -> None:
        """
        Delete a task together with every subtask whose parent_id matches.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        try:
            logger.debug(f"Deleting task {task_id}")
            task_orm = await self._get_task_or_raise(task_id)

            if task_orm.parent_id is not None:
                parent = await self._get_task_or_raise(task_orm.parent_id)
                parent.updated_at = datetime.now()

            result = await self.session.execute(
                delete(TaskORM).where(or_(TaskORM.id == task_id, TaskORM.parent_id == task_id))
            )
            await self.session.flush()

            logger.info(f"Deleted task {task_id} ({result.rowcount} rows including subtasks)")
        except TaskServiceError:
            raise
        except Exception as e:
            logger.error(f"Failed to delete task {task_id}: {e}", exc_info=True)
            raise

    # ==============================================================================
    # BULK OPERATIONS
    # ==============================================================================

    async def bulk_migrate_tasks(self, source_list_id: str, target_list_id: str) -> int:
        """
        Move every task (subtasks included) from one list to another.

        Returns:
            Number of tasks moved
        """
        result = await self.session.execute(
            update(TaskORM)
            .where(TaskORM.list_id == source_list_id)
            .values(list_id=target_list_id, updated_at=datetime.now())
        )
        await self.session.flush()
        logger.info(f"Migrated {result.rowcount} tasks from list {source_list_id} to {target_list_id}")
        return result.rowcount

    async def remove_tag_from_tasks(self, tag_id: str) -> int:
        """
        Remove tag_id from the tag set of every task and subtask.

        Returns:
            Number of tasks that carried the tag
        """
        result = await self.session.execute(select(TaskORM))
        now = datetime.now()
        touched = 0
        for task_orm in result.scalars().all():
            current = list(task_orm.tags or [])
            if tag_id in current:
                task_orm.tags = [existing for existing in current if existing != tag_id]
                task_orm.updated_at = now
                touched += 1
        await self.session.flush()
        logger.debug(f"Removed tag {tag_id} from {touched} tasks")
        return touched
