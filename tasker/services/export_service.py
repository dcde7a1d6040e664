"""
Export service for Tasker.

Renders task reports as Markdown tables or CSV, and exports/imports the
full application state as a versioned JSON document.

The report functions filter tasks on their own (completion, list and
subtask flags) and share only field semantics with the query engine:
priority labels, tag-id-to-name resolution and due date formatting.
"""

import csv
import io
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from tasker.database import AppStateORM, TagORM, TaskListORM, TaskORM
from tasker.export_schema import CURRENT_SCHEMA_VERSION, ExportedState, migrate_data
from tasker.logging_config import get_logger
from tasker.models import Priority, Tag, Task, TaskList
from tasker.services.app_state_service import AppStateService
from tasker.services.list_service import ListService
from tasker.services.tag_service import TagService
from tasker.services.task_service import TaskService
from tasker.utils.datetime_utils import format_date, format_iso_date

logger = get_logger(__name__)


PRIORITY_EMOJIS = {
    Priority.NONE: "",
    Priority.LOW: "🔵",
    Priority.MEDIUM: "🟡",
    Priority.HIGH: "🔴",
}

UNKNOWN_LIST_NAME = "Unknown"
SUBTASK_PREFIX = "↳ "


class ExportOptions(BaseModel):
    """Which tasks a report includes."""

    include_completed: bool = True
    include_subtasks: bool = True
    list_id: Optional[str] = None


class _Lookup:
    """Resolves list and tag ids to display names."""

    def __init__(self, lists: Iterable[TaskList], tags: Iterable[Tag]) -> None:
        self.list_names = {task_list.id: task_list.name for task_list in lists}
        self.tag_names = {tag.id: tag.name for tag in tags}

    def list_name(self, list_id: str) -> str:
        return self.list_names.get(list_id, UNKNOWN_LIST_NAME)

    def tag_names_for(self, tag_ids: Iterable[str]) -> List[str]:
        return [self.tag_names.get(tag_id, tag_id) for tag_id in tag_ids]


def _select_tasks(tasks: Iterable[Task], lookup: _Lookup, options: ExportOptions) -> List[Task]:
    """Top-level tasks passing the report options, sorted by list name then order."""
    selected = [
        task for task in tasks
        if task.parent_id is None
        and (options.include_completed or not task.is_completed)
        and (options.list_id is None or task.list_id == options.list_id)
    ]
    selected.sort(key=lambda task: (lookup.list_name(task.list_id), task.order))
    return selected


def _report_subtasks(task: Task, options: ExportOptions) -> List[Task]:
    if not options.include_subtasks:
        return []
    return [
        subtask for subtask in task.subtasks
        if options.include_completed or not subtask.is_completed
    ]


def _format_priority(priority: Priority) -> str:
    if priority == Priority.NONE:
        return ""
    return f"{PRIORITY_EMOJIS[priority]} {priority.value}"


def _escape_pipes(text: str) -> str:
    return text.replace("|", "\\|")


def export_tasks_as_markdown(
    tasks: Iterable[Task],
    lists: Iterable[TaskList],
    tags: Iterable[Tag],
    options: Optional[ExportOptions] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Render tasks as a Markdown report.

    The report has a table (Status, Task, Priority, Due Date, List, Tags)
    with subtasks as indented rows under their parent, followed by a
    summary and per-list and per-priority breakdowns.

    Args:
        tasks: Task snapshot; top-level tasks should carry their subtasks
        lists: Known lists for name resolution
        tags: Known tags for name resolution
        options: Report filters
        now: Export timestamp (defaults to local now)

    Returns:
        Markdown document
    """
    options = options or ExportOptions()
    now = now or datetime.now()
    lookup = _Lookup(lists, tags)
    selected = _select_tasks(tasks, lookup, options)

    lines = ["# Tasks Export", "", f"*Exported on {format_date(now)} {now:%H:%M}*", ""]

    if not selected:
        lines.append("No tasks found matching the specified criteria.")
        return "\n".join(lines) + "\n"

    lines.append("| Status | Task | Priority | Due Date | List | Tags |")
    lines.append("|--------|------|----------|----------|------|------|")

    def row(task: Task, title: str, list_name: str) -> str:
        status = "✅" if task.is_completed else "⬜"
        tag_names = " ".join(f"#{name}" for name in lookup.tag_names_for(task.tags))
        return (
            f"| {status} | {_escape_pipes(title)} | {_format_priority(task.priority)} | "
            f"{format_date(task.due_date)} | {list_name} | {tag_names} |"
        )

    for task in selected:
        list_name = lookup.list_name(task.list_id)
        lines.append(row(task, task.title, list_name))
        for subtask in _report_subtasks(task, options):
            lines.append(row(subtask, SUBTASK_PREFIX + subtask.title, list_name))

    completed = sum(1 for task in selected if task.is_completed)
    lines += [
        "",
        "## Summary",
        "",
        f"- **Total Tasks**: {len(selected)}",
        f"- **Completed**: {completed}",
        f"- **Pending**: {len(selected) - completed}",
    ]

    by_list: Dict[str, int] = {}
    by_priority: Dict[Priority, int] = {}
    for task in selected:
        list_name = lookup.list_name(task.list_id)
        by_list[list_name] = by_list.get(list_name, 0) + 1
        by_priority[task.priority] = by_priority.get(task.priority, 0) + 1

    if len(by_list) > 1:
        lines += ["", "### Tasks by List", ""]
        lines += [f"- **{name}**: {count}" for name, count in by_list.items()]

    lines += ["", "### Tasks by Priority", ""]
    for priority, count in by_priority.items():
        emoji = PRIORITY_EMOJIS[priority] or "⚪"
        label = "No Priority" if priority == Priority.NONE else priority.value.capitalize()
        lines.append(f"- {emoji} **{label}**: {count}")

    return "\n".join(lines) + "\n"


def export_tasks_as_csv(
    tasks: Iterable[Task],
    lists: Iterable[TaskList],
    tags: Iterable[Tag],
    options: Optional[ExportOptions] = None,
) -> str:
    """
    Render tasks as CSV.

    Columns: Status, Title, Priority, Due Date, List, Tags, Created, Updated.
    Dates are YYYY-MM-DD, tag names are joined with ';', and subtasks follow
    their parent with a '↳ ' title prefix.
    """
    options = options or ExportOptions()
    lookup = _Lookup(lists, tags)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Status", "Title", "Priority", "Due Date", "List", "Tags", "Created", "Updated"])

    def row(task: Task, title: str, list_name: str) -> List[str]:
        return [
            "Completed" if task.is_completed else "Pending",
            title,
            "" if task.priority == Priority.NONE else task.priority.value,
            format_iso_date(task.due_date),
            list_name,
            ";".join(lookup.tag_names_for(task.tags)),
            format_iso_date(task.created_at),
            format_iso_date(task.updated_at),
        ]

    for task in _select_tasks(tasks, lookup, options):
        list_name = lookup.list_name(task.list_id)
        writer.writerow(row(task, task.title, list_name))
        for subtask in _report_subtasks(task, options):
            writer.writerow(row(subtask, SUBTASK_PREFIX + subtask.title, list_name))

    return buffer.getvalue()


class ExportService:
    """
    Service for reports and full-state export/import.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.task_service = TaskService(session)
        self.list_service = ListService(session)
        self.tag_service = TagService(session)
        self.app_state_service = AppStateService(session)

    async def render_report(self, format: str = "markdown", options: Optional[ExportOptions] = None) -> str:
        """
        Render the stored tasks as a Markdown or CSV report.

        Raises:
            ValueError: If format is not 'markdown' or 'csv'
        """
        tasks = await self.task_service.get_all_tasks()
        lists = await self.list_service.get_all_lists()
        tags = await self.tag_service.get_all_tags()

        if format == "markdown":
            return export_tasks_as_markdown(tasks, lists, tags, options)
        if format == "csv":
            return export_tasks_as_csv(tasks, lists, tags, options)
        raise ValueError(f"Unsupported report format: {format}")

    async def export_state(self) -> ExportedState:
        """
        Export the entire application state.

        Returns:
            ExportedState with top-level tasks carrying nested subtasks
        """
        logger.info("Starting full state export")

        tasks = [task for task in await self.task_service.get_all_tasks() if task.parent_id is None]
        state = ExportedState(
            schema_version=CURRENT_SCHEMA_VERSION,
            tasks=tasks,
            lists=await self.list_service.get_all_lists(),
            tags=await self.tag_service.get_all_tags(),
            app_state=await self.app_state_service.get_state(),
        )

        logger.info(f"Exported {len(state.tasks)} tasks, {len(state.lists)} lists, {len(state.tags)} tags")
        return state

    async def import_state(self, data: dict) -> ExportedState:
        """
        Replace the stored state with an exported document.

        Args:
            data: Raw JSON data (migrated to the current schema first)

        Returns:
            The validated document that was imported

        Raises:
            ValueError: If the document is malformed or from a newer schema
        """
        logger.info("Starting full state import")

        try:
            state = ExportedState.model_validate(migrate_data(dict(data)))
        except ValidationError as e:
            logger.warning(f"Import rejected, invalid document: {e}")
            raise ValueError(f"Invalid export data: {e}") from e

        for table in (TaskORM, TagORM, TaskListORM, AppStateORM):
            await self.session.execute(delete(table))

        for task_list in state.lists:
            self.session.add(TaskListORM(
                id=task_list.id,
                name=task_list.name,
                color=task_list.color,
                icon=task_list.icon,
                created_at=task_list.created_at,
                updated_at=task_list.updated_at,
            ))

        for tag in state.tags:
            self.session.add(TagORM(id=tag.id, name=tag.name, color=tag.color))

        seen = set()
        for task in _flatten(state.tasks):
            if task.id in seen:
                continue
            seen.add(task.id)
            self.session.add(TaskService._pydantic_to_orm(task))

        await self.session.flush()
        await self.app_state_service.save_state(state.app_state)

        logger.info(f"Imported {len(seen)} tasks, {len(state.lists)} lists, {len(state.tags)} tags")
        return state


def _flatten(tasks: Iterable[Task]) -> List[Task]:
    """Unnest subtasks, linking each to its parent and the parent's list."""
    flat: List[Task] = []
    for task in tasks:
        flat.append(task)
        for subtask in task.subtasks:
            flat.append(subtask.model_copy(update={"parent_id": task.id, "list_id": task.list_id}))
    return flat
