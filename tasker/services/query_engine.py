"""
Query engine for the task view.

Derives the ordered list of top-level tasks to display from a snapshot of
the task collection, the selected list, a predicate filter and sort
options. The engine is a pure function: callers re-run it whenever
any input changes instead of patching a previous result.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from tasker.models import (
    ALL_LISTS,
    PRIORITY_RANK,
    TODAY_LIST_ID,
    UPCOMING_LIST_ID,
    FilterOptions,
    SortDirection,
    SortField,
    SortOptions,
    Task,
)
from tasker.utils.datetime_utils import is_same_day


# Missing due dates sort as infinitely late
_SORT_KEYS: Dict[SortField, Callable[[Task], Any]] = {
    SortField.ORDER: lambda task: task.order,
    SortField.TITLE: lambda task: task.title.lower(),
    SortField.PRIORITY: lambda task: PRIORITY_RANK[task.priority],
    SortField.DUE_DATE: lambda task: task.due_date if task.due_date is not None else datetime.max,
    SortField.CREATED_AT: lambda task: task.created_at,
    SortField.UPDATED_AT: lambda task: task.updated_at,
}


def visible(
    tasks: Iterable[Task],
    selected_list_id: Optional[str],
    filter: Optional[FilterOptions] = None,
    sort: Optional[SortOptions] = None,
    now: Optional[datetime] = None,
) -> List[Task]:
    """
    Compute the visible, sorted top-level tasks.

    Args:
        tasks: Task collection snapshot (subtasks may be included; they are skipped)
        selected_list_id: List to show, a smart list id, or ALL_LISTS/None for every list
        filter: Predicate filter; None means no constraint
        sort: Sort options; None means manual order ascending
        now: Reference time for smart lists (defaults to local now)

    Returns:
        Matching tasks in display order
    """
    if now is None:
        now = datetime.now()
    filter = filter or FilterOptions()
    sort = sort or SortOptions()

    result = [
        task for task in tasks
        if not task.parent_id
        and in_list(task, selected_list_id, now)
        and matches_filter(task, filter)
    ]
    result.sort(
        key=_SORT_KEYS[sort.field],
        reverse=sort.direction == SortDirection.DESC,
    )
    return result


def in_list(task: Task, selected_list_id: Optional[str], now: datetime) -> bool:
    """
    Check list membership, including the computed smart lists.

    'today' also holds tasks due on the current calendar day; 'upcoming'
    also holds tasks due strictly after now.
    """
    if not selected_list_id or selected_list_id == ALL_LISTS:
        return True
    if selected_list_id == TODAY_LIST_ID:
        return task.list_id == TODAY_LIST_ID or (
            task.due_date is not None and is_same_day(task.due_date, now)
        )
    if selected_list_id == UPCOMING_LIST_ID:
        return task.list_id == UPCOMING_LIST_ID or (
            task.due_date is not None and task.due_date > now
        )
    return task.list_id == selected_list_id


def matches_filter(task: Task, filter: FilterOptions) -> bool:
    """Apply every present filter condition; all must hold."""
    if filter.completed is not None and task.is_completed != filter.completed:
        return False
    if filter.priority is not None and task.priority != filter.priority:
        return False
    if filter.tags and not any(tag_id in task.tags for tag_id in filter.tags):
        return False
    if filter.search:
        needle = filter.search.casefold()
        in_title = needle in task.title.casefold()
        in_description = bool(task.description) and needle in task.description.casefold()
        if not (in_title or in_description):
            return False
    return True
