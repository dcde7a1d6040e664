"""
Pydantic models for Tasker.

Defines the core data structures for tasks, task lists and tags, the
structured record produced by the quick-add parser, and the filter/sort
options consumed by the query engine.
"""

import threading
import time
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from tasker.utils.datetime_utils import to_local_naive


INBOX_LIST_ID = "inbox"
TODAY_LIST_ID = "today"
UPCOMING_LIST_ID = "upcoming"

# Lists whose membership is computed from due dates
SMART_LIST_IDS = frozenset({TODAY_LIST_ID, UPCOMING_LIST_ID})
RESERVED_LIST_IDS = frozenset({INBOX_LIST_ID, TODAY_LIST_ID, UPCOMING_LIST_ID})

# Sentinel for "no list filter"
ALL_LISTS = "all"


class Priority(str, Enum):
    """Task priority levels."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


PRIORITY_RANK: Dict[Priority, int] = {
    Priority.NONE: 0,
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
}


class SortField(str, Enum):
    """Fields the task view can be sorted by."""

    ORDER = "order"
    TITLE = "title"
    PRIORITY = "priority"
    DUE_DATE = "due_date"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class SuggestionType(str, Enum):
    """Token family a completion suggestion belongs to."""

    DUE_DATE = "due_date"
    PRIORITY = "priority"
    TAG = "tag"
    LIST = "list"


_order_lock = threading.Lock()
_last_order = 0


def next_order() -> int:
    """
    Return a strictly increasing manual-sort value.

    Values come from a millisecond clock; two calls within the same
    millisecond still yield distinct, increasing values.
    """
    global _last_order
    with _order_lock:
        value = max(time.time_ns() // 1_000_000, _last_order + 1)
        _last_order = value
        return value


def _new_id() -> str:
    return str(uuid4())


class Tag(BaseModel):
    """A label that tasks reference by id."""

    id: str = Field(default_factory=_new_id, min_length=1, description="Unique identifier for the tag")
    name: str = Field(..., min_length=1, max_length=50, description="Tag name")
    color: str = Field(default="#64748b", description="Display color")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tag name cannot be blank")
        return v


class TaskList(BaseModel):
    """
    Represents a task list (e.g., Inbox, Work, Groceries).

    The reserved ids 'today' and 'upcoming' are smart lists: besides tasks
    stored in them directly, they show tasks whose due date qualifies.
    """

    id: str = Field(default_factory=_new_id, min_length=1, description="Unique identifier for the list")
    name: str = Field(..., min_length=1, max_length=100, description="List name")
    color: str = Field(default="#0ea5e9", description="Display color")
    icon: Optional[str] = Field(default=None, description="Optional icon")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "inbox",
                "name": "Inbox",
                "color": "#0ea5e9",
                "icon": "📥",
                "created_at": "2025-01-14T10:00:00",
                "updated_at": "2025-01-14T10:00:00",
            }
        }
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("List name cannot be blank")
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return to_local_naive(v)

    @computed_field
    @property
    def is_smart(self) -> bool:
        """Whether list membership is computed from due dates."""
        return self.id in SMART_LIST_IDS


class Task(BaseModel):
    """
    Represents a single task with optional subtasks.

    Nesting is exactly one level deep: a task with a parent_id is a subtask
    and never carries subtasks of its own. The subtasks field is populated
    on reads; storage keeps tasks flat and links them through parent_id.
    """

    id: str = Field(default_factory=_new_id, min_length=1, description="Unique identifier for the task")
    title: str = Field(..., min_length=1, max_length=500, description="Task title")
    description: Optional[str] = Field(default=None, max_length=5000, description="Optional task notes")

    is_completed: bool = Field(default=False, description="Whether the task is completed")
    priority: Priority = Field(default=Priority.NONE, description="Task priority")
    due_date: Optional[datetime] = Field(default=None, description="Due instant (end of day by convention)")

    # Relationships
    list_id: str = Field(default=INBOX_LIST_ID, min_length=1, description="ID of the owning list")
    parent_id: Optional[str] = Field(default=None, description="Parent task ID for subtasks")
    tags: List[str] = Field(default_factory=list, description="Ordered tag ids")
    subtasks: List["Task"] = Field(default_factory=list, description="Child tasks")

    # Ordering and timestamps
    order: int = Field(default_factory=next_order, description="Manual sort key")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174001",
                "title": "Buy milk",
                "is_completed": False,
                "priority": "high",
                "due_date": "2025-01-14T23:59:59.999000",
                "list_id": "inbox",
                "parent_id": None,
                "tags": ["personal"],
                "subtasks": [],
                "order": 1736848800000,
                "created_at": "2025-01-14T10:00:00",
                "updated_at": "2025-01-14T10:00:00",
            }
        }
    )

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Task title cannot be blank")
        return v

    @field_validator("parent_id", mode="before")
    @classmethod
    def empty_parent_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return to_local_naive(v)

    @model_validator(mode="after")
    def validate_depth(self) -> "Task":
        """
        Subtasks cannot have subtasks of their own.

        Raises:
            ValueError: If a subtask carries children
        """
        if self.parent_id is not None and self.subtasks:
            raise ValueError("Subtasks cannot have their own subtasks")
        return self

    @computed_field
    @property
    def is_subtask(self) -> bool:
        return self.parent_id is not None

    @computed_field
    @property
    def progress_string(self) -> str:
        """
        Progress over subtasks (e.g., "2/5").

        Returns:
            Completed/total subtasks, or empty string if there are none
        """
        if not self.subtasks:
            return ""
        done = sum(1 for subtask in self.subtasks if subtask.is_completed)
        return f"{done}/{len(self.subtasks)}"


class ParsedTaskInput(BaseModel):
    """
    Structured result of parsing one line of quick-add text.

    Unresolved token families leave their field as None. Tags are names,
    not yet ids. The title may be empty; callers decide whether to reject it.
    """

    title: str = ""
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    list_id: Optional[str] = None


class Suggestion(BaseModel):
    """Completion candidates for the token currently being typed."""

    type: SuggestionType
    candidates: List[str] = Field(default_factory=list)


class FilterOptions(BaseModel):
    """Predicate filter for the task view. Absent fields mean no constraint."""

    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    tags: List[str] = Field(default_factory=list, description="Tag ids; any match passes")
    search: Optional[str] = None


class SortOptions(BaseModel):
    field: SortField = SortField.ORDER
    direction: SortDirection = SortDirection.ASC


class AppState(BaseModel):
    """Persisted view state: selected list, filter, sort and theme."""

    selected_list_id: str = INBOX_LIST_ID
    filter: FilterOptions = Field(default_factory=FilterOptions)
    sort: SortOptions = Field(default_factory=SortOptions)
    theme: Theme = Theme.LIGHT


Task.model_rebuild()
