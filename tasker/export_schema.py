"""
Pydantic models for the JSON export/import document.

The document carries the full application state: tasks (top-level, with
subtasks nested), lists, tags and the view state. Dates are serialized as
ISO-8601 strings and rebuilt into datetimes on import. Schema versioning
supports forward-compatible migrations.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from tasker.models import AppState, Tag, Task, TaskList


CURRENT_SCHEMA_VERSION = 1


class ExportedState(BaseModel):
    """
    Full application state export.

    Single JSON object containing all lists, tags and tasks.
    """

    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION, description="Schema version for migrations")
    exported_at: datetime = Field(default_factory=datetime.now, description="Export timestamp")
    tasks: List[Task] = Field(default_factory=list, description="Top-level tasks (subtasks nested)")
    lists: List[TaskList] = Field(default_factory=list, description="All task lists")
    tags: List[Tag] = Field(default_factory=list, description="All tags")
    app_state: AppState = Field(default_factory=AppState, description="View state")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "schema_version": 1,
                "exported_at": "2025-11-26T18:00:00",
                "tasks": [],
                "lists": [],
                "tags": [],
                "app_state": {"selected_list_id": "inbox", "theme": "light"},
            }
        }
    )


def migrate_data(data: dict) -> dict:
    """
    Migrate old schema versions to current.

    Rules:
    - New fields get sensible defaults when missing
    - Unknown fields are ignored on validation

    Args:
        data: Raw JSON data from import

    Returns:
        Migrated data compatible with current schema
    """
    version = data.get("schema_version", 1)
    if version > CURRENT_SCHEMA_VERSION:
        raise ValueError(
            f"Export schema version {version} is newer than supported version {CURRENT_SCHEMA_VERSION}"
        )

    data["schema_version"] = CURRENT_SCHEMA_VERSION
    return data
