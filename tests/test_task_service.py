"""
Tests for TaskService.

Tests cover:
- Task and subtask creation, including the one-level nesting rule
- Quick-add creation from raw input text
- Updates with list propagation to subtasks
- Cascading deletes
- Bulk list migration and tag removal
"""

import pytest
from pydantic import ValidationError

from tasker.models import Priority
from tasker.services.list_service import ListService
from tasker.services.tag_service import TagService
from tasker.services.task_service import (
    NestingLimitError,
    TaskNotFoundError,
    TaskService,
)


@pytest.fixture
def service(db_session):
    return TaskService(db_session)


class TestCreateTask:
    """Tests for create_task and create_subtask."""

    @pytest.mark.asyncio
    async def test_create_task(self, service):
        task = await service.create_task("Buy milk", list_id="work", priority=Priority.HIGH, tags=["t1"])

        stored = await service.get_task_by_id(task.id)
        assert stored.title == "Buy milk"
        assert stored.list_id == "work"
        assert stored.priority == Priority.HIGH
        assert stored.tags == ["t1"]
        assert stored.subtasks == []

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_task("   ")

    @pytest.mark.asyncio
    async def test_subtask_inherits_parent_list(self, service):
        parent = await service.create_task("Trip", list_id="travel")

        child = await service.create_task("Pack", list_id="inbox", parent_id=parent.id)

        assert child.list_id == "travel"
        assert child.parent_id == parent.id

    @pytest.mark.asyncio
    async def test_create_subtask(self, service):
        parent = await service.create_task("Trip", list_id="travel")
        child = await service.create_subtask(parent.id, "Book hotel")

        loaded = await service.get_task_by_id(parent.id)
        assert [sub.id for sub in loaded.subtasks] == [child.id]
        assert loaded.progress_string == "0/1"

    @pytest.mark.asyncio
    async def test_subtask_of_subtask_rejected(self, service):
        parent = await service.create_task("Trip")
        child = await service.create_subtask(parent.id, "Pack")

        with pytest.raises(NestingLimitError):
            await service.create_subtask(child.id, "Socks")

        assert await service.get_subtasks(child.id) == []

    @pytest.mark.asyncio
    async def test_missing_parent(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.create_subtask("nope", "Orphan")


class TestCreateFromInput:
    """Tests for quick-add."""

    @pytest.mark.asyncio
    async def test_tokens_become_fields(self, db_session, service):
        await ListService(db_session).ensure_default_lists()
        home = await ListService(db_session).create_list("Home", list_id="home")
        bills = await TagService(db_session).create_tag("Bills", tag_id="bills")

        task = await service.create_task_from_input("Pay rent @tomorrow !high #bills ~home")

        assert task.title == "Pay rent"
        assert task.priority == Priority.HIGH
        assert task.list_id == home.id
        assert task.tags == [bills.id]
        assert task.due_date is not None
        assert (task.due_date.hour, task.due_date.minute) == (23, 59)

    @pytest.mark.asyncio
    async def test_unknown_tags_are_created(self, db_session, service):
        task = await service.create_task_from_input("Plan #vacation")

        tag = await TagService(db_session).get_tag_by_name("vacation")
        assert tag is not None
        assert task.tags == [tag.id]

    @pytest.mark.asyncio
    async def test_selected_list_used_without_list_token(self, service):
        task = await service.create_task_from_input("Water plants", selected_list_id="garden")

        assert task.list_id == "garden"
        assert task.priority == Priority.NONE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("selected", ["all", "", None])
    async def test_no_selected_list_goes_to_inbox(self, service, selected):
        """With every list shown, quick-add files the task in the inbox."""
        task = await service.create_task_from_input("Buy milk", selected_list_id=selected)

        assert task.list_id == "inbox"

    @pytest.mark.asyncio
    async def test_unknown_list_token_falls_back_to_selected(self, service):
        task = await service.create_task_from_input("Weed ~nowhere", selected_list_id="inbox")

        assert task.list_id == "inbox"
        assert task.title == "Weed"

    @pytest.mark.asyncio
    async def test_empty_title_rejected(self, service):
        with pytest.raises(ValueError, match="empty"):
            await service.create_task_from_input("!high #errands")

        assert await service.get_all_tasks() == []


class TestReadTasks:
    """Tests for task retrieval."""

    @pytest.mark.asyncio
    async def test_get_missing_task(self, service):
        assert await service.get_task_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_get_all_tasks_is_flat_with_nested_subtasks(self, service):
        parent = await service.create_task("Parent")
        first = await service.create_subtask(parent.id, "First")
        second = await service.create_subtask(parent.id, "Second")
        other = await service.create_task("Other")

        tasks = await service.get_all_tasks()

        assert [task.id for task in tasks] == [parent.id, first.id, second.id, other.id]
        assert [sub.id for sub in tasks[0].subtasks] == [first.id, second.id]
        assert tasks[3].subtasks == []


class TestUpdateTask:
    """Tests for update_task and toggle_completion."""

    @pytest.mark.asyncio
    async def test_update_fields(self, service):
        task = await service.create_task("Draft")

        updated = await service.update_task(task.id, title="Final", priority="low", description="notes")

        assert updated.title == "Final"
        assert updated.priority == Priority.LOW
        assert updated.description == "notes"
        assert updated.updated_at >= task.updated_at

    @pytest.mark.asyncio
    async def test_moving_parent_moves_subtasks(self, service):
        parent = await service.create_task("Trip", list_id="inbox")
        child = await service.create_subtask(parent.id, "Pack")

        await service.update_task(parent.id, list_id="travel")

        assert (await service.get_task_by_id(child.id)).list_id == "travel"
        assert (await service.get_task_by_id(parent.id)).list_id == "travel"

    @pytest.mark.asyncio
    async def test_subtask_list_cannot_change_alone(self, service):
        parent = await service.create_task("Trip", list_id="travel")
        child = await service.create_subtask(parent.id, "Pack")

        updated = await service.update_task(child.id, list_id="work", title="Pack bags")

        assert updated.list_id == "travel"
        assert updated.title == "Pack bags"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, service):
        task = await service.create_task("Draft")

        with pytest.raises(ValueError, match="Cannot update"):
            await service.update_task(task.id, parent_id="other")

    @pytest.mark.asyncio
    async def test_invalid_value_rejected(self, service):
        task = await service.create_task("Draft")

        with pytest.raises(ValidationError):
            await service.update_task(task.id, title="")

        assert (await service.get_task_by_id(task.id)).title == "Draft"

    @pytest.mark.asyncio
    async def test_update_missing_task(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.update_task("missing", title="x")

    @pytest.mark.asyncio
    async def test_toggle_completion(self, service):
        task = await service.create_task("Draft")

        assert (await service.toggle_completion(task.id)).is_completed is True
        assert (await service.toggle_completion(task.id)).is_completed is False


class TestDeleteTask:
    """Tests for delete_task."""

    @pytest.mark.asyncio
    async def test_delete_parent_removes_subtasks(self, service):
        parent = await service.create_task("Trip")
        await service.create_subtask(parent.id, "Pack")
        await service.create_subtask(parent.id, "Book")
        keep = await service.create_task("Keep")

        await service.delete_task(parent.id)

        assert [task.id for task in await service.get_all_tasks()] == [keep.id]

    @pytest.mark.asyncio
    async def test_delete_subtask_keeps_parent(self, service):
        parent = await service.create_task("Trip")
        child = await service.create_subtask(parent.id, "Pack")

        await service.delete_task(child.id)

        loaded = await service.get_task_by_id(parent.id)
        assert loaded is not None
        assert loaded.subtasks == []

    @pytest.mark.asyncio
    async def test_delete_missing_task(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.delete_task("missing")


class TestBulkOperations:
    """Tests for list migration and tag removal."""

    @pytest.mark.asyncio
    async def test_bulk_migrate_tasks(self, service):
        parent = await service.create_task("Trip", list_id="travel")
        await service.create_subtask(parent.id, "Pack")
        await service.create_task("Other", list_id="work")

        moved = await service.bulk_migrate_tasks("travel", "inbox")

        assert moved == 2
        lists = {task.title: task.list_id for task in await service.get_all_tasks()}
        assert lists == {"Trip": "inbox", "Pack": "inbox", "Other": "work"}

    @pytest.mark.asyncio
    async def test_remove_tag_from_tasks(self, service):
        parent = await service.create_task("Trip", tags=["a", "b"])
        await service.create_task("Pack", parent_id=parent.id, tags=["b"])
        await service.create_task("Other", tags=["c"])

        touched = await service.remove_tag_from_tasks("b")

        assert touched == 2
        tags = {task.title: task.tags for task in await service.get_all_tasks()}
        assert tags == {"Trip": ["a"], "Pack": [], "Other": ["c"]}
