"""
Tests for ListService.

Tests cover:
- Built-in list initialization
- List creation and name uniqueness
- List updates
- Deletion re-homing tasks and subtasks to the inbox
"""

import pytest

from tasker.models import AppState
from tasker.services.app_state_service import AppStateService
from tasker.services.list_service import ListService
from tasker.services.task_service import TaskService


@pytest.fixture
def service(db_session):
    return ListService(db_session)


class TestDefaultLists:
    """Tests for ensure_default_lists."""

    @pytest.mark.asyncio
    async def test_creates_built_in_lists(self, service):
        lists = await service.ensure_default_lists()

        assert [task_list.id for task_list in lists] == ["inbox", "today", "upcoming"]
        assert [task_list.is_smart for task_list in lists] == [False, True, True]

    @pytest.mark.asyncio
    async def test_is_idempotent(self, service):
        await service.ensure_default_lists()
        await service.create_list("Work", list_id="work")

        lists = await service.ensure_default_lists()

        assert [task_list.id for task_list in lists] == ["inbox", "today", "upcoming", "work"]


class TestCreateList:
    """Tests for create_list and lookups."""

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, service):
        created = await service.create_list("Groceries", color="#ff0000", icon="🛒")

        assert await service.get_list_by_id(created.id) == created
        assert (await service.get_list_by_name("groceries")).id == created.id

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, service):
        await service.create_list("Work")

        with pytest.raises(ValueError, match="already exists"):
            await service.create_list(" work ")

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, service):
        await service.create_list("Work", list_id="work")

        with pytest.raises(ValueError, match="already exists"):
            await service.create_list("Office", list_id="work")

    @pytest.mark.asyncio
    async def test_missing_list(self, service):
        assert await service.get_list_by_id("missing") is None
        assert await service.get_list_by_name("missing") is None


class TestUpdateList:
    """Tests for update_list."""

    @pytest.mark.asyncio
    async def test_rename(self, service):
        created = await service.create_list("Work", icon="💼")

        updated = await service.update_list(created.id, name="Office")

        assert updated.name == "Office"
        assert updated.icon == "💼"
        assert (await service.get_list_by_id(created.id)).name == "Office"

    @pytest.mark.asyncio
    async def test_rename_to_existing_name_rejected(self, service):
        await service.create_list("Work")
        home = await service.create_list("Home")

        with pytest.raises(ValueError):
            await service.update_list(home.id, name="WORK")

    @pytest.mark.asyncio
    async def test_update_missing_list(self, service):
        assert await service.update_list("missing", name="x") is None


class TestDeleteList:
    """Tests for delete_list."""

    @pytest.mark.asyncio
    async def test_tasks_and_subtasks_move_to_inbox(self, db_session, service):
        await service.create_list("Travel", list_id="travel")
        tasks = TaskService(db_session)
        parent = await tasks.create_task("Trip", list_id="travel")
        child = await tasks.create_subtask(parent.id, "Pack")

        assert await service.delete_list("travel") is True

        assert await service.get_list_by_id("travel") is None
        assert (await tasks.get_task_by_id(parent.id)).list_id == "inbox"
        assert (await tasks.get_task_by_id(child.id)).list_id == "inbox"

    @pytest.mark.asyncio
    async def test_selected_list_falls_back_to_inbox(self, db_session, service):
        await service.create_list("Travel", list_id="travel")
        state_service = AppStateService(db_session)
        await state_service.save_state(AppState(selected_list_id="travel"))

        await service.delete_list("travel")

        assert (await state_service.get_state()).selected_list_id == "inbox"

    @pytest.mark.asyncio
    async def test_other_selection_is_kept(self, db_session, service):
        await service.create_list("Travel", list_id="travel")
        state_service = AppStateService(db_session)
        await state_service.select_list("today")

        await service.delete_list("travel")

        assert (await state_service.get_state()).selected_list_id == "today"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("list_id", ["inbox", "today", "upcoming"])
    async def test_built_in_lists_cannot_be_deleted(self, service, list_id):
        await service.ensure_default_lists()

        with pytest.raises(ValueError, match="cannot be deleted"):
            await service.delete_list(list_id)

        assert await service.get_list_by_id(list_id) is not None

    @pytest.mark.asyncio
    async def test_delete_missing_list(self, service):
        assert await service.delete_list("missing") is False
