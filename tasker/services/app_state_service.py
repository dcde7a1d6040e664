"""
App state service for Tasker.

Persists the view state the query engine is driven by: selected list,
filter, sort and theme.
"""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tasker.database import AppStateORM
from tasker.logging_config import get_logger
from tasker.models import INBOX_LIST_ID, AppState, FilterOptions, SortOptions, Theme

logger = get_logger(__name__)

_STATE_ROW_ID = 1


class AppStateService:
    """Load and store the single application state record."""

    def __init__(self, session: AsyncSession, defaults: Optional[Dict[str, Any]] = None) -> None:
        """
        Args:
            session: Active async database session
            defaults: Values used when nothing is stored yet, as returned by
                      Config.get_defaults_config()
        """
        self.session = session
        self.defaults = defaults or {}

    def _default_state(self) -> AppState:
        return AppState(
            selected_list_id=self.defaults.get("list_id", INBOX_LIST_ID),
            sort=SortOptions(
                field=self.defaults.get("sort_field", "order"),
                direction=self.defaults.get("sort_direction", "asc"),
            ),
            theme=self.defaults.get("theme", "light"),
        )

    async def _get_orm(self) -> Optional[AppStateORM]:
        result = await self.session.execute(select(AppStateORM).where(AppStateORM.id == _STATE_ROW_ID))
        return result.scalar_one_or_none()

    async def get_state(self) -> AppState:
        """
        Return the stored app state, or the defaults if none is stored.
        """
        state_orm = await self._get_orm()
        if state_orm is None:
            return self._default_state()

        return AppState(
            selected_list_id=state_orm.selected_list_id,
            filter=FilterOptions.model_validate(state_orm.filter or {}),
            sort=SortOptions(field=state_orm.sort_field, direction=state_orm.sort_direction),
            theme=state_orm.theme,
        )

    async def save_state(self, state: AppState) -> AppState:
        """Store state, replacing whatever was stored before."""
        state_orm = await self._get_orm()
        if state_orm is None:
            state_orm = AppStateORM(id=_STATE_ROW_ID)
            self.session.add(state_orm)

        state_orm.selected_list_id = state.selected_list_id
        state_orm.filter = state.filter.model_dump(mode="json")
        state_orm.sort_field = state.sort.field.value
        state_orm.sort_direction = state.sort.direction.value
        state_orm.theme = state.theme.value
        await self.session.flush()

        logger.debug(f"Saved app state: selected_list_id={state.selected_list_id}, "
                     f"sort={state.sort.field.value} {state.sort.direction.value}")
        return state

    async def select_list(self, list_id: str) -> AppState:
        state = await self.get_state()
        return await self.save_state(state.model_copy(update={"selected_list_id": list_id}))

    async def set_filter(self, filter: FilterOptions) -> AppState:
        state = await self.get_state()
        return await self.save_state(state.model_copy(update={"filter": filter}))

    async def set_sort(self, sort: SortOptions) -> AppState:
        state = await self.get_state()
        return await self.save_state(state.model_copy(update={"sort": sort}))

    async def toggle_theme(self) -> AppState:
        state = await self.get_state()
        theme = Theme.DARK if state.theme == Theme.LIGHT else Theme.LIGHT
        return await self.save_state(state.model_copy(update={"theme": theme}))

    async def forget_list(self, list_id: str) -> None:
        """Fall back to the inbox if list_id is the selected list."""
        state_orm = await self._get_orm()
        if state_orm is not None and state_orm.selected_list_id == list_id:
            state_orm.selected_list_id = INBOX_LIST_ID
            await self.session.flush()
            logger.info(f"Selected list {list_id} removed, switched to inbox")
