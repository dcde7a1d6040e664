"""
Tag service for Tasker.

CRUD for tags, seeding of default tags, resolution of tag names typed in
quick-add text, and cascading removal of deleted tags from tasks.
"""

from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasker.database import TagORM
from tasker.logging_config import get_logger
from tasker.models import Tag

logger = get_logger(__name__)


class TagService:
    """Service layer for tag management."""

    DEFAULT_TAGS = [
        {"id": "work", "name": "Work", "color": "#ef4444"},
        {"id": "personal", "name": "Personal", "color": "#10b981"},
        {"id": "urgent", "name": "Urgent", "color": "#f59e0b"},
    ]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _orm_to_pydantic(tag_orm: TagORM) -> Tag:
        return Tag(id=tag_orm.id, name=tag_orm.name, color=tag_orm.color)

    async def _get_orm(self, tag_id: str) -> Optional[TagORM]:
        result = await self.session.execute(select(TagORM).where(TagORM.id == tag_id))
        return result.scalar_one_or_none()

    async def create_tag(self, name: str, color: str = "#64748b", tag_id: Optional[str] = None) -> Tag:
        """
        Create a new tag.

        Raises:
            ValueError: If a tag with the same name (case-insensitive) exists
        """
        fields = {"name": name, "color": color}
        if tag_id is not None:
            fields["id"] = tag_id
        tag = Tag(**fields)

        if await self.get_tag_by_name(tag.name):
            logger.warning(f"Tag creation failed - name already exists: '{tag.name}'")
            raise ValueError(f"Tag with name '{tag.name}' already exists")

        self.session.add(TagORM(id=tag.id, name=tag.name, color=tag.color))
        await self.session.flush()

        logger.info(f"Created tag: id={tag.id}, name='{tag.name}'")
        return tag

    async def get_all_tags(self) -> List[Tag]:
        result = await self.session.execute(select(TagORM).order_by(TagORM.name))
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get_tag_by_id(self, tag_id: str) -> Optional[Tag]:
        tag_orm = await self._get_orm(tag_id)
        return self._orm_to_pydantic(tag_orm) if tag_orm else None

    async def get_tag_by_name(self, name: str) -> Optional[Tag]:
        """Find a tag by name, ignoring case."""
        result = await self.session.execute(
            select(TagORM).where(func.lower(TagORM.name) == name.strip().lower())
        )
        tag_orm = result.scalars().first()
        return self._orm_to_pydantic(tag_orm) if tag_orm else None

    async def update_tag(self, tag_id: str, name: Optional[str] = None, color: Optional[str] = None) -> Optional[Tag]:
        """
        Rename or recolor a tag.

        Returns:
            Updated Tag, or None if the tag does not exist

        Raises:
            ValueError: If another tag already uses the new name
        """
        tag_orm = await self._get_orm(tag_id)
        if tag_orm is None:
            logger.warning(f"Update failed - tag not found: {tag_id}")
            return None

        updated = Tag(
            id=tag_id,
            name=name if name is not None else tag_orm.name,
            color=color if color is not None else tag_orm.color,
        )
        existing = await self.get_tag_by_name(updated.name)
        if existing and existing.id != tag_id:
            logger.warning(f"Update failed - tag name already exists: '{updated.name}'")
            raise ValueError(f"Tag with name '{updated.name}' already exists")

        tag_orm.name = updated.name
        tag_orm.color = updated.color
        await self.session.flush()

        logger.info(f"Updated tag: id={tag_id}, name='{updated.name}'")
        return updated

    async def delete_tag(self, tag_id: str) -> bool:
        """
        Delete a tag and remove its id from every task and subtask.

        Returns:
            True if the tag was deleted, False if not found
        """
        try:
            tag_orm = await self._get_orm(tag_id)
            if tag_orm is None:
                logger.warning(f"Delete failed - tag not found: {tag_id}")
                return False

            from tasker.services.task_service import TaskService

            touched = await TaskService(self.session).remove_tag_from_tasks(tag_id)
            await self.session.delete(tag_orm)
            await self.session.flush()

            logger.info(f"Deleted tag: id={tag_id}, removed from {touched} tasks")
            return True
        except Exception as e:
            logger.error(f"Failed to delete tag {tag_id}: {e}", exc_info=True)
            raise

    async def resolve_tag_names(self, names: Sequence[str], create_missing: bool = True) -> List[str]:
        """
        Map tag names to tag ids, matching names case-insensitively.

        Args:
            names: Tag names in input order
            create_missing: Create tags for names that don't exist yet

        Returns:
            Tag ids in input order; unknown names are skipped when
            create_missing is False
        """
        tag_ids: List[str] = []
        for name in names:
            tag = await self.get_tag_by_name(name)
            if tag is None and create_missing:
                tag = await self.create_tag(name)
            if tag is not None:
                tag_ids.append(tag.id)
        return tag_ids

    async def ensure_default_tags(self) -> List[Tag]:
        """
        Seed the default tags when no tags exist yet.

        Returns:
            All tags
        """
        result = await self.session.execute(select(func.count(TagORM.id)))
        if result.scalar_one() == 0:
            for default in self.DEFAULT_TAGS:
                await self.create_tag(default["name"], color=default["color"], tag_id=default["id"])
            logger.info(f"Created default tags: {[tag['name'] for tag in self.DEFAULT_TAGS]}")
        return await self.get_all_tags()
