"""ItemDAO — items table operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.dao.base import BaseDAO, Page
from wpintake.models.item import Item

# Items whose versions count as "already known" for a slug.
KNOWN_VERSION_STATUSES = ("ready", "built", "published")


class ItemDAO(BaseDAO[Item]):
    model = Item

    async def list_paginated(
        self,
        session: AsyncSession,
        cursor: str | None = None,
        page_size: int = 20,
        status: str | None = None,
    ) -> Page[Item]:
        query = select(Item)
        if status is not None:
            query = query.where(Item.status == status)
        return await self.paginate(session, query, cursor, page_size, with_total=True)

    async def versions_for_slug(
        self,
        session: AsyncSession,
        slug: str,
        statuses: tuple[str, ...] = KNOWN_VERSION_STATUSES,
        exclude_id=None,
    ) -> list[str]:
        """Versions recorded for *slug* among items in *statuses*."""
        stmt = select(Item.version).where(
            Item.slug == slug,
            Item.status.in_(statuses),
            Item.version.is_not(None),
        )
        if exclude_id is not None:
            stmt = stmt.where(Item.id != exclude_id)
        result = await session.execute(stmt)
        return [row for row in result.scalars().all()]
