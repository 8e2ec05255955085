"""ProductDAO / ProductVersionDAO — staging catalog tables."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy import exists as sa_exists
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.dao.base import BaseDAO
from wpintake.models.product import Product, ProductVersion


class ProductDAO(BaseDAO[Product]):
    model = Product

    async def upsert_by_slug(
        self,
        session: AsyncSession,
        *,
        slug: str,
        name: str,
        type: str,
        author: str,
        author_url: str | None,
        latest_version: str,
        image: str | None,
    ) -> Product:
        """Insert the product or overwrite its listing fields if the slug exists."""
        now = datetime.now(timezone.utc)
        values = {
            "name": name,
            "type": type,
            "author": author,
            "author_url": author_url,
            "latest_version": latest_version,
            "image": image,
            "last_updated_at": now,
        }
        stmt = (
            insert(Product)
            .values(slug=slug, **values)
            .on_conflict_do_update(index_elements=["slug"], set_={**values, "updated_at": now})
            .returning(Product)
        )
        result = await session.execute(stmt, execution_options={"populate_existing": True})
        return result.scalars().one()


class ProductVersionDAO(BaseDAO[ProductVersion]):
    model = ProductVersion

    async def upsert_version(
        self,
        session: AsyncSession,
        *,
        product_id: uuid.UUID,
        version_number: str,
        download_url: str,
    ) -> ProductVersion:
        now = datetime.now(timezone.utc)
        stmt = (
            insert(ProductVersion)
            .values(
                product_id=product_id,
                version_number=version_number,
                download_url=download_url,
                updated_on=now,
            )
            .on_conflict_do_update(
                constraint="uq_product_versions_product_version",
                set_={"download_url": download_url, "updated_on": now, "updated_at": now},
            )
            .returning(ProductVersion)
        )
        result = await session.execute(stmt, execution_options={"populate_existing": True})
        return result.scalars().one()

    async def version_exists(self, session: AsyncSession, slug: str, version_number: str) -> bool:
        stmt = select(
            sa_exists().where(
                ProductVersion.product_id == Product.id,
                Product.slug == slug,
                ProductVersion.version_number == version_number,
            )
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    async def list_versions(self, session: AsyncSession, slug: str) -> list[str]:
        stmt = (
            select(ProductVersion.version_number)
            .join(Product, Product.id == ProductVersion.product_id)
            .where(Product.slug == slug)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
