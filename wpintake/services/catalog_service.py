"""CatalogService — the staging catalog written directly to the database."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.dao.product_dao import ProductDAO, ProductVersionDAO
from wpintake.engines.analyzer.version import latest_version
from wpintake.models.product import Product
from wpintake.services import NotFoundError


class CatalogService:
    def __init__(self, product_dao: ProductDAO, version_dao: ProductVersionDAO) -> None:
        self._product_dao = product_dao
        self._version_dao = version_dao

    async def upsert_release(
        self,
        session: AsyncSession,
        *,
        slug: str,
        name: str,
        type: str,
        version: str,
        download_url: str,
        author: str | None = None,
        author_url: str | None = None,
        image: str | None = None,
    ) -> Product:
        """Create or refresh the product listing and record *version* for it.

        The listing's latest version only moves forward; publishing an older
        version adds it to the history without demoting the listing.
        """
        known = await self._version_dao.list_versions(session, slug)
        product = await self._product_dao.upsert_by_slug(
            session,
            slug=slug,
            name=name,
            type=type,
            author=author or "Unknown",
            author_url=author_url,
            latest_version=latest_version([*known, version]) or version,
            image=image,
        )
        await self._version_dao.upsert_version(
            session,
            product_id=product.id,
            version_number=version,
            download_url=download_url,
        )
        return product

    async def get_product(self, session: AsyncSession, slug: str) -> Product:
        product = await self._product_dao.get_by_field(session, slug=slug)
        if product is None:
            raise NotFoundError("product not found")
        return product

    async def version_exists(self, session: AsyncSession, slug: str, version: str) -> bool:
        return await self._version_dao.version_exists(session, slug, version)

    async def latest_version(self, session: AsyncSession, slug: str) -> str | None:
        versions = await self._version_dao.list_versions(session, slug)
        return latest_version(versions)
