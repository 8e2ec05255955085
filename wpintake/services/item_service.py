"""ItemService — uploaded archive records and their status lifecycle."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.dao.item_dao import ItemDAO
from wpintake.engines.analyzer.models import AnalysisResult
from wpintake.engines.analyzer.version import latest_version
from wpintake.engines.builder.packager import PACKAGE_TYPES
from wpintake.models.item import ITEM_STATUSES, Item
from wpintake.services import ConflictError, NotFoundError, ValidationError

_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"analyzing", "failed"}),
    "analyzing": frozenset({"ready", "needs_review", "failed"}),
    "ready": frozenset({"building", "needs_review", "failed"}),
    "needs_review": frozenset({"ready", "building", "failed"}),
    "building": frozenset({"built", "failed"}),
    "built": frozenset({"uploading", "building", "ready", "needs_review"}),
    "uploading": frozenset({"published", "failed"}),
    "published": frozenset({"building", "uploading", "ready"}),
    "failed": frozenset({"analyzing", "ready", "needs_review", "building", "uploading"}),
}

# A job is running against items in these states.
BUSY_STATUSES = frozenset({"analyzing", "building", "uploading"})

_REVIEW_FIELDS = ("slug", "version", "type", "name", "author", "author_url")


class ItemService:
    """Stateless service for item records."""

    def __init__(self, item_dao: ItemDAO) -> None:
        self._item_dao = item_dao

    async def create(
        self,
        session: AsyncSession,
        *,
        original_name: str,
        zip_path: str,
        extract_path: str | None = None,
        mode: str = "new",
    ) -> Item:
        if mode not in ("new", "update"):
            raise ValidationError(f"unknown intake mode: {mode}")
        return await self._item_dao.create(
            session,
            original_name=original_name,
            zip_path=zip_path,
            extract_path=extract_path,
            mode=mode,
            status="pending",
        )

    async def get(self, session: AsyncSession, item_id: uuid.UUID) -> Item:
        """Raises :class:`NotFoundError` if the item does not exist."""
        item = await self._item_dao.get_by_id(session, item_id)
        if item is None:
            raise NotFoundError("item not found")
        return item

    async def list(
        self,
        session: AsyncSession,
        cursor: str | None = None,
        page_size: int = 20,
        status: str | None = None,
    ) -> dict:
        if status is not None and status not in ITEM_STATUSES:
            raise ValidationError(f"unknown status: {status}")
        page = await self._item_dao.list_paginated(session, cursor, page_size, status)
        return {
            "data": page.data,
            "next_cursor": page.next_cursor,
            "has_more": page.has_more,
            "total": page.total,
        }

    async def set_status(
        self,
        session: AsyncSession,
        item_id: uuid.UUID,
        status: str,
        *,
        error: str | None = None,
    ) -> Item:
        """Move an item to *status*, enforcing the lifecycle.

        ``failed`` is reachable from anywhere and records *error*.
        """
        item = await self.get(session, item_id)
        if status not in ITEM_STATUSES:
            raise ValidationError(f"unknown status: {status}")
        if status != "failed" and status not in _TRANSITIONS[item.status]:
            raise ValidationError(f"cannot move item from {item.status} to {status}")
        values: dict[str, Any] = {"status": status}
        if status == "failed":
            values["error"] = error
        elif error is None:
            values["error"] = None
        return await self._item_dao.update(session, item.id, **values)

    async def record_analysis(
        self,
        session: AsyncSession,
        item_id: uuid.UUID,
        result: AnalysisResult,
        *,
        analysis_log: str | None = None,
    ) -> Item:
        """Persist an analysis verdict; score 10 -> ready, else needs_review."""
        item = await self.get(session, item_id)
        status = "ready" if result.auto_buildable else "needs_review"
        return await self._item_dao.update(
            session,
            item.id,
            status=status,
            score=result.score,
            slug=result.slug,
            version=result.version,
            type=result.type,
            meta=result.to_dict(),
            analysis_log=analysis_log,
            error=None,
        )

    async def apply_review(
        self,
        session: AsyncSession,
        item_id: uuid.UUID,
        overrides: dict[str, Any],
    ) -> Item:
        """Apply manual corrections from the review form and mark the item ready."""
        item = await self.get(session, item_id)
        if item.status in BUSY_STATUSES:
            raise ConflictError(f"item is {item.status}; wait for the running job")

        changes = {k: v for k, v in overrides.items() if k in _REVIEW_FIELDS and v is not None}
        if "type" in changes and changes["type"] not in PACKAGE_TYPES:
            raise ValidationError(f"type must be one of {', '.join(PACKAGE_TYPES)}")
        for key in ("slug", "version"):
            if key in changes and not str(changes[key]).strip():
                raise ValidationError(f"{key} must not be empty")

        meta = dict(item.meta or {})
        meta.update(changes)
        meta["reviewed"] = True
        values: dict[str, Any] = {"meta": meta}
        identity_changed = False
        for key in ("slug", "version", "type"):
            if key in changes and changes[key] != getattr(item, key):
                values[key] = changes[key]
                identity_changed = True
        # Built artifacts stay valid unless the identity they were built for changed.
        if identity_changed or item.status in ("pending", "needs_review", "failed"):
            values["status"] = "ready"
        values["error"] = None
        return await self._item_dao.update(session, item.id, **values)

    async def latest_known_version(
        self,
        session: AsyncSession,
        slug: str,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> str | None:
        """Highest version already processed for *slug* by other items."""
        versions = await self._item_dao.versions_for_slug(session, slug, exclude_id=exclude_id)
        return latest_version(versions)
