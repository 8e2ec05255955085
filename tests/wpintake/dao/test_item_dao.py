"""ItemDAO against a real PostgreSQL database."""

import os
import uuid

import pytest

from wpintake.dao.base import InvalidCursorError
from wpintake.dao.item_dao import ItemDAO

pytestmark = pytest.mark.skipif(
    os.environ.get("TEST_DATABASE_URL") is None, reason="TEST_DATABASE_URL not set"
)

dao = ItemDAO()


async def _item(session, **values):
    defaults = {"original_name": "a.zip", "zip_path": "/tmp/a.zip"}
    defaults.update(values)
    return await dao.create(session, **defaults)


class TestCreateAndUpdate:
    async def test_create_uses_server_defaults(self, session):
        item = await _item(session)
        assert isinstance(item.id, uuid.UUID)
        assert item.status == "pending"
        assert item.mode == "new"
        assert item.created_at is not None

    async def test_metadata_column_roundtrip(self, session):
        item = await _item(session, meta={"reason": "perfect structure", "score": 10})
        fetched = await dao.get_by_id(session, item.id)
        assert fetched.meta == {"reason": "perfect structure", "score": 10}

    async def test_update(self, session):
        item = await _item(session)
        updated = await dao.update(session, item.id, status="analyzing", score=4)
        assert (updated.status, updated.score) == ("analyzing", 4)

    async def test_update_missing_returns_none(self, session):
        assert await dao.update(session, uuid.uuid4(), status="ready") is None

    async def test_update_immutable(self, session):
        item = await _item(session)
        with pytest.raises(AttributeError, match="immutable"):
            await dao.update(session, item.id, created_at=None)

    async def test_update_unknown_column(self, session):
        item = await _item(session)
        with pytest.raises(AttributeError, match="no column"):
            await dao.update(session, item.id, colour="blue")

    async def test_get_by_field(self, session):
        await _item(session, original_name="findme.zip")
        found = await dao.get_by_field(session, original_name="findme.zip")
        assert found is not None
        with pytest.raises(ValueError):
            await dao.get_by_field(session)


class TestListPaginated:
    async def test_walks_all_pages_once(self, session):
        created = {(await _item(session, original_name=f"{i}.zip")).id for i in range(5)}
        seen: list[uuid.UUID] = []
        cursor = None
        while True:
            page = await dao.list_paginated(session, cursor=cursor, page_size=2)
            seen.extend(i.id for i in page.data if i.id in created)
            if not page.has_more:
                break
            cursor = page.next_cursor
        assert len(seen) == len(set(seen))
        assert set(seen) == created

    async def test_status_filter(self, session):
        ready = await _item(session, status="ready")
        await _item(session, status="failed")
        page = await dao.list_paginated(session, page_size=100, status="ready")
        assert ready.id in {i.id for i in page.data}
        assert all(i.status == "ready" for i in page.data)
        assert page.total == len(page.data)

    async def test_bad_cursor(self, session):
        with pytest.raises(InvalidCursorError):
            await dao.list_paginated(session, cursor="junk")


class TestVersionsForSlug:
    async def test_only_known_statuses(self, session):
        slug = f"s-{uuid.uuid4().hex[:8]}"
        await _item(session, slug=slug, version="1.0", status="published")
        await _item(session, slug=slug, version="1.1", status="ready")
        await _item(session, slug=slug, version="9.9", status="failed")
        await _item(session, slug=slug, version=None, status="built")
        versions = await dao.versions_for_slug(session, slug)
        assert sorted(versions) == ["1.0", "1.1"]

    async def test_exclude_id(self, session):
        slug = f"s-{uuid.uuid4().hex[:8]}"
        a = await _item(session, slug=slug, version="1.0", status="built")
        await _item(session, slug=slug, version="2.0", status="built")
        assert await dao.versions_for_slug(session, slug, exclude_id=a.id) == ["2.0"]
