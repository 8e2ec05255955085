"""Tests for Publisher."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from wpintake.engines.banner.renderer import SvgBannerRenderer
from wpintake.engines.builder.packager import build
from wpintake.engines.exceptions import PublishError, UploadError
from wpintake.engines.publisher.publisher import Publisher, Release
from wpintake.engines.publisher.storage import LocalObjectStore

RELEASE = Release(
    slug="hello",
    version="1.0.0",
    type="plugin",
    name="Hello",
    author="Jane",
    author_url="https://example.com",
)


@pytest.fixture
def staged(make_tree, tmp_path):
    """A full staging build (zip, source, tree.json, banner) for RELEASE."""
    staging = tmp_path / "staging"
    src = make_tree({"hello.php": "<?php", "js/app.js": "x", "notes.bak": "skip"})
    build(src, "hello", "1.0.0", "plugin", True, staging_root=staging)
    SvgBannerRenderer(staging).render("plugin", "Hello", "1.0.0", "hello")
    return staging


def _publisher(store, staging, **kwargs) -> Publisher:
    kwargs.setdefault("catalog_service", AsyncMock())
    return Publisher(
        store,
        staging_root=staging,
        public_bucket="pub",
        private_bucket="priv",
        public_base_url="https://cdn.test/",
        retry_base_delay=0,
        **kwargs,
    )


class TestPublishStaging:
    async def test_uploads_and_registers(self, staged, tmp_path):
        store = LocalObjectStore(tmp_path / "objects")
        catalog_service = AsyncMock()
        publisher = _publisher(store, staged, catalog_service=catalog_service, target_env="staging")
        session = AsyncMock()

        result = await publisher.publish(session, RELEASE)

        objects = tmp_path / "objects"
        assert (objects / "priv" / "plugins/hello/1.0.0/download.zip").is_file()
        assert (objects / "priv" / "plugins/hello/1.0.0/tree.json").is_file()
        assert (objects / "pub" / "plugins/hello/1.0.0/banner.svg").is_file()
        assert (objects / "priv" / "plugins/hello/1.0.0/source/hello/hello.php").is_file()
        assert not (objects / "priv" / "plugins/hello/1.0.0/source/hello/notes.bak").exists()

        assert result.env == "staging"
        assert result.zip_key == "plugins/hello/1.0.0/download.zip"
        assert result.tree_key == "plugins/hello/1.0.0/tree.json"
        assert result.banner_url == "https://cdn.test/plugins/hello/1.0.0/banner.svg"
        assert result.source_prefix == "plugins/hello/1.0.0/source"
        assert result.source_report.ok

        catalog_service.upsert_release.assert_awaited_once()
        kwargs = catalog_service.upsert_release.call_args.kwargs
        assert kwargs["slug"] == "hello"
        assert kwargs["download_url"] == "plugins/hello/1.0.0/download.zip"
        assert kwargs["image"] == "https://cdn.test/plugins/hello/1.0.0/banner.svg"

    async def test_missing_build(self, tmp_path):
        publisher = _publisher(LocalObjectStore(tmp_path / "o"), tmp_path / "empty")
        with pytest.raises(PublishError, match="staging artifacts not found"):
            await publisher.publish(AsyncMock(), RELEASE)

    async def test_main_artifact_failure(self, staged):
        store = AsyncMock()
        store.upload_bytes = AsyncMock(side_effect=UploadError("nope"))
        catalog_service = AsyncMock()
        publisher = _publisher(store, staged, catalog_service=catalog_service, target_env="staging")
        with pytest.raises(PublishError, match="upload failed"):
            await publisher.publish(AsyncMock(), RELEASE)
        catalog_service.upsert_release.assert_not_awaited()


class TestPublishProduction:
    async def test_posts_to_catalog(self, staged, tmp_path):
        client = AsyncMock()
        catalog_service = AsyncMock()
        publisher = _publisher(
            LocalObjectStore(tmp_path / "o"),
            staged,
            catalog_service=catalog_service,
            catalog_client=client,
            target_env="production",
        )
        result = await publisher.publish(AsyncMock(), RELEASE)

        assert result.env == "production"
        payload = client.publish.call_args.args[0]
        assert payload["type"] == "PLUGIN"
        assert payload["authorUrl"] == "https://example.com"
        assert payload["downloadUrl"] == "plugins/hello/1.0.0/download.zip"
        catalog_service.upsert_release.assert_not_awaited()

    async def test_catalog_failure(self, staged, tmp_path):
        client = AsyncMock()
        client.publish = AsyncMock(side_effect=httpx.ConnectError("down"))
        publisher = _publisher(
            LocalObjectStore(tmp_path / "o"), staged, catalog_client=client, target_env="production"
        )
        with pytest.raises(PublishError, match="catalog rejected"):
            await publisher.publish(AsyncMock(), RELEASE)

    async def test_requires_client(self, staged, tmp_path):
        publisher = _publisher(LocalObjectStore(tmp_path / "o"), staged, target_env="production")
        with pytest.raises(PublishError, match="requires a catalog client"):
            await publisher.publish(AsyncMock(), RELEASE)


def test_remote_base():
    assert RELEASE.remote_base == "plugins/hello/1.0.0"
    assert Release("t", "2", "theme", "T").remote_base == "themes/t/2"
