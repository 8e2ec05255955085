"""Tests for IntakeRunner — the analyze / build / upload job actions."""

from __future__ import annotations

import uuid
import zipfile
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from wpintake.engines.exceptions import ExtractionError, PublishError
from wpintake.engines.intake.runner import IntakeRunner
from wpintake.engines.publisher.publisher import PublishResult
from wpintake.models.item import Item
from wpintake.queue import Job
from wpintake.services.item_service import ItemService

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryItemDAO:
    def __init__(self) -> None:
        self.items: dict[uuid.UUID, Item] = {}

    def add(self, **values) -> Item:
        now = datetime.now(timezone.utc)
        defaults = {
            "id": uuid.uuid4(),
            "mode": "new",
            "status": "pending",
            "meta": None,
            "created_at": now,
            "updated_at": now,
        }
        defaults.update(values)
        item = Item(**defaults)
        self.items[item.id] = item
        return item

    async def get_by_id(self, session, pk):
        return self.items.get(pk)

    async def update(self, session, pk, **values):
        item = self.items[pk]
        for key, value in values.items():
            setattr(item, key, value)
        return item

    async def versions_for_slug(self, session, slug, statuses=None, exclude_id=None):
        return [
            i.version
            for i in self.items.values()
            if i.slug == slug and i.id != exclude_id and i.status in ("ready", "built", "published")
        ]


class FakeContext:
    def __init__(self) -> None:
        self.lines: list[str] = []
        self.submitted: list[Job] = []

    def emit(self, message: str) -> None:
        self.lines.append(message)

    def submit(self, job: Job) -> None:
        self.submitted.append(job)


def _session_factory():
    session = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    session.begin = MagicMock(return_value=session)
    return MagicMock(return_value=session)


def _zip_dir(root, target):
    with zipfile.ZipFile(target, "w") as zf:
        for path in sorted(root.rglob("*")):
            if path.is_file():
                zf.write(path, path.relative_to(root).as_posix())
    return target


@pytest.fixture
def dao():
    return InMemoryItemDAO()


@pytest.fixture
def staging(tmp_path):
    return tmp_path / "staging"


def _runner(dao, staging, **kwargs) -> IntakeRunner:
    return IntakeRunner(_session_factory(), ItemService(dao), staging_root=staging, **kwargs)


def _uploaded(dao, make_tree, tmp_path, files, name="hello.zip", **values) -> Item:
    root = make_tree(files, "src")
    zip_path = _zip_dir(root, tmp_path / name)
    return dao.add(
        original_name=name,
        zip_path=str(zip_path),
        extract_path=str(tmp_path / "extracted"),
        **values,
    )


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


class TestAnalyze:
    async def test_perfect_archive_chains_build(self, dao, staging, make_tree, tmp_path, plugin_php):
        item = _uploaded(dao, make_tree, tmp_path, {"hello/hello.php": plugin_php("Hello", "1.0.0", "hello")})
        ctx = FakeContext()
        result = await _runner(dao, staging).run_job(Job(str(item.id), "analyze"), ctx)

        assert result["score"] == 10
        assert result["is_newer"] is True
        assert item.status == "ready"
        assert item.slug == "hello"
        assert item.meta["resolved_path"].endswith("hello")
        assert "Score is 10/10. Auto-starting builder..." in ctx.lines
        assert item.analysis_log.startswith("Starting analysis on: hello.zip")
        assert [(j.id, j.action) for j in ctx.submitted] == [(str(item.id), "build")]

    async def test_ambiguous_archive_needs_review(self, dao, staging, make_tree, tmp_path, plugin_php):
        item = _uploaded(
            dao,
            make_tree,
            tmp_path,
            {"a/a.php": plugin_php("A"), "b/b.php": plugin_php("B")},
        )
        ctx = FakeContext()
        result = await _runner(dao, staging).run_job(Job(str(item.id), "analyze"), ctx)
        assert result["score"] == 3
        assert item.status == "needs_review"
        assert ctx.submitted == []

    async def test_update_mode_checks_remote(self, dao, staging, make_tree, tmp_path, plugin_php):
        item = _uploaded(
            dao,
            make_tree,
            tmp_path,
            {"hello/hello.php": plugin_php("Hello", "1.0.0", "hello")},
            mode="update",
        )
        remote = AsyncMock()
        remote.latest_version.return_value = "1.2.0"
        result = await _runner(dao, staging, remote_lookup=remote).run_job(
            Job(str(item.id), "analyze"), FakeContext()
        )
        remote.latest_version.assert_awaited_once_with("hello")
        assert result["is_newer"] is False

    async def test_bad_archive_marks_failed(self, dao, staging, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"nope")
        item = dao.add(original_name="bogus.zip", zip_path=str(bogus), extract_path=str(tmp_path / "x"))
        ctx = FakeContext()
        with pytest.raises(ExtractionError):
            await _runner(dao, staging).run_job(Job(str(item.id), "analyze"), ctx)
        assert item.status == "failed"
        assert "invalid zip" in item.error
        assert ctx.lines[-1].startswith("CRITICAL ERROR:")


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------


def _ready_item(dao, make_tree, **values) -> Item:
    root = make_tree({"hello/hello.php": "<?php", "hello/readme.txt": "hi"}, "extracted")
    defaults = {
        "original_name": "hello.zip",
        "zip_path": "unused.zip",
        "extract_path": str(root),
        "status": "ready",
        "slug": "hello",
        "version": "1.0.0",
        "type": "plugin",
        "meta": {"resolved_path": str(root / "hello"), "name": "Hello World"},
    }
    defaults.update(values)
    return dao.add(**defaults)


class TestBuild:
    async def test_latest_version_builds_source_and_banner(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree)
        result = await _runner(dao, staging).run_job(Job(str(item.id), "build"), FakeContext())

        version_dir = staging / "plugin" / "hello" / "1.0.0"
        assert result["success"] is True
        assert result["isLatest"] is True
        assert (version_dir / "download.zip").is_file()
        assert (version_dir / "source" / "hello" / "hello.php").is_file()
        assert (version_dir / "banner.svg").is_file()
        assert "Hello World" in (version_dir / "banner.svg").read_text()
        assert item.status == "built"

    async def test_older_version_skips_source(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree)
        dao.add(original_name="o.zip", zip_path="o", slug="hello", version="2.0.0", status="published")
        result = await _runner(dao, staging).run_job(Job(str(item.id), "build"), FakeContext())

        assert result["isLatest"] is False
        assert result["sourcePath"] is None
        assert result["bannerPath"] is None
        assert (staging / "plugin" / "hello" / "1.0.0" / "download.zip").is_file()

    async def test_force_extracts_source(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree)
        dao.add(original_name="o.zip", zip_path="o", slug="hello", version="2.0.0", status="published")
        result = await _runner(dao, staging).run_job(
            Job(str(item.id), "build", {"force": True}), FakeContext()
        )
        assert result["sourcePath"] is not None

    async def test_missing_identity_fails(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree, slug=None)
        with pytest.raises(Exception, match="review the item first"):
            await _runner(dao, staging).run_job(Job(str(item.id), "build"), FakeContext())
        assert item.status == "failed"

    async def test_falls_back_to_extract_path(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree, meta={"resolved_path": "/does/not/exist"})
        result = await _runner(dao, staging).run_job(Job(str(item.id), "build"), FakeContext())
        with zipfile.ZipFile(result["zipPath"]) as zf:
            assert "hello/hello.php" in zf.namelist()


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------


class TestUpload:
    def _publisher(self):
        publisher = AsyncMock()
        publisher.target_env = "staging"
        publisher.publish.return_value = PublishResult(
            env="staging",
            zip_key="plugins/hello/1.0.0/download.zip",
            banner_url="plugins/hello/1.0.0/banner.svg",
            source_prefix="plugins/hello/1.0.0/source",
        )
        return publisher

    async def test_publishes(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree, status="built", meta={"name": "Hello", "author": "Jane"})
        publisher = self._publisher()
        result = await _runner(dao, staging, publisher=publisher).run_job(
            Job(str(item.id), "upload"), FakeContext()
        )
        release = publisher.publish.call_args.args[1]
        assert release.slug == "hello"
        assert release.author == "Jane"
        assert result["downloadUrl"] == "plugins/hello/1.0.0/download.zip"
        assert result["failedFiles"] == []
        assert item.status == "published"

    async def test_refuses_non_newer(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree, status="built")
        remote = AsyncMock()
        remote.latest_version.return_value = "1.0.0"
        publisher = self._publisher()
        with pytest.raises(PublishError, match="not newer"):
            await _runner(dao, staging, publisher=publisher, remote_lookup=remote).run_job(
                Job(str(item.id), "upload"), FakeContext()
            )
        publisher.publish.assert_not_awaited()
        assert item.status == "failed"

    async def test_force_overrides_version_check(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree, status="built")
        remote = AsyncMock()
        remote.latest_version.return_value = "1.0.0"
        publisher = self._publisher()
        await _runner(dao, staging, publisher=publisher, remote_lookup=remote).run_job(
            Job(str(item.id), "upload", {"force": True}), FakeContext()
        )
        assert item.status == "published"

    async def test_requires_publisher(self, dao, staging, make_tree):
        item = _ready_item(dao, make_tree, status="built")
        with pytest.raises(PublishError, match="not configured"):
            await _runner(dao, staging).run_job(Job(str(item.id), "upload"), FakeContext())


async def test_unknown_action(dao, staging):
    with pytest.raises(ValueError):
        await _runner(dao, staging).run_job(Job(str(uuid.uuid4()), "explode"), FakeContext())
