"""IntakeRunner — the analyze / build / upload job actions."""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wpintake.engines.analyzer.analyzer import analyze
from wpintake.engines.analyzer.version import is_newer, latest_version
from wpintake.engines.banner.renderer import SvgBannerRenderer
from wpintake.engines.builder.packager import build, default_staging_dir
from wpintake.engines.exceptions import BuildError, IntakeError, PublishError
from wpintake.engines.intake.extract import safe_extract
from wpintake.engines.publisher.publisher import Publisher, Release
from wpintake.models.item import Item
from wpintake.queue import Job, JobContext
from wpintake.services import ServiceError, ValidationError
from wpintake.services.catalog_service import CatalogService
from wpintake.services.item_service import ItemService

log = structlog.get_logger("wpintake.engine")


class RemoteVersionLookup(Protocol):
    async def latest_version(self, slug: str) -> str | None: ...


class StagingVersionLookup:
    """Latest version from the staging catalog tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog_service: CatalogService,
    ) -> None:
        self._session_factory = session_factory
        self._catalog_service = catalog_service

    async def latest_version(self, slug: str) -> str | None:
        async with self._session_factory() as session:
            return await self._catalog_service.latest_version(session, slug)


class IntakeRunner:
    """Orchestration layer: pure engines -> Service-layer DB writes.

    Each action runs in its own short transactions so the session stays idle
    while the engines touch the filesystem. A failing action marks the item
    ``failed`` and re-raises for the queue to report.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        item_service: ItemService,
        *,
        publisher: Publisher | None = None,
        remote_lookup: RemoteVersionLookup | None = None,
        banner_renderer: SvgBannerRenderer | None = None,
        staging_root: Path | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._item_service = item_service
        self._publisher = publisher
        self._remote_lookup = remote_lookup
        self._staging_root = Path(staging_root) if staging_root else default_staging_dir()
        self._banner = banner_renderer or SvgBannerRenderer(self._staging_root)

    async def run_job(self, job: Job, ctx: JobContext) -> dict[str, Any] | None:
        handlers = {
            "analyze": self.run_analyze,
            "build": self.run_build,
            "upload": self.run_upload,
        }
        handler = handlers.get(job.action)
        if handler is None:
            raise ValueError(f"unknown job action: {job.action}")
        item_id = uuid.UUID(job.id)
        try:
            return await handler(item_id, job.payload, ctx)
        except (IntakeError, ServiceError, OSError, httpx.HTTPError) as exc:
            ctx.emit(f"CRITICAL ERROR: {exc}")
            await self._mark_failed(item_id, str(exc))
            raise

    # ── actions ────────────────────────────────────────────────────────────

    async def run_analyze(
        self, item_id: uuid.UUID, payload: dict[str, Any], ctx: JobContext
    ) -> dict[str, Any]:
        async with self._session_factory() as session:
            async with session.begin():
                item = await self._item_service.set_status(session, item_id, "analyzing")
                zip_path = Path(item.zip_path)
                extract_dir = Path(item.extract_path or f"{item.zip_path}-extracted")
                original_name = item.original_name
                mode = item.mode

        ctx.emit(f"Starting analysis on: {zip_path.name}")
        ctx.emit("Extracting to temp folder...")
        await asyncio.to_thread(safe_extract, zip_path, extract_dir)
        ctx.emit("Extraction complete. Scanning files...")

        result = await asyncio.to_thread(analyze, extract_dir, original_name, emit=ctx.emit)

        if result.slug:
            known = await self._known_version(item_id, result.slug, check_remote=mode == "update")
            result = result.with_is_newer(is_newer(result.version, known))
            if mode == "update":
                ctx.emit(
                    f"Version check: local {result.version or '?'} vs known {known or 'none'}"
                    f" -> {'newer' if result.is_newer else 'not newer'}"
                )

        async with self._session_factory() as session:
            async with session.begin():
                await self._item_service.record_analysis(
                    session, item_id, result, analysis_log="\n".join(ctx.lines)
                )

        if result.auto_buildable:
            ctx.emit("Score is 10/10. Auto-starting builder...")
            ctx.submit(Job(str(item_id), "build"))

        return result.to_dict()

    async def run_build(
        self, item_id: uuid.UUID, payload: dict[str, Any], ctx: JobContext
    ) -> dict[str, Any]:
        force = bool(payload.get("force"))
        async with self._session_factory() as session:
            async with session.begin():
                item = await self._item_service.set_status(session, item_id, "building")
                slug, version, type_ = _require_identity(item)
                name = (item.meta or {}).get("name") or slug
                input_path = _build_input(item)

        ctx.emit(f"Starting build process for {slug} v{version}")
        known = await self._known_version(item_id, slug, check_remote=True)
        newer = is_newer(version, known)
        ctx.emit(f"Version check: {'is latest' if newer else 'older version'}")
        extract_source = newer or force

        result = await asyncio.to_thread(
            build,
            input_path,
            slug,
            version,
            type_,
            extract_source,
            staging_root=self._staging_root,
        )
        if result.flattened:
            ctx.emit(f"Detected nested folder. Flattened input to {result.packaged_from}")
        ctx.emit(f"Build success. Zip created at: {result.zip_path}")

        banner_path = None
        if result.source_path is not None:
            ctx.emit("Generating banners...")
            try:
                banner_path = await asyncio.to_thread(
                    self._banner.render, type_, name, version, slug
                )
                ctx.emit("Banners generated.")
            except (OSError, BuildError) as exc:
                log.warning("build.banner_failed", slug=slug, error=str(exc))
                ctx.emit(f"Image gen warning: {exc}")

        async with self._session_factory() as session:
            async with session.begin():
                await self._item_service.set_status(session, item_id, "built")

        return {
            "success": True,
            "isLatest": newer,
            "zipPath": str(result.zip_path),
            "sourcePath": str(result.source_path) if result.source_path else None,
            "bannerPath": str(banner_path) if banner_path else None,
        }

    async def run_upload(
        self, item_id: uuid.UUID, payload: dict[str, Any], ctx: JobContext
    ) -> dict[str, Any]:
        if self._publisher is None:
            raise PublishError("publishing is not configured")
        force = bool(payload.get("force"))

        async with self._session_factory() as session:
            async with session.begin():
                item = await self._item_service.get(session, item_id)
                slug, version, type_ = _require_identity(item)

        known = await self._known_version(item_id, slug, check_remote=True)
        if not is_newer(version, known):
            if not force:
                raise PublishError(
                    f"{slug} {version} is not newer than {known}; force the upload to publish"
                )
            ctx.emit(f"Forcing upload of {version} over {known}")

        async with self._session_factory() as session:
            async with session.begin():
                item = await self._item_service.set_status(session, item_id, "uploading")
                meta = item.meta or {}
                release = Release(
                    slug=slug,
                    version=version,
                    type=type_,
                    name=meta.get("name") or slug,
                    author=meta.get("author"),
                    author_url=meta.get("author_url"),
                )

        ctx.emit(f"Publishing {release.remote_base} to {self._publisher.target_env}")
        async with self._session_factory() as session:
            async with session.begin():
                published = await self._publisher.publish(session, release)
                await self._item_service.set_status(session, item_id, "published")

        if published.source_report.failed:
            ctx.emit(f"Warning: {len(published.source_report.failed)} source files failed to upload")
        ctx.emit("Publish complete.")
        return {
            "success": True,
            "env": published.env,
            "downloadUrl": published.zip_key,
            "image": published.banner_url,
            "sourceUrl": published.source_prefix,
            "failedFiles": sorted(published.source_report.failed),
        }

    # ── internal ───────────────────────────────────────────────────────────

    async def _known_version(
        self, item_id: uuid.UUID, slug: str, *, check_remote: bool
    ) -> str | None:
        """Highest version already known for *slug*, locally and optionally remotely."""
        async with self._session_factory() as session:
            local = await self._item_service.latest_known_version(
                session, slug, exclude_id=item_id
            )
        remote = None
        if check_remote and self._remote_lookup is not None:
            remote = await self._remote_lookup.latest_version(slug)
        return latest_version([local, remote])

    async def _mark_failed(self, item_id: uuid.UUID, error: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await self._item_service.set_status(session, item_id, "failed", error=error)


def _require_identity(item: Item) -> tuple[str, str, str]:
    if not item.slug or not item.version or not item.type:
        raise ValidationError("slug, version and type are required; review the item first")
    return item.slug, item.version, item.type


def _build_input(item: Item) -> Path:
    """The winning header's directory, else the whole extracted tree."""
    resolved = (item.meta or {}).get("resolved_path")
    if resolved and Path(resolved).is_dir():
        return Path(resolved)
    if item.extract_path:
        return Path(item.extract_path)
    raise BuildError("item has no extracted files to build from")
