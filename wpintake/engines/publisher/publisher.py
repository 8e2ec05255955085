"""Publisher — push built artifacts to storage and register the release."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.engines.banner.renderer import BANNER_FILENAME
from wpintake.engines.builder.packager import (
    SOURCE_DIRNAME,
    ZIP_FILENAME,
    default_staging_dir,
    version_dir_for,
)
from wpintake.engines.builder.tree import TREE_FILENAME
from wpintake.engines.exceptions import PublishError, UploadError
from wpintake.engines.publisher.catalog import CatalogClient
from wpintake.engines.publisher.storage import ObjectStore
from wpintake.engines.publisher.uploader import UploadReport, upload_directory, upload_file
from wpintake.services.catalog_service import CatalogService

log = structlog.get_logger("wpintake.engine")


@dataclass(frozen=True)
class Release:
    slug: str
    version: str
    type: str
    name: str
    author: str | None = None
    author_url: str | None = None

    @property
    def remote_base(self) -> str:
        """``plugins/akismet/5.3.1``"""
        return f"{self.type}s/{self.slug}/{self.version}"


@dataclass
class PublishResult:
    env: str
    zip_key: str
    tree_key: str | None = None
    banner_url: str | None = None
    source_prefix: str | None = None
    source_report: UploadReport = field(default_factory=UploadReport)


class Publisher:
    """Uploads a staged build and records it in the catalog.

    ``production`` posts to the catalog API; any other target environment
    writes the staging catalog tables through :class:`CatalogService`.
    """

    def __init__(
        self,
        store: ObjectStore,
        catalog_service: CatalogService,
        catalog_client: CatalogClient | None = None,
        *,
        staging_root: Path | None = None,
        target_env: str | None = None,
        public_bucket: str | None = None,
        private_bucket: str | None = None,
        public_base_url: str | None = None,
        retry_base_delay: float = 1.0,
    ) -> None:
        self._store = store
        self._retry_base_delay = retry_base_delay
        self._catalog_service = catalog_service
        self._catalog_client = catalog_client
        self._staging_root = Path(staging_root) if staging_root else default_staging_dir()
        self._target_env = target_env or os.environ.get("WPINTAKE_TARGET_ENV", "staging")
        self._public_bucket = public_bucket or os.environ.get("WPINTAKE_PUBLIC_BUCKET", "public")
        self._private_bucket = private_bucket or os.environ.get(
            "WPINTAKE_PRIVATE_BUCKET", "private"
        )
        base_url = public_base_url or os.environ.get("WPINTAKE_PUBLIC_BASE_URL")
        self._public_base_url = base_url.rstrip("/") if base_url else None

    @property
    def target_env(self) -> str:
        return self._target_env

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        return key

    async def publish(self, session: AsyncSession, release: Release) -> PublishResult:
        """Upload artifacts of *release* and register it.

        Raises :class:`PublishError` when the archive is missing or a main
        artifact cannot be uploaded. Individual source-file failures are
        reported on the result instead.
        """
        version_dir = version_dir_for(
            self._staging_root, release.type, release.slug, release.version
        )
        zip_path = version_dir / ZIP_FILENAME
        if not zip_path.is_file():
            raise PublishError(f"staging artifacts not found for {release.remote_base}")

        base = release.remote_base
        log.info("publish.start", slug=release.slug, version=release.version, env=self._target_env)

        tree_path = version_dir / TREE_FILENAME
        banner_path = version_dir / BANNER_FILENAME

        uploads = [
            self._put(self._private_bucket, f"{base}/{ZIP_FILENAME}", zip_path, "application/zip")
        ]
        if tree_path.is_file():
            uploads.append(
                self._put(self._private_bucket, f"{base}/{TREE_FILENAME}", tree_path, "application/json")
            )
        if banner_path.is_file():
            uploads.append(
                self._put(self._public_bucket, f"{base}/{BANNER_FILENAME}", banner_path, "image/svg+xml")
            )

        try:
            keys = await asyncio.gather(*uploads)
        except UploadError as exc:
            raise PublishError(f"upload failed for {base}: {exc}") from exc

        result = PublishResult(env=self._target_env, zip_key=keys[0])
        rest = iter(keys[1:])
        if tree_path.is_file():
            result.tree_key = next(rest)
        if banner_path.is_file():
            result.banner_url = self.public_url(next(rest))

        source_dir = version_dir / SOURCE_DIRNAME
        if source_dir.is_dir():
            result.source_prefix = f"{base}/{SOURCE_DIRNAME}"
            result.source_report = await upload_directory(
                self._store,
                source_dir,
                self._private_bucket,
                result.source_prefix,
                base_delay=self._retry_base_delay,
            )
            if not result.source_report.ok:
                log.warning(
                    "publish.source_incomplete",
                    slug=release.slug,
                    failed=len(result.source_report.failed),
                )

        await self._register(session, release, result)
        log.info("publish.done", slug=release.slug, version=release.version, env=self._target_env)
        return result

    async def _put(self, bucket: str, key: str, path: Path, content_type: str) -> str:
        return await upload_file(
            self._store, bucket, key, path, content_type, base_delay=self._retry_base_delay
        )

    async def _register(
        self, session: AsyncSession, release: Release, result: PublishResult
    ) -> None:
        if self._target_env == "production":
            if self._catalog_client is None:
                raise PublishError("production publishing requires a catalog client")
            payload = {
                "slug": release.slug,
                "name": release.name,
                "type": release.type.upper(),
                "author": release.author,
                "authorUrl": release.author_url,
                "version": release.version,
                "downloadUrl": result.zip_key,
                "image": result.banner_url,
            }
            try:
                await self._catalog_client.publish(payload)
            except httpx.HTTPError as exc:
                raise PublishError(f"catalog rejected {release.remote_base}: {exc}") from exc
            return

        await self._catalog_service.upsert_release(
            session,
            slug=release.slug,
            name=release.name,
            type=release.type,
            version=release.version,
            download_url=result.zip_key,
            author=release.author,
            author_url=release.author_url,
            image=result.banner_url,
        )
