"""Bounded-concurrency uploads with per-file retries."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from wpintake.engines.analyzer.walker import is_junk, skip_junk, walk_tree
from wpintake.engines.exceptions import UploadError
from wpintake.engines.publisher.storage import ObjectStore, guess_content_type

log = structlog.get_logger("wpintake.engine")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_DEFAULT_CONCURRENCY = 20

ALLOWED_EXTENSIONS = frozenset(
    {
        ".php", ".js", ".css", ".html", ".json", ".xml", ".txt", ".md",
        ".scss", ".less", ".woff", ".woff2", ".png", ".jpg", ".svg", ".zip",
    }
)


@dataclass
class UploadReport:
    uploaded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # rel path -> error

    @property
    def ok(self) -> bool:
        return not self.failed


def _skip_for_upload(name: str, is_dir: bool) -> bool:
    return skip_junk(name, is_dir) or (is_dir and is_junk(name))


def publishable_files(source_dir: Path) -> list[tuple[Path, str]]:
    """(absolute path, posix key suffix) for every uploadable file."""
    return [
        (entry.path, entry.rel_path)
        for entry in walk_tree(source_dir, ignore=_skip_for_upload)
        if not entry.is_dir and entry.path.suffix.lower() in ALLOWED_EXTENSIONS
    ]


async def upload_file(
    store: ObjectStore,
    bucket: str,
    key: str,
    path: Path,
    content_type: str | None = None,
    *,
    retries: int = _MAX_RETRIES,
    base_delay: float = _RETRY_BASE_DELAY,
) -> str:
    """Upload one file, retrying with exponential backoff."""
    path = Path(path)
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise UploadError(f"cannot read {path}: {exc}") from exc
    content_type = content_type or guess_content_type(path)

    last_exc: UploadError | None = None
    for attempt in range(retries):
        try:
            return await store.upload_bytes(bucket, key, data, content_type)
        except UploadError as exc:
            last_exc = exc
            log.warning(
                "upload.retry",
                key=key,
                attempt=attempt + 1,
                max_retries=retries,
                error=str(exc),
            )
        if attempt < retries - 1:
            await asyncio.sleep(base_delay * (2**attempt))

    raise last_exc  # type: ignore[misc]


async def upload_directory(
    store: ObjectStore,
    source_dir: Path,
    bucket: str,
    prefix: str,
    *,
    concurrency: int | None = None,
    base_delay: float = _RETRY_BASE_DELAY,
) -> UploadReport:
    """Upload every publishable file under *source_dir* to ``{prefix}/{rel}``.

    Failures are collected in the report rather than raised.
    """
    if concurrency is None:
        concurrency = int(os.environ.get("WPINTAKE_UPLOAD_CONCURRENCY", str(_DEFAULT_CONCURRENCY)))
    semaphore = asyncio.Semaphore(max(1, concurrency))
    files = publishable_files(Path(source_dir))
    report = UploadReport()
    prefix = prefix.rstrip("/")

    log.info("upload.directory_start", source=str(source_dir), files=len(files))

    async def _one(path: Path, rel: str) -> None:
        key = f"{prefix}/{rel}"
        async with semaphore:
            try:
                await upload_file(store, bucket, key, path, base_delay=base_delay)
            except UploadError as exc:
                log.error("upload.failed", key=key, error=str(exc))
                report.failed[rel] = str(exc)
                return
        report.uploaded.append(key)

    await asyncio.gather(*(_one(path, rel) for path, rel in files))
    report.uploaded.sort()

    log.info(
        "upload.directory_done",
        uploaded=len(report.uploaded),
        failed=len(report.failed),
    )
    return report
