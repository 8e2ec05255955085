"""Build step: package a resolved directory into a deterministic release zip."""

from __future__ import annotations

import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

import structlog

from wpintake.engines.analyzer.walker import skip_junk, walk_tree
from wpintake.engines.builder.flatten import flatten
from wpintake.engines.builder.tree import TREE_FILENAME, write_tree
from wpintake.engines.exceptions import BuildError, UnsafePathError

log = structlog.get_logger("wpintake.engine")

ZIP_FILENAME = "download.zip"
SOURCE_DIRNAME = "source"
PACKAGE_TYPES = ("plugin", "theme")

# Earliest timestamp the zip format can store; keeps archives byte-stable.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = 0o100644 << 16
_DIR_MODE = (0o040755 << 16) | 0x10
_COPY_CHUNK = 1024 * 1024


def default_staging_dir() -> Path:
    return Path(os.environ.get("WPINTAKE_STAGING_DIR", "./staging"))


@dataclass(frozen=True)
class BuildResult:
    version_dir: Path
    zip_path: Path
    source_path: Path | None
    tree_path: Path | None
    packaged_from: Path
    flattened: bool
    file_count: int


def _check_component(field: str, value: str) -> str:
    if (
        not value
        or value in (".", "..")
        or value != value.strip()
        or any(ch in value for ch in ("/", "\\", "\x00"))
    ):
        raise UnsafePathError(field, value)
    return value


def version_dir_for(staging_root: Path, type: str, slug: str, version: str) -> Path:
    """``{staging_root}/{type}/{slug}/{version}``, validating each component."""
    if type not in PACKAGE_TYPES:
        raise UnsafePathError("type", type)
    _check_component("slug", slug)
    _check_component("version", version)
    return Path(staging_root) / type / slug / version


def write_archive(content_dir: Path, slug: str, target: Path) -> int:
    """Write *content_dir* into *target* under a single ``slug/`` root.

    Entries are sorted and stamped with a fixed date so identical input
    always yields an identical archive. Returns the number of files written.
    """
    count = 0
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        root_info = zipfile.ZipInfo(f"{slug}/", date_time=_FIXED_DATE_TIME)
        root_info.external_attr = _DIR_MODE
        zf.writestr(root_info, b"")

        for entry in walk_tree(content_dir, ignore=skip_junk):
            arcname = f"{slug}/{entry.rel_path}"
            if entry.is_dir:
                info = zipfile.ZipInfo(f"{arcname}/", date_time=_FIXED_DATE_TIME)
                info.external_attr = _DIR_MODE
                zf.writestr(info, b"")
                continue

            info = zipfile.ZipInfo(arcname, date_time=_FIXED_DATE_TIME)
            info.external_attr = _FILE_MODE
            info.compress_type = zipfile.ZIP_DEFLATED
            with open(entry.path, "rb") as src, zf.open(info, "w") as dst:
                shutil.copyfileobj(src, dst, _COPY_CHUNK)
            count += 1
    return count


def _extract_source(zip_path: Path, version_dir: Path) -> Path:
    """Re-extract the built archive into ``source/``, swapping atomically."""
    source_dir = version_dir / SOURCE_DIRNAME
    tmp_dir = Path(tempfile.mkdtemp(prefix=".source-", dir=version_dir))
    try:
        with zipfile.ZipFile(zip_path) as zf:
            zf.extractall(tmp_dir)
        if source_dir.exists():
            shutil.rmtree(source_dir)
        os.replace(tmp_dir, source_dir)
    except BaseException:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise
    return source_dir


def build(
    resolved_path: Path,
    slug: str,
    version: str,
    type: str,
    extract_source: bool = True,
    *,
    staging_root: Path | None = None,
) -> BuildResult:
    """Package *resolved_path* as ``{type}/{slug}/{version}/download.zip``.

    With *extract_source*, the archive is also unpacked into ``source/``
    and a ``tree.json`` describing it is written. Raises :class:`BuildError`
    and removes this build's output on any failure.
    """
    resolved_path = Path(resolved_path)
    if not resolved_path.is_dir():
        raise BuildError(f"missing build input at {resolved_path}")

    staging_root = Path(staging_root) if staging_root is not None else default_staging_dir()
    version_dir = version_dir_for(staging_root, type, slug, version)

    content_dir = flatten(resolved_path, slug)
    flattened = content_dir != resolved_path
    if flattened:
        log.info("build.flattened", original=str(resolved_path), flattened=str(content_dir))

    zip_path = version_dir / ZIP_FILENAME
    tree_path = version_dir / TREE_FILENAME
    created: list[Path] = []
    tmp_zip: Path | None = None

    try:
        version_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".download-", suffix=".zip", dir=version_dir)
        os.close(fd)
        tmp_zip = Path(tmp_name)

        file_count = write_archive(content_dir, slug, tmp_zip)
        os.replace(tmp_zip, zip_path)
        tmp_zip = None
        created.append(zip_path)

        source_path = None
        written_tree = None
        if extract_source:
            source_path = _extract_source(zip_path, version_dir)
            created.append(source_path)
            written_tree = write_tree(source_path, tree_path)
            created.append(written_tree)
    except BuildError:
        _cleanup(tmp_zip, created)
        raise
    except (OSError, zipfile.BadZipFile, ValueError) as exc:
        _cleanup(tmp_zip, created)
        raise BuildError(f"build failed for {type}/{slug}/{version}: {exc}") from exc

    log.info(
        "build.done",
        slug=slug,
        version=version,
        type=type,
        files=file_count,
        source=extract_source,
    )
    return BuildResult(
        version_dir=version_dir,
        zip_path=zip_path,
        source_path=source_path,
        tree_path=written_tree,
        packaged_from=content_dir,
        flattened=flattened,
        file_count=file_count,
    )


def _cleanup(tmp_zip: Path | None, created: list[Path]) -> None:
    if tmp_zip is not None:
        tmp_zip.unlink(missing_ok=True)
    for path in created:
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
        else:
            path.unlink(missing_ok=True)
