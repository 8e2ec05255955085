"""Safe extraction of uploaded archives."""

from __future__ import annotations

import shutil
import stat
import tempfile
import zipfile
from pathlib import Path, PurePosixPath

import structlog

from wpintake.engines.exceptions import ExtractionError

log = structlog.get_logger("wpintake.engine")


def _member_target(dest: Path, info: zipfile.ZipInfo) -> Path:
    name = info.filename.replace("\\", "/")
    parts = PurePosixPath(name).parts
    if name.startswith("/") or (parts and parts[0].endswith(":")) or ".." in parts:
        raise ExtractionError(f"archive entry escapes the extraction root: {info.filename!r}")
    target = (dest / name).resolve()
    if not target.is_relative_to(dest.resolve()):
        raise ExtractionError(f"archive entry escapes the extraction root: {info.filename!r}")
    return target


def _is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


def safe_extract(zip_path: Path, dest: Path) -> Path:
    """Extract *zip_path* into a fresh *dest* directory.

    Every entry is checked before anything is written; absolute paths,
    ``..`` components and symlink entries are rejected. Extraction goes to
    a sibling temp directory which replaces *dest* only on success.
    """
    zip_path = Path(zip_path)
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp_dir = Path(tempfile.mkdtemp(prefix=f".{dest.name}-", dir=dest.parent))

    try:
        with zipfile.ZipFile(zip_path) as zf:
            members = zf.infolist()
            for info in members:
                if _is_symlink(info):
                    raise ExtractionError(f"symlink entries are not allowed: {info.filename!r}")
                _member_target(tmp_dir, info)
            zf.extractall(tmp_dir, members=members)
        if dest.exists():
            shutil.rmtree(dest)
        tmp_dir.rename(dest)
    except zipfile.BadZipFile as exc:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise ExtractionError(f"invalid zip file: {zip_path.name}") from exc
    except ExtractionError:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise
    except OSError as exc:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise ExtractionError(f"extraction of {zip_path.name} failed: {exc}") from exc

    log.info("extract.done", archive=str(zip_path), dest=str(dest), entries=len(members))
    return dest
