"""Archive scanner: locate header-bearing files and nested archives."""

from __future__ import annotations

from pathlib import Path

import structlog

from wpintake.engines.analyzer.header import read_header
from wpintake.engines.analyzer.models import Candidate, PackageType, ScanOutcome
from wpintake.engines.analyzer.walker import skip_hidden_dirs, walk_tree

log = structlog.get_logger("wpintake.engine")


def classify(name: str) -> PackageType | None:
    """``style.css`` (exact) is a theme candidate, any ``*.php`` a plugin one."""
    if name == "style.css":
        return "theme"
    if name.lower().endswith(".php"):
        return "plugin"
    return None


def is_archive(name: str) -> bool:
    return name.lower().endswith(".zip")


def scan(root: Path, max_depth: int | None = None) -> ScanOutcome:
    """Walk *root* and collect candidates plus nested archive paths.

    *max_depth* bounds candidate discovery only: ``1`` restricts headers to
    root files and immediate child folders, ``None`` scans everything.
    Nested archives are always collected at full depth. Hidden and junk
    directories are never entered.
    """
    root = Path(root)
    outcome = ScanOutcome()

    for entry in walk_tree(root, ignore=skip_hidden_dirs):
        if entry.is_dir:
            continue

        name = entry.path.name
        if is_archive(name):
            outcome.nested_archive_paths.append(entry.rel_path)
            continue

        if max_depth is not None and entry.depth > max_depth:
            continue

        kind = classify(name)
        if kind is None:
            continue

        try:
            header = read_header(entry.path, kind)
        except (OSError, ValueError) as exc:
            log.debug("scan.read_failed", file=entry.rel_path, error=str(exc))
            continue
        if header is None:
            continue

        log.debug("scan.header_found", file=entry.rel_path, kind=kind, depth=entry.depth)
        outcome.candidates.append(
            Candidate(
                file_path=entry.rel_path,
                detected_type=kind,
                header=header,
                depth=entry.depth,
            )
        )

    return outcome
