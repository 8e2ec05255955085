"""Shared directory walker for the scanner, tree generation and uploads."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog

log = structlog.get_logger("wpintake.engine")

# (entry name, is_dir) -> True to skip the entry (and everything below it).
IgnorePredicate = Callable[[str, bool], bool]

JUNK_NAMES = frozenset({"node_modules", ".git", "__macosx"})
OS_JUNK_FILES = frozenset({".ds_store", "thumbs.db"})


def is_hidden(name: str) -> bool:
    """Dot-folders and ``__``-prefixed metadata folders (``__MACOSX``)."""
    return name.startswith(".") or name.startswith("__")


def is_junk(name: str) -> bool:
    return name.lower() in JUNK_NAMES


def skip_hidden_dirs(name: str, is_dir: bool) -> bool:
    """Scanner rule: never descend into hidden or junk directories."""
    return is_dir and (is_hidden(name) or is_junk(name))


def skip_junk(name: str, is_dir: bool) -> bool:
    """Packaging rule: drop VCS/OS clutter but keep dotfiles like .htaccess."""
    lowered = name.lower()
    if is_dir:
        return lowered in (".git", "__macosx")
    return lowered in OS_JUNK_FILES


@dataclass(frozen=True)
class TreeEntry:
    path: Path
    rel_path: str  # posix, relative to the walk root
    depth: int  # 0 = directly in the walk root
    is_dir: bool
    size: int = 0


def walk_tree(
    root: Path,
    *,
    ignore: IgnorePredicate | None = None,
    max_depth: int | None = None,
) -> Iterator[TreeEntry]:
    """Depth-first, name-sorted walk of *root*.

    Directories are yielded before their contents. Entries deeper than
    *max_depth* are not yielded and such directories are not descended
    into. Unreadable directories are logged and skipped; symlinks are
    never followed.
    """
    yield from _walk(Path(root), "", 0, ignore, max_depth)


def _walk(
    directory: Path,
    rel_prefix: str,
    depth: int,
    ignore: IgnorePredicate | None,
    max_depth: int | None,
) -> Iterator[TreeEntry]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        log.debug("walk.dir_unreadable", path=str(directory), error=str(exc))
        return

    for entry in entries:
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError:
            continue
        if not is_dir and not is_file:
            continue
        if ignore is not None and ignore(entry.name, is_dir):
            continue

        rel_path = f"{rel_prefix}{entry.name}"
        if is_dir:
            yield TreeEntry(Path(entry.path), rel_path, depth, True)
            if max_depth is None or depth + 1 <= max_depth:
                yield from _walk(Path(entry.path), f"{rel_path}/", depth + 1, ignore, max_depth)
        else:
            try:
                size = entry.stat(follow_symlinks=False).st_size
            except OSError:
                size = 0
            yield TreeEntry(Path(entry.path), rel_path, depth, False, size)
