"""Slug-folder flattening.

Archives are often zipped one level too high: the resolved directory holds
nothing but a folder named after the slug. Packaging that as ``slug/`` would
produce ``slug/slug/...``, so the inner folder is packaged instead.
"""

from __future__ import annotations

import os
from pathlib import Path

from wpintake.engines.analyzer.walker import is_hidden


def visible_entries(directory: Path) -> list[str]:
    """Names in *directory* that are not dot- or ``__``-prefixed, sorted."""
    return sorted(name for name in os.listdir(directory) if not is_hidden(name))


def flatten(resolved_path: Path, slug: str) -> Path:
    """Return the directory whose contents belong under ``slug/`` in the archive."""
    resolved_path = Path(resolved_path)
    visible = visible_entries(resolved_path)
    if visible == [slug]:
        inner = resolved_path / slug
        if inner.is_dir() and not inner.is_symlink():
            return inner
    return resolved_path
