"""WordPress header comment parser.

Plugin entry files and theme ``style.css`` files open with a comment block of
``Key: value`` lines::

    /**
     * Plugin Name: Hello Dolly
     * Version:     1.7.2
     * Text Domain: hello-dolly
     */

Only the first :data:`HEADER_READ_BYTES` of a file are inspected.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

from wpintake.engines.analyzer.models import HeaderInfo, PackageType

HEADER_READ_BYTES = 8192

_NAME_KEYS: dict[str, str] = {
    "plugin": "Plugin Name",
    "theme": "Theme Name",
}

_AUTHOR_URL_KEYS = ("Author URI", "Theme URI", "Plugin URI")


@lru_cache(maxsize=None)
def _key_pattern(key: str) -> re.Pattern[str]:
    # Leading comment decoration: spaces, tabs, '*', '#', '@', '/'.
    return re.compile(
        rf"^[ \t/*#@]*{re.escape(key)}:[ \t]*(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


def get_header_value(text: str, key: str) -> str | None:
    """Return the trimmed value of the first ``key:`` line, or None."""
    match = _key_pattern(key).search(text)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def parse_header(text: str, kind: PackageType) -> HeaderInfo | None:
    """Extract header metadata for *kind* from *text*.

    Returns None if the name key (``Plugin Name`` / ``Theme Name``) is
    missing; a version without a name is not an installable package.
    """
    name = get_header_value(text, _NAME_KEYS[kind])
    if name is None:
        return None

    author_url = None
    for key in _AUTHOR_URL_KEYS:
        author_url = get_header_value(text, key)
        if author_url:
            break

    return HeaderInfo(
        name=name,
        version=get_header_value(text, "Version"),
        text_domain=get_header_value(text, "Text Domain"),
        author=get_header_value(text, "Author"),
        author_url=author_url,
        description=get_header_value(text, "Description"),
    )


def read_header(path: Path, kind: PackageType) -> HeaderInfo | None:
    """Read the head of *path* and parse it.

    Raises ``OSError`` on read failure; the scanner decides what to do.
    """
    with open(path, "rb") as f:
        head = f.read(HEADER_READ_BYTES)
    return parse_header(head.decode("utf-8", errors="replace"), kind)
