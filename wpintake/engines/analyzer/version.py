"""Version comparator with tolerant semantic-version parsing.

``"v2.28"`` normalizes to ``2.28.0``; four-part WordPress versions such as
``1.2.3.4`` are accepted and compared segment by segment. Anything else that
does not parse makes a comparison fail closed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import total_ordering

_VERSION_RE = re.compile(
    r"^(?P<release>\d+(?:\.\d+)*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

MIN_SEGMENTS = 3


@total_ordering
@dataclass(frozen=True)
class Version:
    release: tuple[int, ...]
    prerelease: tuple[int | str, ...] = ()

    def _padded(self, length: int) -> tuple[int, ...]:
        return self.release + (0,) * (length - len(self.release))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        length = max(len(self.release), len(other.release))
        return (
            self._padded(length) == other._padded(length)
            and self.prerelease == other.prerelease
        )

    def __hash__(self) -> int:
        release = list(self.release)
        while len(release) > MIN_SEGMENTS and release[-1] == 0:
            release.pop()
        return hash((tuple(release), self.prerelease))

    def __lt__(self, other: Version) -> bool:
        length = max(len(self.release), len(other.release))
        mine, theirs = self._padded(length), other._padded(length)
        if mine != theirs:
            return mine < theirs
        # A pre-release sorts before the release it precedes.
        if not self.prerelease or not other.prerelease:
            return bool(self.prerelease) and not other.prerelease
        return _pre_key(self.prerelease) < _pre_key(other.prerelease)

    def __str__(self) -> str:
        text = ".".join(str(part) for part in self.release)
        if self.prerelease:
            text += "-" + ".".join(str(part) for part in self.prerelease)
        return text


def _pre_key(parts: tuple[int | str, ...]) -> tuple:
    # Numeric identifiers sort before alphanumeric ones; a shorter set of
    # identifiers sorts first when all shared identifiers are equal.
    return tuple((0, p, "") if isinstance(p, int) else (1, 0, p) for p in parts)


def normalize_version(raw: str) -> str:
    """Strip whitespace and a leading ``v``/``V``."""
    text = raw.strip()
    if text[:1] in ("v", "V"):
        text = text[1:].strip()
    return text


def parse_version(raw: str | None) -> Version | None:
    """Parse *raw*, returning None when it is not a usable version."""
    if raw is None:
        return None
    match = _VERSION_RE.match(normalize_version(raw))
    if match is None:
        return None

    release = tuple(int(part) for part in match.group("release").split("."))
    release = release + (0,) * (MIN_SEGMENTS - len(release))

    prerelease: tuple[int | str, ...] = ()
    if match.group("pre"):
        prerelease = tuple(
            int(part) if part.isdigit() else part for part in match.group("pre").split(".")
        )
    return Version(release, prerelease)


def is_newer(local: str | None, remote: str | None) -> bool:
    """True when *local* is strictly greater than *remote*.

    A missing or blank *remote* means nothing is published yet, so anything
    is newer. Unparsable input on either side returns False.
    """
    if remote is None or not remote.strip():
        return True
    local_version = parse_version(local)
    remote_version = parse_version(remote)
    if local_version is None or remote_version is None:
        return False
    return local_version > remote_version


def latest_version(versions: Iterable[str | None]) -> str | None:
    """Highest parsable version in *versions*, as originally written."""
    best_raw: str | None = None
    best: Version | None = None
    for raw in versions:
        parsed = parse_version(raw)
        if parsed is None:
            continue
        if best is None or parsed > best:
            best, best_raw = parsed, raw
    return best_raw
