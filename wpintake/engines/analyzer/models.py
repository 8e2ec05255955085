"""Data models for the archive analyzer engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Literal

PackageType = Literal["plugin", "theme"]

# Bumped whenever the serialized AnalysisResult shape changes.
RESULT_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class HeaderInfo:
    """Metadata declared in a plugin/theme header comment block."""

    name: str
    version: str | None = None
    text_domain: str | None = None
    author: str | None = None
    author_url: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class Candidate:
    """A file carrying a valid header, found during a scan.

    Pure data, never persisted.
    """

    file_path: str
    detected_type: PackageType
    header: HeaderInfo
    depth: int  # 0 = directly in the scan root


@dataclass
class ScanOutcome:
    """Everything a single scan found."""

    candidates: list[Candidate] = field(default_factory=list)
    nested_archive_paths: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnalysisResult:
    """Verdict for one analyzed archive.

    ``is_valid`` is ``score >= 7`` with one exception: a bundle (no header
    at the top level but an inner archive) scores 4 and is still valid.
    Construct through :meth:`create`.
    """

    is_valid: bool
    score: int
    reason: str
    type: PackageType | None = None
    slug: str | None = None
    name: str | None = None
    version: str | None = None
    author: str | None = None
    author_url: str | None = None
    text_domain: str | None = None
    resolved_path: str | None = None
    found_in_file: str | None = None
    nested_archives: tuple[str, ...] = ()
    is_newer: bool | None = None
    schema_version: int = RESULT_SCHEMA_VERSION

    @classmethod
    def create(
        cls, score: int, reason: str, *, is_valid: bool | None = None, **fields: Any
    ) -> AnalysisResult:
        """Clamp *score* to 0..10; *is_valid* defaults to ``score >= 7``."""
        score = max(0, min(10, int(score)))
        if is_valid is None:
            is_valid = score >= 7
        return cls(is_valid=is_valid, score=score, reason=reason, **fields)

    @property
    def auto_buildable(self) -> bool:
        return self.score == 10

    def with_is_newer(self, is_newer: bool) -> AnalysisResult:
        return replace(self, is_newer=is_newer)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe snapshot, stored in the item record's metadata column."""
        data = asdict(self)
        data["nested_archives"] = list(self.nested_archives)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisResult:
        known = set(cls.__dataclass_fields__)
        values = {k: v for k, v in data.items() if k in known}
        values["nested_archives"] = tuple(values.get("nested_archives") or ())
        return cls(**values)
