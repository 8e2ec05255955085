"""Scoring and disambiguation of scan outcomes.

Decision order:

1. no candidates -> bundle (4) when a nested archive exists, else junk (0)
2. several candidates -> ambiguous (3), smallest depth wins, first seen on ties
3. one candidate -> base score, forced to 4 when a nested archive exists

Base score for a single candidate:

* header at the scan root        -> 2 ("no root folder")
* text domain == parent folder   -> 10
* text domain missing            -> 9
* text domain != parent folder   -> 7
* found deeper than one level    -> capped at 5
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path, PurePosixPath

from wpintake.engines.analyzer.models import AnalysisResult, Candidate, ScanOutcome

REASON_BUNDLE = "bundle: inner archive found, no installable headers at top level"
REASON_JUNK = "junk: no recognized headers found"
REASON_NESTED = "warning: valid header found but archive also contains a nested zip"
REASON_NO_ROOT = "no root folder"
REASON_PERFECT = "perfect structure"
REASON_NO_DOMAIN = "good, text domain missing"
REASON_MISMATCH = "mismatch: text domain differs from folder name"
REASON_TOO_DEEP = "file found too deep"

SCORE_BUNDLE = 4
SCORE_AMBIGUOUS = 3
SCORE_NO_ROOT = 2
SCORE_DEEP_CAP = 5


def slug_from_filename(original_name: str) -> str:
    """``My-Plugin.zip`` -> ``my-plugin``."""
    slug = PurePosixPath(original_name.replace("\\", "/")).name.lower()
    if slug.endswith(".zip"):
        slug = slug[: -len(".zip")]
    return slug


def pick_winner(candidates: list[Candidate]) -> Candidate:
    # min() keeps the first of equal keys, i.e. scan order.
    return min(candidates, key=lambda c: c.depth)


def score(
    outcome: ScanOutcome,
    root: Path,
    slug_fn: Callable[[str], str] = slug_from_filename,
    original_name: str | None = None,
) -> AnalysisResult:
    """Turn a :class:`ScanOutcome` into a single :class:`AnalysisResult`.

    Total: every outcome maps to a result, nothing raises. *slug_fn* derives
    the fallback slug from *original_name* when the header sits at the root
    and declares no text domain.
    """
    root = Path(root)
    nested = tuple(outcome.nested_archive_paths)
    candidates = outcome.candidates

    if not candidates:
        if nested:
            return AnalysisResult.create(
                SCORE_BUNDLE, REASON_BUNDLE, is_valid=True, nested_archives=nested
            )
        return AnalysisResult.create(0, REASON_JUNK)

    winner = pick_winner(candidates)
    base_score, reason, fields = _base(winner, root, slug_fn, original_name)
    fields["nested_archives"] = nested

    if len(candidates) > 1:
        names = ", ".join(f'"{c.header.name}"' for c in candidates)
        reason = f"ambiguous: {len(candidates)} installable items found ({names})"
        return AnalysisResult.create(SCORE_AMBIGUOUS, reason, **fields)

    if nested:
        return AnalysisResult.create(SCORE_BUNDLE, REASON_NESTED, **fields)

    return AnalysisResult.create(base_score, reason, **fields)


def _base(
    candidate: Candidate,
    root: Path,
    slug_fn: Callable[[str], str],
    original_name: str | None,
) -> tuple[int, str, dict]:
    header = candidate.header
    parent = PurePosixPath(candidate.file_path).parent
    text_domain = header.text_domain

    if parent == PurePosixPath("."):
        score_value, reason = SCORE_NO_ROOT, REASON_NO_ROOT
        if text_domain:
            slug = text_domain
        elif original_name:
            slug = slug_fn(original_name)
        else:
            slug = slug_fn(root.name)
    else:
        slug = parent.name
        if text_domain is None:
            score_value, reason = 9, REASON_NO_DOMAIN
        elif text_domain == slug:
            score_value, reason = 10, REASON_PERFECT
        else:
            score_value, reason = 7, REASON_MISMATCH

    if candidate.depth > 1:
        score_value = min(score_value, SCORE_DEEP_CAP)
        reason = f"{reason}; {REASON_TOO_DEEP}"

    fields = {
        "type": candidate.detected_type,
        "slug": slug,
        "name": header.name,
        "version": header.version,
        "author": header.author,
        "author_url": header.author_url,
        "text_domain": text_domain,
        "resolved_path": str(root.joinpath(*parent.parts)) if parent.parts else str(root),
        "found_in_file": candidate.file_path,
    }
    return score_value, reason, fields
