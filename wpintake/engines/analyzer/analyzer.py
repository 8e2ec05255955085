"""analyze() — scan an extracted archive and score it."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import structlog

from wpintake.engines.analyzer.models import AnalysisResult
from wpintake.engines.analyzer.scanner import scan
from wpintake.engines.analyzer.scoring import score

log = structlog.get_logger("wpintake.engine")

# Strict analysis only looks at root files and immediate child folders.
ANALYSIS_MAX_DEPTH = 1

LogFn = Callable[[str], None]


def analyze(
    extract_dir: Path,
    original_name: str | None = None,
    *,
    max_depth: int | None = ANALYSIS_MAX_DEPTH,
    emit: LogFn | None = None,
) -> AnalysisResult:
    """Scan *extract_dir* and return its verdict.

    *emit* receives human-readable progress lines (the job live log).
    """
    extract_dir = Path(extract_dir)

    def _emit(message: str) -> None:
        if emit is not None:
            emit(message)

    _emit("Starting analysis...")
    outcome = scan(extract_dir, max_depth=max_depth)

    for candidate in outcome.candidates:
        _emit(f"> Found header in: {candidate.file_path}")
    if outcome.nested_archive_paths:
        _emit(f"Warning: found inner ZIP file at: {outcome.nested_archive_paths[0]}")

    result = score(outcome, extract_dir, original_name=original_name)

    log.info(
        "analyze.done",
        path=str(extract_dir),
        score=result.score,
        slug=result.slug,
        candidates=len(outcome.candidates),
        nested=len(outcome.nested_archive_paths),
    )
    _emit(f"Analysis complete. Score: {result.score}/10. Reason: {result.reason}")
    return result
