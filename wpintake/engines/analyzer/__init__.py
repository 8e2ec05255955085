"""Archive analyzer engine — identify and score WordPress plugin/theme archives."""

from wpintake.engines.analyzer.analyzer import analyze
from wpintake.engines.analyzer.header import parse_header
from wpintake.engines.analyzer.models import AnalysisResult, Candidate, HeaderInfo, ScanOutcome
from wpintake.engines.analyzer.scanner import scan
from wpintake.engines.analyzer.scoring import score
from wpintake.engines.analyzer.version import is_newer, latest_version

__all__ = [
    "AnalysisResult",
    "Candidate",
    "HeaderInfo",
    "ScanOutcome",
    "analyze",
    "is_newer",
    "latest_version",
    "parse_header",
    "scan",
    "score",
]
