"""SVG banner rendering for built releases."""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

import structlog

from wpintake.engines.builder.packager import default_staging_dir, version_dir_for

log = structlog.get_logger("wpintake.engine")

BANNER_FILENAME = "banner.svg"
WIDTH = 1280
HEIGHT = 720

_BACKGROUNDS: dict[str, tuple[str, str]] = {
    "plugin": ("#2980b9", "#1c5980"),
    "theme": ("#8e44ad", "#5e2d73"),
}

_TITLE_SIZE = 56
_TITLE_LINE_HEIGHT = 70
_TITLE_MAX_WIDTH = 1000
_TITLE_MAX_LINES = 4
# Rough advance width of a bold sans glyph, as a fraction of the font size.
_CHAR_WIDTH = 0.55


def _esc(text: str) -> str:
    """Minimal XML escaping."""
    return (
        text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")
    )


def wrap_title(title: str, max_chars: int) -> list[str]:
    """Greedy word wrap; a single over-long word gets a line of its own."""
    lines: list[str] = []
    line = ""
    for word in title.split():
        candidate = f"{line} {word}" if line else word
        if len(candidate) > max_chars and line:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    if len(lines) > _TITLE_MAX_LINES:
        lines = lines[:_TITLE_MAX_LINES]
        lines[-1] = lines[-1].rstrip(".") + "..."
    return lines


class SvgBannerRenderer:
    """Renders ``banner.svg`` into a release's version directory."""

    def __init__(self, staging_root: Path | None = None) -> None:
        self._staging_root = Path(staging_root) if staging_root else default_staging_dir()

    def render_svg(self, type: str, name: str, version: str, today: date | None = None) -> str:
        today = today or datetime.now(timezone.utc).date()
        start, end = _BACKGROUNDS.get(type, _BACKGROUNDS["plugin"])
        max_chars = int(_TITLE_MAX_WIDTH / (_TITLE_SIZE * _CHAR_WIDTH))

        title_lines = "\n".join(
            f'  <text x="66" y="{201 + i * _TITLE_LINE_HEIGHT}" class="title">{_esc(line)}</text>'
            for i, line in enumerate(wrap_title(name or "", max_chars))
        )

        return f"""\
<svg xmlns="http://www.w3.org/2000/svg" width="{WIDTH}" height="{HEIGHT}" viewBox="0 0 {WIDTH} {HEIGHT}">
  <defs>
    <linearGradient id="bg" x1="0" y1="0" x2="1" y2="1">
      <stop offset="0%" stop-color="{start}"/>
      <stop offset="100%" stop-color="{end}"/>
    </linearGradient>
    <style>
      text {{ fill: #ffffff; font-family: Poppins, 'Segoe UI', sans-serif; }}
      .title {{ font-size: {_TITLE_SIZE}px; font-weight: bold; }}
      .version {{ font-size: 45px; }}
      .date {{ font-size: 20px; }}
      .kind {{ font-size: 24px; letter-spacing: 4px; opacity: 0.8; }}
    </style>
  </defs>
  <rect width="{WIDTH}" height="{HEIGHT}" fill="url(#bg)"/>
  <text x="66" y="110" class="kind">{_esc(type.upper())}</text>
{title_lines}
  <text x="1214" y="663" class="version" text-anchor="end">V{_esc(version)}</text>
  <text x="193" y="639" class="date">{today.isoformat()}</text>
</svg>
"""

    def render(self, type: str, name: str, version: str, slug: str) -> Path:
        """Write the banner for ``{type}/{slug}/{version}`` and return its path."""
        version_dir = version_dir_for(self._staging_root, type, slug, version)
        version_dir.mkdir(parents=True, exist_ok=True)
        target = version_dir / BANNER_FILENAME
        target.write_text(self.render_svg(type, name, version), encoding="utf-8")
        log.info("banner.rendered", slug=slug, version=version, path=str(target))
        return target
