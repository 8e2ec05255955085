"""Tests for SVG banner rendering."""

from __future__ import annotations

from datetime import date

import pytest

from wpintake.engines.banner.renderer import BANNER_FILENAME, SvgBannerRenderer, wrap_title
from wpintake.engines.exceptions import UnsafePathError


class TestWrapTitle:
    def test_short_title_single_line(self):
        assert wrap_title("Hello Dolly", 30) == ["Hello Dolly"]

    def test_wraps_on_words(self):
        assert wrap_title("one two three four", 9) == ["one two", "three", "four"]

    def test_truncates_after_four_lines(self):
        lines = wrap_title("a b c d e f g h", 1)
        assert len(lines) == 4
        assert lines[-1] == "d..."


class TestSvgBannerRenderer:
    def test_svg_content(self, tmp_path):
        svg = SvgBannerRenderer(tmp_path).render_svg(
            "theme", "Fish & <Chips>", "1.2.0", today=date(2026, 3, 1)
        )
        assert svg.startswith("<svg")
        assert 'width="1280" height="720"' in svg
        assert "Fish &amp; &lt;Chips&gt;" in svg
        assert ">V1.2.0<" in svg
        assert "2026-03-01" in svg
        assert ">THEME<" in svg

    def test_render_writes_into_version_dir(self, tmp_path):
        path = SvgBannerRenderer(tmp_path).render("plugin", "Hello", "1.0.0", "hello")
        assert path == tmp_path / "plugin" / "hello" / "1.0.0" / BANNER_FILENAME
        assert "Hello" in path.read_text()

    def test_unsafe_slug(self, tmp_path):
        with pytest.raises(UnsafePathError):
            SvgBannerRenderer(tmp_path).render("plugin", "x", "1.0", "../x")
