"""Tests for the version comparator."""

from __future__ import annotations

import pytest

from wpintake.engines.analyzer.version import (
    is_newer,
    latest_version,
    normalize_version,
    parse_version,
)


class TestParseVersion:
    def test_pads_to_three_segments(self):
        assert parse_version("2.28").release == (2, 28, 0)

    def test_leading_v(self):
        assert parse_version("v1.2.3") == parse_version("1.2.3")
        assert normalize_version("  V1.0 ") == "1.0"

    def test_four_segments(self):
        assert parse_version("1.2.3.4").release == (1, 2, 3, 4)

    def test_prerelease_and_build(self):
        v = parse_version("1.0.0-beta.2+exp.sha")
        assert v.prerelease == ("beta", 2)

    @pytest.mark.parametrize("raw", ["", "not-a-version", "1..2", "1.2.x", None])
    def test_unparsable(self, raw):
        assert parse_version(raw) is None

    def test_trailing_zero_equality(self):
        assert parse_version("1.2.3.0") == parse_version("1.2.3")
        assert hash(parse_version("1.2.3.0")) == hash(parse_version("1.2.3"))


class TestIsNewer:
    def test_equal_after_normalization(self):
        assert is_newer("2.28.0", "2.28") is False

    def test_minor_bump(self):
        assert is_newer("2.29", "2.28.0") is True

    def test_remote_absent(self):
        assert is_newer("1.0", None) is True
        assert is_newer("1.0", "  ") is True

    def test_fail_closed(self):
        assert is_newer("not-a-version", "1.0.0") is False
        assert is_newer("1.0.0", "garbage") is False

    def test_numeric_not_lexicographic(self):
        assert is_newer("1.10.0", "1.9.9") is True

    def test_older(self):
        assert is_newer("1.0.0", "1.0.1") is False

    def test_prerelease_precedes_release(self):
        assert is_newer("1.0.0", "1.0.0-rc.1") is True
        assert is_newer("1.0.0-rc.1", "1.0.0") is False
        assert is_newer("1.0.0-rc.2", "1.0.0-rc.1") is True
        assert is_newer("1.0.0-alpha.beta", "1.0.0-alpha.1") is True

    def test_fourth_segment(self):
        assert is_newer("1.2.3.4", "1.2.3") is True


class TestLatestVersion:
    def test_picks_highest_raw_string(self):
        assert latest_version(["1.9", "v1.10.0", None, "junk", "1.2"]) == "v1.10.0"

    def test_nothing_parsable(self):
        assert latest_version([None, "x"]) is None
        assert latest_version([]) is None
