"""Tests for the archive scanner."""

from __future__ import annotations

from wpintake.engines.analyzer import scanner
from wpintake.engines.analyzer.scanner import classify, scan
from wpintake.engines.analyzer.scoring import score


class TestClassify:
    def test_theme_needs_exact_style_css(self):
        assert classify("style.css") == "theme"
        assert classify("Style.css") is None
        assert classify("editor-style.css") is None

    def test_php_is_plugin(self):
        assert classify("main.php") == "plugin"
        assert classify("MAIN.PHP") == "plugin"

    def test_other(self):
        assert classify("readme.txt") is None


class TestScan:
    def test_finds_plugin_in_child_folder(self, make_tree, plugin_php):
        root = make_tree({"hello/hello.php": plugin_php("Hello"), "hello/readme.txt": "x"})
        outcome = scan(root, max_depth=1)
        assert len(outcome.candidates) == 1
        c = outcome.candidates[0]
        assert c.file_path == "hello/hello.php"
        assert c.detected_type == "plugin"
        assert c.depth == 1

    def test_php_without_header_is_not_candidate(self, make_tree):
        root = make_tree({"p/functions.php": "<?php echo 1;"})
        assert scan(root).candidates == []

    def test_max_depth_limits_candidates(self, make_tree, plugin_php):
        root = make_tree({"a/b/deep.php": plugin_php("Deep")})
        assert scan(root, max_depth=1).candidates == []
        assert [c.depth for c in scan(root).candidates] == [2]

    def test_unreadable_file_is_skipped(self, make_tree, plugin_php, monkeypatch):
        root = make_tree(
            {"a/a.php": plugin_php("A", "1.0.0", "a"), "a/bad.php": plugin_php("Bad")}
        )
        real_read = scanner.read_header

        def _read(path, kind):
            if path.name == "bad.php":
                raise PermissionError(13, "Permission denied", str(path))
            return real_read(path, kind)

        monkeypatch.setattr(scanner, "read_header", _read)
        outcome = scan(root, max_depth=1)
        assert [c.file_path for c in outcome.candidates] == ["a/a.php"]
        assert score(outcome, root).score == 10

    def test_nested_archives_collected_at_full_depth(self, make_tree):
        root = make_tree({"a/b/c/inner.zip": b"PK", "top.ZIP": b"PK"})
        outcome = scan(root, max_depth=1)
        assert outcome.nested_archive_paths == ["a/b/c/inner.zip", "top.ZIP"]

    def test_hidden_folders_never_surface(self, make_tree, plugin_php):
        root = make_tree(
            {
                ".git/hook.php": plugin_php("Git"),
                "__MACOSX/p/p.php": plugin_php("Mac"),
                "__MACOSX/bundle.zip": b"PK",
                ".git/objects/pack.zip": b"PK",
                "node_modules/x/x.php": plugin_php("Node"),
            }
        )
        outcome = scan(root)
        assert outcome.candidates == []
        assert outcome.nested_archive_paths == []

    def test_theme_and_plugin_both_found(self, make_tree, plugin_php, theme_css):
        root = make_tree({"t/style.css": theme_css("T"), "p/p.php": plugin_php("P")})
        kinds = sorted(c.detected_type for c in scan(root, max_depth=1).candidates)
        assert kinds == ["plugin", "theme"]
