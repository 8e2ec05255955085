"""Shared fixtures for wpintake tests."""

from __future__ import annotations

from pathlib import Path

import pytest


def plugin_header(name: str, version: str | None = "1.0.0", text_domain: str | None = None) -> str:
    lines = ["<?php", "/**", f" * Plugin Name: {name}"]
    if version is not None:
        lines.append(f" * Version: {version}")
    if text_domain is not None:
        lines.append(f" * Text Domain: {text_domain}")
    lines += [" * Author: Jane Doe", " * Author URI: https://example.com", " */", ""]
    return "\n".join(lines)


def theme_header(name: str, version: str | None = "1.0.0", text_domain: str | None = None) -> str:
    lines = ["/*", f"Theme Name: {name}"]
    if version is not None:
        lines.append(f"Version: {version}")
    if text_domain is not None:
        lines.append(f"Text Domain: {text_domain}")
    lines += ["*/", "body { margin: 0; }", ""]
    return "\n".join(lines)


@pytest.fixture
def make_tree(tmp_path):
    """Write ``{relative path: content}`` under a fresh directory and return it."""

    def _make(files: dict[str, str | bytes], root_name: str = "extracted") -> Path:
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def plugin_php():
    return plugin_header


@pytest.fixture
def theme_css():
    return theme_header
