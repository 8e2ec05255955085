"""tree.json generation for extracted source trees."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from wpintake.engines.analyzer.walker import skip_junk, walk_tree

TREE_FILENAME = "tree.json"


def generate_tree(root: Path) -> dict[str, Any]:
    """Describe *root* as nested ``{name, path, type, size, children}`` nodes.

    ``type`` is ``"folder"`` or ``"file"``; folder sizes are the sum of
    their contents. Only folders carry ``children``.
    """
    root = Path(root)
    tree: dict[str, Any] = {
        "name": root.name,
        "path": "",
        "type": "folder",
        "size": 0,
        "children": [],
    }
    folders: dict[str, dict[str, Any]] = {"": tree}

    for entry in walk_tree(root, ignore=skip_junk):
        parent_path = entry.rel_path.rpartition("/")[0]
        parent = folders.get(parent_path)
        if parent is None:
            continue
        if entry.is_dir:
            node = {
                "name": entry.path.name,
                "path": entry.rel_path,
                "type": "folder",
                "size": 0,
                "children": [],
            }
            folders[entry.rel_path] = node
        else:
            node = {
                "name": entry.path.name,
                "path": entry.rel_path,
                "type": "file",
                "size": entry.size,
            }
        parent["children"].append(node)

    _sum_sizes(tree)
    return tree


def _sum_sizes(node: dict[str, Any]) -> int:
    if node["type"] == "file":
        return node["size"]
    node["size"] = sum(_sum_sizes(child) for child in node["children"])
    return node["size"]


def write_tree(source_dir: Path, target: Path) -> Path:
    """Generate the tree for *source_dir* and write it to *target* as JSON."""
    tree = generate_tree(source_dir)
    target = Path(target)
    target.write_text(json.dumps(tree, indent=2), encoding="utf-8")
    return target
