"""CLI entry point: wpintake.

Subcommands:
    wpintake analyze upload.zip            # Score an archive (or extracted dir)
    wpintake build ./dir --slug s --version 1.0.0 --type plugin
    wpintake tree ./source                 # Print the tree.json description
    wpintake compare 1.2.0 1.10.0          # Is the local version newer?
    wpintake serve                         # Run the REST API
"""

from __future__ import annotations

import json
import sys
import tempfile
from pathlib import Path

import click
from dotenv import load_dotenv

from wpintake.core.logging import setup_logging
from wpintake.engines.analyzer.analyzer import ANALYSIS_MAX_DEPTH, analyze
from wpintake.engines.analyzer.version import is_newer, parse_version
from wpintake.engines.builder.packager import PACKAGE_TYPES, build
from wpintake.engines.builder.tree import generate_tree
from wpintake.engines.exceptions import IntakeError
from wpintake.engines.intake.extract import safe_extract


def _echo_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """WP Intake: analyze, package and publish WordPress plugin/theme archives."""
    load_dotenv()
    setup_logging("DEBUG" if verbose else None)


@main.command("analyze")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--name", default=None, help="Original upload filename (slug fallback)")
@click.option("--deep", is_flag=True, help="Search for headers at any depth")
@click.option("--log", "show_log", is_flag=True, help="Print progress lines to stderr")
def analyze_cmd(path: Path, name: str | None, deep: bool, show_log: bool) -> None:
    """Score an extracted directory or a .zip archive and print the result."""
    emit = (lambda line: click.echo(line, err=True)) if show_log else None
    max_depth = None if deep else ANALYSIS_MAX_DEPTH

    if path.is_dir():
        result = analyze(path, name, max_depth=max_depth, emit=emit)
    else:
        with tempfile.TemporaryDirectory(prefix="wpintake-") as tmp:
            try:
                extract_dir = safe_extract(path, Path(tmp) / "extracted")
            except IntakeError as e:
                _fail(str(e))
            result = analyze(extract_dir, name or path.name, max_depth=max_depth, emit=emit)

    _echo_json(result.to_dict())


@main.command("build")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--slug", required=True, help="Package slug (zip root folder)")
@click.option("--version", "version", required=True, help="Package version")
@click.option("--type", "type_", required=True, type=click.Choice(PACKAGE_TYPES))
@click.option("--source/--no-source", default=True, help="Also extract source/ and tree.json")
@click.option("--staging", type=click.Path(file_okay=False, path_type=Path), default=None)
def build_cmd(
    path: Path,
    slug: str,
    version: str,
    type_: str,
    source: bool,
    staging: Path | None,
) -> None:
    """Package PATH into {staging}/{type}/{slug}/{version}/download.zip."""
    try:
        result = build(path, slug, version, type_, source, staging_root=staging)
    except IntakeError as e:
        _fail(str(e))
    _echo_json(
        {
            "zipPath": str(result.zip_path),
            "sourcePath": str(result.source_path) if result.source_path else None,
            "treePath": str(result.tree_path) if result.tree_path else None,
            "flattened": result.flattened,
            "files": result.file_count,
        }
    )


@main.command("tree")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
def tree_cmd(path: Path) -> None:
    """Print the tree.json description of a directory."""
    _echo_json(generate_tree(path))


@main.command("compare")
@click.argument("local")
@click.argument("remote", required=False)
def compare_cmd(local: str, remote: str | None) -> None:
    """Report whether LOCAL is newer than REMOTE (exit 1 if not)."""
    newer = is_newer(local, remote)
    parsed = parse_version(local)
    if parsed is None:
        click.echo(f"{local!r} is not a recognizable version", err=True)
    click.echo("newer" if newer else "not newer")
    if not newer:
        sys.exit(1)


@main.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
def serve(host: str, port: int) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    uvicorn.run("wpintake.api:create_app", host=host, port=port, factory=True, log_config=None)


if __name__ == "__main__":
    main()
