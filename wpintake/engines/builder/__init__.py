"""Builder engine — flatten, repackage and describe release artifacts."""

from wpintake.engines.builder.flatten import flatten
from wpintake.engines.builder.packager import BuildResult, build
from wpintake.engines.builder.tree import generate_tree

__all__ = ["BuildResult", "build", "flatten", "generate_tree"]
