"""Intake engine — the analyze, build and upload job actions."""

from wpintake.engines.intake.extract import safe_extract
from wpintake.engines.intake.runner import IntakeRunner, RemoteVersionLookup, StagingVersionLookup

__all__ = ["IntakeRunner", "RemoteVersionLookup", "StagingVersionLookup", "safe_extract"]
