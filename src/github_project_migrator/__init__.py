"""
GitHub Project Migration Tool

Exports GitHub Projects (v2) with their fields, items and views, and imports
them into a new project on another GitHub product, organization or user,
remapping repositories, users, single select options and iterations.
"""

from __future__ import annotations

from .cli import main
from .exceptions import CorrelationError, MigrationError, SnapshotError, UnsupportedVersionError
from .exporter import export_project
from .importer import ImportReport, ProjectImporter, import_project
from .models import ProjectSnapshot
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "CorrelationError",
    "ImportReport",
    "MigrationError",
    "ProjectImporter",
    "ProjectSnapshot",
    "SnapshotError",
    "UnsupportedVersionError",
    "export_project",
    "import_project",
    "main",
    "setup_logging",
]
