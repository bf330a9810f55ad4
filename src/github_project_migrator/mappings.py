"""
Operator-maintained mapping tables for repositories and users.

Export writes a two-column CSV template per table with a blank target for
every source key. The operator fills in the targets before import. Import
loads each table once into a read-only mapping.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .exceptions import ConfigurationError
from .models import DraftIssueContent, draft_issue_assignees, referenced_repositories

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from .models import ProjectSnapshot

logger: logging.Logger = logging.getLogger(__name__)

REPOSITORY_MAPPING_HEADER: Final[tuple[str, str]] = ("source_repository", "target_repository")
ASSIGNEE_MAPPING_HEADER: Final[tuple[str, str]] = ("source_login", "target_login")

EMPTY_MAPPING: Final[Mapping[str, str]] = MappingProxyType({})


def is_repository_name(name: str) -> bool:
    """Return True if ``name`` has the form ``owner/name``."""
    owner, slash, repository = name.partition("/")
    return bool(slash and owner and repository and "/" not in repository)


def write_mapping_template(path: Path, header: tuple[str, str], source_keys: Iterable[str]) -> None:
    """Write a mapping CSV with one blank target per source key."""
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(header)
        for key in source_keys:
            writer.writerow([key, ""])


def read_mapping(path: Path, header: tuple[str, str]) -> Mapping[str, str]:
    """Load a filled-in mapping CSV.

    Rows with a blank target are left out, so their source keys count as
    unmapped.

    Raises:
        ConfigurationError: If the file is missing or not a two-column table
            with the expected header, or if a repository target is not an
            owner/name pair
    """
    if not path.exists():
        msg = f"Mapping file {path} does not exist"
        raise ConfigurationError(msg)

    mapping: dict[str, str] = {}
    with path.open(newline="", encoding="utf-8") as f:
        rows = csv.reader(f)
        first_row = next(rows, None)
        if first_row is None or tuple(cell.strip() for cell in first_row) != header:
            msg = f"Mapping file {path} must start with the header '{','.join(header)}'"
            raise ConfigurationError(msg)

        for line_number, row in enumerate(rows, start=2):
            if not row or not any(cell.strip() for cell in row):
                continue
            if len(row) != 2:  # noqa: PLR2004
                msg = f"Mapping file {path} line {line_number}: expected 2 columns, got {len(row)}"
                raise ConfigurationError(msg)
            source, target = (cell.strip() for cell in row)
            if target and header == REPOSITORY_MAPPING_HEADER and not is_repository_name(target):
                msg = f"Mapping file {path} line {line_number}: target repository '{target}' is not in owner/name form"
                raise ConfigurationError(msg)
            if target:
                mapping[source] = target

    logger.info(f"Loaded {len(mapping)} mapping(s) from {path}")
    return MappingProxyType(mapping)


@dataclass
class UnmappedReferences:
    """Source keys referenced by the snapshot that have no mapping."""

    repositories: list[str] = field(default_factory=list)
    logins: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.repositories or self.logins)


def find_unmapped(
    snapshot: ProjectSnapshot,
    repository_mapping: Mapping[str, str],
    user_mapping: Mapping[str, str],
) -> UnmappedReferences:
    repositories = [name for name in referenced_repositories(snapshot.items) if name not in repository_mapping]
    logins = [login for login in draft_issue_assignees(snapshot.items) if login not in user_mapping]
    return UnmappedReferences(repositories=repositories, logins=logins)


def report_unmapped(unmapped: UnmappedReferences, snapshot: ProjectSnapshot) -> None:
    """Log one warning per unmapped repository or login."""
    for repository in unmapped.repositories:
        affected = sum(
            1
            for item in snapshot.items
            if not isinstance(item.content, DraftIssueContent) and item.content.repository == repository
        )
        logger.warning(
            f"Repository {repository} has no target in the repository mappings - "
            f"{affected} item(s) from it will be skipped"
        )
    for login in unmapped.logins:
        logger.warning(
            f"User {login} has no target in the assignee mappings - "
            "they will not be assigned to or credited on migrated draft issues"
        )
