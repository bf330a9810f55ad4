"""
Command-line interface for the GitHub project migration tool.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from . import github_utils as ghu
from .exceptions import ConfigurationError
from .exporter import export_project
from .importer import import_project
from .mappings import (
    ASSIGNEE_MAPPING_HEADER,
    REPOSITORY_MAPPING_HEADER,
    read_mapping,
    write_mapping_template,
)
from .models import draft_issue_assignees, read_snapshot, referenced_repositories, write_snapshot
from .pagination import RateLimitReporter
from .projects import ProjectOwnerType
from .utils import normalize_base_url, setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .importer import ImportReport

logger: logging.Logger = logging.getLogger(__name__)


def _add_connection_arguments(parser: argparse.ArgumentParser, env_prefix: str) -> None:
    _ = parser.add_argument(
        "--access-token",
        help=f"GitHub access token. Defaults to {env_prefix}_GITHUB_TOKEN, GITHUB_TOKEN or the pass store.",
    )
    _ = parser.add_argument("--pass-token", help="Path for the GitHub token in pass utility (default: github/cli/token)")
    _ = parser.add_argument(
        "--base-url",
        default=ghu.DOTCOM_API_URL,
        help=(
            "Base URL of the GitHub API. For GitHub Enterprise Server this looks like "
            "https://github.acme.inc/api/v3, for data residency https://api.acme.ghe.com"
        ),
    )
    _ = parser.add_argument(
        "--proxy-url",
        default=os.environ.get(f"{env_prefix}_PROXY_URL"),
        help=f"HTTP(S) proxy for requests to the GitHub API. Defaults to {env_prefix}_PROXY_URL.",
    )
    _ = parser.add_argument(
        "--skip-certificate-verification",
        action="store_true",
        help="Skip verification of SSL certificates when connecting to GitHub",
    )
    _ = parser.add_argument(
        "--project-owner-type",
        choices=[owner_type.value for owner_type in ProjectOwnerType],
        default=ProjectOwnerType.ORGANIZATION.value,
        help="Whether the project owner is an organization or a user",
    )
    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v info, -vv debug)"
    )


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Migrate GitHub projects between GitHub products, organizations and users"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Export a GitHub project")
    _ = export_parser.add_argument("--project-owner", required=True, help="Organization or user owning the project")
    _ = export_parser.add_argument("--project-number", required=True, type=int, help="Number of the project")
    _ = export_parser.add_argument("--project-output-path", type=Path, default=Path("project.json"))
    _ = export_parser.add_argument(
        "--repository-mappings-output-path", type=Path, default=Path("repository-mappings.csv")
    )
    _ = export_parser.add_argument("--assignee-mappings-output-path", type=Path, default=Path("assignee-mappings.csv"))
    _add_connection_arguments(export_parser, "EXPORT")

    import_parser = subparsers.add_parser("import", help="Import a GitHub project")
    _ = import_parser.add_argument("--project-owner", required=True, help="Organization or user to own the new project")
    _ = import_parser.add_argument("--project-title", help="Title of the new project (default: the source title)")
    _ = import_parser.add_argument("--input-path", type=Path, default=Path("project.json"))
    _ = import_parser.add_argument("--repository-mappings-path", type=Path, default=Path("repository-mappings.csv"))
    _ = import_parser.add_argument("--assignee-mappings-path", type=Path, default=Path("assignee-mappings.csv"))
    _add_connection_arguments(import_parser, "IMPORT")

    return parser.parse_args(argv)


def _make_client(args: argparse.Namespace, env_prefix: str) -> ghu.GitHubClient:
    token: str | None = args.access_token or ghu.get_token(args.pass_token, env_var=f"{env_prefix}_GITHUB_TOKEN")
    if not token:
        msg = (
            "You must specify a GitHub access token using the --access-token argument, "
            f"the {env_prefix}_GITHUB_TOKEN environment variable or the pass store."
        )
        raise ConfigurationError(msg)

    if args.proxy_url:
        if not args.skip_certificate_verification:
            logger.warning(
                "You have specified a proxy URL, but have not disabled certificate verification. "
                "If you encounter SSL errors, try again with --skip-certificate-verification."
            )
        # PyGithub's REST session picks the proxy up from the environment
        os.environ.setdefault("HTTPS_PROXY", args.proxy_url)

    client = ghu.get_client(
        token,
        base_url=normalize_base_url(args.base_url),
        proxy_url=args.proxy_url,
        verify=not args.skip_certificate_verification,
    )
    _ = client.validate_access()
    return client


def _run_export(args: argparse.Namespace) -> None:
    for path, option in (
        (args.project_output_path, "--project-output-path"),
        (args.repository_mappings_output_path, "--repository-mappings-output-path"),
        (args.assignee_mappings_output_path, "--assignee-mappings-output-path"),
    ):
        if path.exists():
            msg = f"The output path {path} already exists. Delete it or choose another path with {option}."
            raise ConfigurationError(msg)

    client = _make_client(args, "EXPORT")
    with RateLimitReporter(client):
        snapshot = export_project(
            client, args.project_owner, ProjectOwnerType(args.project_owner_type), args.project_number
        )

    write_snapshot(snapshot, args.project_output_path)
    logger.info(f"Wrote project data to {args.project_output_path}")

    repositories = referenced_repositories(snapshot.items)
    write_mapping_template(args.repository_mappings_output_path, REPOSITORY_MAPPING_HEADER, repositories)
    logins = draft_issue_assignees(snapshot.items)
    write_mapping_template(args.assignee_mappings_output_path, ASSIGNEE_MAPPING_HEADER, logins)

    print(f"Exported project '{snapshot.title}' with {len(snapshot.items)} item(s) to {args.project_output_path}")
    print(
        f"Fill in {args.repository_mappings_output_path} ({len(repositories)} repositories) and "
        f"{args.assignee_mappings_output_path} ({len(logins)} users) before importing."
    )


def _print_import_report(report: ImportReport) -> None:
    print("\n=== Import Report ===")
    print(f"Project: {report.project_url}")
    print(f"Status: {'PASSED' if report.success else 'FAILED'}")

    for key, value in report.statistics().items():
        print(f"  {key}: {value}")

    if report.unmigrable_status_options:
        print(f"Status options that could not be migrated: {', '.join(report.unmigrable_status_options)}")

    if report.errors:
        print("\nProblems:")
        for error in report.errors:
            print(f"  - {error}")


def _run_import(args: argparse.Namespace) -> bool:
    if not args.input_path.exists():
        msg = f"The project input path {args.input_path} does not exist"
        raise ConfigurationError(msg)

    snapshot = read_snapshot(args.input_path)
    repository_mapping = read_mapping(args.repository_mappings_path, REPOSITORY_MAPPING_HEADER)
    user_mapping = read_mapping(args.assignee_mappings_path, ASSIGNEE_MAPPING_HEADER)

    client = _make_client(args, "IMPORT")
    with RateLimitReporter(client):
        report = import_project(
            client,
            snapshot,
            args.project_owner,
            ProjectOwnerType(args.project_owner_type),
            repository_mapping=repository_mapping,
            user_mapping=user_mapping,
            title=args.project_title,
        )

    _print_import_report(report)
    return report.success


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        if args.command == "export":
            _run_export(args)
            success = True
        else:
            success = _run_import(args)
    except Exception:
        logger.exception(f"{args.command.capitalize()} failed")
        sys.exit(1)

    sys.exit(0 if success else 1)
