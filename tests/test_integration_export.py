"""
Integration tests exporting a real project.

Needs GITHUB_TEST_PROJECT_OWNER and GITHUB_TEST_PROJECT_NUMBER, plus a token
with read access to the project (GITHUB_TOKEN or the pass store).
GITHUB_TEST_PROJECT_OWNER_TYPE may be set to "user".
"""

import os
from pathlib import Path

import pytest

from github_project_migrator import github_utils as ghu
from github_project_migrator.exporter import export_project
from github_project_migrator.models import read_snapshot, write_snapshot
from github_project_migrator.projects import ProjectOwnerType


@pytest.fixture
def client() -> ghu.GitHubClient:
    token = ghu.get_token(env_var="EXPORT_GITHUB_TOKEN")
    if not token:
        pytest.skip("No GitHub token available")
    return ghu.get_client(token)


@pytest.mark.integration
class TestExportRealProject:
    """Export the configured test project from GitHub.com."""

    def test_export_round_trips_through_file(self, client: ghu.GitHubClient, tmp_path: Path) -> None:
        owner = os.environ["GITHUB_TEST_PROJECT_OWNER"]
        owner_type = ProjectOwnerType(os.environ.get("GITHUB_TEST_PROJECT_OWNER_TYPE", "organization"))
        number = int(os.environ["GITHUB_TEST_PROJECT_NUMBER"])

        snapshot = export_project(client, owner, owner_type, number)

        assert snapshot.title
        assert snapshot.status_field is not None

        path = tmp_path / "project.json"
        write_snapshot(snapshot, path)
        assert read_snapshot(path) == snapshot
