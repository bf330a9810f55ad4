"""
Tests for the Projects (v2) GraphQL operations.
"""

from unittest.mock import Mock

import pytest

from github_project_migrator import projects
from github_project_migrator.exceptions import MigrationError, NotFoundError
from github_project_migrator.models import FieldOption, IterationDefinition
from github_project_migrator.projects import ProjectOwnerType, ProjectReference


@pytest.mark.unit
class TestProjectLookup:
    """Test project and owner lookups."""

    def test_get_project_reference(self) -> None:
        client = Mock()
        client.query.return_value = {"user": {"projectV2": {"id": "PVT_1", "number": 4, "url": "https://x/4"}}}

        reference = projects.get_project_reference(client, "octocat", ProjectOwnerType.USER, 4)

        assert reference == ProjectReference("PVT_1", 4, "https://x/4")
        assert "user(login: $login)" in client.query.call_args.args[0]

    def test_get_owner_id_missing(self) -> None:
        client = Mock()
        client.query.return_value = {"organization": None}

        with pytest.raises(NotFoundError, match="The organization ghost-org was not found"):
            _ = projects.get_owner_id(client, "ghost-org", ProjectOwnerType.ORGANIZATION)


@pytest.mark.unit
class TestUpdateProject:
    """Test partial metadata updates."""

    def test_only_given_arguments_are_sent(self) -> None:
        client = Mock()

        projects.update_project(client, "PVT_1", closed=True)

        document, variables = client.query.call_args.args
        assert variables == {"projectId": "PVT_1", "closed": True}
        assert "$closed: Boolean" in document
        assert "shortDescription" not in document

    def test_nothing_to_update(self) -> None:
        client = Mock()

        projects.update_project(client, "PVT_1")

        client.query.assert_not_called()


@pytest.mark.unit
class TestCreateFields:
    """Test field creation."""

    def test_single_select_sends_options(self) -> None:
        client = Mock()
        client.query.return_value = {
            "createProjectV2Field": {
                "projectV2Field": {
                    "id": "F_new",
                    "name": "Priority",
                    "dataType": "SINGLE_SELECT",
                    "options": [{"id": "O_1", "name": "High", "description": "", "color": "RED"}],
                }
            }
        }

        created = projects.create_field(client, "PVT_1", "Priority", "SINGLE_SELECT", [FieldOption("P_1", "High", color="RED")])

        variables = client.query.call_args.args[1]
        assert variables["options"] == [{"name": "High", "color": "RED", "description": ""}]
        assert created.options == [FieldOption("O_1", "High", "", "RED")]

    def test_text_field_has_no_options(self) -> None:
        client = Mock()
        client.query.return_value = {
            "createProjectV2Field": {"projectV2Field": {"id": "F_new", "name": "Notes", "dataType": "TEXT"}}
        }

        _ = projects.create_field(client, "PVT_1", "Notes", "TEXT")

        assert "options" not in client.query.call_args.args[1]

    def test_iteration_field_configuration(self) -> None:
        client = Mock()
        client.query.return_value = {
            "createProjectV2Field": {"projectV2Field": {"id": "F_it", "name": "Sprint", "dataType": "ITERATION"}}
        }
        iterations = [
            IterationDefinition("I_2", "Sprint 2", "2024-01-15", 14),
            IterationDefinition("I_1", "Sprint 1", "2024-01-01", 14),
        ]

        _ = projects.create_iteration_field(client, "PVT_1", "Sprint", 14, iterations)

        configuration = client.query.call_args.args[1]["configuration"]
        assert configuration["startDate"] == "2024-01-01"
        assert [i["title"] for i in configuration["iterations"]] == ["Sprint 1", "Sprint 2"]

    def test_iteration_field_needs_iterations(self) -> None:
        with pytest.raises(MigrationError, match="without iterations"):
            _ = projects.create_iteration_field(Mock(), "PVT_1", "Sprint", 14, [])


@pytest.mark.unit
class TestContentLookup:
    """Test issue, pull request and user lookups."""

    def test_issue_or_pull_request_id(self) -> None:
        client = Mock()
        client.query.return_value = {"repository": {"issueOrPullRequest": {"id": "I_node"}}}

        assert projects.get_issue_or_pull_request_id(client, "new-org/api", 12) == "I_node"
        assert client.query.call_args.args[1] == {"owner": "new-org", "name": "api", "number": 12}

    def test_missing_repository(self) -> None:
        client = Mock()
        client.query.side_effect = NotFoundError("Could not resolve to a Repository")

        assert projects.get_issue_or_pull_request_id(client, "new-org/gone", 12) is None

    def test_missing_user(self) -> None:
        client = Mock()
        client.query.side_effect = NotFoundError("Could not resolve to a User")

        assert projects.get_user_id(client, "ghost") is None
