"""
GraphQL operations on Projects (v2) and the content they link to.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any, Final, NamedTuple

from .exceptions import MigrationError, NotFoundError
from .models import Field
from .pagination import PAGE_SIZE, paginate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .github_utils import GitHubClient
    from .models import FieldOption, IterationDefinition

logger: logging.Logger = logging.getLogger(__name__)


class ProjectOwnerType(enum.Enum):
    ORGANIZATION = "organization"
    USER = "user"


class ProjectReference(NamedTuple):
    id: str
    number: int
    url: str


ITERATION_FIELDS: Final[str] = "id title startDate duration"

FIELD_FRAGMENT: Final[str] = f"""
    ... on ProjectV2Field {{
        id
        name
        dataType
    }}
    ... on ProjectV2IterationField {{
        id
        name
        dataType
        configuration {{
            duration
            startDay
            iterations {{ {ITERATION_FIELDS} }}
            completedIterations {{ {ITERATION_FIELDS} }}
        }}
    }}
    ... on ProjectV2SingleSelectField {{
        id
        name
        dataType
        options {{
            id
            name
            description
            color
        }}
    }}
"""


def get_project_reference(
    client: GitHubClient,
    owner: str,
    owner_type: ProjectOwnerType,
    number: int,
) -> ProjectReference:
    """Look up the global id and URL of a project by owner and number.

    Raises:
        NotFoundError: If the owner or project does not exist
    """
    owner_key = owner_type.value
    query = f"""
    query getProjectGlobalId($login: String!, $number: Int!) {{
        {owner_key}(login: $login) {{
            projectV2(number: $number) {{
                id
                number
                url
            }}
        }}
    }}
    """
    data = client.query(query, {"login": owner, "number": number})
    project: dict[str, Any] | None = (data.get(owner_key) or {}).get("projectV2")
    if not project:
        msg = f"Project {number} owned by {owner_key} {owner} not found"
        raise NotFoundError(msg)
    return ProjectReference(project["id"], project["number"], project["url"])


def get_owner_id(client: GitHubClient, owner: str, owner_type: ProjectOwnerType) -> str:
    owner_key = owner_type.value
    query = f"""
    query getOwnerId($login: String!) {{
        {owner_key}(login: $login) {{
            id
        }}
    }}
    """
    data = client.query(query, {"login": owner})
    node: dict[str, Any] | None = data.get(owner_key)
    if not node:
        msg = f"The {owner_key} {owner} was not found"
        raise NotFoundError(msg)
    return node["id"]


def create_project(client: GitHubClient, owner_id: str, title: str) -> ProjectReference:
    mutation = """
    mutation createProject($ownerId: ID!, $title: String!) {
        createProjectV2(input: {ownerId: $ownerId, title: $title}) {
            projectV2 {
                id
                number
                url
            }
        }
    }
    """
    data = client.query(mutation, {"ownerId": owner_id, "title": title})
    project: dict[str, Any] = data["createProjectV2"]["projectV2"]
    return ProjectReference(project["id"], project["number"], project["url"])


def update_project(
    client: GitHubClient,
    project_id: str,
    *,
    short_description: str | None = None,
    public: bool | None = None,
    closed: bool | None = None,
) -> None:
    """Update project metadata. Arguments left as None are not changed."""
    variables: dict[str, Any] = {"projectId": project_id}
    declarations = ["$projectId: ID!"]
    assignments = ["projectId: $projectId"]
    for name, graphql_type, value in (
        ("shortDescription", "String", short_description),
        ("public", "Boolean", public),
        ("closed", "Boolean", closed),
    ):
        if value is None:
            continue
        variables[name] = value
        declarations.append(f"${name}: {graphql_type}")
        assignments.append(f"{name}: ${name}")

    if len(variables) == 1:
        return

    signature = ", ".join(declarations)
    arguments = ", ".join(assignments)
    mutation = f"""
    mutation updateProject({signature}) {{
        updateProjectV2(input: {{{arguments}}}) {{
            projectV2 {{
                id
            }}
        }}
    }}
    """
    _ = client.query(mutation, variables)


def get_project_fields(client: GitHubClient, project_id: str) -> list[Field]:
    query = f"""
    query getProjectFields($id: ID!, $cursor: String) {{
        node(id: $id) {{
            ... on ProjectV2 {{
                fields(first: {PAGE_SIZE}, after: $cursor) {{
                    nodes {{
                        {FIELD_FRAGMENT}
                    }}
                    pageInfo {{
                        hasNextPage
                        endCursor
                    }}
                }}
            }}
        }}
    }}
    """
    return [
        Field.from_dict(node)
        for node in paginate(client, query, {"id": project_id}, ("node", "fields"))
        if node.get("id")
    ]


def _option_inputs(options: Sequence[FieldOption]) -> list[dict[str, str]]:
    return [{"name": o.name, "color": o.color, "description": o.description} for o in options]


def create_field(
    client: GitHubClient,
    project_id: str,
    name: str,
    data_type: str,
    options: Sequence[FieldOption] = (),
) -> Field:
    """Create a Text, Number, Date or Single select field."""
    variables: dict[str, Any] = {"projectId": project_id, "name": name, "dataType": data_type}
    if data_type == "SINGLE_SELECT":
        variables["options"] = _option_inputs(options)

    mutation = f"""
    mutation createField(
        $projectId: ID!,
        $name: String!,
        $dataType: ProjectV2CustomFieldType!,
        $options: [ProjectV2SingleSelectFieldOptionInput!]
    ) {{
        createProjectV2Field(input: {{
            projectId: $projectId,
            name: $name,
            dataType: $dataType,
            singleSelectOptions: $options
        }}) {{
            projectV2Field {{
                {FIELD_FRAGMENT}
            }}
        }}
    }}
    """
    data = client.query(mutation, variables)
    return Field.from_dict(data["createProjectV2Field"]["projectV2Field"])


def create_iteration_field(
    client: GitHubClient,
    project_id: str,
    name: str,
    duration: int,
    iterations: Sequence[IterationDefinition],
) -> Field:
    """Create an Iteration field with the given schedule."""
    if not iterations:
        msg = f"Cannot create iteration field '{name}' without iterations"
        raise MigrationError(msg)

    ordered = sorted(iterations, key=lambda iteration: iteration.start_date)
    configuration = {
        "startDate": ordered[0].start_date,
        "duration": duration,
        "iterations": [
            {"title": i.title, "startDate": i.start_date, "duration": i.duration} for i in ordered
        ],
    }
    mutation = f"""
    mutation createIterationField(
        $projectId: ID!,
        $name: String!,
        $configuration: ProjectV2IterationFieldConfigurationInput!
    ) {{
        createProjectV2Field(input: {{
            projectId: $projectId,
            name: $name,
            dataType: ITERATION,
            iterationConfiguration: $configuration
        }}) {{
            projectV2Field {{
                {FIELD_FRAGMENT}
            }}
        }}
    }}
    """
    data = client.query(mutation, {"projectId": project_id, "name": name, "configuration": configuration})
    return Field.from_dict(data["createProjectV2Field"]["projectV2Field"])


def replace_single_select_options(client: GitHubClient, field_id: str, options: Sequence[FieldOption]) -> Field:
    """Replace the whole option set of a single select field."""
    mutation = f"""
    mutation updateFieldOptions($fieldId: ID!, $options: [ProjectV2SingleSelectFieldOptionInput!]) {{
        updateProjectV2Field(input: {{fieldId: $fieldId, singleSelectOptions: $options}}) {{
            projectV2Field {{
                {FIELD_FRAGMENT}
            }}
        }}
    }}
    """
    data = client.query(mutation, {"fieldId": field_id, "options": _option_inputs(options)})
    return Field.from_dict(data["updateProjectV2Field"]["projectV2Field"])


def get_issue_or_pull_request_id(client: GitHubClient, repository: str, number: int) -> str | None:
    """Return the node id of an issue or pull request, or None if it does not exist."""
    owner, name = repository.split("/", 1)
    query = """
    query getIssueOrPullRequest($owner: String!, $name: String!, $number: Int!) {
        repository(owner: $owner, name: $name) {
            issueOrPullRequest(number: $number) {
                ... on Issue {
                    id
                }
                ... on PullRequest {
                    id
                }
            }
        }
    }
    """
    try:
        data = client.query(query, {"owner": owner, "name": name, "number": number})
    except NotFoundError:
        return None
    content: dict[str, Any] | None = (data.get("repository") or {}).get("issueOrPullRequest")
    return content["id"] if content else None


def get_user_id(client: GitHubClient, login: str) -> str | None:
    """Return the node id of a user, or None if there is no such user."""
    query = """
    query getUserId($login: String!) {
        user(login: $login) {
            id
        }
    }
    """
    try:
        data = client.query(query, {"login": login})
    except NotFoundError:
        return None
    user: dict[str, Any] | None = data.get("user")
    return user["id"] if user else None


def add_item_by_content_id(client: GitHubClient, project_id: str, content_id: str) -> str:
    mutation = """
    mutation addItem($projectId: ID!, $contentId: ID!) {
        addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
            item {
                id
            }
        }
    }
    """
    data = client.query(mutation, {"projectId": project_id, "contentId": content_id})
    return data["addProjectV2ItemById"]["item"]["id"]


def add_draft_issue(
    client: GitHubClient,
    project_id: str,
    title: str,
    body: str,
    assignee_ids: Sequence[str] = (),
) -> str:
    mutation = """
    mutation addDraftIssue($projectId: ID!, $title: String!, $body: String, $assigneeIds: [ID!]) {
        addProjectV2DraftIssue(input: {
            projectId: $projectId,
            title: $title,
            body: $body,
            assigneeIds: $assigneeIds
        }) {
            projectItem {
                id
            }
        }
    }
    """
    data = client.query(
        mutation,
        {"projectId": project_id, "title": title, "body": body, "assigneeIds": list(assignee_ids)},
    )
    return data["addProjectV2DraftIssue"]["projectItem"]["id"]


def set_item_field_value(
    client: GitHubClient,
    project_id: str,
    item_id: str,
    field_id: str,
    value: dict[str, Any],
) -> None:
    """Set one field on an item.

    ``value`` is a ``ProjectV2FieldValue`` input such as ``{"text": "..."}``
    or ``{"singleSelectOptionId": "..."}``.
    """
    mutation = """
    mutation setFieldValue($projectId: ID!, $itemId: ID!, $fieldId: ID!, $value: ProjectV2FieldValue!) {
        updateProjectV2ItemFieldValue(input: {
            projectId: $projectId,
            itemId: $itemId,
            fieldId: $fieldId,
            value: $value
        }) {
            projectV2Item {
                id
            }
        }
    }
    """
    _ = client.query(mutation, {"projectId": project_id, "itemId": item_id, "fieldId": field_id, "value": value})


def archive_item(client: GitHubClient, project_id: str, item_id: str) -> None:
    mutation = """
    mutation archiveItem($projectId: ID!, $itemId: ID!) {
        archiveProjectV2Item(input: {projectId: $projectId, itemId: $itemId}) {
            item {
                id
            }
        }
    }
    """
    _ = client.query(mutation, {"projectId": project_id, "itemId": item_id})
