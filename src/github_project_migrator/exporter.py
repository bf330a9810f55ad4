"""
Export of a project into a snapshot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

from .models import MAX_DRAFT_ISSUE_ASSIGNEES, DraftIssueContent, ProjectSnapshot, parse_project_items
from .pagination import PAGE_SIZE, paginate
from .products import ensure_supported, get_product_information
from .projects import FIELD_FRAGMENT, get_project_reference

if TYPE_CHECKING:
    from .github_utils import GitHubClient
    from .models import ProjectItem
    from .products import ProductInformation
    from .projects import ProjectOwnerType

logger: logging.Logger = logging.getLogger(__name__)

_FIELD_VALUE_OWNER: Final[str] = """
    field {
        ... on ProjectV2FieldCommon {
            id
            name
        }
    }
"""

PROJECT_ITEMS_QUERY: Final[str] = f"""
query getProjectItems($id: ID!, $cursor: String) {{
    node(id: $id) {{
        ... on ProjectV2 {{
            items(first: {PAGE_SIZE}, after: $cursor) {{
                nodes {{
                    id
                    type
                    isArchived
                    content {{
                        __typename
                        ... on Issue {{
                            title
                            number
                            repository {{
                                nameWithOwner
                            }}
                        }}
                        ... on PullRequest {{
                            title
                            number
                            repository {{
                                nameWithOwner
                            }}
                        }}
                        ... on DraftIssue {{
                            title
                            body
                            createdAt
                            creator {{
                                login
                            }}
                            assignees(first: {MAX_DRAFT_ISSUE_ASSIGNEES}) {{
                                nodes {{
                                    login
                                }}
                                totalCount
                            }}
                        }}
                    }}
                    fieldValues(first: {PAGE_SIZE}) {{
                        nodes {{
                            __typename
                            ... on ProjectV2ItemFieldDateValue {{
                                date
                                {_FIELD_VALUE_OWNER}
                            }}
                            ... on ProjectV2ItemFieldIterationValue {{
                                iterationId
                                title
                                startDate
                                duration
                                {_FIELD_VALUE_OWNER}
                            }}
                            ... on ProjectV2ItemFieldNumberValue {{
                                number
                                {_FIELD_VALUE_OWNER}
                            }}
                            ... on ProjectV2ItemFieldSingleSelectValue {{
                                optionId
                                {_FIELD_VALUE_OWNER}
                            }}
                            ... on ProjectV2ItemFieldTextValue {{
                                text
                                {_FIELD_VALUE_OWNER}
                            }}
                        }}
                        totalCount
                    }}
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

_VIEW_FIELD_REFERENCES: Final[str] = """
    nodes {
        ... on ProjectV2FieldCommon {
            id
        }
    }
    totalCount
"""

PROJECT_QUERY: Final[str] = f"""
query getProject($id: ID!) {{
    node(id: $id) {{
        ... on ProjectV2 {{
            title
            shortDescription
            closed
            public
            fields(first: {PAGE_SIZE}) {{
                nodes {{
                    {FIELD_FRAGMENT}
                }}
                totalCount
            }}
            repositories(first: {PAGE_SIZE}) {{
                nodes {{
                    nameWithOwner
                }}
                totalCount
            }}
            views(first: {PAGE_SIZE}) {{
                nodes {{
                    name
                    number
                    layout
                    filter
                    fields(first: {PAGE_SIZE}) {{ {_VIEW_FIELD_REFERENCES} }}
                    groupByFields(first: {PAGE_SIZE}) {{ {_VIEW_FIELD_REFERENCES} }}
                    verticalGroupByFields(first: {PAGE_SIZE}) {{ {_VIEW_FIELD_REFERENCES} }}
                    visibleFields(first: {PAGE_SIZE}) {{ {_VIEW_FIELD_REFERENCES} }}
                    sortByFields(first: {PAGE_SIZE}) {{
                        nodes {{
                            direction
                            field {{
                                ... on ProjectV2FieldCommon {{
                                    id
                                }}
                            }}
                        }}
                        totalCount
                    }}
                }}
                totalCount
            }}
        }}
    }}
}}
"""


def _warn_if_truncated(project: dict[str, Any], key: str) -> None:
    connection: dict[str, Any] = project.get(key) or {}
    total = connection.get("totalCount") or 0
    if total > len(connection.get("nodes") or []):
        logger.warning(f"Project has {total} {key} - only the first {PAGE_SIZE} will be exported")


def get_project(client: GitHubClient, project_id: str) -> dict[str, Any]:
    data = client.query(PROJECT_QUERY, {"id": project_id})
    project: dict[str, Any] = data["node"]
    for key in ("fields", "repositories", "views"):
        _warn_if_truncated(project, key)
    return project


def get_project_items(client: GitHubClient, project_id: str) -> tuple[list[ProjectItem], list[str]]:
    """Fetch all items, dropping the ones whose content is inaccessible.

    Returns:
        The kept items and the ids of the dropped ones
    """
    nodes = paginate(client, PROJECT_ITEMS_QUERY, {"id": project_id}, ("node", "items"))
    items, dropped = parse_project_items(nodes)

    for item in items:
        content = item.content
        if isinstance(content, DraftIssueContent) and content.assignee_total_count > MAX_DRAFT_ISSUE_ASSIGNEES:
            logger.warning(
                f"Draft issue project item {item.id} has more than {MAX_DRAFT_ISSUE_ASSIGNEES} assignees. "
                f"Only the first {MAX_DRAFT_ISSUE_ASSIGNEES} assignees will be exported and migrated."
            )
    return items, dropped


def export_project(
    client: GitHubClient,
    owner: str,
    owner_type: ProjectOwnerType,
    number: int,
    *,
    product_info: ProductInformation | None = None,
) -> ProjectSnapshot:
    """Export a project's metadata, fields, views and items.

    Raises:
        UnsupportedVersionError: If the source GHES is too old
        NotFoundError: If the project does not exist
    """
    ensure_supported(product_info or get_product_information(client), action="export")

    logger.info(f"Looking up ID for project {number} owned by {owner_type.value} {owner}...")
    reference = get_project_reference(client, owner, owner_type, number)
    logger.info(f"Successfully looked up ID for project {number}: {reference.id}")

    logger.info(f"Fetching project by GraphQL ID {reference.id}...")
    project = get_project(client, reference.id)
    logger.info(f"Successfully fetched project \"{project['title']}\"")

    logger.info("Fetching project items...")
    items, dropped = get_project_items(client, reference.id)
    logger.info(f"Successfully fetched {len(items)} project item(s)")
    if dropped:
        logger.warning(f"{len(dropped)} project item(s) could not be exported: {', '.join(dropped)}")

    return ProjectSnapshot.from_graphql(project, items)
