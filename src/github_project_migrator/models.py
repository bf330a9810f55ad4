"""Data model for a GitHub Projects (v2) snapshot.

A snapshot is produced once by an export and consumed read-only by an
import. Its JSON form mirrors the GraphQL responses it was built from:

    {"project": {...}, "projectItems": [...]}

Identifiers in a snapshot are scoped to the source instance. Nothing in it
can be reused on the destination without going through correlation.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from .exceptions import SnapshotError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

logger: logging.Logger = logging.getLogger(__name__)

STATUS_FIELD_NAME: Final[str] = "Status"
TITLE_FIELD_NAME: Final[str] = "Title"
MAX_DRAFT_ISSUE_ASSIGNEES: Final[int] = 100


class ProjectItemType(enum.Enum):
    ISSUE = "ISSUE"
    PULL_REQUEST = "PULL_REQUEST"
    DRAFT_ISSUE = "DRAFT_ISSUE"
    REDACTED = "REDACTED"


class ContentKind(enum.Enum):
    """GraphQL ``__typename`` of an item's content."""

    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    DRAFT_ISSUE = "DraftIssue"


class FieldValueKind(enum.Enum):
    """GraphQL ``__typename`` of an item's field value."""

    DATE = "ProjectV2ItemFieldDateValue"
    ITERATION = "ProjectV2ItemFieldIterationValue"
    LABEL = "ProjectV2ItemFieldLabelValue"
    MILESTONE = "ProjectV2ItemFieldMilestoneValue"
    NUMBER = "ProjectV2ItemFieldNumberValue"
    PULL_REQUEST = "ProjectV2ItemFieldPullRequestValue"
    REPOSITORY = "ProjectV2ItemFieldRepositoryValue"
    REVIEWER = "ProjectV2ItemFieldReviewerValue"
    SINGLE_SELECT = "ProjectV2ItemFieldSingleSelectValue"
    TEXT = "ProjectV2ItemFieldTextValue"
    USER = "ProjectV2ItemFieldUserValue"


# Key holding the payload of each value kind in the GraphQL response
_VALUE_KEYS: Final[dict[FieldValueKind, str]] = {
    FieldValueKind.DATE: "date",
    FieldValueKind.ITERATION: "iterationId",
    FieldValueKind.NUMBER: "number",
    FieldValueKind.SINGLE_SELECT: "optionId",
    FieldValueKind.TEXT: "text",
}


def _connection(nodes: list[dict[str, Any]]) -> dict[str, Any]:
    return {"nodes": nodes, "totalCount": len(nodes)}


def _nodes(data: dict[str, Any] | None, key: str) -> list[dict[str, Any]]:
    if not data:
        return []
    return (data.get(key) or {}).get("nodes") or []


@dataclass(frozen=True)
class FieldOption:
    """An option of a single select field."""

    id: str
    name: str
    description: str = ""
    color: str = "GRAY"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldOption:
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description") or "",
            color=data.get("color") or "GRAY",
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description, "color": self.color}


@dataclass(frozen=True)
class IterationDefinition:
    """One iteration of an iteration field."""

    id: str
    title: str
    start_date: str
    duration: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IterationDefinition:
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            start_date=data["startDate"],
            duration=int(data.get("duration") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "startDate": self.start_date, "duration": self.duration}


@dataclass
class Field:
    """A column of a project.

    ``data_type`` is the GraphQL ``dataType`` (TEXT, NUMBER, DATE,
    SINGLE_SELECT, ITERATION, or a built-in type such as ASSIGNEES).
    """

    id: str
    name: str
    data_type: str
    options: list[FieldOption] = field(default_factory=list)
    iterations: list[IterationDefinition] = field(default_factory=list)
    iteration_duration: int | None = None
    iteration_start_day: int | None = None

    @property
    def is_status(self) -> bool:
        return self.name == STATUS_FIELD_NAME and self.data_type == "SINGLE_SELECT"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Field:
        configuration: dict[str, Any] = data.get("configuration") or {}
        iterations = [
            *(configuration.get("completedIterations") or []),
            *(configuration.get("iterations") or []),
        ]
        return cls(
            id=data["id"],
            name=data["name"],
            data_type=data.get("dataType") or "",
            options=[FieldOption.from_dict(option) for option in data.get("options") or []],
            iterations=[IterationDefinition.from_dict(iteration) for iteration in iterations],
            iteration_duration=configuration.get("duration"),
            iteration_start_day=configuration.get("startDay"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name, "dataType": self.data_type}
        if self.data_type == "SINGLE_SELECT":
            result["options"] = [option.to_dict() for option in self.options]
        if self.data_type == "ITERATION":
            result["configuration"] = {
                "duration": self.iteration_duration,
                "startDay": self.iteration_start_day,
                "iterations": [iteration.to_dict() for iteration in self.iterations],
            }
        return result


@dataclass(frozen=True)
class SortByField:
    field_id: str
    direction: str = "ASC"


@dataclass
class View:
    """A saved view. Field references are source field ids."""

    name: str
    number: int
    layout: str
    filter: str | None = None
    fields: list[str] = field(default_factory=list)
    group_by_fields: list[str] = field(default_factory=list)
    vertical_group_by_fields: list[str] = field(default_factory=list)
    sort_by_fields: list[SortByField] = field(default_factory=list)
    visible_fields: list[str] = field(default_factory=list)

    def referenced_field_ids(self) -> set[str]:
        return {
            *self.fields,
            *self.group_by_fields,
            *self.vertical_group_by_fields,
            *self.visible_fields,
            *(sort.field_id for sort in self.sort_by_fields),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> View:
        def ids(key: str) -> list[str]:
            return [node["id"] for node in _nodes(data, key) if node.get("id")]

        return cls(
            name=data["name"],
            number=int(data["number"]),
            layout=data.get("layout") or "TABLE_LAYOUT",
            filter=data.get("filter"),
            fields=ids("fields"),
            group_by_fields=ids("groupByFields"),
            vertical_group_by_fields=ids("verticalGroupByFields"),
            sort_by_fields=[
                SortByField(node["field"]["id"], node.get("direction") or "ASC")
                for node in _nodes(data, "sortByFields")
                if (node.get("field") or {}).get("id")
            ],
            visible_fields=ids("visibleFields"),
        )

    def to_dict(self) -> dict[str, Any]:
        def refs(field_ids: list[str]) -> dict[str, Any]:
            return _connection([{"id": field_id} for field_id in field_ids])

        return {
            "name": self.name,
            "number": self.number,
            "layout": self.layout,
            "filter": self.filter,
            "fields": refs(self.fields),
            "groupByFields": refs(self.group_by_fields),
            "verticalGroupByFields": refs(self.vertical_group_by_fields),
            "sortByFields": _connection(
                [{"direction": sort.direction, "field": {"id": sort.field_id}} for sort in self.sort_by_fields]
            ),
            "visibleFields": refs(self.visible_fields),
        }


@dataclass(frozen=True)
class RepositoryContent:
    """An issue or pull request, identified by ``(repository, number)``."""

    kind: ContentKind
    title: str
    number: int
    repository: str  # owner/name

    def to_dict(self) -> dict[str, Any]:
        return {
            "__typename": self.kind.value,
            "title": self.title,
            "number": self.number,
            "repository": {"nameWithOwner": self.repository},
        }


@dataclass(frozen=True)
class DraftIssueContent:
    """A draft issue, which lives only inside the project."""

    title: str
    body: str = ""
    created_at: str | None = None
    creator_login: str | None = None
    assignee_logins: tuple[str, ...] = ()
    assignee_total_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "__typename": ContentKind.DRAFT_ISSUE.value,
            "title": self.title,
            "body": self.body,
            "createdAt": self.created_at,
            "creator": {"login": self.creator_login} if self.creator_login else None,
            "assignees": {
                "nodes": [{"login": login} for login in self.assignee_logins],
                "totalCount": self.assignee_total_count,
            },
        }


Content = RepositoryContent | DraftIssueContent


def parse_content(data: dict[str, Any] | None) -> Content | None:
    """Parse item content, returning None when it is absent or of an unknown kind."""
    if not data:
        return None
    try:
        kind = ContentKind(data.get("__typename"))
    except ValueError:
        return None

    if kind is ContentKind.DRAFT_ISSUE:
        assignees: dict[str, Any] = data.get("assignees") or {}
        logins = tuple(node["login"] for node in assignees.get("nodes") or [] if node and node.get("login"))
        return DraftIssueContent(
            title=data.get("title") or "",
            body=data.get("body") or "",
            created_at=data.get("createdAt"),
            creator_login=(data.get("creator") or {}).get("login"),
            assignee_logins=logins,
            assignee_total_count=int(assignees.get("totalCount") or len(logins)),
        )

    return RepositoryContent(
        kind=kind,
        title=data.get("title") or "",
        number=int(data["number"]),
        repository=data["repository"]["nameWithOwner"],
    )


@dataclass(frozen=True)
class FieldValue:
    """A value set on an item.

    ``value`` holds the payload for the kind: text, number, date string,
    single select option id or iteration id. Relationship-derived kinds
    (labels, users, ...) carry no payload.
    """

    kind: FieldValueKind
    field_id: str | None = None
    field_name: str | None = None
    value: Any = None
    iteration_title: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldValue:
        kind = FieldValueKind(data["__typename"])
        owner: dict[str, Any] = data.get("field") or {}
        value_key = _VALUE_KEYS.get(kind)
        return cls(
            kind=kind,
            field_id=owner.get("id"),
            field_name=owner.get("name"),
            value=data.get(value_key) if value_key else None,
            iteration_title=data.get("title") if kind is FieldValueKind.ITERATION else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"__typename": self.kind.value}
        if self.field_id is not None:
            result["field"] = {"id": self.field_id, "name": self.field_name}
        value_key = _VALUE_KEYS.get(self.kind)
        if value_key:
            result[value_key] = self.value
        if self.kind is FieldValueKind.ITERATION:
            result["title"] = self.iteration_title
        return result


@dataclass
class ProjectItem:
    id: str
    type: ProjectItemType
    content: Content
    is_archived: bool = False
    field_values: list[FieldValue] = field(default_factory=list)

    @property
    def is_draft(self) -> bool:
        return isinstance(self.content, DraftIssueContent)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "isArchived": self.is_archived,
            "content": self.content.to_dict(),
            "fieldValues": _connection([value.to_dict() for value in self.field_values]),
        }


def _parse_field_values(data: dict[str, Any]) -> list[FieldValue]:
    values: list[FieldValue] = []
    for node in _nodes(data, "fieldValues"):
        if not node or not node.get("__typename"):
            continue
        try:
            values.append(FieldValue.from_dict(node))
        except ValueError:
            logger.debug(f"Ignoring field value of unsupported type {node.get('__typename')}")
    return values


def parse_project_item(data: dict[str, Any]) -> ProjectItem | None:
    """Parse one item node. Returns None for items whose content is inaccessible."""
    content = parse_content(data.get("content"))
    if content is None:
        return None
    return ProjectItem(
        id=data["id"],
        type=ProjectItemType(data.get("type") or ProjectItemType.REDACTED.value),
        content=content,
        is_archived=bool(data.get("isArchived")),
        field_values=_parse_field_values(data),
    )


def parse_project_items(nodes: Iterable[dict[str, Any]]) -> tuple[list[ProjectItem], list[str]]:
    """Parse item nodes, dropping (and warning about) items without content.

    Returns:
        The kept items and the ids of the dropped ones
    """
    items: list[ProjectItem] = []
    dropped: list[str] = []
    for node in nodes:
        item = parse_project_item(node)
        if item is None:
            logger.warning(
                f"Skipping project item {node.get('id')} because its linked issue or pull request "
                "could not be retrieved - your access token may lack the required permissions, "
                "or you may not have access to the issue or pull request."
            )
            logger.debug(f"Skipped project item: {node}")
            dropped.append(str(node.get("id")))
            continue
        items.append(item)
    return items, dropped


@dataclass
class ProjectSnapshot:
    """Everything exported from one project."""

    title: str
    short_description: str | None = None
    closed: bool = False
    public: bool = False
    fields: list[Field] = field(default_factory=list)
    views: list[View] = field(default_factory=list)
    repositories: list[str] = field(default_factory=list)
    items: list[ProjectItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check field ids are unique and every view references known fields."""
        field_ids: set[str] = set()
        for project_field in self.fields:
            if project_field.id in field_ids:
                msg = f"Field id {project_field.id} appears more than once in the snapshot"
                raise SnapshotError(msg)
            field_ids.add(project_field.id)

        for view in self.views:
            unknown = view.referenced_field_ids() - field_ids
            if unknown:
                msg = f"View '{view.name}' references unknown field(s): {', '.join(sorted(unknown))}"
                raise SnapshotError(msg)

    def get_field(self, field_id: str) -> Field | None:
        return next((f for f in self.fields if f.id == field_id), None)

    @property
    def status_field(self) -> Field | None:
        return next((f for f in self.fields if f.is_status), None)

    @classmethod
    def from_graphql(cls, project: dict[str, Any], items: Sequence[ProjectItem]) -> ProjectSnapshot:
        """Build a snapshot from a ``ProjectV2`` node and already parsed items."""
        try:
            return cls(
                title=project["title"],
                short_description=project.get("shortDescription"),
                closed=bool(project.get("closed")),
                public=bool(project.get("public")),
                # Fields of unsupported kinds come back as empty fragments
                fields=[Field.from_dict(node) for node in _nodes(project, "fields") if node.get("id")],
                views=[View.from_dict(node) for node in _nodes(project, "views")],
                repositories=[node["nameWithOwner"] for node in _nodes(project, "repositories")],
                items=list(items),
            )
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Malformed project data: {e!r}"
            raise SnapshotError(msg) from e

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectSnapshot:
        try:
            project: dict[str, Any] = data["project"]
            raw_items: list[dict[str, Any]] = data.get("projectItems") or []
        except (KeyError, TypeError) as e:
            msg = "Snapshot must be an object with 'project' and 'projectItems' members"
            raise SnapshotError(msg) from e

        try:
            items, _ = parse_project_items(raw_items)
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Malformed project item data: {e!r}"
            raise SnapshotError(msg) from e
        return cls.from_graphql(project, items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": {
                "title": self.title,
                "shortDescription": self.short_description,
                "closed": self.closed,
                "public": self.public,
                "fields": _connection([f.to_dict() for f in self.fields]),
                "views": _connection([view.to_dict() for view in self.views]),
                "repositories": _connection([{"nameWithOwner": name} for name in self.repositories]),
            },
            "projectItems": [item.to_dict() for item in self.items],
        }


def read_snapshot(path: Path) -> ProjectSnapshot:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        msg = f"Snapshot {path} is not valid JSON: {e}"
        raise SnapshotError(msg) from e
    return ProjectSnapshot.from_dict(data)


def write_snapshot(snapshot: ProjectSnapshot, path: Path) -> None:
    _ = path.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")


def referenced_repositories(items: Iterable[ProjectItem]) -> list[str]:
    """Repositories (owner/name) of issue and pull request items, in first-seen order."""
    repositories: dict[str, None] = {}
    for item in items:
        if isinstance(item.content, RepositoryContent):
            repositories[item.content.repository] = None
    return list(repositories)


def draft_issue_assignees(items: Iterable[ProjectItem]) -> list[str]:
    """Logins of draft issue assignees and creators, in first-seen order."""
    logins: dict[str, None] = {}
    for item in items:
        if isinstance(item.content, DraftIssueContent):
            for login in item.content.assignee_logins:
                logins[login] = None
            if item.content.creator_login:
                logins[item.content.creator_login] = None
    return list(logins)
