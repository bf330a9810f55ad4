"""Import of a project snapshot into a new destination project.

Import Flow
-----------
Phase 1: Preparation
    - Check the destination product and version
    - Warn about repositories and users missing from the mapping tables
    - Create the destination project and copy its metadata

Phase 2: Fields
    - Create every custom field (Text, Number, Date, Single select)
      and correlate single select options by name
    - Create Iteration fields with the source schedule
    - Mirror the Status options where the destination allows it,
      otherwise match them against the destination's fixed set

Phase 3: Items
    For each item, in snapshot order:
        a. Resolve its content (mapped issue/PR, or a new draft issue)
        b. Add it to the project
        c. Replay its custom field values, translating option and
           iteration ids
        d. Archive it if it was archived in the source

Phase 4: Wrap-up
    - List the views the operator has to recreate by hand
    - Close the project if the source was closed

Error Handling
--------------
Structural problems (option sets that cannot be correlated, unsupported
server versions) abort the import. Problems with a single item or a single
value are recorded in the ImportReport and the import carries on.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from . import projects
from .correlation import (
    correlate_field_options,
    correlate_options_by_name,
    is_custom_field,
    is_project_item_custom_field_value,
)
from .exceptions import CorrelationError, MigrationError, RateLimitedError, RequestError
from .mappings import find_unmapped, is_repository_name, report_unmapped
from .models import (
    MAX_DRAFT_ISSUE_ASSIGNEES,
    STATUS_FIELD_NAME,
    DraftIssueContent,
    FieldValueKind,
)
from .products import ensure_supported, get_product_information, supports_automatic_status_field_migration

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .github_utils import GitHubClient
    from .models import Field, FieldValue, ProjectItem, ProjectSnapshot
    from .products import ProductInformation
    from .projects import ProjectOwnerType, ProjectReference

logger: logging.Logger = logging.getLogger(__name__)


class ItemOutcome(enum.Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ItemResult:
    """What happened to one source item."""

    source_id: str
    outcome: ItemOutcome
    destination_id: str | None = None
    reason: str | None = None
    partial: bool = False
    value_failures: list[str] = field(default_factory=list)


@dataclass
class ImportReport:
    """Outcome of an import, accumulated item by item."""

    project_url: str | None = None
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    partial: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    unmigrable_status_options: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    def record(self, result: ItemResult) -> None:
        if result.outcome is ItemOutcome.CREATED:
            self.created.append(result.source_id)
        elif result.outcome is ItemOutcome.SKIPPED:
            self.skipped.append(result.source_id)
        else:
            self.failed.append(result.source_id)

        if result.partial:
            self.partial.append(result.source_id)
        if result.reason:
            self.errors.append(f"Item {result.source_id} {result.outcome.value}: {result.reason}")
        self.errors.extend(f"Item {result.source_id}: {failure}" for failure in result.value_failures)

    def statistics(self) -> dict[str, int]:
        return {
            "items_created": len(self.created),
            "items_skipped": len(self.skipped),
            "items_failed": len(self.failed),
            "items_partially_migrated": len(self.partial),
            "unmigrable_status_options": len(self.unmigrable_status_options),
        }


class _SkipItem(Exception):
    """Internal signal that an item cannot be imported."""


class ItemImporter:
    """Creates destination items from snapshot items.

    Destination fields are looked up by name. Option maps are keyed by
    source field id and translate source option ids to destination ones.
    """

    def __init__(
        self,
        client: GitHubClient,
        project_id: str,
        *,
        source_fields: Mapping[str, Field],
        destination_fields: Mapping[str, Field],
        option_maps: Mapping[str, Mapping[str, str]],
        repository_mapping: Mapping[str, str],
        user_mapping: Mapping[str, str],
        status_options_fixed: bool = False,
    ) -> None:
        self._client: GitHubClient = client
        self._project_id: str = project_id
        self._source_fields: Mapping[str, Field] = source_fields
        self._destination_fields: Mapping[str, Field] = destination_fields
        self._option_maps: Mapping[str, Mapping[str, str]] = option_maps
        self._repository_mapping: Mapping[str, str] = repository_mapping
        self._user_mapping: Mapping[str, str] = user_mapping
        self._status_options_fixed: bool = status_options_fixed

        # Cache: destination login -> node id (None when the user does not exist)
        self._user_ids: dict[str, str | None] = {}

    def import_item(self, item: ProjectItem) -> ItemResult:
        dropped_assignees: list[str] = []
        try:
            destination_id = self._create_item(item, dropped_assignees)
        except _SkipItem as e:
            logger.warning(f"Skipping project item {item.id}: {e}")
            return ItemResult(item.id, ItemOutcome.SKIPPED, reason=str(e))
        except RateLimitedError:
            raise
        except RequestError as e:
            logger.error(f"Failed to create project item for {item.id}: {e}")  # noqa: TRY400
            return ItemResult(item.id, ItemOutcome.FAILED, reason=str(e))

        result = ItemResult(item.id, ItemOutcome.CREATED, destination_id=destination_id)
        if dropped_assignees:
            result.partial = True
            result.value_failures.append(f"assignee(s) not migrated: {', '.join(dropped_assignees)}")
        self._replay_field_values(item, result)

        if item.is_archived:
            try:
                projects.archive_item(self._client, self._project_id, destination_id)
            except RateLimitedError:
                raise
            except RequestError as e:
                result.value_failures.append(f"could not archive item: {e}")
                logger.warning(f"Failed to archive project item {destination_id} (source {item.id}): {e}")

        logger.debug(f"Created project item {destination_id} from {item.id}")
        return result

    def _create_item(self, item: ProjectItem, dropped_assignees: list[str]) -> str:
        content = item.content
        if isinstance(content, DraftIssueContent):
            return projects.add_draft_issue(
                self._client,
                self._project_id,
                content.title,
                self._draft_issue_body(content),
                self._draft_issue_assignee_ids(item.id, content, dropped_assignees),
            )

        target_repository = self._repository_mapping.get(content.repository)
        if not target_repository:
            msg = f"no target repository is mapped for {content.repository}"
            raise _SkipItem(msg)
        if not is_repository_name(target_repository):
            msg = f"target repository '{target_repository}' mapped for {content.repository} is not in owner/name form"
            raise _SkipItem(msg)

        content_id = projects.get_issue_or_pull_request_id(self._client, target_repository, content.number)
        if content_id is None:
            msg = f"{content.kind.value} {target_repository}#{content.number} was not found"
            raise _SkipItem(msg)

        return projects.add_item_by_content_id(self._client, self._project_id, content_id)

    def _draft_issue_body(self, content: DraftIssueContent) -> str:
        creator = content.creator_login
        if creator is None:
            return content.body

        target_creator = self._user_mapping.get(creator)
        credit = f"@{target_creator}" if target_creator else creator
        created = f" on {content.created_at}" if content.created_at else ""
        footer = f"_Originally created by {credit}{created}._"
        return f"{content.body}\n\n---\n\n{footer}" if content.body else footer

    def _draft_issue_assignee_ids(
        self, item_id: str, content: DraftIssueContent, dropped_assignees: list[str]
    ) -> list[str]:
        if content.assignee_total_count > MAX_DRAFT_ISSUE_ASSIGNEES:
            logger.warning(
                f"Draft issue project item {item_id} has {content.assignee_total_count} assignees. "
                f"Only the first {MAX_DRAFT_ISSUE_ASSIGNEES} will be migrated."
            )

        assignee_ids: list[str] = []
        for login in content.assignee_logins[:MAX_DRAFT_ISSUE_ASSIGNEES]:
            target_login = self._user_mapping.get(login)
            if not target_login:
                logger.debug(f"Not assigning unmapped user {login} to draft issue {item_id}")
                dropped_assignees.append(login)
                continue
            user_id = self._get_user_id(target_login)
            if user_id is None:
                logger.warning(f"User {target_login} (mapped from {login}) does not exist on the destination")
                dropped_assignees.append(login)
                continue
            assignee_ids.append(user_id)
        return assignee_ids

    def _get_user_id(self, login: str) -> str | None:
        if login not in self._user_ids:
            self._user_ids[login] = projects.get_user_id(self._client, login)
        return self._user_ids[login]

    def _replay_field_values(self, item: ProjectItem, result: ItemResult) -> None:
        assert result.destination_id is not None  # always set for created items

        for value in item.field_values:
            if not is_project_item_custom_field_value(value):
                continue

            destination_field = self._destination_fields.get(value.field_name or "")
            if destination_field is None:
                result.value_failures.append(f"no destination field named '{value.field_name}'")
                continue

            try:
                translated = self.translate_value(value, destination_field)
            except CorrelationError as e:
                if value.field_name == STATUS_FIELD_NAME and self._status_options_fixed:
                    logger.warning(f"Leaving Status of item {item.id} at its default: {e}")
                    result.partial = True
                else:
                    logger.warning(f"Failed to set '{value.field_name}' on item {item.id}: {e}")
                    result.value_failures.append(str(e))
                continue

            try:
                projects.set_item_field_value(
                    self._client, self._project_id, result.destination_id, destination_field.id, translated
                )
            except RateLimitedError:
                raise
            except RequestError as e:
                logger.warning(f"Failed to set '{value.field_name}' on item {item.id}: {e}")
                result.value_failures.append(f"could not set '{value.field_name}': {e}")

    def translate_value(self, value: FieldValue, destination_field: Field) -> dict[str, Any]:
        """Translate a source value into a ``ProjectV2FieldValue`` input.

        Raises:
            CorrelationError: If an option or iteration has no destination
                counterpart
        """
        if value.kind is FieldValueKind.TEXT:
            return {"text": value.value}
        if value.kind is FieldValueKind.NUMBER:
            return {"number": value.value}
        if value.kind is FieldValueKind.DATE:
            return {"date": value.value}
        if value.kind is FieldValueKind.SINGLE_SELECT:
            option_map = self._option_maps.get(value.field_id or "", {})
            option_id = option_map.get(value.value)
            if option_id is None:
                msg = f"option {value.value} of field '{value.field_name}' has no destination counterpart"
                raise CorrelationError(msg)
            return {"singleSelectOptionId": option_id}
        if value.kind is FieldValueKind.ITERATION:
            title = value.iteration_title or self._source_iteration_title(value)
            match = next((i for i in destination_field.iterations if i.title == title), None)
            if match is None:
                msg = f"iteration '{title}' of field '{value.field_name}' has no destination counterpart"
                raise CorrelationError(msg)
            return {"iterationId": match.id}

        msg = f"values of type {value.kind.value} cannot be migrated"
        raise CorrelationError(msg)

    def _source_iteration_title(self, value: FieldValue) -> str | None:
        source_field = self._source_fields.get(value.field_id or "")
        if source_field is None:
            return None
        return next((i.title for i in source_field.iterations if i.id == value.value), None)


class ProjectImporter:
    """Imports a snapshot into a newly created project.

    Usage:
        importer = ProjectImporter(client, snapshot, "acme", ProjectOwnerType.ORGANIZATION,
                                   repository_mapping=repos, user_mapping=users)
        report = importer.run()
    """

    def __init__(
        self,
        client: GitHubClient,
        snapshot: ProjectSnapshot,
        owner: str,
        owner_type: ProjectOwnerType,
        *,
        repository_mapping: Mapping[str, str],
        user_mapping: Mapping[str, str],
        title: str | None = None,
        product_info: ProductInformation | None = None,
    ) -> None:
        self.client: GitHubClient = client
        self.snapshot: ProjectSnapshot = snapshot
        self.owner: str = owner
        self.owner_type: ProjectOwnerType = owner_type
        self.repository_mapping: Mapping[str, str] = repository_mapping
        self.user_mapping: Mapping[str, str] = user_mapping
        self.title: str = title or snapshot.title
        self._product_info: ProductInformation | None = product_info

        self.report: ImportReport = ImportReport()
        # Destination field name -> field
        self.destination_fields: dict[str, Field] = {}
        # Source field id -> (source option id -> destination option id)
        self.option_maps: dict[str, dict[str, str]] = {}

    @property
    def product_info(self) -> ProductInformation:
        if self._product_info is None:
            self._product_info = get_product_information(self.client)
        return self._product_info

    def run(self) -> ImportReport:
        ensure_supported(self.product_info, action="import")

        unmapped = find_unmapped(self.snapshot, self.repository_mapping, self.user_mapping)
        if unmapped:
            report_unmapped(unmapped, self.snapshot)

        project = self.create_project()
        self.migrate_custom_fields(project)
        self.migrate_iteration_fields(project)
        status_options_fixed = self.migrate_status_field()
        self.migrate_items(project, status_options_fixed=status_options_fixed)
        self.report_views()

        if self.snapshot.closed:
            projects.update_project(self.client, project.id, closed=True)

        logger.info(
            f"Import finished: {len(self.report.created)} created, {len(self.report.skipped)} skipped, "
            f"{len(self.report.failed)} failed"
        )
        return self.report

    def create_project(self) -> ProjectReference:
        logger.info(f"Creating project '{self.title}' for {self.owner_type.value} {self.owner}...")
        owner_id = projects.get_owner_id(self.client, self.owner, self.owner_type)
        project = projects.create_project(self.client, owner_id, self.title)
        projects.update_project(
            self.client,
            project.id,
            short_description=self.snapshot.short_description,
            public=self.snapshot.public,
        )
        self.report.project_url = project.url
        logger.info(f"Created project {project.url}")

        self.destination_fields = {f.name: f for f in projects.get_project_fields(self.client, project.id)}
        return project

    def migrate_custom_fields(self, project: ProjectReference) -> None:
        for source_field in self.snapshot.fields:
            if not is_custom_field(source_field):
                continue

            created = projects.create_field(
                self.client, project.id, source_field.name, source_field.data_type, source_field.options
            )
            if source_field.data_type == "SINGLE_SELECT":
                self.option_maps[source_field.id] = correlate_field_options(source_field.options, created.options)
            self.destination_fields[created.name] = created
            logger.info(f"Created {source_field.data_type} field '{source_field.name}'")

    def migrate_iteration_fields(self, project: ProjectReference) -> None:
        for source_field in self.snapshot.fields:
            if source_field.data_type != "ITERATION":
                continue
            if not source_field.iterations:
                logger.warning(f"Iteration field '{source_field.name}' has no iterations and will not be migrated")
                continue

            duration = source_field.iteration_duration or source_field.iterations[0].duration
            try:
                created = projects.create_iteration_field(
                    self.client, project.id, source_field.name, duration, source_field.iterations
                )
            except RateLimitedError:
                raise
            except RequestError as e:
                logger.warning(
                    f"Could not create iteration field '{source_field.name}' ({e}) - "
                    "its values will not be migrated"
                )
                continue
            self.destination_fields[created.name] = created
            logger.info(f"Created iteration field '{source_field.name}' with {len(created.iterations)} iteration(s)")

    def migrate_status_field(self) -> bool:
        """Correlate Status options, mirroring them first where supported.

        Returns:
            True when the destination Status options are fixed, so items whose
            Status has no match keep the default
        """
        source_status = self.snapshot.status_field
        destination_status = self.destination_fields.get(STATUS_FIELD_NAME)
        if source_status is None:
            return False
        if destination_status is None:
            msg = "The destination project has no Status field"
            raise MigrationError(msg)

        info = self.product_info
        if supports_automatic_status_field_migration(info.product, info.server_version):
            updated = projects.replace_single_select_options(self.client, destination_status.id, source_status.options)
            self.option_maps[source_status.id] = correlate_field_options(source_status.options, updated.options)
            self.destination_fields[STATUS_FIELD_NAME] = updated
            logger.info(f"Migrated {len(updated.options)} Status option(s)")
            return False

        mapping, unmatched = correlate_options_by_name(source_status.options, destination_status.options)
        self.option_maps[source_status.id] = mapping
        self.report.unmigrable_status_options = unmatched
        for name in unmatched:
            logger.warning(
                f"Status option '{name}' does not exist on the destination and cannot be created on {info} - "
                "items with this Status will keep the default"
            )
        return True

    def migrate_items(self, project: ProjectReference, *, status_options_fixed: bool) -> None:
        item_importer = ItemImporter(
            self.client,
            project.id,
            source_fields={f.id: f for f in self.snapshot.fields},
            destination_fields=self.destination_fields,
            option_maps=self.option_maps,
            repository_mapping=self.repository_mapping,
            user_mapping=self.user_mapping,
            status_options_fixed=status_options_fixed,
        )

        total = len(self.snapshot.items)
        for index, item in enumerate(self.snapshot.items, start=1):
            logger.info(f"Importing project item {index}/{total} ({item.id})...")
            self.report.record(item_importer.import_item(item))

    def report_views(self) -> None:
        if not self.snapshot.views:
            return
        logger.warning(
            f"Views cannot be created through the GitHub API. Recreate these {len(self.snapshot.views)} view(s) "
            f"manually in {self.report.project_url}:"
        )
        field_names = {f.id: f.name for f in self.snapshot.fields}
        for view in self.snapshot.views:
            visible = ", ".join(field_names[field_id] for field_id in view.visible_fields)
            group_by = ", ".join(field_names[field_id] for field_id in view.group_by_fields) or "none"
            logger.warning(
                f"  View #{view.number} '{view.name}': layout {view.layout}, filter '{view.filter or ''}', "
                f"visible fields [{visible}], grouped by {group_by}"
            )


def import_project(
    client: GitHubClient,
    snapshot: ProjectSnapshot,
    owner: str,
    owner_type: ProjectOwnerType,
    *,
    repository_mapping: Mapping[str, str],
    user_mapping: Mapping[str, str],
    title: str | None = None,
) -> ImportReport:
    """Import ``snapshot`` into a new project owned by ``owner``."""
    importer = ProjectImporter(
        client,
        snapshot,
        owner,
        owner_type,
        repository_mapping=repository_mapping,
        user_mapping=user_mapping,
        title=title,
    )
    return importer.run()
