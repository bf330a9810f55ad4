"""
Matching of source entities to destination entities that share no identity.

Option ids are scoped to one project, so options are matched by name.
Repositories and users are not matched here: they come from the operator's
mapping tables (see ``mappings``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final, Protocol

from .exceptions import CorrelationError
from .models import STATUS_FIELD_NAME, TITLE_FIELD_NAME, FieldValueKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import FieldValue

logger: logging.Logger = logging.getLogger(__name__)

CUSTOM_FIELD_DATA_TYPES: Final[frozenset[str]] = frozenset({"TEXT", "SINGLE_SELECT", "DATE", "NUMBER"})

CUSTOM_FIELD_VALUE_KINDS: Final[frozenset[FieldValueKind]] = frozenset(
    {
        FieldValueKind.TEXT,
        FieldValueKind.SINGLE_SELECT,
        FieldValueKind.DATE,
        FieldValueKind.NUMBER,
        FieldValueKind.ITERATION,
    }
)


class NamedOption(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...


class FieldLike(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def data_type(self) -> str: ...


def correlate_field_options(
    old_options: Sequence[NamedOption],
    new_options: Sequence[NamedOption],
) -> dict[str, str]:
    """Map every old option id to the id of the new option with the same name.

    Args:
        old_options: Options of the source field
        new_options: Options of the destination field

    Returns:
        Mapping from old option id to new option id

    Raises:
        CorrelationError: If the option counts differ or a name is missing
    """
    if len(old_options) != len(new_options):
        msg = (
            "Unable to correlate custom field options: old and new options fields have different "
            f"numbers of options ({len(old_options)} vs {len(new_options)})"
        )
        raise CorrelationError(msg)

    new_ids_by_name = {option.name: option.id for option in new_options}
    mapping: dict[str, str] = {}
    for old_option in old_options:
        new_id = new_ids_by_name.get(old_option.name)
        if new_id is None:
            msg = f'Unable to correlate custom field options - expected to find "{old_option.name}" option'
            raise CorrelationError(msg)
        mapping[old_option.id] = new_id

    return mapping


def correlate_options_by_name(
    old_options: Sequence[NamedOption],
    new_options: Sequence[NamedOption],
) -> tuple[dict[str, str], list[str]]:
    """Match options by name where the destination set is fixed.

    Returns:
        The partial mapping and the names of old options with no match
    """
    new_ids_by_name = {option.name: option.id for option in new_options}
    mapping: dict[str, str] = {}
    unmatched: list[str] = []
    for old_option in old_options:
        new_id = new_ids_by_name.get(old_option.name)
        if new_id is None:
            unmatched.append(old_option.name)
        else:
            mapping[old_option.id] = new_id
    return mapping, unmatched


def is_custom_field(project_field: FieldLike) -> bool:
    """Whether a field is created through the generic custom field path.

    Status is excluded because every project already has one.
    """
    return project_field.data_type in CUSTOM_FIELD_DATA_TYPES and project_field.name != STATUS_FIELD_NAME


def is_project_item_custom_field_value(field_value: FieldValue) -> bool:
    """Whether a value is replayed onto the destination item.

    Values derived from relationships (repository, labels, assignees, ...)
    follow from attaching the right content. Title follows from the content
    too.
    """
    return field_value.kind in CUSTOM_FIELD_VALUE_KINDS and field_value.field_name != TITLE_FIELD_NAME
