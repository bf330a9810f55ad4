"""
Pytest configuration and fixtures.

This module configures pytest behavior for different test types:
- Integration tests: Skipped without a test project, fail on any warnings
  from the code under test
- Unit tests: Allow warnings
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from typing_extensions import override

import pytest

if TYPE_CHECKING:
    from collections.abc import Generator

INTEGRATION_ENV_VARS: tuple[str, ...] = ("GITHUB_TEST_PROJECT_OWNER", "GITHUB_TEST_PROJECT_NUMBER")

# Store warning records during test execution
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class IntegrationTestWarningHandler(logging.Handler):
    """Logging handler capturing warnings during integration tests."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__()
        self.test_nodeid = test_nodeid
        self.setLevel(logging.WARNING)

    @override
    def emit(self, record: logging.LogRecord) -> None:
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def check_integration_test_env_vars(request: pytest.FixtureRequest) -> None:
    """Skip integration tests when no test project is configured."""
    if request.node.get_closest_marker("integration") is None:
        return
    missing = [name for name in INTEGRATION_ENV_VARS if not os.environ.get(name)]
    if missing:
        pytest.skip(f"Integration test needs environment variable(s): {', '.join(missing)}")


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(
    request: pytest.FixtureRequest,
) -> Generator[None]:
    """
    Fail integration tests if the code under test logs a WARNING or above.

    Warnings are acceptable when running the tool as a user, but an export of
    a well-formed test project is not expected to produce any.
    """
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    test_nodeid = request.node.nodeid
    _integration_test_warnings[test_nodeid] = []

    handler = IntegrationTestWarningHandler(test_nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """Mark a passed integration test as failed if warnings were captured."""
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        test_nodeid = item.nodeid
        warning_records = _integration_test_warnings.get(test_nodeid, [])

        if warning_records:
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        _integration_test_warnings.pop(test_nodeid, None)


def _field_ref(field_id: str, name: str) -> dict[str, str]:
    return {"id": field_id, "name": name}


@pytest.fixture
def project_data() -> dict[str, Any]:
    """A ProjectV2 node as returned by the export query."""
    return {
        "title": "Roadmap",
        "shortDescription": "Quarterly roadmap",
        "closed": False,
        "public": True,
        "fields": {
            "nodes": [
                {"id": "F_title", "name": "Title", "dataType": "TITLE"},
                {"id": "F_assignees", "name": "Assignees", "dataType": "ASSIGNEES"},
                {
                    "id": "F_status",
                    "name": "Status",
                    "dataType": "SINGLE_SELECT",
                    "options": [
                        {"id": "S_todo", "name": "Todo", "description": "", "color": "GRAY"},
                        {"id": "S_doing", "name": "In Progress", "description": "", "color": "YELLOW"},
                        {"id": "S_done", "name": "Done", "description": "Finished", "color": "GREEN"},
                    ],
                },
                {
                    "id": "F_priority",
                    "name": "Priority",
                    "dataType": "SINGLE_SELECT",
                    "options": [
                        {"id": "P_high", "name": "High", "description": "", "color": "RED"},
                        {"id": "P_low", "name": "Low", "description": "", "color": "BLUE"},
                    ],
                },
                {"id": "F_estimate", "name": "Estimate", "dataType": "NUMBER"},
                {"id": "F_notes", "name": "Notes", "dataType": "TEXT"},
                {
                    "id": "F_sprint",
                    "name": "Sprint",
                    "dataType": "ITERATION",
                    "configuration": {
                        "duration": 14,
                        "startDay": 1,
                        "completedIterations": [
                            {"id": "I_1", "title": "Sprint 1", "startDate": "2024-01-01", "duration": 14},
                        ],
                        "iterations": [
                            {"id": "I_2", "title": "Sprint 2", "startDate": "2024-01-15", "duration": 14},
                        ],
                    },
                },
                # Field kinds the query does not know come back as empty fragments
                {},
            ],
            "totalCount": 8,
        },
        "repositories": {"nodes": [{"nameWithOwner": "acme/api"}], "totalCount": 1},
        "views": {
            "nodes": [
                {
                    "name": "Board",
                    "number": 1,
                    "layout": "BOARD_LAYOUT",
                    "filter": "is:open",
                    "fields": {"nodes": [{"id": "F_title"}, {"id": "F_status"}], "totalCount": 2},
                    "groupByFields": {"nodes": [], "totalCount": 0},
                    "verticalGroupByFields": {"nodes": [{"id": "F_status"}], "totalCount": 1},
                    "visibleFields": {"nodes": [{"id": "F_title"}, {"id": "F_priority"}], "totalCount": 2},
                    "sortByFields": {
                        "nodes": [{"direction": "DESC", "field": {"id": "F_estimate"}}],
                        "totalCount": 1,
                    },
                },
            ],
            "totalCount": 1,
        },
    }


@pytest.fixture
def item_nodes() -> list[dict[str, Any]]:
    """Item nodes as returned by the items query."""
    return [
        {
            "id": "PVTI_issue",
            "type": "ISSUE",
            "isArchived": False,
            "content": {
                "__typename": "Issue",
                "title": "Fix login",
                "number": 12,
                "repository": {"nameWithOwner": "acme/api"},
            },
            "fieldValues": {
                "nodes": [
                    {"__typename": "ProjectV2ItemFieldTextValue", "text": "Fix login", "field": _field_ref("F_title", "Title")},
                    {
                        "__typename": "ProjectV2ItemFieldSingleSelectValue",
                        "optionId": "S_doing",
                        "field": _field_ref("F_status", "Status"),
                    },
                    {
                        "__typename": "ProjectV2ItemFieldSingleSelectValue",
                        "optionId": "P_high",
                        "field": _field_ref("F_priority", "Priority"),
                    },
                    {"__typename": "ProjectV2ItemFieldNumberValue", "number": 3, "field": _field_ref("F_estimate", "Estimate")},
                    {
                        "__typename": "ProjectV2ItemFieldIterationValue",
                        "iterationId": "I_2",
                        "title": "Sprint 2",
                        "startDate": "2024-01-15",
                        "duration": 14,
                        "field": _field_ref("F_sprint", "Sprint"),
                    },
                    {"__typename": "ProjectV2ItemFieldRepositoryValue"},
                ],
                "totalCount": 6,
            },
        },
        {
            "id": "PVTI_draft",
            "type": "DRAFT_ISSUE",
            "isArchived": True,
            "content": {
                "__typename": "DraftIssue",
                "title": "Write docs",
                "body": "Cover the import flow",
                "createdAt": "2024-02-01T10:00:00Z",
                "creator": {"login": "alice"},
                "assignees": {"nodes": [{"login": "bob"}, {"login": "alice"}], "totalCount": 2},
            },
            "fieldValues": {
                "nodes": [
                    {"__typename": "ProjectV2ItemFieldTextValue", "text": "Write docs", "field": _field_ref("F_title", "Title")},
                    {
                        "__typename": "ProjectV2ItemFieldSingleSelectValue",
                        "optionId": "S_todo",
                        "field": _field_ref("F_status", "Status"),
                    },
                    {"__typename": "ProjectV2ItemFieldTextValue", "text": "See wiki", "field": _field_ref("F_notes", "Notes")},
                ],
                "totalCount": 3,
            },
        },
        {
            "id": "PVTI_redacted",
            "type": "REDACTED",
            "isArchived": False,
            "content": None,
            "fieldValues": {"nodes": [], "totalCount": 0},
        },
    ]
