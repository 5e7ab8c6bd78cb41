"""Shared fixtures for sprint report tests."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.jira_client import JiraRequestError


@pytest.fixture
def mock_jira_credentials():
    """Mock Jira credentials for testing."""
    return {
        "server": "https://test.atlassian.net",
        "email": "test@example.com",
        "token": "test-token-123"
    }


@pytest.fixture
def jira_headers():
    """Credential headers accepted by the API endpoints."""
    return {
        "X-Jira-Server": "https://test.atlassian.net",
        "X-Jira-Email": "test@example.com",
        "X-Jira-Token": "token123"
    }


@pytest.fixture
def sample_sprint():
    """Sample sprint with a date-only end."""
    return {
        "id": 100,
        "name": "Sprint 1",
        "state": "active",
        "startDate": "2024-01-01T00:00:00.000Z",
        "endDate": "2024-01-14"
    }


@pytest.fixture
def sample_sprints():
    """Sprints in the order Jira returns them (oldest first)."""
    return [
        {
            "id": 100,
            "name": "Sprint 1",
            "state": "closed",
            "startDate": "2024-01-01T00:00:00.000Z",
            "endDate": "2024-01-14T00:00:00.000Z",
            "goal": "Ship login"
        },
        {
            "id": 101,
            "name": "Sprint 2",
            "state": "closed",
            "startDate": "2024-01-15T00:00:00.000Z",
            "endDate": "2024-01-28T00:00:00.000Z"
        },
        {
            "id": 102,
            "name": "Sprint 3",
            "state": "active",
            "startDate": "2024-01-29T00:00:00.000Z",
            "endDate": "2024-02-11T00:00:00.000Z"
        },
        {
            "id": 103,
            "name": "Sprint 4",
            "state": "future"
        }
    ]


def make_issue(key, summary="Work item", points=None, assignee=None,
               subtask=False, points_field="customfield_10016"):
    """Build a Jira issue payload."""
    fields = {
        "summary": summary,
        "issuetype": {"name": "Sub-task" if subtask else "Story", "subtask": subtask},
        "assignee": {"displayName": assignee} if assignee else None
    }
    if points is not None:
        fields[points_field] = points
    return {"key": key, "fields": fields}


def make_worklog(author, hours, started):
    return {
        "author": {"displayName": author},
        "timeSpentSeconds": int(hours * 3600),
        "started": started
    }


def make_router(routes):
    """Build a side_effect for SprintReportService._request.

    routes maps an endpoint to a response, an exception to raise, or a
    callable taking the request params. Unknown endpoints raise a 404.
    """
    calls = []

    def route(endpoint, params=None):
        calls.append((endpoint, params))
        if endpoint not in routes:
            raise JiraRequestError(f"Jira API error: 404 - {endpoint}", status_code=404)
        response = routes[endpoint]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    route.calls = calls
    return route


@pytest.fixture
def sample_issue_owned():
    """Story assigned to Alice with 5 points."""
    return make_issue("PROJ-1", "Build login form", points=5, assignee="Alice")


@pytest.fixture
def sample_issue_unassigned():
    """Unassigned issue without points."""
    return make_issue("PROJ-2", "Investigate flaky test")


@pytest.fixture
def sample_report_dict():
    """Report as the client holds it between edits."""
    return {
        "sprintId": 100,
        "sprintName": "Sprint 1",
        "sprintStart": "2024-01-01T00:00:00.000Z",
        "sprintEnd": "2024-01-14",
        "sprintState": "active",
        "userData": {
            "Alice": [
                {
                    "ticketKey": "PROJ-1",
                    "displayLabel": "PROJ-1",
                    "summary": "Build login form",
                    "storyPoints": 5,
                    "hoursLogged": 3,
                    "difference": 2,
                    "contributedButNotOwner": False,
                    "comments": "-"
                },
                {
                    "ticketKey": "PROJ-3",
                    "displayLabel": "PROJ-3 (Bob)",
                    "summary": "Fix logout",
                    "storyPoints": 2,
                    "hoursLogged": 1,
                    "difference": 1,
                    "contributedButNotOwner": True,
                    "comments": "-"
                }
            ],
            "Bob": [
                {
                    "ticketKey": "PROJ-1",
                    "displayLabel": "PROJ-1 (Alice)",
                    "summary": "Build login form",
                    "storyPoints": 5,
                    "hoursLogged": 2,
                    "difference": 3,
                    "contributedButNotOwner": True,
                    "comments": "-"
                },
                {
                    "ticketKey": "PROJ-3",
                    "displayLabel": "PROJ-3",
                    "summary": "Fix logout",
                    "storyPoints": 2,
                    "hoursLogged": 0,
                    "difference": 2,
                    "contributedButNotOwner": False,
                    "comments": "[Bob] (2024-01-03): needs review"
                }
            ]
        },
        "userSummaries": {
            "Alice": {"ownStoryPoints": 5, "totalHours": 4, "userId": "user-alice"},
            "Bob": {"ownStoryPoints": 2, "totalHours": 2, "userId": "user-bob"}
        },
        "totals": {"allStoryPoints": 7, "allHours": 6}
    }


@pytest.fixture
def app(tmp_path):
    """Create Flask test app."""
    from app import create_app
    app = create_app(config_path=str(tmp_path / "missing-config.json"))
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
