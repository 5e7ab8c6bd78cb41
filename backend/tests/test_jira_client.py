"""Tests for the Jira transport."""

import pytest
from unittest.mock import patch, Mock
import requests

from services.jira_client import JiraClient, JiraRequestError, build_url

RELAY = "http://localhost:3001/api/jira-proxy"


def ok_response(payload):
    return Mock(ok=True, status_code=200, json=Mock(return_value=payload))


class TestBuildUrl:
    """Test URL construction."""

    def test_encodes_params(self):
        url = build_url("https://test.atlassian.net/", "/rest/api/3/search/jql",
                        {"jql": "key = A-1 OR key = A-2", "maxResults": 2})
        assert url == ("https://test.atlassian.net/rest/api/3/search/jql"
                       "?jql=key+%3D+A-1+OR+key+%3D+A-2&maxResults=2")

    def test_without_params(self):
        assert build_url("https://x.net", "/rest/api/3/myself") == "https://x.net/rest/api/3/myself"


class TestDirectRequests:
    """Test requests sent straight to Jira."""

    @patch("services.jira_client.requests.get")
    def test_get_sends_basic_auth(self, mock_get, mock_jira_credentials):
        mock_get.return_value = ok_response({"values": []})
        client = JiraClient(**mock_jira_credentials, timeout=5)

        assert client.get("/rest/agile/1.0/sprint/1") == {"values": []}
        mock_get.assert_called_once_with(
            "https://test.atlassian.net/rest/agile/1.0/sprint/1",
            auth=("test@example.com", "test-token-123"),
            headers={"Accept": "application/json"},
            timeout=5
        )

    @patch("services.jira_client.requests.get")
    def test_error_status_raises(self, mock_get, mock_jira_credentials):
        mock_get.return_value = Mock(ok=False, status_code=404, text="Issue does not exist")
        client = JiraClient(**mock_jira_credentials)

        with pytest.raises(JiraRequestError) as exc_info:
            client.get("/rest/api/3/issue/PROJ-404")

        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "Issue does not exist"
        assert "404" in str(exc_info.value)

    @patch("services.jira_client.requests.get")
    def test_network_failure_raises(self, mock_get, mock_jira_credentials):
        mock_get.side_effect = requests.exceptions.Timeout("timed out")
        client = JiraClient(**mock_jira_credentials)

        with pytest.raises(JiraRequestError) as exc_info:
            client.get("/rest/api/3/myself")

        assert exc_info.value.status_code is None


class TestRelayRequests:
    """Test routing through the relay."""

    @patch("services.jira_client.requests.get")
    @patch("services.jira_client.requests.post")
    def test_uses_relay_first(self, mock_post, mock_get, mock_jira_credentials):
        mock_post.return_value = ok_response({"id": 1})
        client = JiraClient(**mock_jira_credentials, relay_url=RELAY)

        assert client.get("/rest/agile/1.0/sprint/1") == {"id": 1}
        mock_post.assert_called_once_with(
            RELAY,
            json={
                "url": "https://test.atlassian.net/rest/agile/1.0/sprint/1",
                "email": "test@example.com",
                "apiToken": "test-token-123"
            },
            headers={"Content-Type": "application/json"},
            timeout=30
        )
        mock_get.assert_not_called()

    @patch("services.jira_client.requests.get")
    @patch("services.jira_client.requests.post")
    def test_falls_back_when_relay_unreachable(self, mock_post, mock_get, mock_jira_credentials):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        mock_get.return_value = ok_response({"id": 1})
        client = JiraClient(**mock_jira_credentials, relay_url=RELAY)

        assert client.get("/rest/agile/1.0/sprint/1") == {"id": 1}
        mock_get.assert_called_once()

    @patch("services.jira_client.requests.get")
    @patch("services.jira_client.requests.post")
    def test_falls_back_on_relay_error_status(self, mock_post, mock_get, mock_jira_credentials):
        mock_post.return_value = Mock(
            ok=False, status_code=502, text="bad gateway",
            json=Mock(return_value={"error": "Failed to connect to Jira"})
        )
        mock_get.return_value = ok_response({"id": 1})
        client = JiraClient(**mock_jira_credentials, relay_url=RELAY)

        assert client.get("/rest/agile/1.0/sprint/1") == {"id": 1}

    @patch("services.jira_client.requests.get")
    @patch("services.jira_client.requests.post")
    def test_direct_failure_after_relay_failure_raises(self, mock_post, mock_get, mock_jira_credentials):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        mock_get.return_value = Mock(ok=False, status_code=401, text="Unauthorized")
        client = JiraClient(**mock_jira_credentials, relay_url=RELAY)

        with pytest.raises(JiraRequestError) as exc_info:
            client.get("/rest/api/3/myself")

        assert exc_info.value.status_code == 401
