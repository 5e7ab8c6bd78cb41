"""Authenticated Jira transport with optional relay routing."""

import logging
from typing import Optional
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class JiraRequestError(Exception):
    """A Jira request failed.

    status_code is None when the server could not be reached at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def build_url(server: str, endpoint: str, params: Optional[dict] = None) -> str:
    """Join server, endpoint and query string into a single URL."""
    url = f"{server.rstrip('/')}{endpoint}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


class JiraClient:
    """Performs single GET requests against Jira and returns parsed JSON.

    When relay_url is set, each request is first POSTed to the relay as
    {"url", "email", "apiToken"}. If the relay fails for any reason the
    request is retried directly from this process.
    """

    def __init__(self, server: str, email: str, token: str,
                 relay_url: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT):
        self.server = server.rstrip("/")
        self.email = email
        self.token = token
        self.relay_url = relay_url
        self.timeout = timeout

    def url(self, endpoint: str, params: Optional[dict] = None) -> str:
        return build_url(self.server, endpoint, params)

    def get(self, endpoint: str, params: Optional[dict] = None):
        """GET an endpoint on the configured server."""
        return self.get_json(self.url(endpoint, params))

    def get_json(self, url: str):
        """GET an absolute URL, via the relay when one is configured."""
        if self.relay_url:
            try:
                return self._via_relay(url)
            except (requests.exceptions.RequestException, JiraRequestError, ValueError) as e:
                logger.warning(f"Relay request failed, trying direct: {e}")

        return self._direct(url)

    def _via_relay(self, url: str):
        response = requests.post(
            self.relay_url,
            json={"url": url, "email": self.email, "apiToken": self.token},
            headers={"Content-Type": "application/json"},
            timeout=self.timeout
        )

        if not response.ok:
            try:
                message = response.json().get("error")
            except ValueError:
                message = None
            raise JiraRequestError(
                message or f"Relay error: {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

        return response.json()

    def _direct(self, url: str):
        try:
            response = requests.get(
                url,
                auth=(self.email, self.token),
                headers={"Accept": "application/json"},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise JiraRequestError(f"Failed to connect to Jira: {e}") from e

        if not response.ok:
            raise JiraRequestError(
                f"Jira API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text
            )

        return response.json()
