"""Jira request relay.

Lets a browser reach Jira through this server, avoiding cross-origin
restrictions. The request carries the target URL and credentials in its
JSON body and is forwarded as an authenticated GET.
"""

from urllib.parse import urlparse

from flask import Blueprint, current_app, request, jsonify
import requests

bp = Blueprint("relay", __name__, url_prefix="/api")


def is_host_allowed(url):
    """Check the target host against the configured allow list (empty = any)."""
    allowed = current_app.config["REPORT_CONFIG"].get("relayAllowedHosts") or []
    if not allowed:
        return True
    return (urlparse(url).hostname or "").lower() in {h.lower() for h in allowed}


@bp.route("/jira-proxy", methods=["POST"])
def jira_proxy():
    """Forward a GET request to Jira.

    Expects JSON body with:
        - url: Full Jira API URL
        - email: User's Jira email
        - apiToken: Jira API token
    """
    data = request.get_json(silent=True) or {}

    url = data.get("url")
    email = data.get("email")
    token = data.get("apiToken")

    if not all([url, email, token]):
        return jsonify({"error": "Missing required parameters"}), 400

    if urlparse(url).scheme not in ("http", "https"):
        return jsonify({"error": "Only http(s) URLs can be relayed"}), 400

    if not is_host_allowed(url):
        return jsonify({"error": "Host not allowed"}), 403

    try:
        response = requests.get(
            url,
            auth=(email, token),
            headers={"Accept": "application/json"},
            timeout=current_app.config["REPORT_CONFIG"]["requestTimeout"]
        )
    except requests.exceptions.RequestException as e:
        current_app.logger.error(f"Relay error: {e}")
        return jsonify({"error": f"Failed to connect to Jira: {str(e)}"}), 502

    if not response.ok:
        return jsonify({
            "error": f"Jira API error: {response.status_code}",
            "details": response.text
        }), response.status_code

    try:
        return jsonify(response.json())
    except ValueError:
        return jsonify({"error": "Jira returned a non-JSON response"}), 502
