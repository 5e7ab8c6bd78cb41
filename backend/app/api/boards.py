"""Board sprint directory API endpoints."""

from flask import Blueprint, current_app, request, jsonify
from services.jira_client import JiraRequestError
from services.sprint_report import SprintReportService

bp = Blueprint("boards", __name__, url_prefix="/api/boards")


def get_jira_credentials():
    """Extract Jira credentials from request headers."""
    server = request.headers.get("X-Jira-Server", "").rstrip("/")
    email = request.headers.get("X-Jira-Email")
    token = request.headers.get("X-Jira-Token")

    if not all([server, email, token]):
        return None, None, None

    return server, email, token


def make_report_service(server, email, token, hours_per_story_point=None):
    """Create a report service configured from the app's report config."""
    config = current_app.config["REPORT_CONFIG"]
    if hours_per_story_point is None:
        hours_per_story_point = config["hoursPerStoryPoint"]

    return SprintReportService(
        server, email, token,
        hours_per_story_point=hours_per_story_point,
        relay_url=config["relayUrl"],
        timeout=config["requestTimeout"],
        story_point_fields=config["storyPointFields"]
    )


def jira_error_response(error):
    """Translate a failed Jira request into an error response."""
    status = error.status_code if error.status_code and 400 <= error.status_code < 600 else 502
    return jsonify({"error": str(error)}), status


@bp.route("/<int:board_id>/sprints", methods=["GET"])
def get_sprints(board_id):
    """Get every sprint on a board: active, then future, then closed.

    Returns:
        - data: ordered sprint list (id, name, state, startDate, endDate)
        - defaultSprintId: the first active sprint, else the first listed
    """
    server, email, token = get_jira_credentials()

    if not server:
        return jsonify({"error": "Missing Jira credentials in headers"}), 401

    try:
        service = make_report_service(server, email, token)
        sprints = service.get_board_sprints(board_id)
    except JiraRequestError as e:
        return jira_error_response(e)
    except Exception as e:
        return jsonify({"error": str(e)}), 500

    default_sprint = next(
        (s for s in sprints if (s.get("state") or "").lower() == "active"),
        sprints[0] if sprints else None
    )

    return jsonify({
        "data": sprints,
        "defaultSprintId": default_sprint["id"] if default_sprint else None
    })
