"""Sprint worklog report API endpoints."""

from flask import Blueprint, Response, current_app, request, jsonify
from app.api.boards import get_jira_credentials, jira_error_response, make_report_service
from services.formatting import to_number
from services.jira_client import JiraRequestError
from services.report_editor import ReportEditError, apply_edit, edit_from_dict
from services.report_export import export_filename, report_to_csv
from services.report_model import SprintReport
from services.sprint_report import SprintResolutionError

bp = Blueprint("report", __name__, url_prefix="/api/report")


def get_hours_per_story_point(value=None):
    """Get the story point to hours ratio, falling back to config."""
    if value is None or value == "":
        return current_app.config["REPORT_CONFIG"]["hoursPerStoryPoint"]
    return to_number(value)


def get_report_from_body(data):
    """Rebuild the client-held report from a request body."""
    report_data = data.get("report")
    if not isinstance(report_data, dict):
        raise ReportEditError("Missing report in request body")
    try:
        return SprintReport.from_dict(report_data)
    except (AttributeError, TypeError, ValueError) as e:
        raise ReportEditError(f"Malformed report: {e}") from e


@bp.route("/<int:board_id>", methods=["GET"])
def get_report(board_id):
    """Build the worklog report for a sprint.

    Query params:
        - sprint_id: Optional sprint to report on (default: active, else
          most recently closed)
        - hours_per_sp: Optional hours per story point (default: config)
    """
    server, email, token = get_jira_credentials()

    if not server:
        return jsonify({"error": "Missing Jira credentials in headers"}), 401

    sprint_id = request.args.get("sprint_id", type=int)
    hours_per_sp = get_hours_per_story_point(request.args.get("hours_per_sp"))

    try:
        service = make_report_service(server, email, token, hours_per_sp)
        report = service.build_report(board_id, sprint_id)
        return jsonify({"data": report.to_dict()})
    except SprintResolutionError as e:
        return jsonify({"error": str(e)}), 404
    except JiraRequestError as e:
        return jira_error_response(e)
    except Exception as e:
        current_app.logger.exception(f"Report build failed for board {board_id}")
        return jsonify({"error": str(e)}), 500


@bp.route("/edit", methods=["POST"])
def edit_report():
    """Apply one inline correction to a report.

    Expects JSON body with:
        - report: the current report (as returned by GET /api/report/<id>)
        - edit: {"type": "ticket"|"summary"|"rename"|"sprint"|"header", ...}
        - hoursPerStoryPoint: Optional ratio used to recompute differences
    """
    data = request.get_json(silent=True)

    if not data:
        return jsonify({"error": "Missing request body"}), 400

    try:
        report = get_report_from_body(data)
        edit = edit_from_dict(data.get("edit"))
        hours_per_sp = get_hours_per_story_point(data.get("hoursPerStoryPoint"))
        updated = apply_edit(report, edit, hours_per_sp)
    except ReportEditError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"data": updated.to_dict()})


@bp.route("/export", methods=["POST"])
def export_report():
    """Export a report as CSV.

    Expects JSON body with:
        - report: the current report
        - hoursPerStoryPoint: Optional ratio for planned hours
        - projectKey: Optional prefix for the download file name
    """
    data = request.get_json(silent=True)

    if not data:
        return jsonify({"error": "Missing request body"}), 400

    try:
        report = get_report_from_body(data)
    except ReportEditError as e:
        return jsonify({"error": str(e)}), 400

    hours_per_sp = get_hours_per_story_point(data.get("hoursPerStoryPoint"))
    filename = export_filename(data.get("projectKey"))

    return Response(
        report_to_csv(report, hours_per_sp),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
