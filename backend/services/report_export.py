"""CSV export of a sprint report."""

import csv
import io
import re
from datetime import date
from typing import Optional

from services.formatting import format_number
from services.report_model import SprintReport

TICKET_COLUMNS = ("ticket", "summary", "storyPoints", "hoursLogged", "difference", "comments")
SUMMARY_COLUMNS = ("user", "storyPointsOwn", "hoursLoggedAll", "plannedHours", "utilization")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def utilization(total_hours: float, story_points: float, hours_per_story_point: float) -> float:
    """Logged hours as a percentage of planned hours, 0 when nothing was planned."""
    planned = story_points * hours_per_story_point
    if planned == 0:
        return 0.0
    return total_hours / planned * 100


def report_to_csv(report: SprintReport, hours_per_story_point: float = 1) -> str:
    """Render the report as one section per contributor plus a summary."""
    ticket_headers = report.headers.ticket_table
    summary_headers = report.headers.summary_table

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow(["Sprint Report"])
    writer.writerow([])

    for user, tickets in report.user_data.items():
        summary = report.user_summaries.get(user)
        writer.writerow([user])
        writer.writerow([ticket_headers[column] for column in TICKET_COLUMNS])
        for ticket in tickets:
            writer.writerow([
                ticket.display_label,
                ticket.summary,
                format_number(ticket.story_points),
                ticket.hours_logged_formatted,
                ticket.difference_formatted,
                ticket.comments
            ])
        writer.writerow([
            f"Total for {user}",
            "",
            format_number(summary.own_story_points if summary else 0),
            summary.total_hours_formatted if summary else "-",
            "",
            ""
        ])
        writer.writerow([])

    writer.writerow([])
    writer.writerow(["Sprint Summary"])
    writer.writerow([summary_headers[column] for column in SUMMARY_COLUMNS])
    for user, summary in report.user_summaries.items():
        planned = summary.own_story_points * hours_per_story_point
        percent = utilization(summary.total_hours, summary.own_story_points, hours_per_story_point)
        writer.writerow([
            user,
            format_number(summary.own_story_points),
            summary.total_hours_formatted,
            f"{planned:.1f}h",
            f"{percent:.1f}%"
        ])

    totals = report.totals
    planned_total = totals.all_story_points * hours_per_story_point
    percent_total = utilization(totals.all_hours, totals.all_story_points, hours_per_story_point)
    writer.writerow([
        "TOTAL",
        format_number(totals.all_story_points),
        totals.all_hours_formatted,
        f"{planned_total:.1f}h",
        f"{percent_total:.1f}%"
    ])

    return buffer.getvalue()


def export_filename(project_key=None, today: Optional[date] = None) -> str:
    """Build the download name; the project prefix keeps only [A-Za-z0-9_-]."""
    today = today or date.today()
    prefix = "" if project_key is None else str(project_key).strip().replace(" ", "_")
    prefix = _UNSAFE_FILENAME_CHARS.sub("", prefix)
    name = f"Sprint_Report_{today.isoformat()}.csv"
    return f"{prefix}_{name}" if prefix else name
