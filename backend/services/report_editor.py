"""Inline corrections to a sprint report.

Every edit is a pure function of (report, edit) that returns a new report;
the input report is never modified.
"""

from dataclasses import dataclass, replace
from typing import Any

from services.formatting import parse_hours_text, to_number
from services.report_model import SprintReport, Totals

TEXT_TICKET_FIELDS = {
    "summary": "summary",
    "comments": "comments",
    "displayLabel": "display_label",
    "ticketKey": "ticket_key"
}
SPRINT_FIELDS = {
    "sprintName": "sprint_name",
    "sprintStart": "sprint_start",
    "sprintEnd": "sprint_end"
}
HEADER_TABLES = {
    "ticketTable": "ticket_table",
    "summaryTable": "summary_table"
}


class ReportEditError(ValueError):
    """The edit does not point at anything in the report."""


@dataclass(frozen=True)
class TicketEdit:
    user: str
    index: int
    field: str
    value: Any


@dataclass(frozen=True)
class SummaryEdit:
    user: str
    field: str
    value: Any


@dataclass(frozen=True)
class RenameContributor:
    user: str
    new_name: str


@dataclass(frozen=True)
class SprintFieldEdit:
    field: str
    value: Any


@dataclass(frozen=True)
class HeaderEdit:
    table: str
    column: str
    value: str


def edit_from_dict(data: dict):
    """Build an edit from its JSON form, keyed by "type"."""
    if not isinstance(data, dict):
        raise ReportEditError("Edit must be an object")

    kind = data.get("type")
    try:
        if kind == "ticket":
            return TicketEdit(str(data["user"]), int(data["index"]), str(data["field"]), data.get("value"))
        if kind == "summary":
            return SummaryEdit(str(data["user"]), str(data["field"]), data.get("value"))
        if kind == "rename":
            return RenameContributor(str(data["user"]), str(data.get("newName") or ""))
        if kind == "sprint":
            return SprintFieldEdit(str(data["field"]), data.get("value"))
        if kind == "header":
            return HeaderEdit(str(data["table"]), str(data["column"]), str(data.get("value") or ""))
    except KeyError as e:
        raise ReportEditError(f"Edit is missing {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise ReportEditError(f"Invalid edit: {e}") from e

    raise ReportEditError(f"Unknown edit type: {kind!r}")


def _text(value) -> str:
    return "" if value is None else str(value)


def _require_user(report: SprintReport, user: str):
    if user not in report.user_summaries:
        raise ReportEditError(f"Unknown contributor: {user}")


def _with_summary(report: SprintReport, user: str, **changes) -> dict:
    summaries = dict(report.user_summaries)
    summaries[user] = replace(summaries[user], **changes)
    return summaries


def edit_ticket(report: SprintReport, edit: TicketEdit, hours_per_story_point: float) -> SprintReport:
    _require_user(report, edit.user)
    tickets = list(report.user_data.get(edit.user, ()))
    if not 0 <= edit.index < len(tickets):
        raise ReportEditError(f"No ticket {edit.index} for {edit.user}")

    ticket = tickets[edit.index]

    if edit.field == "storyPoints":
        points = to_number(edit.value)
        tickets[edit.index] = replace(
            ticket,
            story_points=points,
            difference=points * hours_per_story_point - ticket.hours_logged
        )
        own_points = sum(t.story_points for t in tickets if not t.contributed_but_not_owner)
        summaries = _with_summary(report, edit.user, own_story_points=own_points)
        return replace(
            report,
            user_data={**report.user_data, edit.user: tuple(tickets)},
            user_summaries=summaries,
            totals=Totals.from_summaries(summaries)
        )

    if edit.field == "hoursLogged":
        hours = parse_hours_text(edit.value)
        tickets[edit.index] = replace(
            ticket,
            hours_logged=hours,
            difference=ticket.story_points * hours_per_story_point - hours
        )
        summaries = _with_summary(report, edit.user, total_hours=sum(t.hours_logged for t in tickets))
        return replace(
            report,
            user_data={**report.user_data, edit.user: tuple(tickets)},
            user_summaries=summaries,
            totals=Totals.from_summaries(summaries)
        )

    if edit.field in TEXT_TICKET_FIELDS:
        tickets[edit.index] = replace(ticket, **{TEXT_TICKET_FIELDS[edit.field]: _text(edit.value)})
    else:
        tickets[edit.index] = replace(ticket, extra={**ticket.extra, edit.field: edit.value})

    return replace(report, user_data={**report.user_data, edit.user: tuple(tickets)})


def edit_summary(report: SprintReport, edit: SummaryEdit) -> SprintReport:
    _require_user(report, edit.user)

    if edit.field == "ownStoryPoints":
        summaries = _with_summary(report, edit.user, own_story_points=to_number(edit.value))
    elif edit.field == "totalHours":
        summaries = _with_summary(report, edit.user, total_hours=parse_hours_text(edit.value))
    else:
        raise ReportEditError(f"Summary field {edit.field!r} cannot be edited")

    return replace(report, user_summaries=summaries, totals=Totals.from_summaries(summaries))


def rename_contributor(report: SprintReport, edit: RenameContributor) -> SprintReport:
    """Move a contributor's tickets and summary to a new name.

    The contributor keeps their position and userId.
    """
    new_name = edit.new_name.strip()
    if not new_name or new_name == edit.user:
        return report

    _require_user(report, edit.user)
    if new_name in report.user_data or new_name in report.user_summaries:
        raise ReportEditError(f"Contributor {new_name} already exists")

    def renamed(mapping: dict) -> dict:
        return {
            (new_name if user == edit.user else user): value
            for user, value in mapping.items()
        }

    return replace(
        report,
        user_data=renamed(report.user_data),
        user_summaries=renamed(report.user_summaries)
    )


def edit_sprint_field(report: SprintReport, edit: SprintFieldEdit) -> SprintReport:
    if edit.field not in SPRINT_FIELDS:
        raise ReportEditError(f"Sprint field {edit.field!r} cannot be edited")
    return replace(report, **{SPRINT_FIELDS[edit.field]: _text(edit.value)})


def edit_header(report: SprintReport, edit: HeaderEdit) -> SprintReport:
    if edit.table not in HEADER_TABLES:
        raise ReportEditError(f"Unknown header table: {edit.table}")

    attr = HEADER_TABLES[edit.table]
    labels = dict(getattr(report.headers, attr))
    if edit.column not in labels:
        raise ReportEditError(f"Unknown {edit.table} column: {edit.column}")
    labels[edit.column] = edit.value

    return replace(report, headers=replace(report.headers, **{attr: labels}))


def apply_edit(report: SprintReport, edit, hours_per_story_point: float = 1) -> SprintReport:
    """Apply one edit and return the updated report."""
    if isinstance(edit, TicketEdit):
        return edit_ticket(report, edit, hours_per_story_point)
    if isinstance(edit, SummaryEdit):
        return edit_summary(report, edit)
    if isinstance(edit, RenameContributor):
        return rename_contributor(report, edit)
    if isinstance(edit, SprintFieldEdit):
        return edit_sprint_field(report, edit)
    if isinstance(edit, HeaderEdit):
        return edit_header(report, edit)
    raise ReportEditError(f"Unsupported edit: {edit!r}")
