"""Immutable sprint report values and their JSON wire form."""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from services.formatting import format_difference, format_hours, to_number

DEFAULT_TICKET_HEADERS = {
    "ticket": "Ticket",
    "summary": "Summary",
    "storyPoints": "Story Points",
    "hoursLogged": "Hours Logged",
    "difference": "Difference",
    "comments": "Comments"
}

DEFAULT_SUMMARY_HEADERS = {
    "user": "User",
    "storyPointsOwn": "Story Points (Own)",
    "hoursLoggedAll": "Hours Logged (All)",
    "plannedHours": "Planned Hours",
    "utilization": "Utilization %"
}


def new_user_id() -> str:
    return f"user-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class Ticket:
    """One report row: a contributor's share of an issue."""

    ticket_key: str
    display_label: str
    summary: str
    story_points: float
    hours_logged: float
    difference: float
    contributed_but_not_owner: bool
    comments: str = "-"
    extra: dict = field(default_factory=dict)

    @property
    def hours_logged_formatted(self) -> str:
        return format_hours(self.hours_logged)

    @property
    def difference_formatted(self) -> str:
        return format_difference(self.difference)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "ticketKey": self.ticket_key,
            "displayLabel": self.display_label,
            "summary": self.summary,
            "storyPoints": self.story_points,
            "hoursLogged": self.hours_logged,
            "hoursLoggedFormatted": self.hours_logged_formatted,
            "difference": self.difference,
            "differenceFormatted": self.difference_formatted,
            "contributedButNotOwner": self.contributed_but_not_owner,
            "comments": self.comments
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Ticket":
        extra = {k: v for k, v in data.items() if k not in TICKET_KEYS}
        key = str(data.get("ticketKey", ""))
        return cls(
            ticket_key=key,
            display_label=str(data.get("displayLabel") or key),
            summary=str(data.get("summary", "")),
            story_points=to_number(data.get("storyPoints")),
            hours_logged=to_number(data.get("hoursLogged")),
            difference=to_number(data.get("difference")),
            contributed_but_not_owner=bool(data.get("contributedButNotOwner", False)),
            comments=str(data.get("comments", "-")),
            extra=extra
        )


TICKET_KEYS = frozenset({
    "ticketKey", "displayLabel", "summary", "storyPoints", "hoursLogged",
    "hoursLoggedFormatted", "difference", "differenceFormatted",
    "contributedButNotOwner", "comments"
})


@dataclass(frozen=True)
class UserSummary:
    own_story_points: float = 0.0
    total_hours: float = 0.0
    user_id: Optional[str] = None

    @property
    def total_hours_formatted(self) -> str:
        return format_hours(self.total_hours)

    def to_dict(self) -> dict:
        return {
            "ownStoryPoints": self.own_story_points,
            "totalHours": self.total_hours,
            "totalHoursFormatted": self.total_hours_formatted,
            "userId": self.user_id
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserSummary":
        return cls(
            own_story_points=to_number(data.get("ownStoryPoints")),
            total_hours=to_number(data.get("totalHours")),
            user_id=data.get("userId")
        )


@dataclass(frozen=True)
class Totals:
    all_story_points: float = 0.0
    all_hours: float = 0.0

    @property
    def all_hours_formatted(self) -> str:
        return format_hours(self.all_hours)

    @classmethod
    def from_summaries(cls, summaries: dict) -> "Totals":
        return cls(
            all_story_points=sum(s.own_story_points for s in summaries.values()),
            all_hours=sum(s.total_hours for s in summaries.values())
        )

    def to_dict(self) -> dict:
        return {
            "allStoryPoints": self.all_story_points,
            "allHours": self.all_hours,
            "allHoursFormatted": self.all_hours_formatted
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Totals":
        return cls(
            all_story_points=to_number(data.get("allStoryPoints")),
            all_hours=to_number(data.get("allHours"))
        )


@dataclass(frozen=True)
class TableHeaders:
    ticket_table: dict = field(default_factory=lambda: dict(DEFAULT_TICKET_HEADERS))
    summary_table: dict = field(default_factory=lambda: dict(DEFAULT_SUMMARY_HEADERS))

    def to_dict(self) -> dict:
        return {
            "ticketTable": dict(self.ticket_table),
            "summaryTable": dict(self.summary_table)
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TableHeaders":
        data = data or {}
        ticket_table = dict(DEFAULT_TICKET_HEADERS)
        ticket_table.update(data.get("ticketTable") or {})
        summary_table = dict(DEFAULT_SUMMARY_HEADERS)
        summary_table.update(data.get("summaryTable") or {})
        return cls(ticket_table=ticket_table, summary_table=summary_table)


@dataclass(frozen=True)
class SprintReport:
    """Aggregated sprint report.

    user_data and user_summaries share their keys and keep the order in
    which contributors were first seen.
    """

    sprint_name: str
    sprint_start: str
    sprint_end: str
    user_data: dict
    user_summaries: dict
    totals: Totals
    sprint_id: Optional[int] = None
    sprint_state: Optional[str] = None
    headers: TableHeaders = field(default_factory=TableHeaders)
    warnings: tuple = ()

    def to_dict(self) -> dict:
        return {
            "sprintId": self.sprint_id,
            "sprintName": self.sprint_name,
            "sprintStart": self.sprint_start,
            "sprintEnd": self.sprint_end,
            "sprintState": self.sprint_state,
            "userData": {
                user: [t.to_dict() for t in tickets]
                for user, tickets in self.user_data.items()
            },
            "userSummaries": {
                user: summary.to_dict()
                for user, summary in self.user_summaries.items()
            },
            "totals": self.totals.to_dict(),
            "headers": self.headers.to_dict(),
            "warnings": list(self.warnings)
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SprintReport":
        """Rebuild a report held by the client.

        Summaries missing for a listed contributor are derived from their
        tickets.
        """
        user_data = {
            user: tuple(Ticket.from_dict(t) for t in tickets or [])
            for user, tickets in (data.get("userData") or {}).items()
        }
        raw_summaries = data.get("userSummaries") or {}
        user_summaries = {}
        for user, tickets in user_data.items():
            if user in raw_summaries:
                user_summaries[user] = UserSummary.from_dict(raw_summaries[user])
            else:
                user_summaries[user] = UserSummary(
                    own_story_points=sum(t.story_points for t in tickets if not t.contributed_but_not_owner),
                    total_hours=sum(t.hours_logged for t in tickets)
                )
        for user, summary in raw_summaries.items():
            if user not in user_summaries:
                user_summaries[user] = UserSummary.from_dict(summary)

        totals_data = data.get("totals")
        totals = Totals.from_dict(totals_data) if totals_data else Totals.from_summaries(user_summaries)

        try:
            sprint_id = int(data["sprintId"])
        except (KeyError, TypeError, ValueError):
            sprint_id = None

        return cls(
            sprint_id=sprint_id,
            sprint_name=str(data.get("sprintName", "")),
            sprint_start=str(data.get("sprintStart", "")),
            sprint_end=str(data.get("sprintEnd", "")),
            sprint_state=data.get("sprintState"),
            user_data=user_data,
            user_summaries=user_summaries,
            totals=totals,
            headers=TableHeaders.from_dict(data.get("headers")),
            warnings=tuple(data.get("warnings") or ())
        )
