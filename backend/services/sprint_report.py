"""Sprint worklog report service.

Builds a per-contributor breakdown of a sprint: which tickets each person
owned or logged time against, how many hours they logged inside the sprint
window, and how that compares with the story-point estimate.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from services.formatting import format_date, has_time_component, parse_date, to_number
from services.jira_client import DEFAULT_TIMEOUT, JiraClient, JiraRequestError
from services.report_model import SprintReport, Ticket, Totals, UserSummary, new_user_id
from services.rich_text import comment_body_text

logger = logging.getLogger(__name__)

UNASSIGNED = "Unassigned"
UNKNOWN_AUTHOR = "Unknown"
NO_COMMENTS = "-"

SPRINT_PAGE_SIZE = 50
SPRINT_ISSUE_LIMIT = 1000
STATE_RANK = {"active": 0, "future": 1, "closed": 2}
UNKNOWN_STATE_RANK = 99

# Checked in order; the first numeric value wins
DEFAULT_STORY_POINT_FIELDS = (
    "customfield_10016",
    "customfield_10020",
    "customfield_10002",
    "storyPoints",
    "Story Points"
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SprintResolutionError(Exception):
    """No sprint could be chosen, or it has no usable date window."""


@dataclass(frozen=True)
class Enrichment:
    """Outcome of a best-effort lookup: a value, plus a reason when degraded."""

    value: Any
    reason: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.reason is not None

    @classmethod
    def ok(cls, value) -> "Enrichment":
        return cls(value)

    @classmethod
    def degraded(cls, value, reason: str) -> "Enrichment":
        return cls(value, reason)


def normalize_sprint(sprint: dict) -> dict:
    return {
        "id": sprint.get("id"),
        "name": sprint.get("name"),
        "state": sprint.get("state"),
        "startDate": sprint.get("startDate"),
        "endDate": sprint.get("endDate")
    }


def _state_rank(sprint: dict) -> int:
    return STATE_RANK.get((sprint.get("state") or "").lower(), UNKNOWN_STATE_RANK)


def _timestamp(date_str: Optional[str]) -> float:
    parsed = parse_date(date_str)
    return parsed.timestamp() if parsed else _EPOCH.timestamp()


def sort_sprints(sprints: list) -> list:
    """Order sprints active, future, closed; newest first within a state."""
    def sort_key(sprint):
        reference = sprint.get("startDate") or sprint.get("endDate")
        return (_state_rank(sprint), -_timestamp(reference))

    return sorted(sprints, key=sort_key)


def sprint_window(start_date: str, end_date: str) -> tuple:
    """Return the (start, end) datetimes a worklog must fall within.

    An end date without a time of day covers that whole calendar day.
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is None or end is None:
        raise SprintResolutionError(
            f"Cannot read sprint window {start_date!r} - {end_date!r}"
        )

    if not has_time_component(end_date):
        end = end.replace(hour=23, minute=59, second=59, microsecond=999000)

    return start, end


class SprintReportService:
    """Service for building sprint worklog reports from Jira data."""

    def __init__(self, server: str, email: str, token: str,
                 hours_per_story_point: float = 1,
                 relay_url: Optional[str] = None,
                 timeout: int = DEFAULT_TIMEOUT,
                 story_point_fields: Optional[list] = None):
        self.client = JiraClient(server, email, token, relay_url=relay_url, timeout=timeout)
        self.hours_per_story_point = hours_per_story_point
        self.story_point_fields = tuple(story_point_fields or DEFAULT_STORY_POINT_FIELDS)

    @property
    def server(self) -> str:
        return self.client.server

    def _request(self, endpoint: str, params: Optional[dict] = None):
        """Make authenticated request to Jira API."""
        return self.client.get(endpoint, params)

    @staticmethod
    def _record(enrichment: Enrichment, warnings: list):
        if enrichment.is_degraded:
            warnings.append(enrichment.reason)
        return enrichment.value

    # Sprint directory

    def get_board_sprints(self, board_id: int) -> list:
        """Get every sprint on a board, ordered for display.

        Any page failure propagates; a partial list is never returned.
        """
        all_sprints = []
        start_at = 0

        while True:
            data = self._request(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                params={
                    "startAt": start_at,
                    "maxResults": SPRINT_PAGE_SIZE,
                    "state": "active,future,closed"
                }
            )

            sprints = data.get("values", [])
            all_sprints.extend(normalize_sprint(s) for s in sprints)

            if data.get("isLast") or len(sprints) < SPRINT_PAGE_SIZE:
                break

            start_at += SPRINT_PAGE_SIZE

        return sort_sprints(all_sprints)

    # Sprint resolution

    def _get_sprint_by_id(self, sprint_id: int) -> dict:
        """Fetch a specific sprint by ID."""
        return self._request(f"/rest/agile/1.0/sprint/{sprint_id}")

    def resolve_sprint(self, board_id: int, sprint_id: Optional[int] = None) -> dict:
        """Pick the sprint to report on.

        An explicit sprint_id wins. Otherwise the board's active sprint is
        used, falling back to the most recently closed one.
        """
        if sprint_id is not None:
            sprint = normalize_sprint(self._get_sprint_by_id(sprint_id))
        else:
            sprint = self._select_default_sprint(self.get_board_sprints(board_id))

        sprint = self._ensure_date_window(sprint)
        logger.info(
            f"Resolved sprint {sprint['id']} ({sprint['name']}, {sprint['state']}) "
            f"{sprint['startDate']} - {sprint['endDate']}"
        )
        return sprint

    @staticmethod
    def _select_default_sprint(sprints: list) -> dict:
        for sprint in sprints:
            if (sprint.get("state") or "").lower() == "active":
                return sprint

        closed = [s for s in sprints if (s.get("state") or "").lower() == "closed"]
        if closed:
            return max(closed, key=lambda s: _timestamp(s.get("endDate")))

        raise SprintResolutionError("No active or closed sprints found for this board.")

    def _ensure_date_window(self, sprint: dict) -> dict:
        if sprint.get("startDate") and sprint.get("endDate"):
            return sprint

        try:
            detail = self._get_sprint_by_id(sprint["id"])
        except (JiraRequestError, ValueError) as e:
            logger.warning(f"Could not re-fetch sprint {sprint['id']} for dates: {e}")
            detail = {}

        merged = dict(sprint)
        merged["startDate"] = sprint.get("startDate") or detail.get("startDate")
        merged["endDate"] = sprint.get("endDate") or detail.get("endDate")

        if not merged["startDate"] or not merged["endDate"]:
            raise SprintResolutionError(
                f"Sprint {sprint.get('name') or sprint['id']} has no start/end date; "
                "cannot filter worklogs."
            )

        return merged

    # Issues and subtasks

    @staticmethod
    def _is_subtask(issue: dict) -> bool:
        return bool(((issue.get("fields") or {}).get("issuetype") or {}).get("subtask", False))

    def _get_sprint_issues(self, sprint_id: int) -> list:
        """Get all issues in a sprint."""
        data = self._request(
            f"/rest/agile/1.0/sprint/{sprint_id}/issue",
            params={"maxResults": SPRINT_ISSUE_LIMIT}
        )
        return list(data.get("issues") or [])

    def _get_subtask_keys(self, issue_key: str) -> Enrichment:
        """Look up the subtask keys of a parent issue."""
        try:
            data = self._request(
                f"/rest/api/3/issue/{issue_key}",
                params={"fields": "subtasks"}
            )
        except (JiraRequestError, ValueError) as e:
            logger.warning(f"Could not fetch subtasks for {issue_key}: {e}")
            return Enrichment.degraded([], f"Subtasks unavailable for {issue_key}: {e}")

        subtasks = data.get("fields", {}).get("subtasks") or []
        return Enrichment.ok([s["key"] for s in subtasks if s.get("key")])

    def _fetch_issues_by_key(self, issue_keys: list, warnings: list) -> list:
        """Fetch issues by key, batched, with per-key fallback.

        Keys the batch search did not return are fetched one at a time.
        Individual failures are logged and skipped.
        """
        found = {}
        try:
            data = self._request(
                "/rest/api/3/search/jql",
                params={
                    "jql": " OR ".join(f"key = {key}" for key in issue_keys),
                    "maxResults": len(issue_keys),
                    "fields": "*navigable"
                }
            )
            for issue in data.get("issues") or []:
                found.setdefault(issue.get("key"), issue)
        except (JiraRequestError, ValueError) as e:
            logger.warning(f"Batch subtask fetch failed, fetching individually: {e}")

        gaps = [key for key in issue_keys if key not in found]
        if found and gaps:
            logger.info(f"Batch search missed {len(gaps)} subtasks: {', '.join(gaps)}")

        for key in gaps:
            try:
                found[key] = self._request(f"/rest/api/3/issue/{key}")
            except (JiraRequestError, ValueError) as e:
                logger.warning(f"Could not fetch subtask {key}: {e}")
                warnings.append(f"Subtask {key} unavailable: {e}")

        return [found[key] for key in issue_keys if key in found]

    def collect_issues(self, sprint_id: int, warnings: Optional[list] = None) -> list:
        """Get a sprint's issues plus subtasks the sprint endpoint left out.

        Only the sprint issue fetch is fatal; subtask discovery is
        best-effort, with failures appended to warnings when given.
        """
        if warnings is None:
            warnings = []

        issues = self._get_sprint_issues(sprint_id)
        present = {issue.get("key") for issue in issues}

        missing = []
        for issue in issues:
            if self._is_subtask(issue):
                continue
            for key in self._record(self._get_subtask_keys(issue["key"]), warnings):
                if key not in present and key not in missing:
                    missing.append(key)

        if missing:
            for subtask in self._fetch_issues_by_key(missing, warnings):
                if subtask.get("key") in present:
                    continue
                present.add(subtask.get("key"))
                issues.append(subtask)
            logger.info(f"Sprint {sprint_id}: appended subtasks, {len(issues)} issues total")

        return issues

    # Per-issue enrichment

    def get_worklog_hours(self, issue_key: str, sprint_start: str, sprint_end: str) -> Enrichment:
        """Sum hours logged per author inside the sprint window."""
        window_start, window_end = sprint_window(sprint_start, sprint_end)

        try:
            data = self._request(f"/rest/api/3/issue/{issue_key}/worklog")
        except (JiraRequestError, ValueError) as e:
            logger.warning(f"Could not fetch worklogs for {issue_key}: {e}")
            return Enrichment.degraded({}, f"Worklogs unavailable for {issue_key}: {e}")

        hours = {}
        for log in data.get("worklogs") or []:
            started = parse_date(log.get("started"))
            if started is None or not window_start <= started <= window_end:
                continue
            author = (log.get("author") or {}).get("displayName") or UNKNOWN_AUTHOR
            hours[author] = hours.get(author, 0.0) + to_number(log.get("timeSpentSeconds")) / 3600

        return Enrichment.ok(hours)

    def get_comment_text(self, issue_key: str) -> Enrichment:
        """Flatten an issue's comments into one line."""
        try:
            data = self._request(f"/rest/api/3/issue/{issue_key}/comment")
        except (JiraRequestError, ValueError) as e:
            logger.warning(f"Could not fetch comments for {issue_key}: {e}")
            return Enrichment.degraded(NO_COMMENTS, f"Comments unavailable for {issue_key}: {e}")

        comments = data.get("comments") or []
        if not comments:
            return Enrichment.ok(NO_COMMENTS)

        rendered = []
        for comment in comments:
            author = (comment.get("author") or {}).get("displayName") or UNKNOWN_AUTHOR
            date = format_date(comment.get("created"))
            rendered.append(f"[{author}] ({date}): {comment_body_text(comment.get('body'))}")

        return Enrichment.ok(" || ".join(rendered))

    # Aggregation

    def _get_story_points(self, issue: dict) -> float:
        """Extract story points from an issue, 0 when none is numeric."""
        fields = issue.get("fields") or {}

        for field_id in self.story_point_fields:
            points = fields.get(field_id)
            # Sprint arrays and option objects share some of these ids
            if points is None or isinstance(points, (bool, dict, list)):
                continue
            try:
                number = float(points)
            except (TypeError, ValueError):
                continue
            if math.isfinite(number):
                return number

        return 0.0

    @staticmethod
    def _get_assignee(issue: dict) -> Optional[str]:
        assignee = (issue.get("fields") or {}).get("assignee") or {}
        return assignee.get("displayName") or None

    def aggregate(self, sprint: dict, issues: list, warnings: tuple = ()) -> SprintReport:
        """Fold issues, worklogs and comments into a SprintReport.

        Issues are enriched one at a time, worklogs then comments. The
        report carries the given warnings plus those raised by this run.
        """
        start, end = sprint.get("startDate"), sprint.get("endDate")
        sprint_window(start, end)

        warnings = list(warnings)
        user_data = {}
        running = {}
        all_story_points = 0.0
        all_hours = 0.0

        for issue in issues:
            key = issue.get("key")
            fields = issue.get("fields") or {}
            summary = fields.get("summary") or "No summary"
            story_points = self._get_story_points(issue)
            planned_hours = story_points * self.hours_per_story_point
            assignee = self._get_assignee(issue)
            owner = assignee or UNASSIGNED

            worklogs = self._record(self.get_worklog_hours(key, start, end), warnings)
            comments = self._record(self.get_comment_text(key), warnings)

            contributors = list(worklogs)
            if owner not in worklogs and (assignee or worklogs):
                contributors.append(owner)

            for contributor in contributors:
                hours_logged = worklogs.get(contributor, 0.0)
                owns = contributor == owner

                user_data.setdefault(contributor, []).append(Ticket(
                    ticket_key=key,
                    display_label=key if owns else f"{key} ({owner})",
                    summary=summary,
                    story_points=story_points,
                    hours_logged=hours_logged,
                    difference=planned_hours - hours_logged,
                    contributed_but_not_owner=not owns,
                    comments=comments
                ))

                totals = running.setdefault(contributor, {"points": 0.0, "hours": 0.0})
                totals["hours"] += hours_logged
                all_hours += hours_logged
                if owns:
                    totals["points"] += story_points
                    all_story_points += story_points

        user_summaries = {
            user: UserSummary(
                own_story_points=acc["points"],
                total_hours=acc["hours"],
                user_id=new_user_id()
            )
            for user, acc in running.items()
        }

        logger.info(
            f"Aggregated {len(issues)} issues for {len(user_summaries)} contributors "
            f"({len(warnings)} warnings)"
        )

        return SprintReport(
            sprint_id=sprint.get("id"),
            sprint_name=sprint.get("name") or "Unnamed Sprint",
            sprint_start=str(start),
            sprint_end=str(end),
            sprint_state=sprint.get("state"),
            user_data={user: tuple(tickets) for user, tickets in user_data.items()},
            user_summaries=user_summaries,
            totals=Totals(all_story_points=all_story_points, all_hours=all_hours),
            warnings=tuple(warnings)
        )

    def build_report(self, board_id: int, sprint_id: Optional[int] = None) -> SprintReport:
        """Resolve the sprint, collect its issues and aggregate the report."""
        sprint = self.resolve_sprint(board_id, sprint_id)
        warnings = []
        issues = self.collect_issues(sprint["id"], warnings)
        logger.info(f"Sprint {sprint['id']}: {len(issues)} issues to aggregate")
        return self.aggregate(sprint, issues, warnings)
