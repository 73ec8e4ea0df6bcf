"""Deadline aggregation across the student's courses."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import Field, field_validator

from plexy.clients.classroom import ClassroomClient
from plexy.tools.base import ToolDefinition, ToolInput, ToolResult, isolated
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DAYS_AHEAD = 7
MAX_COURSES = 5
MAX_PAST_DUE = 5
DESCRIPTION_PREVIEW_CHARS = 100


class DeadlinesInput(ToolInput):
    """Input schema for the deadline overview."""

    days_ahead: int = Field(
        DEFAULT_DAYS_AHEAD, description="Number of days to look ahead for deadlines (default: 7)"
    )

    @field_validator("days_ahead", mode="before")
    @classmethod
    def default_when_unusable(cls, v: Any) -> int:
        """Zero, negative or non-numeric values fall back to the default window."""
        try:
            days = int(float(v))
        except (TypeError, ValueError):
            return DEFAULT_DAYS_AHEAD
        return days if days > 0 else DEFAULT_DAYS_AHEAD


def due_instant(work: dict[str, Any]) -> datetime | None:
    """Build the UTC due instant of a coursework item.

    Missing or zero hours default to 23 and missing or zero minutes to 59,
    each on its own, so a date without a time is due at the end of that day.
    """
    due_date = work.get("dueDate")
    if not due_date:
        return None

    try:
        year, month, day = int(due_date["year"]), int(due_date["month"]), int(due_date["day"])
        due_time = work.get("dueTime") or {}
        hours = int(due_time.get("hours") or 23)
        minutes = int(due_time.get("minutes") or 59)
        return datetime(year, month, day, hours, minutes, tzinfo=UTC)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unusable due date on coursework {work.get('id')}: {due_date} ({e})")
        return None


def _dated_entry(course: dict[str, Any], work: dict[str, Any], due: datetime) -> dict[str, Any]:
    return {
        "course": course.get("name"),
        "courseId": course.get("id"),
        "title": work.get("title"),
        "dueDate": due.isoformat(),
        "type": work.get("workType"),
        "id": work.get("id"),
    }


def _undated_entry(course: dict[str, Any], work: dict[str, Any]) -> dict[str, Any]:
    description = work.get("description")
    return {
        "course": course.get("name"),
        "courseId": course.get("id"),
        "title": work.get("title"),
        "description": description[:DESCRIPTION_PREVIEW_CHARS] if description else None,
        "type": work.get("workType"),
        "id": work.get("id"),
    }


def bucket_deadlines(
    coursework: list[tuple[dict[str, Any], dict[str, Any]]], now: datetime, days_ahead: int
) -> ToolResult:
    """Sort (course, work) pairs into upcoming, undated and past-due buckets."""
    window_end = now + timedelta(days=days_ahead)

    upcoming: list[tuple[datetime, dict[str, Any]]] = []
    past_due: list[tuple[datetime, dict[str, Any]]] = []
    undated: list[dict[str, Any]] = []

    for course, work in coursework:
        due = due_instant(work)
        if due is None:
            undated.append(_undated_entry(course, work))
        elif due < now:
            past_due.append((due, _dated_entry(course, work, due)))
        elif due <= window_end:
            upcoming.append((due, _dated_entry(course, work, due)))

    upcoming.sort(key=lambda item: item[0])
    past_due.sort(key=lambda item: item[0], reverse=True)

    summary = f"Found {len(upcoming)} assignment(s) due in the next {days_ahead} days."
    if undated:
        summary += f" Also {len(undated)} assignment(s) with no due date set."
    if past_due:
        summary += f" {len(past_due)} past due."

    return {
        "deadlines_this_period": [entry for _, entry in upcoming],
        "deadlines_count": len(upcoming),
        "assignments_without_due_date": undated,
        "no_due_date_count": len(undated),
        "past_due_assignments": [entry for _, entry in past_due[:MAX_PAST_DUE]],
        "past_due_count": len(past_due),
        "looking_ahead_days": days_ahead,
        "summary": summary,
    }


def create_upcoming_deadlines_tool(
    classroom: ClassroomClient, clock: Callable[[], datetime] = lambda: datetime.now(UTC)
) -> ToolDefinition:
    async def get_upcoming_deadlines(params: DeadlinesInput, access_token: str) -> ToolResult:
        courses_data = await classroom.list_courses(access_token)
        courses = (courses_data.get("courses") or [])[:MAX_COURSES]
        now = clock()

        coursework: list[tuple[dict[str, Any], dict[str, Any]]] = []
        for course in courses:
            outcome = await isolated(
                f"Coursework fetch for course {course.get('id')}",
                classroom.list_course_work(access_token, course.get("id", "")),
            )
            if not outcome.ok:
                continue
            coursework.extend((course, work) for work in (outcome.value or {}).get("courseWork") or [])

        logger.info(f"Bucketing {len(coursework)} coursework items from {len(courses)} courses")
        return bucket_deadlines(coursework, now, params.days_ahead)

    return ToolDefinition(
        name="get_upcoming_deadlines",
        description=(
            "Get a complete overview of assignments: deadlines due in the next X days, assignments "
            "WITHOUT due dates (still need to be done!), and any past-due assignments. "
            "Always mention ALL categories to the student."
        ),
        input_schema_class=DeadlinesInput,
        handler=get_upcoming_deadlines,
        failure_message="Failed to fetch deadlines",
    )
