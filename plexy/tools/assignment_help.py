"""Composite tool: assignment details plus related Drive notes in one call."""

from typing import Any

from pydantic import Field

from plexy.clients.classroom import ClassroomClient
from plexy.clients.drive import DriveClient, is_media_type
from plexy.tools.base import ToolDefinition, ToolResult, isolated
from plexy.tools.classroom import CourseWorkInput
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

SEARCH_PAGE_SIZE = 5
MAX_FILES_READ = 3
MAX_FILE_CHARS = 2000

MEDIA_PLACEHOLDER = "[Media file - content not readable]"
UNREADABLE_PLACEHOLDER = "[Could not read file content]"


class AssignmentHelpInput(CourseWorkInput):
    """Input schema for the assignment help context tool."""

    topic: str = Field(
        ...,
        min_length=1,
        description=(
            'The topic or subject of the assignment (e.g., "stoicism", "photosynthesis") '
            "- used to search Drive for related files"
        ),
    )


def project_assignment(course_work: dict[str, Any]) -> dict[str, Any]:
    """Keep the coursework fields useful for tutoring."""
    return {
        "title": course_work.get("title"),
        "description": course_work.get("description"),
        "maxPoints": course_work.get("maxPoints"),
        "dueDate": course_work.get("dueDate"),
        "dueTime": course_work.get("dueTime"),
        "workType": course_work.get("workType"),
        "materials": course_work.get("materials"),
        "link": course_work.get("alternateLink"),
    }


def _unreadable(file: dict[str, Any], content: str, error: str) -> dict[str, Any]:
    return {
        "id": file.get("id"),
        "name": file.get("name"),
        "mimeType": file.get("mimeType"),
        "readable": False,
        "content": content,
        "error": error,
    }


def build_summary(assignment: dict[str, Any] | None, files_found: int, files_read: int) -> str:
    if assignment is not None:
        lead = f'Found assignment "{assignment.get("title") or "Untitled"}".'
    else:
        lead = "Assignment details could not be retrieved."
    return f"{lead} {files_found} related file(s) found in Drive, {files_read} read."


def create_assignment_help_tool(classroom: ClassroomClient, drive: DriveClient) -> ToolDefinition:
    async def get_assignment_help_context(params: AssignmentHelpInput, access_token: str) -> ToolResult:
        logger.info(f"Building assignment help context for {params.course_id}/{params.course_work_id}")

        primary = await isolated(
            "Assignment lookup",
            classroom.get_course_work(access_token, params.course_id, params.course_work_id),
        )
        assignment = project_assignment(primary.value) if primary.ok and primary.value else None

        search = await isolated(
            "Drive search",
            drive.search_files(access_token, params.topic, page_size=SEARCH_PAGE_SIZE),
        )
        found_files: list[dict[str, Any]] = (search.value or {}).get("files") or []

        related_files: list[dict[str, Any]] = []
        for file in found_files[:MAX_FILES_READ]:
            if is_media_type(file.get("mimeType")):
                related_files.append(_unreadable(file, MEDIA_PLACEHOLDER, "Audio and video files are not read"))
                continue

            if not file.get("id"):
                related_files.append(_unreadable(file, UNREADABLE_PLACEHOLDER, "Search result has no file id"))
                continue

            read = await isolated(
                f"Reading Drive file {file.get('name')}", drive.read_content(access_token, file["id"])
            )
            if not read.ok or read.value is None:
                related_files.append(_unreadable(file, UNREADABLE_PLACEHOLDER, read.error or "Unknown error"))
                continue

            if not read.value.readable:
                related_files.append(
                    _unreadable(file, read.value.text[:MAX_FILE_CHARS], "No text could be extracted from this file")
                )
                continue

            related_files.append(
                {
                    "id": file.get("id"),
                    "name": file.get("name"),
                    "mimeType": file.get("mimeType"),
                    "readable": True,
                    "content": read.value.text[:MAX_FILE_CHARS],
                }
            )

        files_read = sum(1 for entry in related_files if entry["readable"])
        logger.info(f"Assignment help context: {len(found_files)} files found, {files_read} read")

        return {
            "assignment": assignment,
            "related_files_from_drive": related_files,
            "files_found_count": len(found_files),
            "files_read_count": files_read,
            "search_topic": params.topic,
            "summary": build_summary(assignment, len(found_files), files_read),
        }

    return ToolDefinition(
        name="get_assignment_help_context",
        description=(
            "BEST TOOL for helping with assignments! Gets EVERYTHING in one call: assignment details "
            "from Classroom + searches Google Drive for related notes/files + reads their content. "
            "Use this when a student asks for help with a specific assignment."
        ),
        input_schema_class=AssignmentHelpInput,
        handler=get_assignment_help_context,
        failure_message="Failed to get assignment context",
    )
