"""Google Classroom API client (read-only)."""

from typing import Any

import httpx

from plexy.clients.google_api import GoogleAPIClient, path_segment
from plexy.config import CLASSROOM_API_URL


class ClassroomClient(GoogleAPIClient):
    """Typed wrappers around the Classroom endpoints the tools use."""

    service_name = "Google Classroom"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = CLASSROOM_API_URL,
        timeout: float = 30.0,
    ):
        super().__init__(base_url, http_client=http_client, timeout=timeout)

    async def list_courses(self, token: str) -> dict[str, Any]:
        """Courses the authenticated student is enrolled in."""
        return await self.get_json("/courses", token, params={"studentId": "me"})

    async def list_course_work(self, token: str, course_id: str) -> dict[str, Any]:
        return await self.get_json(f"/courses/{path_segment(course_id)}/courseWork", token)

    async def get_course_work(self, token: str, course_id: str, course_work_id: str) -> dict[str, Any]:
        return await self.get_json(
            f"/courses/{path_segment(course_id)}/courseWork/{path_segment(course_work_id)}",
            token,
        )

    async def list_submissions(self, token: str, course_id: str, course_work_id: str) -> dict[str, Any]:
        return await self.get_json(
            f"/courses/{path_segment(course_id)}/courseWork/{path_segment(course_work_id)}/studentSubmissions",
            token,
        )

    async def list_course_materials(self, token: str, course_id: str) -> dict[str, Any]:
        return await self.get_json(f"/courses/{path_segment(course_id)}/courseWorkMaterials", token)

    async def list_announcements(self, token: str, course_id: str) -> dict[str, Any]:
        return await self.get_json(f"/courses/{path_segment(course_id)}/announcements", token)
