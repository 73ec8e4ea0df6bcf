"""Single-call Google Classroom tools."""

from pydantic import Field

from plexy.clients.classroom import ClassroomClient
from plexy.tools.base import EmptyInput, ToolDefinition, ToolInput, ToolResult


class CourseInput(ToolInput):
    """Input schema for tools scoped to one course."""

    course_id: str = Field(..., alias="courseId", min_length=1, description="The Google Classroom course ID")


class CourseWorkInput(CourseInput):
    """Input schema for tools scoped to one assignment."""

    course_work_id: str = Field(
        ..., alias="courseWorkId", min_length=1, description="The assignment/courseWork ID"
    )


def create_user_classes_tool(classroom: ClassroomClient) -> ToolDefinition:
    async def get_user_classes(params: EmptyInput, access_token: str) -> ToolResult:
        return await classroom.list_courses(access_token)

    return ToolDefinition(
        name="get_user_classes",
        description=(
            "Get the list of Google Classroom classes the student is enrolled in. "
            "Use this first to find course IDs when the student mentions a class, homework or coursework."
        ),
        input_schema_class=EmptyInput,
        handler=get_user_classes,
        failure_message="Failed to fetch classes",
    )


def create_class_assignments_tool(classroom: ClassroomClient) -> ToolDefinition:
    async def get_class_assignments(params: CourseInput, access_token: str) -> ToolResult:
        return await classroom.list_course_work(access_token, params.course_id)

    return ToolDefinition(
        name="get_class_assignments",
        description="Get assignments for a specific Google Classroom class.",
        input_schema_class=CourseInput,
        handler=get_class_assignments,
        failure_message="Failed to fetch assignments",
    )


def create_assignment_details_tool(classroom: ClassroomClient) -> ToolDefinition:
    async def get_assignment_details(params: CourseWorkInput, access_token: str) -> ToolResult:
        return await classroom.get_course_work(access_token, params.course_id, params.course_work_id)

    return ToolDefinition(
        name="get_assignment_details",
        description="Get detailed information about a specific assignment: instructions, points, due date, materials.",
        input_schema_class=CourseWorkInput,
        handler=get_assignment_details,
        failure_message="Failed to fetch assignment details",
    )


def create_student_submissions_tool(classroom: ClassroomClient) -> ToolDefinition:
    async def get_student_submissions(params: CourseWorkInput, access_token: str) -> ToolResult:
        return await classroom.list_submissions(access_token, params.course_id, params.course_work_id)

    return ToolDefinition(
        name="get_student_submissions",
        description="Get the student's submissions for an assignment, including their state and grade.",
        input_schema_class=CourseWorkInput,
        handler=get_student_submissions,
        failure_message="Failed to fetch submissions",
    )


def create_class_materials_tool(classroom: ClassroomClient) -> ToolDefinition:
    async def get_class_materials(params: CourseInput, access_token: str) -> ToolResult:
        return await classroom.list_course_materials(access_token, params.course_id)

    return ToolDefinition(
        name="get_class_materials",
        description="Get course materials and resources shared by the teacher for a class.",
        input_schema_class=CourseInput,
        handler=get_class_materials,
        failure_message="Failed to fetch materials",
    )


def create_announcements_tool(classroom: ClassroomClient) -> ToolDefinition:
    async def get_announcements(params: CourseInput, access_token: str) -> ToolResult:
        return await classroom.list_announcements(access_token, params.course_id)

    return ToolDefinition(
        name="get_announcements",
        description="Get recent announcements posted by the teacher in a class.",
        input_schema_class=CourseInput,
        handler=get_announcements,
        failure_message="Failed to fetch announcements",
    )
