"""Single-call Google Drive tools."""

from pydantic import Field

from plexy.clients.drive import DriveClient
from plexy.tools.base import ToolDefinition, ToolInput, ToolResult


class SearchFilesInput(ToolInput):
    """Input schema for Drive search."""

    query: str = Field(
        ..., min_length=1, description="Search query (e.g., 'homework', 'assignment', a file name)"
    )


class ReadFileInput(ToolInput):
    """Input schema for reading one Drive file."""

    file_id: str = Field(..., alias="fileId", min_length=1, description="Google Drive file ID")


def create_search_files_tool(drive: DriveClient) -> ToolDefinition:
    async def search_drive_files(params: SearchFilesInput, access_token: str) -> ToolResult:
        return await drive.search_files(access_token, params.query)

    return ToolDefinition(
        name="search_drive_files",
        description="Search for files in the student's Google Drive by name or content.",
        input_schema_class=SearchFilesInput,
        handler=search_drive_files,
        failure_message="Failed to search files",
    )


def create_read_file_tool(drive: DriveClient) -> ToolDefinition:
    async def read_drive_file(params: ReadFileInput, access_token: str) -> ToolResult:
        content = await drive.read_file(access_token, params.file_id)
        return {"content": content}

    return ToolDefinition(
        name="read_drive_file",
        description=(
            "Read the text content of a Google Drive file. Google Docs, Sheets and Slides "
            "and plain-text files are supported; other formats are described but not read."
        ),
        input_schema_class=ReadFileInput,
        handler=read_drive_file,
        failure_message="Failed to read file",
    )
