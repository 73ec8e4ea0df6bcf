"""Google Drive API client (read-only)."""

from dataclasses import dataclass
from typing import Any

import httpx

from plexy.clients.google_api import GoogleAPIClient, path_segment
from plexy.config import DRIVE_API_URL
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

SEARCH_FIELDS = "files(id,name,mimeType,modifiedTime,size)"
METADATA_FIELDS = "id,name,mimeType,size"

# Google-native formats cannot be downloaded, only exported
EXPORT_FORMATS = {
    "application/vnd.google-apps.document": "text/plain",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
}

TEXTUAL_MIME_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/javascript",
        "application/x-yaml",
    }
)


def build_search_query(text: str) -> str:
    """Drive ``q`` expression matching names or full text, trashed excluded."""
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"(name contains '{escaped}' or fullText contains '{escaped}') and trashed = false"


def is_media_type(mime_type: str | None) -> bool:
    """Audio and video files are never fetched for reading."""
    if not mime_type:
        return False
    return "audio" in mime_type or "video" in mime_type


def is_textual(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in TEXTUAL_MIME_TYPES


@dataclass(frozen=True)
class FileContent:
    """Text of a Drive file, or a description of it when nothing could be extracted."""

    text: str
    readable: bool = True


class DriveClient(GoogleAPIClient):
    """Search and read files in the student's Drive."""

    service_name = "Google Drive"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = DRIVE_API_URL,
        timeout: float = 30.0,
    ):
        super().__init__(base_url, http_client=http_client, timeout=timeout)

    async def search_files(self, token: str, query: str, page_size: int | None = None) -> dict[str, Any]:
        """Free-text search over file names and contents."""
        params: dict[str, Any] = {"q": build_search_query(query), "fields": SEARCH_FIELDS}
        if page_size:
            params["pageSize"] = page_size
        return await self.get_json("/files", token, params=params)

    async def get_metadata(self, token: str, file_id: str) -> dict[str, Any]:
        return await self.get_json(f"/files/{path_segment(file_id)}", token, params={"fields": METADATA_FIELDS})

    async def read_file(self, token: str, file_id: str) -> str:
        """Return a file's text content, or a description of a file without one."""
        return (await self.read_content(token, file_id)).text

    async def read_content(self, token: str, file_id: str) -> FileContent:
        """Read a file, flagging whether real text came back.

        Google Docs, Sheets and Slides are exported to text. Plain-text
        formats are downloaded and decoded. Other binary formats are
        described rather than decoded.
        """
        metadata = await self.get_metadata(token, file_id)
        mime_type = metadata.get("mimeType") or ""
        name = metadata.get("name") or "Unknown"
        file_path = f"/files/{path_segment(file_id)}"

        logger.info(f"Reading Drive file {name} ({mime_type})")

        if mime_type in EXPORT_FORMATS:
            response = await self.get(f"{file_path}/export", token, params={"mimeType": EXPORT_FORMATS[mime_type]})
            return FileContent(response.text)

        if not is_textual(mime_type):
            size = metadata.get("size", "unknown")
            return FileContent(
                f"[{mime_type or 'Unknown type'} file: {name}. Size: {size} bytes. "
                "Text extraction is not supported for this file type; open it in Google Docs to share its text.]",
                readable=False,
            )

        response = await self.get(file_path, token, params={"alt": "media"})
        text = response.content.decode("utf-8", errors="replace")
        if not text:
            return FileContent(f"[File type: {mime_type}. No readable text content found.]", readable=False)
        return FileContent(text)
