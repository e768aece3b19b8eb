"""File listing and range-serving routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from common.logging_config import get_logger
from engine.file_manager import FileManager
from server.schemas import FileMetadataResponse, ListFilesResponse
from server.utils import content_disposition, parse_range_header

logger = get_logger(__name__)

api_router = APIRouter(prefix="/_api", tags=["Files"])
serve_router = APIRouter(tags=["Serve"])


def get_file_manager(request: Request) -> FileManager:
    """Dependency returning the FileManager attached to the application."""
    return request.app.state.file_manager


@api_router.get("/files", response_model=ListFilesResponse)
async def list_files(
    dir: Optional[str] = Query(None, description="Virtual directory; omit to list everything"),
    file_manager: FileManager = Depends(get_file_manager),
):
    """
    List stored files.

    Parameters:
        - dir: Optional virtual directory (e.g., "/docs")

    Returns:
        - files: File metadata sorted by virtual path
    """
    records = await file_manager.list_files(dir)
    return ListFilesResponse(files=[FileMetadataResponse.from_record(record) for record in records])


@api_router.get("/search", response_model=ListFilesResponse)
async def search_files(
    q: str = Query(..., min_length=1, description="Text contained in the file name"),
    file_manager: FileManager = Depends(get_file_manager),
):
    """
    Search stored files by name.

    Returns:
        - files: Files whose name contains q
    """
    records = await file_manager.search_files(q)
    return ListFilesResponse(files=[FileMetadataResponse.from_record(record) for record in records])


@serve_router.get("/{file_path:path}")
async def serve_file(
    file_path: str,
    request: Request,
    file_manager: FileManager = Depends(get_file_manager),
):
    """
    Stream a stored file by virtual path, honouring a single byte range.

    Returns:
        - 200 with the whole file, or 206 with the requested range

    Raises:
        - 404: No file at this path
        - 416: Range malformed or outside the file
        - 502: Remote service failure
    """
    file = await file_manager.metadata.get_file_from_path(f"/{file_path}")
    if file is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"No file at /{file_path}", "code": "FILE_NOT_FOUND"},
        )

    headers = {
        "Content-Disposition": content_disposition(file.name),
        "Accept-Ranges": "bytes",
    }

    byte_range = parse_range_header(request.headers.get("range"), file.size)
    if byte_range is None:
        if file.size == 0:
            headers["Content-Length"] = "0"
            return Response(content=b"", media_type="application/octet-stream", headers=headers)
        start, end = 0, file.size
        status_code = status.HTTP_200_OK
    else:
        start, end = byte_range
        status_code = status.HTTP_206_PARTIAL_CONTENT
        headers["Content-Range"] = f"bytes {start}-{end - 1}/{file.size}"

    stream = await file_manager.read_range(file, start, end)
    headers["Content-Length"] = str(end - start)

    logger.info(f"Serving {file.virtual_path} bytes [{start}, {end}) [file_id={file.id}]")
    return StreamingResponse(
        stream,
        status_code=status_code,
        media_type="application/octet-stream",
        headers=headers,
    )
