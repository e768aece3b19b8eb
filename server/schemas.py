"""Pydantic schemas for the listing endpoints."""

from typing import List

from pydantic import BaseModel

from common.types import FileRecord


class FileMetadataResponse(BaseModel):
    """Response model for file metadata."""
    file_id: str
    name: str
    dir_path: str
    path: str
    size: int

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileMetadataResponse":
        return cls(
            file_id=record.id,
            name=record.name,
            dir_path=record.dir_path,
            path=record.virtual_path,
            size=record.size,
        )


class ListFilesResponse(BaseModel):
    """Response model for file listing."""
    files: List[FileMetadataResponse]


class ErrorResponse(BaseModel):
    """Error body returned by the exception handlers."""
    detail: str
    code: str
