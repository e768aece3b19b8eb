"""Shared data type definitions (FileRecord, ChunkRecord, ChunkPlan, etc.)."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


def join_virtual_path(dir_path: str, name: str) -> str:
    """Build the virtual path of a file from its directory and name."""
    return f"{dir_path}/{name}"


@dataclass(frozen=True)
class ByteRange:
    """
    Half-open byte range [start, end) relative to the plaintext file.
    """
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ChunkPlan:
    """
    One planned chunk of a file: its index and plaintext byte range.
    """
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata for a file stored in the virtual file store.
    """
    id: str
    name: str
    dir_path: str
    size: int

    @property
    def virtual_path(self) -> str:
        return join_virtual_path(self.dir_path, self.name)

    def to_document(self) -> Dict[str, Any]:
        return {"key": self.id, "name": self.name, "path": self.dir_path, "size": self.size}

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "FileRecord":
        return cls(
            id=document["key"],
            name=document["name"],
            dir_path=document.get("path", ""),
            size=int(document["size"]),
        )


@dataclass(frozen=True)
class ChunkRecord:
    """
    Metadata for a single stored chunk of a file.
    """
    id: str
    file_id: str
    index: int
    range: ByteRange
    remote_message_id: str

    @property
    def size(self) -> int:
        return self.range.length

    def to_document(self) -> Dict[str, Any]:
        return {
            "key": self.id,
            "file": self.file_id,
            "index": self.index,
            "message_id": self.remote_message_id,
            "range": {"start": self.range.start, "end": self.range.end},
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ChunkRecord":
        byte_range = document["range"]
        return cls(
            id=document["key"],
            file_id=document["file"],
            index=int(document["index"]),
            range=ByteRange(start=int(byte_range["start"]), end=int(byte_range["end"])),
            remote_message_id=str(document["message_id"]),
        )


class TransferDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class ChunkSlice:
    """
    A chunk selected for a range read and the window of its plaintext to keep.
    """
    chunk: ChunkRecord
    inner_start: int
    inner_end: int

    @property
    def length(self) -> int:
        return self.inner_end - self.inner_start


@dataclass(frozen=True)
class ChunkOutcome:
    """
    Result of one finished chunk job.
    """
    index: int
    size: int
    data: Optional[bytes] = None
    record: Optional[ChunkRecord] = None
