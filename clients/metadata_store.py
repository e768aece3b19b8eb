"""File and chunk record repository on top of two document bases."""

import uuid
from pathlib import PurePosixPath
from typing import List, Optional

from clients.document_base import DocumentBase
from common.exceptions import DuplicatePathError
from common.logging_config import get_logger
from common.types import ByteRange, ChunkRecord, FileRecord

logger = get_logger(__name__)


def normalize_dir_path(dir_path: str) -> str:
    """
    Normalize a directory to '/a/b' form; the root directory becomes ''.

    Backslashes are treated as separators so Windows-style paths map cleanly.
    """
    parts = [part for part in dir_path.replace('\\', '/').split('/') if part and part != '.']
    if any(part == '..' for part in parts):
        raise ValueError(f"Directory path may not contain '..': {dir_path!r}")
    return ''.join(f"/{part}" for part in parts)


def split_virtual_path(path: str) -> tuple[str, str]:
    """Split a virtual path into (normalized directory, file name)."""
    pure = PurePosixPath('/' + path.replace('\\', '/').lstrip('/'))
    return normalize_dir_path(str(pure.parent)), pure.name


def chunk_key(file_id: str, index: int) -> str:
    """Deterministic chunk record key, so re-registering a chunk overwrites it."""
    return f"{file_id}-{index}"


class MetadataStore:
    """
    Stores FileRecords in one base and ChunkRecords in another.

    Virtual paths are kept unique at write time. The backing store has no
    transactions, so two concurrent writers can still race; lookups then
    return the first match.
    """

    def __init__(self, files: DocumentBase, chunks: DocumentBase):
        self.files = files
        self.chunks = chunks

    async def close(self) -> None:
        await self.files.close()
        await self.chunks.close()

    async def add_file(self, name: str, dir_path: str, size: int) -> FileRecord:
        """
        Register a new file.

        Raises:
            DuplicatePathError: If a file already exists at dir_path/name
        """
        if not name or '/' in name:
            raise ValueError(f"Invalid file name: {name!r}")
        dir_path = normalize_dir_path(dir_path)

        existing = await self.files.fetch_all({'path': dir_path, 'name': name})
        if existing:
            raise DuplicatePathError(
                f"A file already exists at {dir_path}/{name} [file_id={existing[0]['key']}]"
            )

        record = FileRecord(id=uuid.uuid4().hex, name=name, dir_path=dir_path, size=size)
        await self.files.put(record.to_document())
        logger.info(f"Registered file {record.virtual_path} [file_id={record.id}, size={size}]")
        return record

    async def add_chunk(
        self,
        file_id: str,
        index: int,
        start: int,
        end: int,
        message_id: str,
    ) -> ChunkRecord:
        """Register one stored chunk of a file."""
        record = ChunkRecord(
            id=chunk_key(file_id, index),
            file_id=file_id,
            index=index,
            range=ByteRange(start=start, end=end),
            remote_message_id=message_id,
        )
        await self.chunks.put(record.to_document())
        logger.debug(f"Registered chunk {index} [file_id={file_id}, message_id={message_id}]")
        return record

    async def get_file(self, file_id: str) -> Optional[FileRecord]:
        document = await self.files.get(file_id)
        return FileRecord.from_document(document) if document else None

    async def get_chunks(self, file_id: str) -> List[ChunkRecord]:
        """All chunk records of a file, across every page, sorted by index."""
        documents = await self.chunks.fetch_all({'file': file_id})
        records = [ChunkRecord.from_document(document) for document in documents]
        records.sort(key=lambda record: record.index)
        return records

    async def get_file_from_path(self, path: str) -> Optional[FileRecord]:
        """Look up a file by virtual path; the first match wins."""
        dir_path, name = split_virtual_path(path)
        if not name:
            return None

        documents = await self.files.fetch_all({'path': dir_path, 'name': name})
        if not documents:
            return None
        if len(documents) > 1:
            logger.warning(
                f"{len(documents)} files share the path {dir_path}/{name}; using {documents[0]['key']}"
            )
        return FileRecord.from_document(documents[0])

    async def delete_file(self, file_id: str) -> None:
        await self.files.delete(file_id)

    async def delete_chunk(self, chunk_id: str) -> None:
        await self.chunks.delete(chunk_id)

    async def list_files(self, dir_path: Optional[str] = None) -> List[FileRecord]:
        """List the files of one directory, or every file when dir_path is None."""
        query = None if dir_path is None else {'path': normalize_dir_path(dir_path)}
        documents = await self.files.fetch_all(query)
        return sorted(
            (FileRecord.from_document(document) for document in documents),
            key=lambda record: record.virtual_path,
        )

    async def search_files(self, text: str) -> List[FileRecord]:
        """Files whose name contains the given text."""
        documents = await self.files.fetch_all({'name?contains': text})
        return sorted(
            (FileRecord.from_document(document) for document in documents),
            key=lambda record: record.virtual_path,
        )
