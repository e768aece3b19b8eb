"""Upload, download, range read and delete of files stored as encrypted chunks."""

import asyncio
from functools import partial
from pathlib import Path
from typing import AsyncIterator, BinaryIO, List, Optional

from clients.blob_store_client import BlobStoreClient
from clients.document_base import DocumentBase
from clients.metadata_store import MetadataStore
from common.config import Config
from common.constants import (
    CHUNK_SIZE_BYTES,
    CHUNKS_BASE_NAME,
    DEFAULT_PARALLEL_DOWNLOADS,
    DEFAULT_PARALLEL_UPLOADS,
    DISK_READ_BLOCK_BYTES,
    FILES_BASE_NAME,
    MAX_ATTACHMENT_BYTES,
)
from common.exceptions import (
    ChunkTransferError,
    InvariantViolation,
    NetworkError,
    UnexpectedRemoteResponse,
)
from common.logging_config import get_logger
from common.types import ChunkOutcome, ChunkPlan, ChunkRecord, FileRecord, TransferDirection
from engine import crypto_codec
from engine.chunk_planner import plan_chunks, validate_layout
from engine.range_resolver import resolve_range
from engine.transfer_scheduler import ChunkJob, ProgressObserver, TransferScheduler

logger = get_logger(__name__)


def read_file_range(path: Path, start: int, end: int) -> bytes:
    """Read bytes [start, end) of a local file."""
    pieces = []
    remaining = end - start
    with open(path, 'rb') as f:
        f.seek(start)
        while remaining > 0:
            piece = f.read(min(DISK_READ_BLOCK_BYTES, remaining))
            if not piece:
                break
            pieces.append(piece)
            remaining -= len(piece)
    return b''.join(pieces)


class FileManager:
    """
    Coordinates the metadata store, the blob store and the transfer scheduler.

    Parallelism is fixed per manager and handed to a fresh scheduler for every
    transfer, so concurrent transfers never share scheduling state.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blob_store: BlobStoreClient,
        key: bytes,
        chunk_size: int = CHUNK_SIZE_BYTES,
        upload_parallelism: int = DEFAULT_PARALLEL_UPLOADS,
        download_parallelism: int = DEFAULT_PARALLEL_DOWNLOADS,
        max_retries: int = 3,
        retry_backoff: float = 2,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.metadata = metadata
        self.blob_store = blob_store
        self.key = key
        self.chunk_size = chunk_size
        self.upload_parallelism = upload_parallelism
        self.download_parallelism = download_parallelism
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, config: Config) -> 'FileManager':
        """
        Build a manager and its remote clients from a validated configuration.

        Raises:
            ConfigurationError: If required fields are missing or malformed
        """
        config.validate()
        timeout = config.get_timeout()
        project_key = config.get_project_key()
        metadata_url = config.get_metadata_url()

        metadata = MetadataStore(
            files=DocumentBase(FILES_BASE_NAME, project_key, metadata_url, timeout=timeout),
            chunks=DocumentBase(CHUNKS_BASE_NAME, project_key, metadata_url, timeout=timeout),
        )
        blob_store = BlobStoreClient(
            config.get_webhook_url(), timeout=timeout, max_payload_bytes=MAX_ATTACHMENT_BYTES
        )
        parallelism = config.get_parallelism()
        retry = config.get_retry_config()

        return cls(
            metadata=metadata,
            blob_store=blob_store,
            key=config.get_encryption_key(),
            chunk_size=config.get_chunk_size(),
            upload_parallelism=parallelism['uploads'],
            download_parallelism=parallelism['downloads'],
            max_retries=retry['max_retries'],
            retry_backoff=retry['retry_backoff_multiplier'],
        )

    async def __aenter__(self) -> 'FileManager':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.metadata.close()
        await self.blob_store.close()

    async def _retry_with_backoff(self, operation, *args, **kwargs):
        """
        Retry an operation on NetworkError with exponential backoff.

        Any other error propagates immediately.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return await operation(*args, **kwargs)
            except NetworkError as e:
                if attempt >= self.max_retries:
                    raise
                # a zero backoff retries immediately
                delay = self.retry_backoff ** attempt if self.retry_backoff else 0
                logger.warning(
                    f"Transient failure, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self.max_retries + 1}): {e}"
                )
                await asyncio.sleep(delay)

    async def resolve(self, id_or_path: str) -> Optional[FileRecord]:
        """Look a file up by virtual path (leading '/') or by id."""
        if id_or_path.startswith('/'):
            return await self.metadata.get_file_from_path(id_or_path)
        return await self.metadata.get_file(id_or_path)

    async def list_files(self, dir_path: Optional[str] = None) -> List[FileRecord]:
        return await self.metadata.list_files(dir_path)

    async def search_files(self, text: str) -> List[FileRecord]:
        return await self.metadata.search_files(text)

    async def _upload_chunk(self, file: FileRecord, local_path: Path, plan: ChunkPlan) -> ChunkOutcome:
        data = await asyncio.to_thread(read_file_range, local_path, plan.start, plan.end)
        if len(data) != plan.size:
            raise InvariantViolation(
                f"Read {len(data)} bytes for chunk {plan.index} of {local_path}, expected {plan.size}; "
                f"the file changed during upload"
            )

        ciphertext = crypto_codec.encrypt(self.key, data)
        logger.debug(
            f"Uploading chunk {plan.index} ({len(data)} bytes, {len(ciphertext)} bytes encrypted) "
            f"[file_id={file.id}]"
        )

        message_id = await self._retry_with_backoff(
            self.blob_store.put, ciphertext, f"{file.name}.chunk{plan.index}", len(data)
        )

        try:
            record = await self._retry_with_backoff(
                self.metadata.add_chunk, file.id, plan.index, plan.start, plan.end, message_id
            )
        except Exception as e:
            raise ChunkTransferError(TransferDirection.UPLOAD.value, plan.index, message_id, e) from e

        return ChunkOutcome(index=plan.index, size=len(data), record=record)

    async def upload_file(
        self,
        local_path: str,
        remote_dir: str = '/',
        observer: Optional[ProgressObserver] = None,
    ) -> FileRecord:
        """
        Upload a local file as encrypted chunks.

        Args:
            local_path: Path of the file on disk
            remote_dir: Virtual directory to register the file in
            observer: Optional progress observer

        Returns:
            The registered FileRecord

        Raises:
            DuplicatePathError: If the virtual path is taken
            ChunkTransferError: If a chunk fails; chunks already stored are kept.
                The file record is removed when no chunk record was written.
        """
        path = Path(local_path)
        size = path.stat().st_size

        # an empty file still gets one (empty) chunk record
        plans = plan_chunks(size, self.chunk_size) or [ChunkPlan(index=0, start=0, end=0)]

        file = await self.metadata.add_file(path.name, remote_dir, size)
        logger.info(f"Uploading {path} as {file.virtual_path} [file_id={file.id}, chunks={len(plans)}]")

        jobs = [
            ChunkJob(index=plan.index, run=partial(self._upload_chunk, file, path, plan))
            for plan in plans
        ]
        scheduler = TransferScheduler(self.upload_parallelism, observer)

        try:
            await scheduler.run(TransferDirection.UPLOAD, jobs)
        except ChunkTransferError as e:
            if await self.metadata.get_chunks(file.id):
                e.incomplete_file = file
                logger.debug(f"File record {file.id} kept with partial chunks after failed upload")
            else:
                await self.metadata.delete_file(file.id)
                logger.debug(f"Removed file record {file.id}; no chunk was stored")
            raise

        logger.info(f"Uploaded {file.virtual_path} [file_id={file.id}]")
        return file

    async def fetch_chunk(self, chunk: ChunkRecord) -> bytes:
        """
        Fetch and decrypt one chunk.

        Raises:
            ChunkTransferError: Wrapping the network, remote or authentication failure
        """
        try:
            blob = await self._retry_with_backoff(self.blob_store.get, chunk.remote_message_id)
            data = crypto_codec.decrypt(self.key, blob)
        except Exception as e:
            raise ChunkTransferError(
                TransferDirection.DOWNLOAD.value, chunk.index, chunk.remote_message_id, e
            ) from e

        if len(data) != chunk.size:
            raise InvariantViolation(
                f"Chunk {chunk.index} decrypted to {len(data)} bytes, record says {chunk.size} "
                f"[file_id={chunk.file_id}, message_id={chunk.remote_message_id}]"
            )
        return data

    async def _download_chunk(self, chunk: ChunkRecord) -> ChunkOutcome:
        data = await self.fetch_chunk(chunk)
        return ChunkOutcome(index=chunk.index, size=len(data), data=data)

    async def _load_chunks(self, file: FileRecord) -> List[ChunkRecord]:
        chunks = await self.metadata.get_chunks(file.id)
        validate_layout(chunks, file.size)
        return chunks

    async def download_file(
        self,
        file_id: str,
        save_path: str,
        observer: Optional[ProgressObserver] = None,
    ) -> Optional[FileRecord]:
        """
        Download a file to disk.

        Args:
            file_id: Id of the file record
            save_path: Destination path; truncated before the first batch is appended
            observer: Optional progress observer

        Returns:
            The FileRecord, or None if no such file exists

        Raises:
            InvariantViolation: If the stored chunks do not partition the file
            ChunkTransferError: If a chunk fails; batches already written stay on disk
        """
        file = await self.metadata.get_file(file_id)
        if file is None:
            return None

        chunks = await self._load_chunks(file)
        logger.info(
            f"Downloading {file.virtual_path} ({file.size} bytes, {len(chunks)} chunks) [file_id={file.id}]"
        )

        destination = Path(save_path)
        destination.parent.mkdir(parents=True, exist_ok=True)

        jobs = [
            ChunkJob(index=chunk.index, run=partial(self._download_chunk, chunk), remote_id=chunk.remote_message_id)
            for chunk in chunks
        ]
        scheduler = TransferScheduler(self.download_parallelism, observer)

        with open(destination, 'wb') as handle:
            async def append_batch(outcomes: List[ChunkOutcome]) -> None:
                await asyncio.to_thread(_append_outcomes, handle, outcomes)

            await scheduler.run(TransferDirection.DOWNLOAD, jobs, on_batch=append_batch)

        logger.info(f"Downloaded {file.virtual_path} to {destination} [file_id={file.id}]")
        return file

    async def read_range(self, file: FileRecord, start: int, end: int) -> AsyncIterator[bytes]:
        """
        Prepare a stream of bytes [start, end) of a file.

        Chunks are resolved before anything is fetched, so an unsatisfiable range
        fails here rather than in the middle of the stream.

        Raises:
            RangeNotSatisfiable: If the range falls outside the file
            InvariantViolation: If the stored chunks do not partition the file
        """
        chunks = await self._load_chunks(file)
        slices = resolve_range(chunks, start, end, file.size)

        async def stream() -> AsyncIterator[bytes]:
            for chunk_slice in slices:
                data = await self.fetch_chunk(chunk_slice.chunk)
                yield data[chunk_slice.inner_start:chunk_slice.inner_end]

        return stream()

    async def _delete_message(self, message_id: str) -> None:
        try:
            await self._retry_with_backoff(self.blob_store.delete, message_id)
        except UnexpectedRemoteResponse as e:
            if e.status_code != 404:
                raise
            logger.debug(f"Message {message_id} already deleted")

    async def delete_file(self, file_id: str) -> bool:
        """
        Delete a file's remote messages, chunk records and file record.

        Returns:
            True if the file was deleted, False if it did not exist

        Raises:
            InvariantViolation: If the file has no chunk records
        """
        file = await self.metadata.get_file(file_id)
        if file is None:
            return False

        chunks = await self.metadata.get_chunks(file_id)
        if not chunks:
            raise InvariantViolation(f"File {file_id} has no chunk records; refusing to delete")

        for chunk in chunks:
            try:
                await self._delete_message(chunk.remote_message_id)
                await self._retry_with_backoff(self.metadata.delete_chunk, chunk.id)
            except Exception as e:
                raise ChunkTransferError('delete', chunk.index, chunk.remote_message_id, e) from e

        await self._retry_with_backoff(self.metadata.delete_file, file_id)
        logger.info(f"Deleted {file.virtual_path} ({len(chunks)} chunks) [file_id={file_id}]")
        return True


def _append_outcomes(handle: BinaryIO, outcomes: List[ChunkOutcome]) -> None:
    for outcome in outcomes:
        handle.write(outcome.data or b'')
    handle.flush()
