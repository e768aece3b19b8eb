"""Batch-barrier scheduler for chunk upload and download jobs."""

import asyncio
import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from common.exceptions import ChunkTransferError
from common.logging_config import get_logger
from common.types import ChunkOutcome, TransferDirection

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChunkJob:
    """
    One unit of work: transfer a single chunk.

    run is a zero-argument coroutine function so the scheduler decides when
    the job actually starts.
    """
    index: int
    run: Callable[[], Awaitable[ChunkOutcome]]
    remote_id: Optional[str] = None


@dataclass(frozen=True)
class ProgressEvent:
    """
    Progress notification emitted by the scheduler.

    type is one of: start, chunk_upload, chunk_download, chunk_uploaded,
    chunk_downloaded, end.
    """
    type: str
    data: Dict[str, Any] = field(default_factory=dict)


ProgressObserver = Callable[[ProgressEvent], None]
BatchHandler = Callable[[List[ChunkOutcome]], Awaitable[None]]

_STARTED_EVENTS = {
    TransferDirection.UPLOAD: "chunk_upload",
    TransferDirection.DOWNLOAD: "chunk_download",
}
_FINISHED_EVENTS = {
    TransferDirection.UPLOAD: "chunk_uploaded",
    TransferDirection.DOWNLOAD: "chunk_downloaded",
}


class TransferScheduler:
    """
    Runs chunk jobs at most `parallelism` at a time, one batch after another.

    A batch is admitted, awaited as a whole, sorted by chunk index and handed
    to the batch handler before the next batch is admitted. Appends made by the
    handler therefore follow chunk index order even though jobs inside a batch
    finish in any order.
    """

    def __init__(self, parallelism: int, observer: Optional[ProgressObserver] = None):
        if parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {parallelism}")
        self.parallelism = parallelism
        self.observer = observer

    def _emit(self, event_type: str, **data: Any) -> None:
        if self.observer is not None:
            self.observer(ProgressEvent(type=event_type, data=data))

    async def _run_job(self, direction: TransferDirection, job: ChunkJob) -> ChunkOutcome:
        self._emit(_STARTED_EVENTS[direction], index=job.index)
        started = time.perf_counter()

        outcome = await job.run()

        elapsed = time.perf_counter() - started
        throughput = outcome.size / elapsed if elapsed > 0 else 0.0
        self._emit(
            _FINISHED_EVENTS[direction],
            index=job.index,
            bytes=outcome.size,
            elapsed_time=elapsed,
            throughput=throughput,
        )
        return outcome

    async def run(
        self,
        direction: TransferDirection,
        jobs: Sequence[ChunkJob],
        on_batch: Optional[BatchHandler] = None,
    ) -> List[ChunkOutcome]:
        """
        Execute all jobs in batches of at most `parallelism`.

        Args:
            direction: Upload or download, selects the progress event names
            jobs: Chunk jobs in submission order
            on_batch: Awaited with each finished batch sorted by chunk index

        Returns:
            Outcomes of all jobs in chunk index order, without payload bytes

        Raises:
            ChunkTransferError: For the lowest-index failed job of the first failing
                batch, after every member of that batch has settled
        """
        total = len(jobs)
        completed = 0
        cursor = 0
        results: List[ChunkOutcome] = []

        self._emit("start", chunk_count=total)
        logger.debug(f"Scheduling {total} {direction.value} job(s) [parallelism={self.parallelism}]")

        while completed < total:
            batch = list(jobs[cursor:cursor + self.parallelism])
            cursor += len(batch)

            settled = await asyncio.gather(
                *(self._run_job(direction, job) for job in batch),
                return_exceptions=True,
            )

            failures = [
                (job, result)
                for job, result in zip(batch, settled)
                if isinstance(result, BaseException)
            ]
            if failures:
                job, error = min(failures, key=lambda item: item[0].index)
                if isinstance(error, ChunkTransferError):
                    logger.error(str(error))
                    raise error
                if not isinstance(error, Exception):
                    raise error
                logger.error(
                    f"Chunk {direction.value} failed [index={job.index}, message_id={job.remote_id}]: {error}"
                )
                raise ChunkTransferError(direction.value, job.index, job.remote_id, error) from error

            outcomes = sorted(settled, key=lambda outcome: outcome.index)
            if on_batch is not None:
                await on_batch(outcomes)

            results.extend(dataclasses.replace(outcome, data=None) for outcome in outcomes)
            completed += len(outcomes)

        self._emit("end")
        return results
