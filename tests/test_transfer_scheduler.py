"""Unit tests for the batch-barrier transfer scheduler."""

import asyncio

import pytest

from common.exceptions import ChunkTransferError, NetworkError
from common.types import ChunkOutcome, TransferDirection
from engine.transfer_scheduler import ChunkJob, TransferScheduler


class ConcurrencyProbe:
    """Builds jobs that record how many are in flight at once."""

    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.finished_order = []

    def job(self, index, delay=0.0, error=None, remote_id=None):
        async def run():
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            try:
                await asyncio.sleep(delay)
                if error is not None:
                    raise error
                self.finished_order.append(index)
                return ChunkOutcome(index=index, size=index + 1, data=bytes([index]) * (index + 1))
            finally:
                self.active -= 1

        return ChunkJob(index=index, run=run, remote_id=remote_id)


def test_parallelism_must_be_positive():
    with pytest.raises(ValueError):
        TransferScheduler(0)


@pytest.mark.asyncio
async def test_batches_are_delivered_in_index_order_despite_reverse_completion():
    probe = ConcurrencyProbe()
    # later chunks finish first inside each batch
    jobs = [probe.job(i, delay=0.05 * (3 - i % 3)) for i in range(6)]
    delivered = []

    async def on_batch(outcomes):
        delivered.append([outcome.index for outcome in outcomes])

    results = await TransferScheduler(3).run(TransferDirection.DOWNLOAD, jobs, on_batch=on_batch)

    assert delivered == [[0, 1, 2], [3, 4, 5]]
    assert [outcome.index for outcome in results] == list(range(6))
    assert probe.finished_order[:3] == [2, 1, 0]


@pytest.mark.asyncio
async def test_in_flight_jobs_never_exceed_parallelism():
    probe = ConcurrencyProbe()
    jobs = [probe.job(i, delay=0.01) for i in range(7)]

    await TransferScheduler(2).run(TransferDirection.UPLOAD, jobs)

    assert probe.max_active == 2


@pytest.mark.asyncio
async def test_results_drop_payload_bytes():
    probe = ConcurrencyProbe()
    results = await TransferScheduler(2).run(TransferDirection.DOWNLOAD, [probe.job(0), probe.job(1)])

    assert all(outcome.data is None for outcome in results)
    assert [outcome.size for outcome in results] == [1, 2]


@pytest.mark.asyncio
async def test_failure_is_wrapped_with_chunk_identity():
    probe = ConcurrencyProbe()
    jobs = [
        probe.job(0),
        probe.job(1, error=NetworkError("connection reset"), remote_id="msg-1"),
        probe.job(2),
        probe.job(3),
    ]
    delivered = []

    async def on_batch(outcomes):
        delivered.append([outcome.index for outcome in outcomes])

    with pytest.raises(ChunkTransferError) as exc_info:
        await TransferScheduler(3).run(TransferDirection.DOWNLOAD, jobs, on_batch=on_batch)

    error = exc_info.value
    assert error.direction == "download"
    assert error.index == 1
    assert error.remote_id == "msg-1"
    assert isinstance(error.cause, NetworkError)
    assert isinstance(error.__cause__, NetworkError)
    assert "msg-1" in str(error)
    # the failing batch is never delivered and later batches never start
    assert delivered == []
    assert 3 not in probe.finished_order


@pytest.mark.asyncio
async def test_lowest_index_failure_is_reported():
    probe = ConcurrencyProbe()
    jobs = [
        probe.job(0),
        probe.job(1, delay=0.05, error=RuntimeError("late")),
        probe.job(2, error=RuntimeError("early")),
    ]

    with pytest.raises(ChunkTransferError) as exc_info:
        await TransferScheduler(3).run(TransferDirection.UPLOAD, jobs)

    assert exc_info.value.index == 1
    assert exc_info.value.remote_id is None
    assert "unassigned" in str(exc_info.value)


@pytest.mark.asyncio
async def test_existing_chunk_transfer_error_is_not_wrapped_twice():
    original = ChunkTransferError("upload", 0, "msg-9", RuntimeError("metadata down"))
    probe = ConcurrencyProbe()

    with pytest.raises(ChunkTransferError) as exc_info:
        await TransferScheduler(1).run(TransferDirection.UPLOAD, [probe.job(0, error=original)])

    assert exc_info.value is original


@pytest.mark.asyncio
async def test_progress_events():
    probe = ConcurrencyProbe()
    events = []

    await TransferScheduler(2, observer=events.append).run(
        TransferDirection.UPLOAD, [probe.job(0), probe.job(1)]
    )

    types = [event.type for event in events]
    assert types[0] == "start"
    assert events[0].data == {"chunk_count": 2}
    assert types[-1] == "end"
    assert types.count("chunk_upload") == 2
    finished = [event for event in events if event.type == "chunk_uploaded"]
    assert sorted(event.data["index"] for event in finished) == [0, 1]
    for event in finished:
        assert set(event.data) == {"index", "bytes", "elapsed_time", "throughput"}
        assert event.data["throughput"] >= 0


@pytest.mark.asyncio
async def test_empty_job_list():
    events = []
    results = await TransferScheduler(3, observer=events.append).run(TransferDirection.DOWNLOAD, [])

    assert results == []
    assert [event.type for event in events] == ["start", "end"]
