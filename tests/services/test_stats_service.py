"""
Status and stats view tests.
"""

import pytest

from core.models.enums import JobKind, JobStatus
from core.models.job import JobMetadata, JobStats
from exceptions import JobNotFoundError
from services.stats_service import JobStatsService


@pytest.fixture
def stats(store):
    return JobStatsService(store)


async def _batch(store, parent_id="job-2", count=2):
    child_ids = [f"{parent_id}-seq{i}" for i in range(1, count + 1)]
    await store.create_job(JobMetadata(job_id=parent_id, kind=JobKind.BATCH, child_job_ids=child_ids))
    for index, child_id in enumerate(child_ids, start=1):
        await store.create_job(JobMetadata(
            job_id=child_id, kind=JobKind.SEQUENCE, parent_job_id=parent_id, sequence_index=index,
        ))
    return child_ids


class TestJobStats:

    @pytest.mark.asyncio
    async def test_single_job(self, stats, store):
        await store.create_job(JobMetadata(
            job_id="job-1",
            status=JobStatus.COMPLETED,
            sent_at=1_000,
            received_at=1_250,
            stats=JobStats(execution_time=3_000, total_seconds=2.0, probability=0.1),
        ))

        view = await stats.get_job_stats("job-1")

        assert view["job_id"] == "job-1"
        assert view["status"] == "completed"
        assert view["sent_at"] == 1_000
        assert view["received_at"] == 1_250
        assert view["stats"]["analysis_seconds"] == 2.0
        assert "total_seconds" not in view["stats"]
        assert view["child_stats"] == []

    @pytest.mark.asyncio
    async def test_batch_children_in_order(self, stats, store):
        child_ids = await _batch(store, count=3)
        await store.update_job(child_ids[1], status=JobStatus.COMPLETED, stats={"execution_time": 500})

        view = await stats.get_job_stats("job-2")

        assert [c["job_id"] for c in view["child_stats"]] == child_ids
        assert view["child_stats"][1]["stats"]["analysis_seconds"] == 0.5
        assert view["child_stats"][0]["stats"] is None

    @pytest.mark.asyncio
    async def test_unknown_job(self, stats):
        with pytest.raises(JobNotFoundError):
            await stats.get_job_stats("nope")


class TestJobStatus:

    @pytest.mark.asyncio
    async def test_single_job(self, stats, store):
        await store.create_job(JobMetadata(job_id="job-1"))
        assert await stats.get_job_status("job-1") == {
            "job_id": "job-1",
            "kind": "single",
            "status": "pending",
            "output_job_id": None,
        }

    @pytest.mark.asyncio
    async def test_failed_job_carries_error(self, stats, store):
        await store.create_job(JobMetadata(
            job_id="job-1", status=JobStatus.FAILED, error_details="boom", error_code="COMPUTE_FAILED",
        ))
        status = await stats.get_job_status("job-1")
        assert status["error_details"] == "boom"
        assert status["error_code"] == "COMPUTE_FAILED"

    @pytest.mark.asyncio
    async def test_batch_rolls_up_children(self, stats, store):
        child_ids = await _batch(store)

        status = await stats.get_job_status("job-2")
        assert status["status"] == "pending"
        assert status["sequence_job_ids"] == child_ids
        assert status["completed_sequences"] == 0
        assert status["total_sequences"] == 2

        await store.update_job(child_ids[0], status=JobStatus.RUNNING)
        assert (await stats.get_job_status("job-2"))["status"] == "running"

        await store.mark_sequence_finished("job-2", child_ids[0], JobStatus.COMPLETED)
        await store.mark_sequence_finished("job-2", child_ids[1], JobStatus.FAILED)
        status = await stats.get_job_status("job-2")
        assert status["status"] == "failed"
        assert status["completed_sequences"] == 2

    @pytest.mark.asyncio
    async def test_terminal_parent_wins(self, stats, store):
        child_ids = await _batch(store)
        await store.update_job("job-2", status=JobStatus.COMPLETED, aggregated_output_job_id="job-2")
        await store.update_job(child_ids[0], status=JobStatus.RUNNING)

        status = await stats.get_job_status("job-2")
        assert status["status"] == "completed"
        assert status["aggregated_output_job_id"] == "job-2"


class TestOutputs:

    @pytest.mark.asyncio
    async def test_output_of_completed_job(self, stats, store):
        await store.create_job(JobMetadata(job_id="job-1", status=JobStatus.COMPLETED, output_job_id="job-1"))
        await store.store_output("job-1", {"probability": 0.01})
        assert await stats.get_output("job-1") == {"probability": 0.01}

    @pytest.mark.asyncio
    async def test_no_output_yet(self, stats, store):
        await store.create_job(JobMetadata(job_id="job-1"))
        with pytest.raises(JobNotFoundError, match="no output"):
            await stats.get_output("job-1")

    @pytest.mark.asyncio
    async def test_aggregated_output(self, stats, store):
        await _batch(store)
        with pytest.raises(JobNotFoundError):
            await stats.get_aggregated_output("job-2")

        await store.store_output("job-2", {"parent_job_id": "job-2", "sequences": []})
        await store.update_job("job-2", aggregated_output_job_id="job-2")
        assert (await stats.get_aggregated_output("job-2"))["parent_job_id"] == "job-2"


class TestInputs:

    @pytest.mark.asyncio
    async def test_input_of_job(self, stats, store):
        await store.create_job(JobMetadata(job_id="job-1", input_id="job-1"))
        await store.store_input("job-1", {"model": "A", "settings": {"sequence": "LOCA"}})
        assert (await stats.get_input("job-1"))["settings"] == {"sequence": "LOCA"}

    @pytest.mark.asyncio
    async def test_job_without_input(self, stats, store):
        await store.create_job(JobMetadata(job_id="job-1"))
        with pytest.raises(JobNotFoundError, match="no stored input"):
            await stats.get_input("job-1")

    @pytest.mark.asyncio
    async def test_unknown_job(self, stats):
        with pytest.raises(JobNotFoundError):
            await stats.get_input("nope")


class TestListing:

    @pytest.mark.asyncio
    async def test_list_jobs(self, stats, store):
        await _batch(store, count=1)
        await store.create_job(JobMetadata(job_id="job-3", status=JobStatus.COMPLETED))

        summaries = {s["job_id"]: s for s in await stats.list_jobs()}
        assert set(summaries) == {"job-2", "job-2-seq1", "job-3"}
        assert summaries["job-2-seq1"]["parent_job_id"] == "job-2"
        assert [s["job_id"] for s in await stats.list_jobs(JobStatus.COMPLETED)] == ["job-3"]

    @pytest.mark.asyncio
    async def test_completed_sequence_count(self, stats, store):
        child_ids = await _batch(store)
        await store.mark_sequence_finished("job-2", child_ids[0], JobStatus.COMPLETED)
        assert await stats.get_completed_sequence_count("job-2") == 1

    @pytest.mark.asyncio
    async def test_completed_sequence_count_unknown_parent(self, stats):
        with pytest.raises(JobNotFoundError):
            await stats.get_completed_sequence_count("nope")
