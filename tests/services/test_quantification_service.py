"""
Facade tests - submission shapes and rejection responses.
"""

import pytest

from exceptions import EmptyDecomposition, JobNotFoundError, QueueUnavailable, RequestValidationError, StoreError
from services import QuantificationService
from tests.factories.model_factories import make_request


@pytest.fixture
def service(store, publisher, queue_factory, sequential_ids):
    return QuantificationService.create(store, publisher, queue_factory, id_factory=sequential_ids())


class TestSubmit:

    @pytest.mark.asyncio
    async def test_single(self, service, publisher):
        assert await service.submit(make_request()) == {"job_id": "job-1"}
        assert publisher.job_ids("quant-jobs") == ["job-1"]

    @pytest.mark.asyncio
    async def test_distributed(self, service, publisher):
        response = await service.submit(make_request(targets=["A", "B"]), distributed=True)
        assert response == {"parent_job_id": "job-1", "sequence_job_ids": ["job-1-seq1", "job-1-seq2"]}
        assert publisher.job_ids("distributed-sequences") == response["sequence_job_ids"]

    @pytest.mark.asyncio
    async def test_adaptive_implies_distributed(self, service, publisher):
        response = await service.submit(make_request(sequence_estimates={"S1": 0.1}), adaptive=True)
        assert response["parent_job_id"] == "job-1"
        assert publisher.job_ids("adaptive-sequences") == ["job-1-seq1"]

    @pytest.mark.asyncio
    async def test_read_side_delegates(self, service):
        request = make_request()
        await service.submit(request)
        assert (await service.get_input("job-1"))["model"] == request["model"]
        assert (await service.get_job_status("job-1"))["status"] == "pending"
        assert (await service.get_job_stats("job-1"))["child_stats"] == []
        assert [j["job_id"] for j in await service.list_jobs()] == ["job-1"]
        with pytest.raises(JobNotFoundError):
            await service.get_output("job-1")


class TestRejectionResponse:

    @pytest.mark.parametrize("error,code,status,retryable", [
        (RequestValidationError("bad"), "VALIDATION_ERROR", 400, False),
        (EmptyDecomposition(), "EMPTY_DECOMPOSITION", 400, False),
        (JobNotFoundError("job-9"), "JOB_NOT_FOUND", 404, False),
        (QueueUnavailable("down"), "QUEUE_UNAVAILABLE", 503, True),
        (StoreError("down"), "STORAGE_ERROR", 503, True),
        (RuntimeError("?"), "UNEXPECTED_ERROR", 500, True),
    ])
    def test_mapping(self, error, code, status, retryable):
        response = QuantificationService.rejection_response(error)
        assert response["success"] is False
        assert response["error"] == code
        assert response["http_status"] == status
        assert response["retryable"] is retryable
        assert response["error_type"] == type(error).__name__
