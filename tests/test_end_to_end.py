"""
End-to-end scenarios: submit through the facade, deliver every published
message to a listener, read the results back.

The broker is replaced by the recording publisher; delivery is a direct
call to the listener's message handler with the published body.
"""

import pytest

from exceptions import EmptyDecomposition
from quant_worker.isolation import InProcessIsolation
from quant_worker.listener import QuantJobListener
from services import QuantificationService
from tests.fakes import make_incoming_message

REQUEST = {"model": "A", "settings": {}}


def _two_sequences(request):
    return [request.model_copy(update={"settings": {"sequence": name}}) for name in ("S1", "S2")]


@pytest.fixture
def service(store, publisher, queue_factory, sequential_ids):
    return QuantificationService.create(
        store,
        publisher,
        queue_factory,
        id_factory=sequential_ids(),
        decompose=_two_sequences,
        adaptive_decompose=lambda request, criteria: [],
    )


@pytest.fixture
def listener(store, queue_factory):
    return QuantJobListener(
        broker=None,
        store=store,
        isolation=InProcessIsolation(),
        queues=queue_factory.all(),
        engine_ref="tests.fake_engines:succeed",
        timeout_seconds=10,
    )


async def _deliver(publisher, listener):
    """Hand every published message to the listener once, in publish order."""
    messages = []
    for queue_name, message in publisher.published:
        incoming = make_incoming_message(message.model_dump_json().encode("utf-8"))
        await listener.handle_message(incoming, queue_name=queue_name)
        messages.append(incoming)
    publisher.published.clear()
    return messages


@pytest.mark.asyncio
async def test_single_job_lifecycle(service, publisher, listener):
    response = await service.submit(REQUEST)
    assert response == {"job_id": "job-1"}
    assert (await service.get_job_status("job-1"))["status"] == "pending"

    delivered = await _deliver(publisher, listener)
    delivered[0].ack.assert_awaited_once()

    status = await service.get_job_status("job-1")
    assert status["status"] == "completed"
    assert status["output_job_id"] == "job-1"

    output = await service.get_output("job-1")
    assert output["echo"] == {"settings": {}, "model": "A"}

    stats = await service.get_job_stats("job-1")
    assert stats["stats"]["analysis_seconds"] == 1.5


@pytest.mark.asyncio
async def test_sequence_batch_lifecycle(service, publisher, listener):
    await service.submit(REQUEST)
    publisher.published.clear()

    response = await service.submit(REQUEST, distributed=True)
    assert response == {"parent_job_id": "job-2", "sequence_job_ids": ["job-2-seq1", "job-2-seq2"]}
    assert (await service.get_job_status("job-2"))["status"] == "pending"

    await _deliver(publisher, listener)

    stats = await service.get_job_stats("job-2")
    assert len(stats["child_stats"]) == 2
    assert [c["status"] for c in stats["child_stats"]] == ["completed", "completed"]

    status = await service.get_job_status("job-2")
    assert status["status"] == "completed"
    assert status["completed_sequences"] == 2

    aggregated = await service.get_aggregated_output("job-2")
    assert [s["output"]["echo"]["settings"]["sequence"] for s in aggregated["sequences"]] == ["S1", "S2"]


@pytest.mark.asyncio
async def test_empty_adaptive_batch_is_rejected(service, publisher, blob_repo):
    with pytest.raises(EmptyDecomposition) as exc_info:
        await service.submit(REQUEST, adaptive=True)

    assert publisher.published == []
    assert blob_repo.blobs == {}

    rejection = QuantificationService.rejection_response(exc_info.value)
    assert rejection["error"] == "EMPTY_DECOMPOSITION"
    assert rejection["http_status"] == 400
    assert "job_id" not in rejection
