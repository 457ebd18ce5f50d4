# ============================================================================
# QUANT JOB PRODUCER
# ============================================================================
# STATUS: Service layer - job creation and queue submission
# PURPOSE: Record pending jobs, then publish them to the work queues
# EXPORTS: Producer
# DEPENDENCIES: infrastructure.JobMetadataStore, interfaces.IQueuePublisher
# ============================================================================
"""
Quant Job Producer.

Every submission records job metadata BEFORE publishing, so a worker can
never receive a message for a job the store does not know about. The
submitted request is kept in the inputs container under the job id
(input_id on the record); batch children keep their own sub-request. If a
publish is not confirmed, the records written for it are rolled back and
QueueUnavailable propagates to the caller. Nothing is retried here.

Batch submissions:
    1. Decompose (EmptyDecomposition before any I/O)
    2. Record parent (pending, child_job_ids) then every child (pending),
       then their inputs
    3. Publish each child in decomposition order
    4. On a failed publish: delete unpublished children; delete the parent
       if nothing went out, else trim it to the published children and
       mark it failed
"""

from typing import Any, List, Mapping, Tuple, Union

from pydantic import ValidationError

from config.queue_topology import QueueConfigFactory
from core.job_id import JobIdFactory, child_job_id, new_job_id
from core.logic.calculations import now_ms
from core.models.enums import JobKind, JobStatus
from core.models.job import JobMetadata
from core.models.queue import QueueConfig
from core.models.request import ConvergenceCriteria, QuantifyRequest, QuantJobMessage
from exceptions import EmptyDecomposition, QueueUnavailable, RequestValidationError, StoreError
from infrastructure.job_store import JobMetadataStore
from interfaces.repository import IQueuePublisher
from util_logger import LoggerFactory, ComponentType

from .decomposition import AdaptiveDecomposer, Decomposer, decompose_adaptive, decompose_by_targets

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "Producer")

RequestInput = Union[QuantifyRequest, Mapping[str, Any]]


def coerce_request(request: RequestInput) -> QuantifyRequest:
    """
    Validate a request payload.

    Raises:
        RequestValidationError: Payload does not match QuantifyRequest
    """
    if isinstance(request, QuantifyRequest):
        return request
    try:
        return QuantifyRequest.model_validate(request)
    except ValidationError as e:
        raise RequestValidationError(f"Invalid quantification request: {e}") from e


class Producer:
    """
    Submits quantification jobs.

    Usage:
        producer = Producer(store, broker, QueueConfigFactory(config.broker))
        job_id = await producer.submit_single(request)
        child_ids = await producer.submit_sequence_batch(request)
    """

    def __init__(
        self,
        store: JobMetadataStore,
        publisher: IQueuePublisher,
        queues: QueueConfigFactory,
        id_factory: JobIdFactory = new_job_id,
        decompose: Decomposer = decompose_by_targets,
        adaptive_decompose: AdaptiveDecomposer = decompose_adaptive,
    ):
        self.store = store
        self.publisher = publisher
        self.quant_jobs_queue = queues.quant_jobs()
        self.distributed_sequences_queue = queues.distributed_sequences()
        self.adaptive_sequences_queue = queues.adaptive_sequences()
        self.id_factory = id_factory
        self.decompose = decompose
        self.adaptive_decompose = adaptive_decompose

    def _assign_id(self, request: QuantifyRequest) -> str:
        return request.job_id or self.id_factory()

    # ========================================================================
    # SINGLE JOB
    # ========================================================================

    async def submit_single(self, request: RequestInput) -> str:
        """
        Record and publish one job to the quant jobs queue.

        Returns:
            The job id

        Raises:
            RequestValidationError: Invalid request
            StoreError: Record could not be written (nothing published)
            QueueUnavailable: Publish not confirmed (record rolled back)
        """
        request = coerce_request(request)
        job_id = self._assign_id(request)
        queue = self.quant_jobs_queue
        sent_at = now_ms()

        await self.store.create_job(JobMetadata(
            job_id=job_id,
            kind=JobKind.SINGLE,
            queue=queue.name,
            sent_at=sent_at,
            input_id=job_id,
        ))
        try:
            await self.store.store_input(job_id, request.model_dump(mode="json"))
        except StoreError:
            logger.error(f"Storing input of job {job_id} failed, rolling back its record")
            await self._discard(job_id)
            raise

        try:
            await self.publisher.publish(queue, QuantJobMessage(job_id=job_id, request=request, sent_at=sent_at))
        except QueueUnavailable:
            logger.error(f"Publish of job {job_id} failed, rolling back its record")
            await self._discard(job_id)
            raise

        logger.info(f"Submitted job {job_id} to {queue.name}")
        return job_id

    # ========================================================================
    # BATCHES
    # ========================================================================

    async def submit_sequence_batch(self, request: RequestInput) -> List[str]:
        """
        Decompose a request and publish one job per sequence.

        Returns:
            Child job ids in decomposition order

        Raises:
            EmptyDecomposition: Decomposition produced nothing (no I/O done)
            RequestValidationError: Invalid request
            StoreError: Records could not be written
            QueueUnavailable: A publish was not confirmed (see rollback)
        """
        request = coerce_request(request)
        sub_requests = self.decompose(request)
        if not sub_requests:
            raise EmptyDecomposition()
        return await self._submit_batch(
            request, sub_requests, JobKind.SEQUENCE, self.distributed_sequences_queue
        )

    async def submit_adaptive_sequence_batch(self, request: RequestInput) -> List[str]:
        """
        Adaptive variant of submit_sequence_batch.

        The decomposition also receives the request's convergence criteria
        (defaults when absent). Jobs go to the adaptive sequences queue.

        Raises:
            EmptyDecomposition: No sequences extracted (no I/O done)
        """
        request = coerce_request(request)
        criteria = request.convergence or ConvergenceCriteria()
        sub_requests = self.adaptive_decompose(request, criteria)
        if not sub_requests:
            raise EmptyDecomposition("no sequences extracted")
        return await self._submit_batch(
            request, sub_requests, JobKind.ADAPTIVE_SEQUENCE, self.adaptive_sequences_queue
        )

    async def _submit_batch(
        self,
        request: QuantifyRequest,
        sub_requests: List[QuantifyRequest],
        kind: JobKind,
        queue: QueueConfig,
    ) -> List[str]:
        parent_id = self._assign_id(request)
        children: List[Tuple[str, int, QuantifyRequest]] = [
            (child_job_id(parent_id, index), index, sub_request)
            for index, sub_request in enumerate(sub_requests, start=1)
        ]
        child_ids = [child_id for child_id, _, _ in children]
        sent_at = now_ms()

        await self.store.create_job(JobMetadata(
            job_id=parent_id,
            kind=JobKind.BATCH,
            queue=queue.name,
            child_job_ids=child_ids,
            sent_at=sent_at,
            input_id=parent_id,
        ))

        recorded: List[str] = []
        try:
            for child_id, index, _ in children:
                await self.store.create_job(JobMetadata(
                    job_id=child_id,
                    kind=kind,
                    queue=queue.name,
                    parent_job_id=parent_id,
                    sequence_index=index,
                    sent_at=sent_at,
                    input_id=child_id,
                ))
                recorded.append(child_id)
            await self.store.store_input(parent_id, request.model_dump(mode="json"))
            for child_id, _, sub_request in children:
                await self.store.store_input(child_id, sub_request.model_dump(mode="json"))
        except StoreError:
            logger.error(f"Recording batch {parent_id} failed after {len(recorded)} children, rolling back")
            for child_id in recorded:
                await self._discard(child_id)
            await self._discard(parent_id)
            raise

        published: List[str] = []
        for child_id, index, sub_request in children:
            message = QuantJobMessage(
                job_id=child_id,
                parent_job_id=parent_id,
                sequence_index=index,
                request=sub_request,
                sent_at=sent_at,
            )
            try:
                await self.publisher.publish(queue, message)
            except QueueUnavailable as e:
                await self._rollback_batch(parent_id, child_ids, published, e)
                raise
            published.append(child_id)

        logger.info(f"Submitted batch {parent_id} ({len(child_ids)} {kind.value} jobs) to {queue.name}")
        return child_ids

    async def _rollback_batch(
        self,
        parent_id: str,
        child_ids: List[str],
        published: List[str],
        error: QueueUnavailable,
    ) -> None:
        unpublished = [child_id for child_id in child_ids if child_id not in published]
        logger.error(
            f"Batch {parent_id}: publish failed after {len(published)}/{len(child_ids)} "
            f"children, rolling back {len(unpublished)}"
        )
        for child_id in unpublished:
            await self._discard(child_id)

        if not published:
            await self._discard(parent_id)
            return

        # Published children will still run and finalize against this parent
        try:
            await self.store.update_job(
                parent_id,
                status=JobStatus.FAILED,
                child_job_ids=published,
                error_details=(
                    f"Only {len(published)} of {len(child_ids)} sequences were published: {error}"
                ),
            )
        except StoreError as e:
            logger.error(f"Could not mark batch {parent_id} failed: {e}")

    async def _discard(self, job_id: str) -> None:
        """Delete a job's record and stored input; failures are logged."""
        try:
            await self.store.delete_job(job_id)
            await self.store.delete_input(job_id)
        except StoreError as e:
            logger.error(f"Rollback of job {job_id} failed: {e}")
