# ============================================================================
# QUANTIFICATION SERVICE
# ============================================================================
# STATUS: Service layer - caller-facing facade
# PURPOSE: One entry point for submitting jobs and reading their results
# EXPORTS: QuantificationService
# DEPENDENCIES: services.producer, services.stats_service
# ============================================================================
"""
Quantification Service.

Facade over the producer and the stats service for whatever caller-facing
surface hosts the orchestrator (HTTP handler, CLI, notebook).

Submission returns:
    single job      {"job_id": ...}
    sequence batch  {"parent_job_id": ..., "sequence_job_ids": [...]}

Errors propagate as exceptions; rejection_response() turns one into the
standard rejection dict (error code, retryable flag, HTTP status).
"""

from typing import Any, Dict, List, Optional

from config.queue_topology import QueueConfigFactory
from core.errors import create_error_response, error_code_for
from core.job_id import parent_job_id
from core.models.enums import JobStatus
from infrastructure.job_store import JobMetadataStore
from interfaces.repository import IQueuePublisher
from util_logger import LoggerFactory, ComponentType

from .producer import Producer, RequestInput
from .stats_service import JobStatsService

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "QuantificationService")


class QuantificationService:
    """
    Submit quantification requests and read their status, input, output and stats.

    Usage:
        service = QuantificationService.create(store, broker, QueueConfigFactory(config.broker))
        response = await service.submit(request, distributed=True)
        status = await service.get_job_status(response["parent_job_id"])
    """

    def __init__(self, producer: Producer, stats: JobStatsService):
        self.producer = producer
        self.stats = stats

    @classmethod
    def create(
        cls,
        store: JobMetadataStore,
        publisher: IQueuePublisher,
        queues: QueueConfigFactory,
        **producer_kwargs: Any,
    ) -> "QuantificationService":
        return cls(Producer(store, publisher, queues, **producer_kwargs), JobStatsService(store))

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    async def submit(
        self,
        request: RequestInput,
        distributed: bool = False,
        adaptive: bool = False,
    ) -> Dict[str, Any]:
        """
        Submit a request as one job or as a sequence batch.

        Args:
            request: QuantifyRequest or its JSON-shaped dict
            distributed: Decompose into one job per sequence
            adaptive: Adaptive decomposition (implies distributed)

        Raises:
            RequestValidationError, EmptyDecomposition, StoreError, QueueUnavailable
        """
        if not (distributed or adaptive):
            return {"job_id": await self.producer.submit_single(request)}

        if adaptive:
            sequence_job_ids = await self.producer.submit_adaptive_sequence_batch(request)
        else:
            sequence_job_ids = await self.producer.submit_sequence_batch(request)

        return {
            "parent_job_id": parent_job_id(sequence_job_ids[0]),
            "sequence_job_ids": sequence_job_ids,
        }

    @staticmethod
    def rejection_response(error: Exception) -> Dict[str, Any]:
        """Standard rejection dict for an exception raised by this service."""
        error_code = error_code_for(error)
        logger.warning(f"Request rejected ({error_code.value}): {error}")
        return create_error_response(error_code, str(error), error_type=type(error).__name__)

    # ========================================================================
    # READ SIDE
    # ========================================================================

    async def get_job_status(self, job_id: str) -> Dict[str, Any]:
        return await self.stats.get_job_status(job_id)

    async def get_job_stats(self, job_id: str) -> Dict[str, Any]:
        return await self.stats.get_job_stats(job_id)

    async def get_output(self, job_id: str) -> Any:
        return await self.stats.get_output(job_id)

    async def get_input(self, job_id: str) -> Any:
        return await self.stats.get_input(job_id)

    async def get_aggregated_output(self, job_id: str) -> Any:
        return await self.stats.get_aggregated_output(job_id)

    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[Dict[str, Any]]:
        return await self.stats.list_jobs(status)

    async def get_completed_sequence_count(self, parent_job_id: str) -> int:
        return await self.stats.get_completed_sequence_count(parent_job_id)
