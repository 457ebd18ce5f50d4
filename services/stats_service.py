# ============================================================================
# JOB STATS SERVICE
# ============================================================================
# STATUS: Service layer - read side of the job store
# PURPOSE: Caller-facing status, stats, input and output views
# EXPORTS: JobStatsService
# DEPENDENCIES: infrastructure.JobMetadataStore
# ============================================================================
"""
Job Stats Service.

Read-only views over the job metadata store. Every lookup of an unknown
id raises JobNotFoundError.

A batch parent's stored status stays pending while its children run;
get_job_status rolls it up from the children until the parent itself
is terminal.
"""

from typing import Any, Dict, List, Optional

from core.logic.calculations import normalize_stats
from core.logic.transitions import rollup_status
from core.models.enums import JobStatus
from core.models.job import JobMetadata
from exceptions import JobNotFoundError
from infrastructure.job_store import JobMetadataStore
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "JobStatsService")


def _stats_view(job: JobMetadata) -> Dict[str, Any]:
    return {
        "job_id": job.job_id,
        "status": job.status.value,
        "sent_at": job.sent_at,
        "received_at": job.received_at,
        "stats": normalize_stats(job.stats),
    }


class JobStatsService:
    """Status/stats aggregation over stored job records."""

    def __init__(self, store: JobMetadataStore):
        self.store = store

    async def get_job_stats(self, job_id: str) -> Dict[str, Any]:
        """
        Normalized stats of a job and of every child under its id.

        Returns:
            {job_id, status, sent_at, received_at, stats, child_stats}
            child_stats is ordered by sequence index (empty for plain jobs)

        Raises:
            JobNotFoundError: Unknown job id
        """
        job = await self.store.get_job(job_id)
        children = await self.store.list_child_jobs(job_id)

        view = _stats_view(job)
        view["child_stats"] = [_stats_view(child) for child in children]
        return view

    async def get_job_status(self, job_id: str) -> Dict[str, Any]:
        """
        Current status of a job and the ids of its outputs.

        Raises:
            JobNotFoundError: Unknown job id
        """
        job = await self.store.get_job(job_id)
        status = job.status

        response: Dict[str, Any] = {
            "job_id": job.job_id,
            "kind": job.kind.value,
            "status": status.value,
            "output_job_id": job.output_job_id,
        }

        if job.is_batch_parent:
            finished = await self.store.list_finished_sequences(job_id)
            records = {child.job_id: child.status for child in await self.store.list_child_jobs(job_id)}
            # Markers win over child records, which may lag
            statuses = [
                finished.get(child_id) or records.get(child_id, JobStatus.PENDING)
                for child_id in job.child_job_ids
            ]
            status = rollup_status(job.status, statuses)
            response.update({
                "status": status.value,
                "sequence_job_ids": job.child_job_ids,
                "completed_sequences": len(finished),
                "total_sequences": len(job.child_job_ids),
                "aggregated_output_job_id": job.aggregated_output_job_id,
            })

        if job.error_details:
            response["error_details"] = job.error_details
            response["error_code"] = job.error_code

        return response

    async def get_output(self, job_id: str) -> Any:
        """
        Output artifact of a completed job.

        Raises:
            JobNotFoundError: Unknown job, or the job has no output yet
        """
        job = await self.store.get_job(job_id)
        if not job.output_job_id:
            raise JobNotFoundError(job_id, f"Job '{job_id}' has no output ({job.status.value})")
        return await self.store.get_output(job.output_job_id)

    async def get_input(self, job_id: str) -> Any:
        """
        Request submitted for a job (a batch child's own sub-request).

        Raises:
            JobNotFoundError: Unknown job, or no input was stored for it
        """
        job = await self.store.get_job(job_id)
        if not job.input_id:
            raise JobNotFoundError(job_id, f"Job '{job_id}' has no stored input")
        return await self.store.get_input(job.input_id)

    async def get_aggregated_output(self, job_id: str) -> Any:
        """
        Consolidated output of a finished batch.

        Raises:
            JobNotFoundError: Unknown job, or the batch is not finalized yet
        """
        job = await self.store.get_job(job_id)
        if not job.aggregated_output_job_id:
            raise JobNotFoundError(job_id, f"Batch '{job_id}' has no aggregated output yet")
        return await self.store.get_output(job.aggregated_output_job_id)

    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[Dict[str, Any]]:
        """Summaries of all jobs, optionally filtered by stored status."""
        jobs = await self.store.list_jobs(status)
        logger.debug(f"Listed {len(jobs)} jobs (status={status.value if status else 'any'})")
        return [
            {
                "job_id": job.job_id,
                "kind": job.kind.value,
                "status": job.status.value,
                "parent_job_id": job.parent_job_id,
                "sent_at": job.sent_at,
                "updated_at": job.updated_at,
            }
            for job in jobs
        ]

    async def get_completed_sequence_count(self, parent_job_id: str) -> int:
        """
        Number of finished children of a batch.

        Raises:
            JobNotFoundError: Unknown parent id
        """
        await self.store.get_job(parent_job_id)
        return await self.store.get_completed_sequence_count(parent_job_id)
