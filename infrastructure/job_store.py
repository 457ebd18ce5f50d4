# ============================================================================
# JOB METADATA STORE
# ============================================================================
# STATUS: Infrastructure - job lifecycle persistence
# PURPOSE: Job records, batch progress markers and output artifacts in blob storage
# EXPORTS: JobMetadataStore
# DEPENDENCIES: azure-core, pydantic, infrastructure.blob
# ============================================================================

"""
Job Metadata Store

Persists one JSON record per job and the artifacts it produces.

Key layout (jobs container):
    metadata/<job_id>.json                       job record
    metadata/<parent_id>-...                     child listing prefix
    batches/<parent_id>/completed/<child_id>     finished-sequence marker
                                                 (zero bytes, status in metadata)

Outputs container:
    <output_id>.json                             result artifact

Inputs container:
    <input_id>.json                              submitted request

The blob SDK is synchronous; every call runs on an executor thread so the
listener's event loop keeps delivering other messages. Azure SDK errors
are translated to StoreError / JobNotFoundError here and nowhere else.
"""

import asyncio
import functools
import json
from concurrent.futures import Executor
from typing import Any, Callable, Dict, List, Optional, TypeVar

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from pydantic import ValidationError

from config.defaults import StorageDefaults
from config.storage_config import StorageConfig
from core.job_id import child_prefix, is_child_of, sequence_index
from core.logic.calculations import now_ms
from core.logic.transitions import can_job_transition
from core.models.enums import JobStatus
from core.models.job import JobMetadata
from exceptions import InvalidTransitionError, JobNotFoundError, StoreError
from util_logger import LoggerFactory, ComponentType

from .blob import IBlobRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "JobMetadataStore")

T = TypeVar("T")

METADATA_PREFIX = "metadata/"
METADATA_SUFFIX = ".json"
BATCHES_PREFIX = "batches/"
OUTPUT_SUFFIX = ".json"
JSON_CONTENT_TYPE = "application/json"


def metadata_path(job_id: str) -> str:
    return f"{METADATA_PREFIX}{job_id}{METADATA_SUFFIX}"


def marker_prefix(parent_id: str) -> str:
    return f"{BATCHES_PREFIX}{parent_id}/completed/"


def marker_path(parent_id: str, child_id: str) -> str:
    return f"{marker_prefix(parent_id)}{child_id}"


def output_path(output_id: str) -> str:
    return f"{output_id}{OUTPUT_SUFFIX}"


def _job_id_from_path(blob_name: str) -> Optional[str]:
    if not (blob_name.startswith(METADATA_PREFIX) and blob_name.endswith(METADATA_SUFFIX)):
        return None
    return blob_name[len(METADATA_PREFIX):-len(METADATA_SUFFIX)]


class JobMetadataStore:
    """
    Async job record store over a blob repository.

    Usage:
        store = JobMetadataStore.from_config(blob_repo, config.storage)
        await store.create_job(JobMetadata(job_id="abc"))
        job = await store.get_job("abc")
    """

    def __init__(
        self,
        blobs: IBlobRepository,
        jobs_container: str,
        outputs_container: str,
        inputs_container: str = StorageDefaults.INPUTS_CONTAINER,
        executor: Optional[Executor] = None,
    ):
        self.blobs = blobs
        self.jobs_container = jobs_container
        self.outputs_container = outputs_container
        self.inputs_container = inputs_container
        self._executor = executor

    @classmethod
    def from_config(
        cls,
        blobs: IBlobRepository,
        config: StorageConfig,
        executor: Optional[Executor] = None,
    ) -> "JobMetadataStore":
        return cls(
            blobs,
            config.jobs_container,
            config.outputs_container,
            inputs_container=config.inputs_container,
            executor=executor,
        )

    async def _run(self, func: Callable[..., T], *args, **kwargs) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args, **kwargs))

    # ========================================================================
    # JOB RECORDS
    # ========================================================================

    async def create_job(self, job: JobMetadata) -> JobMetadata:
        """
        Record a new job.

        Raises:
            StoreError: If a record already exists under the id, or the write fails
        """
        timestamp = now_ms()
        job = job.model_copy(update={"created_at": job.created_at or timestamp, "updated_at": timestamp})
        try:
            await self._run(
                self.blobs.write_blob,
                self.jobs_container,
                metadata_path(job.job_id),
                json.dumps(job.to_storage()).encode("utf-8"),
                overwrite=False,
                content_type=JSON_CONTENT_TYPE,
            )
        except ResourceExistsError as e:
            raise StoreError(f"Job {job.job_id} already exists") from e
        except AzureError as e:
            raise StoreError(f"Failed to create job {job.job_id}: {e}") from e

        logger.info(f"Created job record {job.job_id} ({job.kind.value}, {job.status.value})")
        return job

    async def get_job(self, job_id: str) -> JobMetadata:
        """
        Read a job record.

        Raises:
            JobNotFoundError: If no record exists
            StoreError: If the read fails or the record is unreadable
        """
        try:
            data = await self._run(self.blobs.read_blob, self.jobs_container, metadata_path(job_id))
        except ResourceNotFoundError as e:
            raise JobNotFoundError(job_id) from e
        except AzureError as e:
            raise StoreError(f"Failed to read job {job_id}: {e}") from e

        try:
            return JobMetadata.model_validate_json(data)
        except ValidationError as e:
            raise StoreError(f"Corrupt job record {job_id}: {e}") from e

    async def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        **changes: Any,
    ) -> JobMetadata:
        """
        Read-modify-write a job record.

        Args:
            job_id: Job to update
            status: Target status (validated against the transition rules)
            **changes: Other JobMetadata fields to set

        Returns:
            The updated record

        Raises:
            JobNotFoundError: If no record exists
            InvalidTransitionError: If the status change is not allowed
            StoreError: If the read or write fails
        """
        job = await self.get_job(job_id)

        if status is not None:
            if not can_job_transition(job.status, status):
                raise InvalidTransitionError(job_id, job.status.value, status.value)
            changes["status"] = status

        changes["updated_at"] = now_ms()
        # Round-trip through validation so nested dicts become models
        updated = JobMetadata.model_validate({**job.model_dump(), **changes})

        try:
            await self._run(
                self.blobs.write_blob,
                self.jobs_container,
                metadata_path(job_id),
                json.dumps(updated.to_storage()).encode("utf-8"),
                overwrite=True,
                content_type=JSON_CONTENT_TYPE,
            )
        except AzureError as e:
            raise StoreError(f"Failed to update job {job_id}: {e}") from e

        if status is not None and status != job.status:
            logger.info(f"Job {job_id}: {job.status.value} -> {status.value}")
        return updated

    async def delete_job(self, job_id: str) -> bool:
        """
        Delete a job record (compensating rollback only).

        Returns:
            True if deleted, False if it did not exist
        """
        try:
            return await self._run(self.blobs.delete_blob, self.jobs_container, metadata_path(job_id))
        except AzureError as e:
            raise StoreError(f"Failed to delete job {job_id}: {e}") from e

    async def list_child_jobs(self, parent_id: str) -> List[JobMetadata]:
        """
        Children of a batch parent, in decomposition order.

        Discovery is a prefix scan on "metadata/<parent_id>-"; only ids
        that parse as sequence children of parent_id are returned.
        """
        prefix = f"{METADATA_PREFIX}{child_prefix(parent_id)}"
        try:
            entries = await self._run(self.blobs.list_blobs, self.jobs_container, prefix)
        except AzureError as e:
            raise StoreError(f"Failed to list children of {parent_id}: {e}") from e

        child_ids = [
            job_id for job_id in (_job_id_from_path(entry["name"]) for entry in entries)
            if job_id is not None and is_child_of(job_id, parent_id)
        ]
        child_ids.sort(key=sequence_index)

        children = []
        for child_id in child_ids:
            try:
                children.append(await self.get_job(child_id))
            except JobNotFoundError:
                # Deleted between listing and reading (batch rollback)
                logger.debug(f"Child {child_id} vanished during listing")
        return children

    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[JobMetadata]:
        """
        All job records, optionally filtered by status.

        Reads every record; intended for operator views, not hot paths.
        """
        try:
            entries = await self._run(self.blobs.list_blobs, self.jobs_container, METADATA_PREFIX)
        except AzureError as e:
            raise StoreError(f"Failed to list jobs: {e}") from e

        jobs = []
        for entry in entries:
            job_id = _job_id_from_path(entry["name"])
            if job_id is None:
                continue
            try:
                job = await self.get_job(job_id)
            except JobNotFoundError:
                continue
            if status is None or job.status == status:
                jobs.append(job)
        return jobs

    # ========================================================================
    # OUTPUT ARTIFACTS
    # ========================================================================

    async def store_output(self, output_id: str, output: Any) -> str:
        """
        Write a result artifact.

        Returns:
            The output id (the record stores only this reference)
        """
        try:
            await self._run(
                self.blobs.write_blob,
                self.outputs_container,
                output_path(output_id),
                json.dumps(output, default=str).encode("utf-8"),
                overwrite=True,
                content_type=JSON_CONTENT_TYPE,
            )
        except AzureError as e:
            raise StoreError(f"Failed to store output {output_id}: {e}") from e
        logger.debug(f"Stored output {output_id}")
        return output_id

    async def get_output(self, output_id: str) -> Any:
        """
        Read a result artifact.

        Raises:
            JobNotFoundError: If no artifact exists under the id
        """
        try:
            data = await self._run(self.blobs.read_blob, self.outputs_container, output_path(output_id))
        except ResourceNotFoundError as e:
            raise JobNotFoundError(output_id, f"Output {output_id} not found") from e
        except AzureError as e:
            raise StoreError(f"Failed to read output {output_id}: {e}") from e
        return json.loads(data)

    # ========================================================================
    # INPUT ARTIFACTS
    # ========================================================================

    async def store_input(self, input_id: str, request: Any) -> str:
        """
        Write a submitted request.

        Returns:
            The input id (the record stores only this reference)
        """
        try:
            await self._run(
                self.blobs.write_blob,
                self.inputs_container,
                output_path(input_id),
                json.dumps(request, default=str).encode("utf-8"),
                overwrite=True,
                content_type=JSON_CONTENT_TYPE,
            )
        except AzureError as e:
            raise StoreError(f"Failed to store input {input_id}: {e}") from e
        return input_id

    async def get_input(self, input_id: str) -> Any:
        """
        Read a submitted request.

        Raises:
            JobNotFoundError: If no input exists under the id
        """
        try:
            data = await self._run(self.blobs.read_blob, self.inputs_container, output_path(input_id))
        except ResourceNotFoundError as e:
            raise JobNotFoundError(input_id, f"Input {input_id} not found") from e
        except AzureError as e:
            raise StoreError(f"Failed to read input {input_id}: {e}") from e
        return json.loads(data)

    async def delete_input(self, input_id: str) -> bool:
        """Delete a submitted request (compensating rollback only)."""
        try:
            return await self._run(self.blobs.delete_blob, self.inputs_container, output_path(input_id))
        except AzureError as e:
            raise StoreError(f"Failed to delete input {input_id}: {e}") from e

    # ========================================================================
    # BATCH PROGRESS
    # ========================================================================

    async def mark_sequence_finished(self, parent_id: str, child_id: str, status: JobStatus) -> None:
        """Write the finished-sequence marker for a child (idempotent)."""
        try:
            await self._run(
                self.blobs.write_blob,
                self.jobs_container,
                marker_path(parent_id, child_id),
                b"",
                overwrite=True,
                metadata={"status": status.value},
            )
        except AzureError as e:
            raise StoreError(f"Failed to mark {child_id} finished: {e}") from e

    async def list_finished_sequences(self, parent_id: str) -> Dict[str, JobStatus]:
        """Finished children of a batch and the status each finished with."""
        try:
            entries = await self._run(self.blobs.list_blobs, self.jobs_container, marker_prefix(parent_id))
        except AzureError as e:
            raise StoreError(f"Failed to list markers of {parent_id}: {e}") from e

        prefix_length = len(marker_prefix(parent_id))
        finished = {}
        for entry in entries:
            child_id = entry["name"][prefix_length:]
            status = (entry.get("metadata") or {}).get("status", JobStatus.COMPLETED.value)
            finished[child_id] = JobStatus(status)
        return finished

    async def get_completed_sequence_count(self, parent_id: str) -> int:
        """Number of children of a batch that reached a terminal state."""
        return len(await self.list_finished_sequences(parent_id))
