# ============================================================================
# QUANT JOB LISTENER
# ============================================================================
# STATUS: Core - AMQP queue consumer
# PURPOSE: Consume job messages, dispatch to the isolation boundary,
#          record the outcome, ack or dead-letter
# ============================================================================
"""
Quant Job Listener

Consumes every configured work queue. For each delivered message:

1. Decode to QuantJobMessage (failure -> reject to dead-letter, never run)
2. Read the job record; a job already terminal (redelivery) is settled
   from its stored status without running the engine again
3. Mark the job running (best effort)
4. Run the engine behind the isolation boundary
5. Success: store output, mark completed, ack
   Failure: mark failed with partial stats and diagnostics, reject
   (no requeue, so the message lands on the dead-letter queue)
6. Sequence jobs: write the parent's finished-sequence marker (status
   taken from the stored record) and finalize the parent once every
   child has finished

Store writes happen before the message is settled, but a store failure
never changes whether the message is acked or rejected. Each message is
settled exactly once. Prefetch (per queue channel) bounds how many
messages are in flight.
"""

import asyncio
import functools
import traceback
from typing import Any, Dict, List, Optional, Set, Tuple

from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractQueue
from pydantic import ValidationError

from core.errors import ErrorCode
from core.logic.calculations import build_job_stats, now_ms
from core.logic.transitions import is_job_terminal
from core.models.enums import JobStatus
from core.models.job import JobMetadata, JobStats
from core.models.queue import QueueConfig
from core.models.request import QuantJobMessage
from core.models.results import WorkerOutcome, WorkerTask
from exceptions import (
    ContractViolationError,
    InvalidTransitionError,
    JobNotFoundError,
    MalformedMessage,
    StoreError,
)
from infrastructure.broker import BrokerConnection
from infrastructure.job_store import JobMetadataStore
from infrastructure.queue_topology import QueueTopologyManager
from util_logger import LoggerFactory, ComponentType

from .isolation import IsolationBoundary

logger = LoggerFactory.create_logger(ComponentType.CONTROLLER, "QuantJobListener")


def decode_message(body: bytes) -> QuantJobMessage:
    """
    Decode and validate a message body.

    Raises:
        MalformedMessage: Body is not JSON or does not match QuantJobMessage
    """
    try:
        return QuantJobMessage.model_validate_json(body)
    except ValidationError as e:
        raise MalformedMessage(f"Undecodable job message: {e}") from e


class QuantJobListener:
    """
    Consumes job messages from the work queues.

    This is the main loop of a worker process.
    """

    def __init__(
        self,
        broker: BrokerConnection,
        store: JobMetadataStore,
        isolation: IsolationBoundary,
        queues: List[QueueConfig],
        engine_ref: str,
        timeout_seconds: float,
        worker_id: Optional[str] = None,
        topology: Optional[QueueTopologyManager] = None,
        shutdown_timeout_seconds: float = 30.0,
    ):
        self.broker = broker
        self.store = store
        self.isolation = isolation
        self.queues = queues
        self.engine_ref = engine_ref
        self.timeout_seconds = timeout_seconds
        self.worker_id = worker_id
        self.topology = topology or QueueTopologyManager()
        self.shutdown_timeout_seconds = shutdown_timeout_seconds

        self._consumers: List[Tuple[AbstractChannel, AbstractQueue, str]] = []
        self._in_flight: Set[asyncio.Task] = set()
        self._running = False
        self._messages_processed = 0
        self._messages_failed = 0
        self._messages_malformed = 0

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self) -> None:
        """
        Set up every queue on its own channel and start consuming.

        Raises:
            QueueTopologyError: If any queue cannot be set up
            QueueUnavailable: If the broker cannot be reached
        """
        logger.info(
            f"Starting listener on queues: {[q.name for q in self.queues]} "
            f"(isolation={self.isolation.mode.value}, timeout={self.timeout_seconds}s)"
        )
        for config in self.queues:
            channel = await self.broker.channel(publisher_confirms=False)
            queue = await self.topology.setup_queue(config, channel)
            consumer_tag = await queue.consume(
                functools.partial(self.handle_message, queue_name=config.name),
                no_ack=False,
            )
            self._consumers.append((channel, queue, consumer_tag))
        self._running = True
        logger.info("Listener started successfully")

    async def stop(self) -> None:
        """Cancel consumers, wait for in-flight messages, close channels."""
        logger.info("Stopping listener...")
        self._running = False

        for _, queue, consumer_tag in self._consumers:
            await queue.cancel(consumer_tag)

        if self._in_flight:
            logger.info(f"Waiting for {len(self._in_flight)} in-flight messages")
            await asyncio.wait(set(self._in_flight), timeout=self.shutdown_timeout_seconds)

        for channel, _, _ in self._consumers:
            await channel.close()
        self._consumers.clear()

        logger.info(
            f"Listener stopped. "
            f"Processed: {self._messages_processed}, "
            f"Failed: {self._messages_failed}, "
            f"Malformed: {self._messages_malformed}"
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        """Consume until stop_event is set."""
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    # ========================================================================
    # MESSAGE HANDLING
    # ========================================================================

    async def handle_message(self, message: AbstractIncomingMessage, queue_name: str) -> None:
        """
        Handle one delivered message end to end.

        Never raises; the message is always settled exactly once.
        """
        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            await self._handle(message, queue_name)
        finally:
            if task is not None:
                self._in_flight.discard(task)

    async def _handle(self, message: AbstractIncomingMessage, queue_name: str) -> None:
        received_at = now_ms()

        try:
            job = decode_message(message.body)
        except MalformedMessage as e:
            self._messages_malformed += 1
            logger.warning(f"Rejecting malformed message on {queue_name}: {e}")
            await self._settle(message, ack=False, label=f"malformed message on {queue_name}")
            return

        log = LoggerFactory.create_with_context(
            ComponentType.CONTROLLER,
            "QuantJobListener",
            job_id=job.job_id,
            parent_job_id=job.parent_job_id,
            queue=queue_name,
            worker_id=self.worker_id,
        )

        try:
            succeeded = await self._process(job, received_at, log)
        except Exception as e:
            log.exception(f"Unexpected error handling job {job.job_id}: {e}")
            outcome = WorkerOutcome.failed(
                ErrorCode.UNEXPECTED_ERROR,
                f"{type(e).__name__}: {e}",
                received_at,
                now_ms(),
                diagnostic=traceback.format_exc(),
            )
            try:
                await self._record_outcome(job, outcome, received_at, log)
            except Exception as record_error:
                log.error(f"Could not record failure of job {job.job_id}: {record_error}")
            succeeded = False

        if succeeded:
            self._messages_processed += 1
        else:
            self._messages_failed += 1
        await self._settle(message, ack=succeeded, label=f"job {job.job_id}")

    async def _process(self, job: QuantJobMessage, received_at: int, log) -> bool:
        """Run one decoded job. Returns True when the job completed."""
        recorded = await self._read_record(job.job_id, log)
        if recorded is not None and is_job_terminal(recorded.status):
            return await self._replay_terminal(job, recorded, log)

        try:
            await self.store.update_job(job.job_id, status=JobStatus.RUNNING, received_at=received_at)
        except StoreError as e:
            log.warning(f"Could not mark job {job.job_id} running: {e}")

        log.info(f"Dispatching job {job.job_id} to {self.isolation.mode.value} worker")
        outcome = await self.isolation.run(
            WorkerTask(
                job_id=job.job_id,
                engine_ref=self.engine_ref,
                settings=job.request.settings,
                model=job.request.model,
            ),
            self.timeout_seconds,
        )
        if not isinstance(outcome, WorkerOutcome):
            raise ContractViolationError(
                f"Isolation boundary returned {type(outcome).__name__}, expected WorkerOutcome"
            )

        await self._record_outcome(job, outcome, received_at, log)
        return outcome.success

    async def _read_record(self, job_id: str, log) -> Optional[JobMetadata]:
        try:
            return await self.store.get_job(job_id)
        except StoreError as e:
            log.warning(f"Could not read record of job {job_id}: {e}")
            return None

    async def _replay_terminal(self, job: QuantJobMessage, recorded: JobMetadata, log) -> bool:
        """
        Settle a redelivered message whose job already finished.

        The engine is not run again and the stored output is left alone.
        A sequence job's marker is rewritten from the stored status, which
        also finishes batch bookkeeping interrupted before the first ack.
        """
        log.warning(
            f"Job {job.job_id} already {recorded.status.value}; "
            f"settling redelivered message without dispatch"
        )
        if job.parent_job_id:
            await self._record_batch_progress(job.parent_job_id, job.job_id, recorded.status, log)
        return recorded.status == JobStatus.COMPLETED

    def _build_stats(self, job: QuantJobMessage, outcome: WorkerOutcome, received_at: int, log) -> Optional[JobStats]:
        dropped: Dict[str, Any] = {}
        try:
            stats = build_job_stats(outcome, job.sent_at, received_at, dropped)
        except ValidationError as e:
            log.warning(f"Could not build stats for job {job.job_id}: {e}")
            return None
        if dropped:
            log.warning(f"Job {job.job_id}: result fields not usable as stats: {sorted(dropped)}")
        return stats

    async def _record_outcome(
        self,
        job: QuantJobMessage,
        outcome: WorkerOutcome,
        received_at: int,
        log,
    ) -> None:
        """Persist a terminal outcome; store errors are logged, not raised."""
        status = JobStatus.COMPLETED if outcome.success else JobStatus.FAILED
        changes = {
            "received_at": received_at,
            "stats": self._build_stats(job, outcome, received_at, log),
        }

        if outcome.success:
            try:
                changes["output_job_id"] = await self.store.store_output(job.job_id, outcome.result)
            except StoreError as e:
                log.error(f"Could not store output of job {job.job_id}: {e}")
        else:
            changes["error_details"] = outcome.error
            changes["error_code"] = outcome.error_code.value if outcome.error_code else None
            changes["diagnostic"] = outcome.diagnostic

        recorded_status = status
        try:
            await self.store.update_job(job.job_id, status=status, **changes)
        except InvalidTransitionError as e:
            # Another delivery finished the job first; its status stands
            log.warning(f"Outcome of job {job.job_id} not recorded: {e}")
            recorded = await self._read_record(job.job_id, log)
            if recorded is not None:
                recorded_status = recorded.status
        except StoreError as e:
            log.error(f"Could not mark job {job.job_id} {status.value}: {e}")

        if outcome.success:
            log.info(f"Job {job.job_id} completed")
        else:
            log.warning(f"Job {job.job_id} failed ({changes['error_code']}): {outcome.error}")

        if job.parent_job_id:
            await self._record_batch_progress(job.parent_job_id, job.job_id, recorded_status, log)

    # ========================================================================
    # BATCH PROGRESS
    # ========================================================================

    async def _record_batch_progress(self, parent_id: str, child_id: str, status: JobStatus, log) -> None:
        try:
            await self.store.mark_sequence_finished(parent_id, child_id, status)
            finished = await self.store.list_finished_sequences(parent_id)
            parent = await self.store.get_job(parent_id)
            if parent.child_job_ids and all(c in finished for c in parent.child_job_ids):
                await self.finalize_batch(parent, finished)
            else:
                log.debug(f"Batch {parent_id}: {len(finished)}/{len(parent.child_job_ids)} sequences finished")
        except StoreError as e:
            log.error(f"Could not record batch progress for {parent_id}: {e}")

    async def finalize_batch(self, parent: JobMetadata, finished: Dict[str, JobStatus]) -> None:
        """
        Consolidate a finished batch into its parent (idempotent).

        Writes children's outputs in decomposition order as one artifact,
        then marks the parent completed if every child completed, else failed.
        A parent already terminal keeps its status.
        """
        if parent.aggregated_output_job_id:
            return

        sequences = []
        for child_id in parent.child_job_ids:
            output = None
            try:
                child = await self.store.get_job(child_id)
                if child.output_job_id:
                    output = await self.store.get_output(child.output_job_id)
            except JobNotFoundError:
                logger.warning(f"Batch {parent.job_id}: output of {child_id} missing")
            sequences.append({
                "job_id": child_id,
                "status": finished[child_id].value,
                "output": output,
            })

        aggregated_id = await self.store.store_output(
            parent.job_id,
            {"parent_job_id": parent.job_id, "sequences": sequences},
        )

        changes = {"aggregated_output_job_id": aggregated_id}
        failed = [s["job_id"] for s in sequences if s["status"] != JobStatus.COMPLETED.value]
        status = None
        if not is_job_terminal(parent.status):
            status = JobStatus.FAILED if failed else JobStatus.COMPLETED
            if failed:
                changes["error_details"] = f"{len(failed)} of {len(sequences)} sequences failed: {failed}"

        await self.store.update_job(parent.job_id, status=status, **changes)
        logger.info(
            f"Batch {parent.job_id} finalized "
            f"({len(sequences) - len(failed)}/{len(sequences)} sequences completed)"
        )

    # ========================================================================
    # SETTLEMENT
    # ========================================================================

    async def _settle(self, message: AbstractIncomingMessage, ack: bool, label: str) -> None:
        try:
            if ack:
                await message.ack()
            else:
                await message.nack(requeue=False)
        except Exception as e:
            # Channel gone: the broker redelivers the unsettled message
            logger.error(f"Could not {'ack' if ack else 'reject'} {label}: {e}")

    # ========================================================================
    # STATUS
    # ========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict:
        """Get listener statistics."""
        return {
            "running": self._running,
            "queues": [q.name for q in self.queues],
            "messages_processed": self._messages_processed,
            "messages_failed": self._messages_failed,
            "messages_malformed": self._messages_malformed,
            "in_flight": len(self._in_flight),
        }
