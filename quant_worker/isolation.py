# ============================================================================
# WORKER ISOLATION
# ============================================================================
# STATUS: Core - engine execution behind a failure boundary
# PURPOSE: Run compute(settings, model) with timeout and crash containment
# EXPORTS: IsolationBoundary, InProcessIsolation, SubprocessIsolation,
#          create_isolation
# ============================================================================
"""
Worker Isolation

An isolation boundary runs one engine invocation and always returns a
WorkerOutcome. Engine exceptions, timeouts and dead worker processes are
all reported as failure outcomes; nothing the engine does propagates to
the queue listener as an exception.

Implementations:
    in_process   Engine runs on an executor thread under asyncio.wait_for.
                 A timed-out thread cannot be killed and keeps running
                 until the engine returns.
    subprocess   Engine runs in a freshly spawned process and reports over
                 a pipe. On timeout the process is terminated (then
                 killed). A process that exits without reporting is a
                 crash.
"""

import asyncio
import inspect
import multiprocessing
import traceback
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from multiprocessing.connection import Connection
from typing import Any, Dict, Optional

from core.errors import ErrorCode
from core.logic.calculations import now_ms
from core.models.enums import IsolationMode
from core.models.results import WorkerOutcome, WorkerTask
from util_logger import LoggerFactory, ComponentType

from .engine_registry import importable_reference, resolve_engine

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "WorkerIsolation")


def _as_result(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {"result": value}


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


def execute_engine(engine_ref: str, settings: Dict[str, Any], model: Any) -> Dict[str, Any]:
    """Resolve and call an engine synchronously (async engines run to completion)."""
    compute = resolve_engine(engine_ref)
    result = compute(settings, model)
    if inspect.isawaitable(result):
        result = asyncio.run(_await(result))
    return _as_result(result)


async def _await(awaitable):
    return await awaitable


# ============================================================================
# INTERFACE
# ============================================================================

class IsolationBoundary(ABC):
    """Runs one engine invocation; never raises across the boundary."""

    mode: IsolationMode

    @abstractmethod
    async def run(self, task: WorkerTask, timeout: float) -> WorkerOutcome:
        """
        Execute the task's engine within timeout seconds.

        Returns:
            WorkerOutcome (success, or failure with an error code)
        """
        pass

    @staticmethod
    def timed_out(task: WorkerTask, timeout: float, started_at: int) -> WorkerOutcome:
        logger.error(f"Job {task.job_id} timed out after {timeout} seconds")
        return WorkerOutcome.failed(
            ErrorCode.WORKER_TIMEOUT,
            f"Worker timed out after {timeout} seconds",
            started_at,
            now_ms(),
        )


# ============================================================================
# IN-PROCESS (THREAD)
# ============================================================================

class InProcessIsolation(IsolationBoundary):
    """
    Engine on an executor thread.

    Cheapest boundary; contains exceptions and enforces the deadline on
    the caller's side only.
    """

    mode = IsolationMode.IN_PROCESS

    def __init__(self, executor: Optional[Executor] = None):
        self._executor = executor

    async def run(self, task: WorkerTask, timeout: float) -> WorkerOutcome:
        started_at = now_ms()
        try:
            compute = resolve_engine(task.engine_ref)
            if inspect.iscoroutinefunction(compute):
                pending = compute(task.settings, task.model)
            else:
                loop = asyncio.get_running_loop()
                pending = loop.run_in_executor(self._executor, compute, task.settings, task.model)
            result = await asyncio.wait_for(pending, timeout=timeout)
        except asyncio.TimeoutError:
            return self.timed_out(task, timeout, started_at)
        except Exception as e:
            logger.error(f"Job {task.job_id} engine failed: {_describe(e)}")
            return WorkerOutcome.failed(
                ErrorCode.COMPUTE_FAILED,
                _describe(e),
                started_at,
                now_ms(),
                diagnostic=traceback.format_exc(),
            )

        return WorkerOutcome.succeeded(_as_result(result), started_at, now_ms())


# ============================================================================
# SUBPROCESS
# ============================================================================

def _subprocess_main(conn: Connection, engine_ref: str, settings: Dict[str, Any], model: Any) -> None:
    """Worker process entry point: run the engine, report over the pipe."""
    try:
        result = execute_engine(engine_ref, settings, model)
        conn.send({"result": result})
    except Exception as e:
        conn.send({"error": _describe(e), "diagnostic": traceback.format_exc()})
    finally:
        conn.close()


async def _wait_readable(fd: int) -> None:
    """Wait on the event loop until fd is readable (data, EOF or process exit)."""
    loop = asyncio.get_running_loop()
    ready = loop.create_future()

    def _on_ready() -> None:
        if not ready.done():
            ready.set_result(None)

    loop.add_reader(fd, _on_ready)
    try:
        await ready
    finally:
        loop.remove_reader(fd)


async def _receive(conn: Connection) -> Optional[Dict[str, Any]]:
    """Wait until the worker reports; None if it died without reporting."""
    await _wait_readable(conn.fileno())
    try:
        return conn.recv()
    except (EOFError, OSError):
        return None


class SubprocessIsolation(IsolationBoundary):
    """
    Engine in a spawned process.

    Contains segfaults, memory blow-ups and hung native code; the
    process is terminated on timeout. Waiting for the report and for
    process exit happens on the event loop (pipe and process sentinel
    readers), so no executor thread is ever parked on a worker process.
    Requires a selector event loop (POSIX).
    """

    mode = IsolationMode.SUBPROCESS

    def __init__(self, start_method: str = "spawn", kill_grace_seconds: float = 5.0):
        self._context = multiprocessing.get_context(start_method)
        self.kill_grace_seconds = kill_grace_seconds

    async def _wait_exit(self, process, timeout: Optional[float]) -> bool:
        try:
            await asyncio.wait_for(_wait_readable(process.sentinel), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        process.join()
        return True

    async def _stop(self, process) -> None:
        if process.is_alive():
            process.terminate()
            if await self._wait_exit(process, self.kill_grace_seconds):
                return
        if process.is_alive():
            process.kill()
            await self._wait_exit(process, None)

    async def _reap(self, process) -> None:
        if not await self._wait_exit(process, self.kill_grace_seconds):
            await self._stop(process)

    async def run(self, task: WorkerTask, timeout: float) -> WorkerOutcome:
        started_at = now_ms()

        try:
            engine_ref = importable_reference(task.engine_ref)
        except KeyError as e:
            return WorkerOutcome.failed(ErrorCode.COMPUTE_FAILED, _describe(e), started_at, now_ms())

        receiver, sender = self._context.Pipe(duplex=False)
        process = self._context.Process(
            target=_subprocess_main,
            args=(sender, engine_ref, task.settings, task.model),
            daemon=True,
        )
        try:
            process.start()
        except OSError as e:
            receiver.close()
            sender.close()
            return WorkerOutcome.failed(
                ErrorCode.WORKER_CRASHED, f"Could not start worker process: {e}", started_at, now_ms()
            )
        sender.close()
        logger.debug(f"Job {task.job_id} running in worker process {process.pid}")

        try:
            try:
                report = await asyncio.wait_for(_receive(receiver), timeout=timeout)
            except asyncio.TimeoutError:
                await self._stop(process)
                return self.timed_out(task, timeout, started_at)
            await self._reap(process)
        finally:
            # Cancelled mid-run: kill() does not block
            if process.is_alive():
                process.kill()
            receiver.close()

        ended_at = now_ms()

        if report is None:
            logger.error(f"Job {task.job_id} worker process exited with code {process.exitcode}")
            return WorkerOutcome.failed(
                ErrorCode.WORKER_CRASHED,
                f"Worker process exited with code {process.exitcode} without reporting a result",
                started_at,
                ended_at,
            )

        if "error" in report:
            logger.error(f"Job {task.job_id} engine failed: {report['error']}")
            return WorkerOutcome.failed(
                ErrorCode.COMPUTE_FAILED,
                report["error"],
                started_at,
                ended_at,
                diagnostic=report.get("diagnostic"),
            )

        return WorkerOutcome.succeeded(report["result"], started_at, ended_at)


# ============================================================================
# FACTORY
# ============================================================================

def create_isolation(mode: IsolationMode, **kwargs: Any) -> IsolationBoundary:
    """
    Build the isolation boundary for a mode.

    Raises:
        ValueError: Unknown mode
    """
    mode = IsolationMode(mode)
    if mode == IsolationMode.IN_PROCESS:
        return InProcessIsolation(**kwargs)
    if mode == IsolationMode.SUBPROCESS:
        return SubprocessIsolation(**kwargs)
    raise ValueError(f"Unknown isolation mode: {mode}")
