"""
Isolation boundary tests - success, engine errors, timeouts and crashes.

Subprocess tests spawn real worker processes; engines come from
tests.fake_engines so the child can import them.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import ErrorCode
from core.models.enums import IsolationMode
from core.models.results import WorkerOutcome, WorkerTask
from quant_worker.engine_registry import register_engine
from quant_worker.isolation import (
    InProcessIsolation,
    SubprocessIsolation,
    create_isolation,
    execute_engine,
)
from tests import fake_engines


def _task(engine: str, **settings) -> WorkerTask:
    return WorkerTask(
        job_id="job-1",
        engine_ref=f"tests.fake_engines:{engine}",
        settings=settings,
        model={"name": "A"},
    )


class TestExecuteEngine:

    def test_dict_result(self):
        result = execute_engine("tests.fake_engines:succeed", {"k": 1}, "A")
        assert result["echo"] == {"settings": {"k": 1}, "model": "A"}

    def test_scalar_result_wrapped(self):
        assert execute_engine("tests.fake_engines:return_scalar", {}, None) == {"result": 0.125}

    def test_async_engine_run_to_completion(self):
        assert execute_engine("tests.fake_engines:succeed_async", {}, None) == {"probability": 0.75}


class TestInProcessIsolation:

    @pytest.mark.asyncio
    async def test_success(self):
        outcome = await InProcessIsolation().run(_task("succeed", seed=7), timeout=10)
        assert isinstance(outcome, WorkerOutcome)
        assert outcome.success
        assert outcome.result["echo"]["settings"] == {"seed": 7}
        assert outcome.ended_at >= outcome.started_at

    @pytest.mark.asyncio
    async def test_async_engine(self):
        outcome = await InProcessIsolation().run(_task("succeed_async"), timeout=10)
        assert outcome.result == {"probability": 0.75}

    @pytest.mark.asyncio
    async def test_engine_exception_is_failure(self):
        outcome = await InProcessIsolation().run(_task("fail"), timeout=10)
        assert not outcome.success
        assert outcome.error_code == ErrorCode.COMPUTE_FAILED
        assert outcome.error == "ValueError: model has no top event"
        assert "Traceback" in outcome.diagnostic

    @pytest.mark.asyncio
    async def test_timeout(self):
        outcome = await InProcessIsolation().run(_task("hang", sleep=0.5), timeout=0.05)
        assert not outcome.success
        assert outcome.error_code == ErrorCode.WORKER_TIMEOUT
        assert outcome.started_at is not None and outcome.ended_at is not None

    @pytest.mark.asyncio
    async def test_unresolvable_engine_is_failure(self):
        outcome = await InProcessIsolation().run(_task("missing"), timeout=10)
        assert outcome.error_code == ErrorCode.COMPUTE_FAILED


class TestSubprocessIsolation:

    @pytest.mark.asyncio
    async def test_success(self):
        outcome = await SubprocessIsolation().run(_task("succeed", seed=3), timeout=60)
        assert outcome.success, outcome.error
        assert outcome.result["probability"] == 0.25
        assert outcome.result["echo"]["model"] == {"name": "A"}

    @pytest.mark.asyncio
    async def test_registered_engine_name(self):
        register_engine("fake-registered")(fake_engines.registered)
        task = WorkerTask(job_id="job-1", engine_ref="fake-registered", settings={}, model=None)
        outcome = await SubprocessIsolation().run(task, timeout=60)
        assert outcome.success, outcome.error
        assert outcome.result["engine"] == "fake-registered"

    @pytest.mark.asyncio
    async def test_engine_exception(self):
        outcome = await SubprocessIsolation().run(_task("fail"), timeout=60)
        assert outcome.error_code == ErrorCode.COMPUTE_FAILED
        assert "model has no top event" in outcome.error
        assert "Traceback" in outcome.diagnostic

    @pytest.mark.asyncio
    async def test_crash_without_report(self):
        outcome = await SubprocessIsolation().run(_task("crash"), timeout=60)
        assert not outcome.success
        assert outcome.error_code == ErrorCode.WORKER_CRASHED
        assert "exited with code 3" in outcome.error

    @pytest.mark.asyncio
    async def test_timeout_terminates_process(self):
        outcome = await SubprocessIsolation(kill_grace_seconds=1).run(_task("hang", sleep=60), timeout=2)
        assert outcome.error_code == ErrorCode.WORKER_TIMEOUT

    @pytest.mark.asyncio
    async def test_concurrent_timeouts_do_not_need_executor_threads(self):
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1)
        loop.set_default_executor(executor)
        isolation = SubprocessIsolation(kill_grace_seconds=1)

        outcomes = await asyncio.wait_for(
            asyncio.gather(*(isolation.run(_task("hang", sleep=60), timeout=2) for _ in range(3))),
            timeout=30,
        )

        assert [o.error_code for o in outcomes] == [ErrorCode.WORKER_TIMEOUT] * 3
        # Default pool still free for store I/O
        assert await loop.run_in_executor(None, sum, [1, 2]) == 3

    @pytest.mark.asyncio
    async def test_unknown_registry_name(self):
        task = WorkerTask(job_id="job-1", engine_ref="never-registered")
        outcome = await SubprocessIsolation().run(task, timeout=60)
        assert outcome.error_code == ErrorCode.COMPUTE_FAILED


class TestCreateIsolation:

    @pytest.mark.parametrize("mode,expected", [
        (IsolationMode.IN_PROCESS, InProcessIsolation),
        ("subprocess", SubprocessIsolation),
    ])
    def test_modes(self, mode, expected):
        isolation = create_isolation(mode)
        assert isinstance(isolation, expected)
        assert isolation.mode == IsolationMode(mode)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            create_isolation("container")
