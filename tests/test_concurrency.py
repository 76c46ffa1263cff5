import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

from scopelog import begin_field, begin_field_scope, current_fields


def test_threads_never_see_each_others_fields(sink) -> None:
    barrier = threading.Barrier(2, timeout=5)
    seen: dict[str, dict] = {}

    def worker(name: str) -> None:
        with begin_field(sink, "worker", name):
            # Both scopes are open at the same time here.
            barrier.wait()
            seen[name] = current_fields()
            barrier.wait()

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("left", "right")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert seen == {"left": {"worker": "left"}, "right": {"worker": "right"}}
    assert current_fields() == {}


def test_pooled_thread_is_clean_after_scope_exits(sink) -> None:
    def first_job() -> dict:
        with begin_field(sink, "jobId", "1"):
            return current_fields()

    def second_job() -> dict:
        return current_fields()

    with ThreadPoolExecutor(max_workers=1) as pool:
        inside = pool.submit(first_job).result()
        after = pool.submit(second_job).result()

    assert inside == {"jobId": "1"}
    assert after == {}


async def test_tasks_never_see_each_others_fields(sink) -> None:
    async def handle(request_id: str) -> dict:
        with begin_field_scope(sink, [("requestId", request_id)]):
            await asyncio.sleep(0.01)
            return current_fields()

    results = await asyncio.gather(*(handle(str(i)) for i in range(5)))

    assert results == [{"requestId": str(i)} for i in range(5)]
    assert current_fields() == {}


async def test_task_inherits_outer_scope_without_leaking_back(sink) -> None:
    async def child() -> dict:
        with begin_field(sink, "step", "child"):
            await asyncio.sleep(0)
            return current_fields()

    with begin_field(sink, "runId", "r1"):
        inner = await asyncio.create_task(child())
        assert current_fields() == {"runId": "r1"}

    assert inner == {"runId": "r1", "step": "child"}


async def test_cancelled_task_releases_its_scope(sink) -> None:
    started = asyncio.Event()
    observed: list[dict] = []

    async def long_running() -> None:
        try:
            with begin_field(sink, "jobId", "9"):
                started.set()
                await asyncio.sleep(10)
        finally:
            observed.append(current_fields())

    task = asyncio.create_task(long_running())
    await started.wait()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert observed == [{}]
